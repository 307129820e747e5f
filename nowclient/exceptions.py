"""ServiceNow client exceptions"""

from typing import Optional


class ServiceNowError(Exception):
    """Base exception for all ServiceNow client errors"""
    pass


class QueryError(ServiceNowError):
    """Invalid use of a query builder"""
    pass


class QueryMissingFieldError(QueryError):
    """A condition or ordering was added before a field was chosen"""
    pass


class QueryTypeError(QueryError):
    """An operand does not have one of the accepted types"""
    pass


class QueryEmptyError(QueryError):
    """An empty query was built"""
    pass


class OperationError(ServiceNowError):
    """Error encountered while talking to the ServiceNow API"""
    def __init__(self, message: str, inner_error: Optional[BaseException] = None,
                 status_code: Optional[int] = None):
        self.inner_error = inner_error
        self.status_code = status_code
        super().__init__(message)
