"""nowclient - a Python client for the ServiceNow REST API."""

from .api import ServiceNowClient, ServiceNowConnection
from .exceptions import (
    OperationError,
    QueryEmptyError,
    QueryError,
    QueryMissingFieldError,
    QueryTypeError,
    ServiceNowError,
)
from .utils.glide_query_builder import QueryBuilder, RelativeDateBuilder

__version__ = "0.1.0"

__all__ = [
    "ServiceNowClient",
    "ServiceNowConnection",
    "QueryBuilder",
    "RelativeDateBuilder",
    "ServiceNowError",
    "QueryError",
    "QueryMissingFieldError",
    "QueryTypeError",
    "QueryEmptyError",
    "OperationError",
]
