"""Record operations on ServiceNow tables."""

from typing import Any, Dict, List, Optional, Union

import requests

from nowclient.api.base import ServiceNowConnection, connection_params_from_config
from nowclient.utils.config.constants import (
    COUNT_FIELD,
    DEFAULT_API_NAME,
    DEFAULT_NAMESPACE,
    DEFAULT_TIMEOUT_SECONDS,
    HTTP_NO_CONTENT,
    MAX_RECORD_LIMIT,
    SERVICENOW_COMPONENT,
    SYSPARM_DISPLAY_VALUE,
    SYSPARM_FIELDS,
    SYSPARM_LIMIT,
    SYSPARM_OFFSET,
    SYSPARM_QUERY,
)
from nowclient.utils.glide_query_builder import QueryBuilder
from nowclient.utils.logging import get_logger
from nowclient.utils.platform.servicenow.glide_helpers import validate_table_name

logger = get_logger(SERVICENOW_COMPONENT)

Query = Union[str, QueryBuilder, None]


class ServiceNowClient:
    """Client for the ServiceNow Table API.

    Every ``query`` argument accepts an encoded query string or a
    QueryBuilder, which is built when the request is made.

    Example:
        ```python
        client = ServiceNowClient("dev12345", "admin", "secret")
        open_p1s = client.get_records(
            "incident",
            QueryBuilder().field("active").equals("true").and_().field("priority").equals(1)
        )
        ```
    """

    def __init__(self, instance: str, username: str, password: str,
                 api_name: str = DEFAULT_API_NAME, namespace: str = DEFAULT_NAMESPACE,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 session: Optional[requests.Session] = None):
        self.connection = ServiceNowConnection(
            instance, username, password,
            api_name=api_name,
            namespace=namespace,
            timeout=timeout,
            session=session
        )

    @classmethod
    def from_config(cls, **overrides) -> "ServiceNowClient":
        """Create a client from environment secrets and configuration."""
        return cls(**connection_params_from_config(**overrides))

    @property
    def instance(self) -> str:
        return self.connection.instance

    @property
    def base_url(self) -> str:
        return self.connection.base_url

    def get_records(self, table: str, query: Query = None, fields: Optional[List[str]] = None,
                    limit: Optional[int] = None, offset: Optional[int] = None,
                    display_value: Optional[str] = None) -> Dict[str, Any]:
        """Get a set of records based on a query.

        Args:
            table: Table to query
            query: Encoded query string or QueryBuilder
            fields: Fields to return (supports dot-walking)
            limit: Maximum records to return (capped at 10000)
            offset: Starting record offset
            display_value: Reference field display (true/false/all)

        Returns:
            Response body, records are under "result"
        """
        params = self._build_query_params(
            query=query,
            fields=fields,
            limit=limit,
            offset=offset,
            display_value=display_value
        )
        return self._request(table, params)

    def get_record_count(self, table: str, query: Query = None) -> int:
        """Get the number of records matching a query.

        Only a single field is requested to keep the response small.
        """
        params = {SYSPARM_FIELDS: COUNT_FIELD}
        params.update(self._build_query_params(query=query))

        response = self._request(table, params)
        if not response or not response.get('result'):
            return 0
        return len(response['result'])

    def create_record(self, table: str, body: Dict[str, Any]) -> str:
        """Create a record and return its sys_id."""
        response = self._request(table, method="POST", body=body)
        return response['result']['sys_id']

    def get_single_record(self, table: str, sys_id: str) -> Dict[str, Any]:
        """Get a single record by sys_id."""
        return self._request([table, sys_id])

    def update_single_record(self, table: str, body: Dict[str, Any], sys_id: str) -> str:
        """Update fields of a single record and return its sys_id."""
        response = self._request([table, sys_id], method="PUT", body=body)
        return response['result']['sys_id']

    def delete_single_record(self, table: str, sys_id: str) -> bool:
        """Delete a single record; True when ServiceNow reports it deleted."""
        return self._request(
            [table, sys_id],
            method="DELETE",
            response_selector=lambda response: response.status_code == HTTP_NO_CONTENT
        )

    def close(self):
        self.connection.close()

    def __enter__(self) -> "ServiceNowClient":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _request(self, path: Union[str, List[str]], params: Optional[Dict[str, str]] = None,
                 method: str = "GET", body: Optional[Dict[str, Any]] = None,
                 response_selector=None) -> Any:
        table = path[0] if isinstance(path, list) else path
        if not validate_table_name(table):
            logger.warning("unusual_table_name",
                component=SERVICENOW_COMPONENT,
                table=table,
                details="Table name does not follow ServiceNow naming conventions"
            )

        with logger.track_performance("servicenow_request", component=SERVICENOW_COMPONENT,
                                      method=method, table=table):
            return self.connection.request(path, params, method, body, response_selector)

    def _build_query_params(self, query: Query = None, fields: Optional[List[str]] = None,
                            limit: Optional[int] = None, offset: Optional[int] = None,
                            display_value: Optional[str] = None) -> Dict[str, str]:
        """Build Table API query parameters, leaving out anything unset."""
        params = {}

        if isinstance(query, QueryBuilder):
            params[SYSPARM_QUERY] = query.build()
        elif query:
            params[SYSPARM_QUERY] = query

        if fields:
            params[SYSPARM_FIELDS] = ','.join(fields)

        if limit is not None:
            params[SYSPARM_LIMIT] = str(min(limit, MAX_RECORD_LIMIT))  # ServiceNow max

        if offset is not None:
            params[SYSPARM_OFFSET] = str(offset)

        if display_value is not None:
            params[SYSPARM_DISPLAY_VALUE] = display_value

        return params
