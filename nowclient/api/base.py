"""HTTP transport for the ServiceNow REST API.

This module provides the connection every record operation goes through:
- Connection settings validated with pydantic
- Basic authentication and JSON headers on a shared requests session
- Transport failures and non-2xx responses raised as OperationError
- Structured logging of every request
"""

from typing import Any, Callable, Dict, List, Optional, Union

import requests
from pydantic import BaseModel, Field, field_validator
from requests.auth import HTTPBasicAuth

from nowclient.exceptions import OperationError
from nowclient.utils.config import get_config
from nowclient.utils.config.constants import (
    DEFAULT_API_NAME,
    DEFAULT_NAMESPACE,
    DEFAULT_TIMEOUT_SECONDS,
    JSON_HEADERS,
    SERVICENOW_COMPONENT,
)
from nowclient.utils.logging import get_logger
from nowclient.utils.platform.servicenow.glide_helpers import (
    build_api_url,
    build_path,
    normalize_instance_url,
)

logger = get_logger(SERVICENOW_COMPONENT)

ResponseSelector = Callable[[requests.Response], Any]


class ConnectionSettings(BaseModel):
    """Where and how to reach a ServiceNow instance."""
    instance: str = Field(description="Instance name, host or URL (e.g., dev12345)")
    username: str = Field(description="User to authenticate as")
    password: str = Field(description="Password of the user")
    api_name: str = Field(DEFAULT_API_NAME, description="ServiceNow API to call")
    namespace: str = Field(DEFAULT_NAMESPACE, description="ServiceNow namespace to target")
    timeout: float = Field(DEFAULT_TIMEOUT_SECONDS, gt=0, description="Request timeout in seconds")

    @field_validator("instance")
    @classmethod
    def _instance_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("instance must not be empty")
        return value

    @property
    def instance_url(self) -> str:
        return normalize_instance_url(self.instance)

    @property
    def base_url(self) -> str:
        return build_api_url(self.instance_url, self.namespace, self.api_name)


def connection_params_from_config(**overrides) -> Dict[str, Any]:
    """Collect connection arguments from the unified configuration."""
    config = get_config()
    params = {
        "instance": config.get_secret("servicenow_instance"),
        "username": config.get_secret("servicenow_user"),
        "password": config.get_secret("servicenow_password"),
        "api_name": config.servicenow_api_name,
        "namespace": config.servicenow_namespace,
        "timeout": config.servicenow_timeout,
    }
    params.update(overrides)
    return params


class ServiceNowConnection:
    """Authenticated connection to one ServiceNow API.

    Example:
        ```python
        connection = ServiceNowConnection("dev12345", "admin", "secret")
        connection.request(["incident", sys_id])
        ```
    """

    def __init__(self, instance: str, username: str, password: str,
                 api_name: str = DEFAULT_API_NAME, namespace: str = DEFAULT_NAMESPACE,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 session: Optional[requests.Session] = None):
        self.settings = ConnectionSettings(
            instance=instance,
            username=username,
            password=password,
            api_name=api_name,
            namespace=namespace,
            timeout=timeout
        )
        self.instance = instance
        self.base_url = self.settings.base_url
        self.session = session or requests.Session()
        self.session.auth = HTTPBasicAuth(username, password)
        self.session.headers.update(JSON_HEADERS)

        logger.info("servicenow_connection_created",
            component=SERVICENOW_COMPONENT,
            operation="connection",
            instance=self.settings.instance_url,
            api_name=api_name,
            namespace=namespace
        )

    @classmethod
    def from_config(cls, **overrides) -> "ServiceNowConnection":
        """Create a connection from environment secrets and configuration.

        Reads SERVICENOW_INSTANCE, SERVICENOW_USER and SERVICENOW_PASSWORD;
        keyword arguments override configured values.

        Raises:
            ConfigError: If a required secret is missing
        """
        return cls(**connection_params_from_config(**overrides))

    def request(self, path: Union[str, List[str]], params: Optional[Dict[str, Any]] = None,
                method: str = "GET", body: Optional[Dict[str, Any]] = None,
                response_selector: Optional[ResponseSelector] = None) -> Any:
        """Make a request to ServiceNow.

        Args:
            path: Path segment or list of segments below the API base URL
            params: Query string parameters
            method: HTTP method, defaults to GET
            body: Request body, sent as JSON
            response_selector: Callable picking what to return from the
                response; if omitted the decoded JSON body is returned

        Returns:
            Decoded JSON (None for empty or non-JSON bodies), or whatever
            response_selector returns

        Raises:
            OperationError: On transport failures and non-2xx responses
        """
        segments = path if isinstance(path, list) else [path]
        url = self.base_url + build_path(segments)

        logger.debug("servicenow_request",
            component=SERVICENOW_COMPONENT,
            method=method,
            url=url,
            params=params
        )

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=body,
                timeout=self.settings.timeout
            )
        except requests.RequestException as e:
            logger.error("servicenow_request_failed",
                component=SERVICENOW_COMPONENT,
                method=method,
                url=url,
                error=str(e),
                error_type=type(e).__name__
            )
            raise OperationError(
                f"Error while performing specified operation on {self.instance}. Error: {e}",
                inner_error=e
            ) from e

        if not response.ok:
            logger.error("servicenow_api_error",
                component=SERVICENOW_COMPONENT,
                method=method,
                url=url,
                status_code=response.status_code,
                reason=response.reason,
                response_preview=response.text[:500] if response.text else ""
            )
            raise OperationError(
                f"Error while performing specified operation on {self.instance}. "
                f"Error code: {response.status_code}, error: {response.reason}",
                status_code=response.status_code
            )

        logger.debug("servicenow_response",
            component=SERVICENOW_COMPONENT,
            method=method,
            url=url,
            status_code=response.status_code
        )

        if response_selector:
            return response_selector(response)

        # No response body, or not JSON
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def close(self):
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self) -> "ServiceNowConnection":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
