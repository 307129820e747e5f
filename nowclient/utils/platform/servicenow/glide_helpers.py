"""Helper functions for ServiceNow GlideRecord query building."""

import re
from datetime import datetime, timezone
from typing import List
from urllib.parse import quote

from nowclient.utils.config.constants import SERVICENOW_DOMAIN


TABLE_NAME_PATTERN = re.compile(r'^[a-z][a-z0-9_]*$|^[ux]_[a-z0-9_]+$')


def format_glide_datetime(dt: datetime) -> str:
    """Format datetime for ServiceNow queries.

    Aware datetimes are converted to UTC first. Naive datetimes are
    assumed to already be in UTC.

    Args:
        dt: Datetime to format

    Returns:
        Formatted datetime string
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    # ServiceNow format: YYYY-MM-DD HH:MM:SS
    return dt.strftime('%Y-%m-%d %H:%M:%S')


def format_glide_number(value) -> str:
    """Format an int or float the way ServiceNow literals are written.

    Integral floats lose their fractional part (1.0 -> "1").
    """
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_instance_url(instance: str) -> str:
    """Turn an instance name or host into a full base URL.

    Args:
        instance: Instance name (dev123), host (dev123.service-now.com) or URL

    Returns:
        URL with scheme and without trailing slash
    """
    instance = instance.strip().rstrip('/')
    # Handle instance URL properly - it might already include the domain
    if '://' not in instance:
        if '.' not in instance:
            instance = f"https://{instance}.{SERVICENOW_DOMAIN}"
        else:
            instance = f"https://{instance}"
    return instance


def build_api_url(instance: str, namespace: str, api_name: str) -> str:
    """Build the base URL of a ServiceNow REST API.

    Example:
        build_api_url("https://dev1.service-now.com", "now", "table")
        -> "https://dev1.service-now.com/api/now/table"
    """
    return "/".join([instance, "api", namespace, api_name])


def build_path(segments: List[str]) -> str:
    """Quote path segments and join them, each prefixed with '/'."""
    return "".join("/" + quote(str(segment), safe="") for segment in segments)


def validate_table_name(table: str) -> bool:
    """Validate ServiceNow table name.

    Args:
        table: Table name to validate

    Returns:
        True if valid
    """
    # ServiceNow tables are usually lowercase with underscores
    # Custom tables start with u_ or x_
    return bool(TABLE_NAME_PATTERN.match(table))
