"""
Central constants file for the ServiceNow client.

Single source of truth for API defaults, request parameter names and
component names used in log entries.
"""

# API defaults
DEFAULT_API_NAME = "table"
DEFAULT_NAMESPACE = "now"
DEFAULT_TIMEOUT_SECONDS = 30
SERVICENOW_DOMAIN = "service-now.com"

# Table API query parameters
SYSPARM_QUERY = "sysparm_query"
SYSPARM_FIELDS = "sysparm_fields"
SYSPARM_LIMIT = "sysparm_limit"
SYSPARM_OFFSET = "sysparm_offset"
SYSPARM_DISPLAY_VALUE = "sysparm_display_value"

# ServiceNow rejects larger page sizes
MAX_RECORD_LIMIT = 10000

# Field requested when only the number of matching records is needed
COUNT_FIELD = "sys_created_on"

# HTTP
JSON_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}
HTTP_NO_CONTENT = 204

# Component names for log routing
SERVICENOW_COMPONENT = "servicenow"
QUERY_COMPONENT = "query"
CONFIG_COMPONENT = "config"
