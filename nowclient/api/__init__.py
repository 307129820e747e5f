"""ServiceNow REST API access."""

from .base import ConnectionSettings, ServiceNowConnection
from .records import ServiceNowClient

__all__ = [
    'ConnectionSettings',
    'ServiceNowConnection',
    'ServiceNowClient',
]
