"""Platform-specific utilities."""

from . import servicenow

__all__ = ['servicenow']
