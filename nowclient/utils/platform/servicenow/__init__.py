"""ServiceNow platform utilities."""

from .glide_helpers import (
    format_glide_datetime,
    format_glide_number,
    normalize_instance_url,
    build_api_url,
    build_path,
    validate_table_name
)

__all__ = [
    'format_glide_datetime',
    'format_glide_number',
    'normalize_instance_url',
    'build_api_url',
    'build_path',
    'validate_table_name'
]
