"""Utilities: query building, logging, configuration and ServiceNow helpers."""

from .glide_query_builder import (
    GlideOperator,
    LogicalOperator,
    OperandKind,
    QueryBuilder,
    RelativeDateBuilder,
)

__all__ = [
    'GlideOperator',
    'LogicalOperator',
    'OperandKind',
    'QueryBuilder',
    'RelativeDateBuilder',
]
