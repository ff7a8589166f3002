"""Query and aggregation services."""
from .query_service import (
    QueryService, QueryFailure, FieldFilters,
    count_by_field, status_code_counts, top_error_patterns,
)

__all__ = [
    'QueryService',
    'QueryFailure',
    'FieldFilters',
    'count_by_field',
    'status_code_counts',
    'top_error_patterns',
]
