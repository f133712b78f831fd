from marketview.query.filters import (
    Currency,
    FilterState,
    QueryDescriptor,
    SortOrder,
    build_descriptor,
)
from marketview.query.pagination import PaginationInfo, pagination_for
from marketview.query.state import (
    ErrorKind,
    Failure,
    LifecycleStatus,
    QuerySnapshot,
    QueryStateCore,
)

__all__ = [
    "Currency",
    "ErrorKind",
    "Failure",
    "FilterState",
    "LifecycleStatus",
    "PaginationInfo",
    "QueryDescriptor",
    "QuerySnapshot",
    "QueryStateCore",
    "SortOrder",
    "build_descriptor",
    "pagination_for",
]
