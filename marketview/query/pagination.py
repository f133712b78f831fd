from __future__ import annotations

from dataclasses import dataclass

from marketview.config import PAGE_SIZE_OPTIONS, ViewConfig
from marketview.query.filters import FilterState


@dataclass(frozen=True)
class PaginationInfo:
    """
    Metadata for the pagination control.

    total_rows is the configured estimate, not a count reported by the API;
    the markets endpoint does not return reliable totals for paged queries.
    """
    current: int
    page_size: int
    page_size_options: tuple[int, ...]
    total_rows: int

    @property
    def page_count(self) -> int:
        return max(1, -(-self.total_rows // self.page_size))


def pagination_for(filters: FilterState, view: ViewConfig) -> PaginationInfo:
    return PaginationInfo(
        current=filters.page_number,
        page_size=filters.page_size,
        page_size_options=PAGE_SIZE_OPTIONS,
        total_rows=view.total_rows_estimate,
    )
