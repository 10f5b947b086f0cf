"""Engine-wide configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .sorting import DEFAULT_SORT_CYCLE, SortDirection


class GridConfig(BaseModel):
    """Immutable configuration shared by the codec, pager and orchestrator."""

    model_config = ConfigDict(frozen=True)

    default_page_size: int = Field(default=25, ge=1)
    max_page_size: int = Field(default=100, ge=1)
    page_range_radius: int = Field(default=2, ge=0)

    # URL guard rails
    max_url_params: int = Field(default=50, ge=1)
    max_url_param_length: int = Field(default=1000, ge=1)

    default_sort_cycle: tuple[SortDirection | None, ...] = Field(
        default=DEFAULT_SORT_CYCLE, min_length=1
    )

    # URL key names
    sort_param: str = "sort"
    page_param: str = "page"
    page_size_param: str = "page_size"
    search_param: str = "search"
    after_param: str = "after"
    before_param: str = "before"

    @property
    def reserved_params(self) -> frozenset[str]:
        """URL keys that never carry a filter."""
        return frozenset(
            {
                self.sort_param,
                self.page_param,
                self.page_size_param,
                self.search_param,
                self.after_param,
                self.before_param,
            }
        )


DEFAULT_CONFIG = GridConfig()
