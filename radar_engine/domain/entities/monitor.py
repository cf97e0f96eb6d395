"""
MonitorWithFilters entity: a user's watch definition for one site.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

MonitorMode = Literal["URL_ONLY", "STRUCTURED_FILTERS"]


class MonitorWithFilters(BaseModel):
    """Read-only scrape input supplied by the scheduler."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    name: str = ""
    site: str
    search_url: Optional[str] = None
    mode: MonitorMode = "URL_ONLY"
    filters: Dict[str, Any] = Field(default_factory=dict)
    price_min: Optional[float] = Field(default=None, ge=0)
    price_max: Optional[float] = Field(default=None, ge=0)
    country: Optional[str] = None
    state_region: Optional[str] = None
    city: Optional[str] = None
    active: bool = True

    @model_validator(mode="after")
    def validate_price_bounds(self) -> "MonitorWithFilters":
        """Ensure price_min does not exceed price_max."""
        if (
            self.price_min is not None
            and self.price_max is not None
            and self.price_min > self.price_max
        ):
            raise ValueError("price_min cannot exceed price_max")
        return self

    @property
    def keywords(self) -> str:
        """Search keywords from structured filters (``keywords`` or ``keyword``)."""
        value = self.filters.get("keywords") or self.filters.get("keyword") or ""
        return str(value).strip()
