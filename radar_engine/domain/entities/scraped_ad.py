"""
ScrapedAd entity representing one listing found on a marketplace.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class ScrapedAd:
    """A listing extracted from a search results page."""

    external_id: str
    title: str
    price: float
    url: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    location: Optional[str] = None
    published_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate required fields after initialization."""
        if not self.external_id:
            raise ValueError("ScrapedAd external_id cannot be empty")
        if not self.title:
            raise ValueError("ScrapedAd title cannot be empty")
        if self.price < 0:
            raise ValueError("ScrapedAd price cannot be negative")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "external_id": self.external_id,
            "title": self.title,
            "price": self.price,
            "url": self.url,
            "description": self.description,
            "image_url": self.image_url,
            "location": self.location,
            "published_at": self.published_at.isoformat() if self.published_at else None,
        }
