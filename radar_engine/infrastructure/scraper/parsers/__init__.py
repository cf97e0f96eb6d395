# Parsers Package
"""
HTML parsing of listing containers.
"""

from radar_engine.infrastructure.scraper.parsers.ad_extractor import (
    AdExtractionOutput,
    AdExtractor,
    parse_brl_price,
    parse_lenient_price,
)

__all__ = [
    "AdExtractor",
    "AdExtractionOutput",
    "parse_brl_price",
    "parse_lenient_price",
]
