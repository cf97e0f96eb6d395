"""
Input validation utilities.
"""

import re
from typing import Optional
from urllib.parse import urlparse


def validate_url(url: str) -> bool:
    """
    Validate that a string is a valid http(s) URL.

    Args:
        url: URL string to validate.

    Returns:
        True if valid URL, False otherwise.
    """
    try:
        result = urlparse(url)
    except (TypeError, ValueError):
        return False
    return result.scheme in ("http", "https") and bool(result.netloc)


def validate_site_url(url: str, domain: str) -> bool:
    """
    Validate that URL belongs to the given marketplace domain.

    Args:
        url: URL string to validate.
        domain: Bare domain such as ``olx.com.br``.

    Returns:
        True if the URL host is the domain or one of its subdomains.
    """
    if not validate_url(url):
        return False

    host = urlparse(url).netloc.lower().split(":")[0]
    domain = domain.lower()
    return host == domain or host.endswith("." + domain)


def validate_price_range(price_min: Optional[float], price_max: Optional[float]) -> None:
    """
    Validate a monitor's price bounds.

    Raises:
        ValueError: If a bound is negative or min exceeds max.
    """
    for name, value in (("price_min", price_min), ("price_max", price_max)):
        if value is not None and value < 0:
            raise ValueError(f"{name} cannot be negative")

    if price_min is not None and price_max is not None and price_min > price_max:
        raise ValueError(f"price_min ({price_min}) cannot exceed price_max ({price_max})")


def sanitize_filename(name: str, max_length: int = 255) -> str:
    """Remove invalid characters from filename and truncate.

    Args:
        name: Original filename
        max_length: Maximum filename length

    Returns:
        Sanitized filename safe for filesystem
    """
    sanitized = re.sub(r'[^A-Za-z0-9._-]', '_', name)
    sanitized = re.sub(r'_+', '_', sanitized)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    sanitized = sanitized.strip('_')

    return sanitized if sanitized else 'unnamed'
