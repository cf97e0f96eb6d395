"""
Registry of per-site configurations.

Site configs are plain values loaded once from YAML; the registry is an
ordinary object passed to whoever needs it rather than module-level state.

Example:
    >>> registry = load_site_registry("config/sites.yaml")
    >>> olx = registry.get("olx")
    >>> print(olx.rate_limit.max_tokens)
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from radar_engine.domain.entities.site_config import SiteConfig
from radar_engine.utils.exceptions import (
    ConfigFileNotFoundError,
    ConfigurationError,
    UnknownSiteError,
)
from radar_engine.utils.logger import get_logger

logger = get_logger(__name__)


class SiteRegistry:
    """Site identifier to SiteConfig lookup. Identifiers are case-insensitive."""

    def __init__(self, configs: Optional[Iterable[SiteConfig]] = None):
        self._configs: Dict[str, SiteConfig] = {}
        for config in configs or []:
            self.register(config)

    def register(self, config: SiteConfig) -> None:
        """
        Add a site config.

        Raises:
            ConfigurationError: If the site is already registered.
        """
        if config.site in self._configs:
            raise ConfigurationError(
                f"Duplicate site config: {config.site}",
                context={"site": config.site},
            )
        self._configs[config.site] = config

    def get(self, site: str) -> SiteConfig:
        """
        Look up a site config.

        Raises:
            UnknownSiteError: If no config is registered for ``site``.
        """
        config = self._configs.get(site.strip().upper())
        if config is None:
            raise UnknownSiteError(f"No site config registered for {site}", site=site)
        return config

    def __contains__(self, site: str) -> bool:
        return site.strip().upper() in self._configs

    def __len__(self) -> int:
        return len(self._configs)

    @property
    def sites(self) -> List[str]:
        return sorted(self._configs)


def load_site_registry(path: Path | str) -> SiteRegistry:
    """
    Build a registry from a YAML file with a top-level ``sites`` list.

    Raises:
        ConfigFileNotFoundError: If the file does not exist.
        ConfigurationError: If the YAML is malformed, a site entry fails
            validation, or a site appears twice.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigFileNotFoundError(f"Sites file not found: {path}", path=str(path))

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}", context={"path": str(path)}) from e

    entries = data.get("sites") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ConfigurationError(
            f"{path} must contain a top-level 'sites' list",
            context={"path": str(path)},
        )

    registry = SiteRegistry()
    for index, entry in enumerate(entries):
        try:
            config = SiteConfig.model_validate(entry)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid site config #{index} in {path}: {e}",
                context={"path": str(path), "index": index},
            ) from e
        registry.register(config)

    logger.info(f"Loaded {len(registry)} site configs from {path}")
    return registry
