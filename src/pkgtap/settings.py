"""Runtime settings read from the environment once, at the composition root."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = (
    "https://github.com/mistweaverco/zana-registry/releases/latest/download/"
    "zana-registry.json.zip"
)
DEFAULT_CACHE_MAX_AGE = 24 * 60 * 60

HOME_ENV = "PKGTAP_HOME"
CACHE_ENV = "PKGTAP_CACHE"
REGISTRY_URL_ENV = "PKGTAP_REGISTRY_URL"
CACHE_MAX_AGE_ENV = "PKGTAP_CACHE_MAX_AGE"


@dataclass(frozen=True, slots=True)
class Settings:
    registry_url: str = DEFAULT_REGISTRY_URL
    cache_max_age: float = DEFAULT_CACHE_MAX_AGE

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables, falling back to defaults.

        An unparsable max age is logged and ignored rather than rejected.
        """
        env = os.environ if environ is None else environ
        registry_url = env.get(REGISTRY_URL_ENV, "").strip() or DEFAULT_REGISTRY_URL

        max_age: float = DEFAULT_CACHE_MAX_AGE
        raw_age = env.get(CACHE_MAX_AGE_ENV, "").strip()
        if raw_age:
            try:
                max_age = max(0.0, float(raw_age))
            except ValueError:
                logger.warning(
                    "Ignoring %s=%r: not a number of seconds", CACHE_MAX_AGE_ENV, raw_age
                )

        return cls(registry_url=registry_url, cache_max_age=max_age)
