"""Environment-driven settings.

Entry scripts call `load_dotenv()` before `Settings.from_env()`, so values
may come from a `.env` file at the project root.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .aggregation import BAND_SCHEMES

DEFAULT_API_BASE = "http://localhost:3000"

# First non-empty variable wins.
API_BASE_VARIABLES = ("GRADING_API_URL", "BACKEND_URL", "VITE_BACKEND_URL", "VITE_API_BASE")


def resolve_api_base(environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    for name in API_BASE_VARIABLES:
        value = environ.get(name, "").strip()
        if value:
            return value.rstrip("/")
    return DEFAULT_API_BASE


@dataclass(frozen=True)
class Settings:
    api_base: str = DEFAULT_API_BASE
    timeout: float = 60.0
    cache_dir: Path = Path("output/cache")
    band_scheme: str = "percent3"

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ
        try:
            timeout = float(environ.get("GRADING_TIMEOUT", "60"))
        except ValueError as e:
            raise ValueError(f"Invalid numeric setting: {e}") from e
        band_scheme = environ.get("BAND_SCHEME", "percent3").strip() or "percent3"
        if band_scheme not in BAND_SCHEMES:
            raise ValueError(f"Unknown BAND_SCHEME {band_scheme!r}; expected one of {sorted(BAND_SCHEMES)}")
        return Settings(
            api_base=resolve_api_base(environ),
            timeout=timeout,
            cache_dir=Path(environ.get("RESULTS_CACHE_DIR", "output/cache")),
            band_scheme=band_scheme,
        )
