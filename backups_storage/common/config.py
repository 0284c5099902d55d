from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_PART_SIZE_BYTES = 100 * 1024 * 1024
ADDRESSING_STYLES: tuple[str, ...] = ("auto", "path", "virtual")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


@dataclass
class Settings:
    S3_BUCKET: str | None = None
    S3_PREFIX: str = ""
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str | None = None
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_USE_SSL: bool = True
    S3_ADDRESSING_STYLE: str = "auto"
    STORAGE_PART_SIZE_BYTES: int = DEFAULT_PART_SIZE_BYTES
    ENABLE_METRICS: bool = True
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        if self.STORAGE_PART_SIZE_BYTES <= 0:
            raise ValueError("STORAGE_PART_SIZE_BYTES must be positive.")
        style = (self.S3_ADDRESSING_STYLE or "auto").strip().lower()
        if style not in ADDRESSING_STYLES:
            raise ValueError(
                f"S3_ADDRESSING_STYLE must be one of {', '.join(ADDRESSING_STYLES)}."
            )
        self.S3_ADDRESSING_STYLE = style

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            S3_BUCKET=os.environ.get("S3_BUCKET"),
            S3_PREFIX=os.environ.get("S3_PREFIX", cls.S3_PREFIX),
            S3_ENDPOINT_URL=os.environ.get("S3_ENDPOINT_URL"),
            S3_REGION=os.environ.get("S3_REGION"),
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID"),
            S3_SECRET_ACCESS_KEY=os.environ.get("S3_SECRET_ACCESS_KEY"),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            STORAGE_PART_SIZE_BYTES=int(
                os.environ.get("STORAGE_PART_SIZE_BYTES", cls.STORAGE_PART_SIZE_BYTES)
            ),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
