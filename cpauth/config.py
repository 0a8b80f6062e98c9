"""Deployment settings and logging setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .constants import DEFAULT_GROUP, load_group
from .group import GroupParameters
from .store import DEFAULT_ATTEMPT_TTL

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"

ENV_PREFIX = "CPAUTH_"


@dataclass
class Settings:
    group: str = DEFAULT_GROUP
    attempt_ttl: float = DEFAULT_ATTEMPT_TTL
    sweep_interval: float = 30.0
    store_path: Optional[str] = None
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()

        def read(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value if value else None

        try:
            return cls(
                group=read("GROUP") or defaults.group,
                attempt_ttl=float(read("ATTEMPT_TTL") or defaults.attempt_ttl),
                sweep_interval=float(read("SWEEP_INTERVAL") or defaults.sweep_interval),
                store_path=read("STORE_PATH"),
                log_level=(read("LOG_LEVEL") or defaults.log_level).upper(),
                host=read("HOST") or defaults.host,
                port=int(read("PORT") or defaults.port),
            )
        except ValueError as exc:
            raise ValueError(f"Invalid {ENV_PREFIX}* setting: {exc}") from exc

    def group_parameters(self) -> GroupParameters:
        return load_group(self.group)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger("cpauth")
    root.setLevel(level)
    if not any(getattr(handler, "_cpauth", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._cpauth = True  # type: ignore[attr-defined]
        root.addHandler(handler)


__all__ = ["LOG_FORMAT", "Settings", "configure_logging"]
