from __future__ import annotations

from dataclasses import dataclass, fields
import logging
import os
from typing import Mapping

logger = logging.getLogger("locatorkit.settings")

ENV_PREFIX = "LOCATORKIT_"


@dataclass(frozen=True, slots=True)
class ReplayTimings:
    """Replay pacing, in seconds."""

    step_delay: float = 0.15
    navigation_recovery_delay: float = 0.8
    content_ready_delay: float = 0.25
    max_navigation_wait: float = 15.0
    step_timeout: float = 10.0
    locate_interval: float = 0.2
    settle_delay: float = 0.2

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ReplayTimings:
        """Read ``LOCATORKIT_<FIELD>_MS`` overrides, e.g. ``LOCATORKIT_STEP_DELAY_MS=300``."""
        source = os.environ if environ is None else environ
        values: dict[str, float] = {}
        for item in fields(cls):
            key = f"{ENV_PREFIX}{item.name.upper()}_MS"
            raw = source.get(key)
            if raw is None or not raw.strip():
                continue
            try:
                milliseconds = int(raw.strip())
            except ValueError:
                logger.warning("Ignoring %s=%r: expected an integer number of milliseconds", key, raw)
                continue
            if milliseconds < 0:
                logger.warning("Ignoring %s=%r: value must not be negative", key, raw)
                continue
            values[item.name] = milliseconds / 1000.0
        return cls(**values)
