"""Configuration management for the rural credit engine.

Statutory caps are compiled into :mod:`rural_credit.limits`; only policy and
runtime knobs are configurable, through ``RURAL_CREDIT_*`` environment
variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal

from .exceptions import RuralCreditError
from .limits import ATTENTION_MARGIN_PP
from .utils import decimal_from_str

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("standard", "json")


class ConfigError(RuralCreditError):
    """Raised when an environment variable holds an unusable value."""


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer; got {raw!r}", field=name, constraint="integer") from None


@dataclass
class EngineConfig:
    """Engine and CLI settings.

    Attributes
    ----------
    attention_margin_pp: Decimal
        Percentage points above a cap still reported as ``atencao``.
    log_level: str
        Root log level.
    log_format: str
        ``"standard"`` or ``"json"``.
    max_rows: int
        Maximum schedule rows printed by the CLI.
    """

    attention_margin_pp: Decimal = ATTENTION_MARGIN_PP
    log_level: str = "WARNING"
    log_format: str = "standard"
    max_rows: int = 120

    def __post_init__(self) -> None:
        if self.attention_margin_pp < 0:
            raise ConfigError(
                f"Attention margin cannot be negative; got {self.attention_margin_pp}",
                field="attention_margin_pp",
                constraint=">= 0",
            )
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"Unknown log level {self.log_level!r}", field="log_level", constraint="choice")
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(f"Unknown log format {self.log_format!r}", field="log_format", constraint="choice")
        if self.max_rows <= 0:
            raise ConfigError(f"max_rows must be positive; got {self.max_rows}", field="max_rows", constraint="> 0")

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from environment variables."""
        raw_margin = os.getenv("RURAL_CREDIT_ATTENTION_MARGIN", str(ATTENTION_MARGIN_PP))
        try:
            margin = decimal_from_str(raw_margin)
        except ValueError:
            raise ConfigError(
                f"RURAL_CREDIT_ATTENTION_MARGIN must be numeric; got {raw_margin!r}",
                field="RURAL_CREDIT_ATTENTION_MARGIN",
                constraint="numeric",
            ) from None
        return cls(
            attention_margin_pp=margin,
            log_level=os.getenv("RURAL_CREDIT_LOG_LEVEL", "WARNING"),
            log_format=os.getenv("RURAL_CREDIT_LOG_FORMAT", "standard"),
            max_rows=_env_int("RURAL_CREDIT_MAX_ROWS", "120"),
        )


@dataclass
class ApiConfig:
    """HTTP adapter settings."""

    host: str = "127.0.0.1"
    port: int = 5000
    debug: bool = False
    engine: EngineConfig = field(default_factory=EngineConfig)

    @classmethod
    def from_env(cls) -> "ApiConfig":
        """Create config from environment variables."""
        return cls(
            host=os.getenv("RURAL_CREDIT_API_HOST", "127.0.0.1"),
            port=_env_int("RURAL_CREDIT_API_PORT", "5000"),
            debug=os.getenv("RURAL_CREDIT_API_DEBUG", "false").lower() == "true",
            engine=EngineConfig.from_env(),
        )
