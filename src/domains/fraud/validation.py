"""Syntactic gate for payee identifiers, amounts and hours. No I/O."""

import math
import re
from functools import lru_cache

from .config import FraudConfig, default_config
from .errors import InvalidInput


@lru_cache(maxsize=8)
def _compile(pattern: str) -> re.Pattern:
    return re.compile(pattern)


def normalize_identifier(identifier: object, config: FraudConfig | None = None) -> str:
    """Return the lowercased identifier, or raise InvalidInput."""
    cfg = config or default_config
    if not isinstance(identifier, str):
        raise InvalidInput("Invalid payee identifier format")
    normalized = identifier.strip().lower()
    if not _compile(cfg.validation.identifier_pattern).fullmatch(normalized):
        raise InvalidInput("Invalid payee identifier format")
    return normalized


def validate_amount(amount: object, config: FraudConfig | None = None) -> float:
    cfg = config or default_config
    # bool is an int subclass; True is not an amount
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidInput("Invalid amount")
    value = float(amount)
    if not math.isfinite(value) or value <= 0 or value > cfg.validation.max_amount:
        raise InvalidInput("Invalid amount")
    return value


def validate_local_hour(hour: object) -> int:
    if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
        raise InvalidInput("Invalid local hour")
    return hour


def validate(
    identifier: object, amount: object, config: FraudConfig | None = None
) -> tuple[str, float]:
    """Validate a transfer request. Returns (normalized identifier, amount)."""
    value = validate_amount(amount, config)
    return normalize_identifier(identifier, config), value


def split_identifier(identifier: str) -> tuple[str, str]:
    """Split a validated identifier into (local_part, handle)."""
    local_part, _, handle = identifier.rpartition("@")
    return local_part, handle
