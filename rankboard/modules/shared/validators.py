"""
Rankboard Domain Validators

Purpose
-------
Input rules shared by the ranking services. Each validator returns the
normalized value on success and raises `InvalidInputError` otherwise.

Usage
-----
    from rankboard.modules.shared.validators import validate_identity

    identity = validate_identity(raw_id)
"""

from __future__ import annotations

import math
from typing import Any

from rankboard.modules.shared.exceptions import InvalidInputError


def validate_identity(identity: Any) -> str:
    """
    Validate an identity identifier.

    Raises:
        InvalidInputError: If identity is not a non-empty string
    """
    if not isinstance(identity, str) or not identity:
        raise InvalidInputError("identity", "Identity must be a non-empty string")
    return identity


def validate_group_tag(group: Any, required: bool = False) -> str:
    """
    Validate a group tag. The empty string means "ungrouped".

    Args:
        group: Tag to validate
        required: Reject the empty tag

    Raises:
        InvalidInputError: If group is not a string, or is empty when required
    """
    if not isinstance(group, str):
        raise InvalidInputError("group", "Group must be a string")
    if required and not group:
        raise InvalidInputError("group", "Group must be a non-empty string")
    return group


def _as_finite(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(name, f"{name.capitalize()} must be a number")
    if not math.isfinite(value):
        raise InvalidInputError(name, f"{name.capitalize()} must be finite")
    return float(value)


def validate_score(score: Any) -> float:
    """
    Validate an absolute score.

    Raises:
        InvalidInputError: If score is not a finite, non-negative number
    """
    value = _as_finite(score, "score")
    if value < 0:
        raise InvalidInputError("score", "Score must be non-negative")
    return value


def validate_delta(delta: Any) -> float:
    """
    Validate a score delta; zero is checked after precision is applied.

    Raises:
        InvalidInputError: If delta is not a finite number
    """
    return _as_finite(delta, "delta")
