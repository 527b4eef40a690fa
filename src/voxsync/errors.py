# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""Exceptions raised at the public boundaries of the sync engine."""

import math


class VoxSyncError(Exception):
    """Base class for voxsync errors."""


class InvalidArgumentError(VoxSyncError, ValueError):
    """A caller passed a value the engine cannot work with (e.g. a negative duration)."""


def require_non_negative(name: str, value: float) -> float:
    """Return value if it is a finite, non-negative number, else raise InvalidArgumentError."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgumentError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidArgumentError(f"{name} must be finite, got {value!r}")
    if value < 0:
        raise InvalidArgumentError(f"{name} must be non-negative, got {value!r}")
    return value


def require_positive(name: str, value: float) -> float:
    """Return value if it is a finite number greater than zero."""
    require_non_negative(name, value)
    if value == 0:
        raise InvalidArgumentError(f"{name} must be greater than zero")
    return value
