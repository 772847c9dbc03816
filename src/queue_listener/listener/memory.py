"""Resident memory of the supervising process."""

from __future__ import annotations

import os

import psutil

_BYTES_PER_MB = 1024 * 1024


def memory_usage_mb() -> float:
    """Return this process's resident set size in megabytes."""

    return psutil.Process(os.getpid()).memory_info().rss / _BYTES_PER_MB


def memory_exceeded(memory_limit_mb: int, usage_mb: float | None = None) -> bool:
    """Whether usage has reached ``memory_limit_mb``."""

    current = memory_usage_mb() if usage_mb is None else usage_mb
    return current >= memory_limit_mb
