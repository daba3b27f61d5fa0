"""Prefixed ID generation utility."""

import itertools
import uuid
from collections.abc import Callable


def generate_id(prefix: str) -> str:
    """Generate a prefixed unique ID.

    Args:
        prefix: The prefix (e.g., "job_", "tnt_", "build_").

    Returns:
        A string like "job_a1b2c3d4e5f6a7b8".
    """
    short_uuid = uuid.uuid4().hex[:16]
    return f"{prefix}{short_uuid}"


def sequential_id_factory(start: int = 1) -> Callable[[str], str]:
    """Return a deterministic ``generate_id`` replacement: job_0001, job_0002, ..."""
    counter = itertools.count(start)

    def _next(prefix: str) -> str:
        return f"{prefix}{next(counter):04d}"

    return _next
