"""
Opaque identifier generation

Ids carry a short kind prefix ("env", "purchase", "shuffle", ...) followed by
a millisecond timestamp and random suffix, so ids sort roughly by creation
time and a stray id in a log line tells you what it points at.
"""

import secrets
import time
from typing import Protocol


class IdFactory(Protocol):
    """Protocol for id generation strategies"""

    def generate(self, prefix: str) -> str:
        ...


def generate_id(prefix: str = "id") -> str:
    """
    Generate a prefixed, time-ordered identifier

    Format: ``<prefix>_<12 hex ms timestamp><10 hex random>``

    Args:
        prefix: Kind of record the id names

    Returns:
        Identifier string (e.g. "env_0192a4c1b2e5f3a9c07d1e")
    """
    timestamp_ms = int(time.time() * 1000) & 0xFFFFFFFFFFFF
    return f"{prefix}_{timestamp_ms:012x}{secrets.token_hex(5)}"


class DefaultIdFactory:
    def generate(self, prefix: str) -> str:
        return generate_id(prefix)


class SequentialIdFactory:
    """Deterministic ids for tests: env_1, env_2, purchase_1, ..."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}

    def generate(self, prefix: str) -> str:
        self._counters[prefix] = self._counters.get(prefix, 0) + 1
        return f"{prefix}_{self._counters[prefix]}"


default_id_factory = DefaultIdFactory()
