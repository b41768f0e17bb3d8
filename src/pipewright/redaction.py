"""
Process-wide registry of live secret values.

Values are registered while a SecretScope is open and removed when it is
discarded. The logging processor and the executor's output capture mask
every registered value.
"""

from __future__ import annotations

import threading
from collections import Counter
from typing import Any

MASK = "***"

# Very short values would mask ordinary words in logs
MIN_REDACTED_LENGTH = 4


class SecretRedactor:
    """Reference-counted set of secret values to mask."""

    def __init__(self) -> None:
        self._values: Counter[str] = Counter()
        self._lock = threading.Lock()

    def register(self, value: str) -> None:
        if len(value) < MIN_REDACTED_LENGTH:
            return
        with self._lock:
            self._values[value] += 1

    def unregister(self, value: str) -> None:
        with self._lock:
            if value not in self._values:
                return
            self._values[value] -= 1
            if self._values[value] <= 0:
                del self._values[value]

    def active(self) -> list[str]:
        with self._lock:
            # Longest first so a secret containing another is masked whole
            return sorted(self._values, key=len, reverse=True)

    def redact(self, text: str, extra: list[str] | None = None) -> str:
        values = self.active()
        if extra:
            values = sorted({*values, *(v for v in extra if len(v) >= MIN_REDACTED_LENGTH)}, key=len, reverse=True)
        for value in values:
            if value in text:
                text = text.replace(value, MASK)
        return text

    def redact_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self.redact(value)
        if isinstance(value, dict):
            return {k: self.redact_value(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(self.redact_value(v) for v in value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._values.clear()


_redactor = SecretRedactor()


def get_redactor() -> SecretRedactor:
    return _redactor
