"""
Credential references and resolved secrets.

A stage declares CredentialRefs by name; the executor resolves them into
Secrets just before the action runs and discards them afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CredentialRef:
    """A named secret a stage needs. Carries no value."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Secret:
    """
    A resolved secret value.

    The value is excluded from repr and str so that a Secret logged or
    formatted by accident does not leak.
    """

    name: str
    value: str = field(repr=False)

    def __str__(self) -> str:
        return f"Secret({self.name}=***)"
