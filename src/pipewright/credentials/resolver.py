"""
Credential resolution.

The resolver is populated once at startup (from a mapping and/or the process
environment) and hands out Secrets by name. It never logs values and never
exposes its contents except through resolve().
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterable, Mapping

from pipewright.errors import UnknownSecretError
from pipewright.logging import get_logger
from pipewright.models.credential import CredentialRef, Secret
from pipewright.redaction import get_redactor

logger = get_logger(__name__)


class CredentialResolver:
    """
    Process-wide secret lookup.

    Reads are serialized by a lock so concurrent stages see a consistent
    snapshot.

    Example:
        resolver = CredentialResolver.from_env(prefix="PIPEWRIGHT_SECRET_")
        secret = resolver.resolve("DOCKER_PASSWORD")
    """

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(values or {})
        self._lock = threading.Lock()

    @classmethod
    def from_env(
        cls,
        names: Iterable[str] | None = None,
        prefix: str = "PIPEWRIGHT_SECRET_",
        environ: Mapping[str, str] | None = None,
    ) -> CredentialResolver:
        """
        Snapshot secrets from the environment.

        Variables starting with prefix are stored under their name with the
        prefix stripped. Explicit names are read as-is when present.
        """
        env = os.environ if environ is None else environ
        values: dict[str, str] = {}
        if prefix:
            for key, value in env.items():
                if key.startswith(prefix) and len(key) > len(prefix):
                    values[key[len(prefix):]] = value
        for name in names or ():
            if name in env:
                values[name] = env[name]
        logger.debug("credentials_loaded", count=len(values))
        return cls(values)

    def register(self, name: str, value: str) -> None:
        with self._lock:
            self._values[name] = value

    def resolve(self, name: str | CredentialRef) -> Secret:
        key = name.name if isinstance(name, CredentialRef) else name
        with self._lock:
            if key not in self._values:
                raise UnknownSecretError(key)
            return Secret(name=key, value=self._values[key])

    def known(self, name: str) -> bool:
        with self._lock:
            return name in self._values

    def check(self, names: Iterable[str]) -> None:
        """Fail with UnknownSecretError on the first name that is not known."""
        with self._lock:
            for name in names:
                if name not in self._values:
                    raise UnknownSecretError(name)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._values)

    def __repr__(self) -> str:
        return f"CredentialResolver(names={self.names()!r})"


class SecretScope:
    """
    Secrets resolved for one stage attempt.

    While open, every value is registered for log redaction; discard()
    drops the values and unregisters them.
    """

    def __init__(self, secrets: Iterable[Secret] = ()) -> None:
        self._secrets: dict[str, Secret] = {}
        self._open = True
        redactor = get_redactor()
        for secret in secrets:
            self._secrets[secret.name] = secret
            redactor.register(secret.value)

    @classmethod
    def acquire(cls, resolver: CredentialResolver, refs: Iterable[CredentialRef]) -> SecretScope:
        resolved: list[Secret] = []
        for ref in refs:
            resolved.append(resolver.resolve(ref))
        return cls(resolved)

    def get(self, name: str) -> str:
        if not self._open:
            raise RuntimeError("Secret scope already discarded")
        if name not in self._secrets:
            raise UnknownSecretError(name)
        return self._secrets[name].value

    def values(self) -> list[str]:
        return [secret.value for secret in self._secrets.values()]

    @property
    def names(self) -> list[str]:
        return list(self._secrets)

    @property
    def is_open(self) -> bool:
        return self._open

    def discard(self) -> None:
        if not self._open:
            return
        redactor = get_redactor()
        for secret in self._secrets.values():
            redactor.unregister(secret.value)
        self._secrets.clear()
        self._open = False

    def __enter__(self) -> SecretScope:
        return self

    def __exit__(self, *args: object) -> None:
        self.discard()

    def __repr__(self) -> str:
        return f"SecretScope(names={self.names!r}, open={self._open})"
