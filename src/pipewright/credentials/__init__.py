"""Credential resolution and scoped secret lifetime."""

from pipewright.credentials.resolver import CredentialResolver, SecretScope

__all__ = ["CredentialResolver", "SecretScope"]
