"""Resolve registry secret references into credentials.

The registry's ``secret`` column holds a reference such as ``env:SW1_PASSWORD``
or ``file:sw1.pass``. A bare value is treated as an inline password, which is
only accepted when ``switchfleet_allow_inline_secrets`` is on.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

from switchfleet.config import Settings, settings
from switchfleet.errors import SecretResolutionError
from switchfleet.utils.logging import get_logger

log = get_logger(__name__)


class SecretProvider(Protocol):
    def resolve(self, reference: str) -> str: ...


class EnvSecretProvider:
    """``env:NAME`` → value of environment variable ``NAME``."""

    def __init__(self, environ: dict[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ

    def resolve(self, reference: str) -> str:
        try:
            return self._environ[reference]
        except KeyError:
            raise SecretResolutionError(f"environment variable {reference} is not set") from None


class FileSecretProvider:
    """``file:PATH`` → first line of the file; relative paths use *base_dir*."""

    def __init__(self, base_dir: str = "") -> None:
        self._base = Path(base_dir) if base_dir else None

    def resolve(self, reference: str) -> str:
        path = Path(reference)
        if not path.is_absolute() and self._base is not None:
            path = self._base / path
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SecretResolutionError(f"cannot read secret file {path}: {exc.strerror}") from exc
        return text.splitlines()[0] if text else ""


class LiteralSecretProvider:
    def resolve(self, reference: str) -> str:
        return reference


class SecretResolver:
    """Dispatches ``scheme:value`` references to registered providers."""

    def __init__(self, cfg: Settings | None = None) -> None:
        self._cfg = cfg or settings
        self._providers: dict[str, SecretProvider] = {
            "env": EnvSecretProvider(),
            "file": FileSecretProvider(self._cfg.switchfleet_secrets_dir),
            "literal": LiteralSecretProvider(),
        }

    def register(self, scheme: str, provider: SecretProvider) -> None:
        self._providers[scheme] = provider

    def resolve(self, reference: str, *, device: str = "") -> str:
        scheme, sep, value = reference.partition(":")
        if sep and scheme in self._providers:
            return self._providers[scheme].resolve(value)
        if not self._cfg.switchfleet_allow_inline_secrets:
            raise SecretResolutionError(
                f"inline secret for {device or 'device'} rejected; use env: or file: references",
            )
        log.warning("secrets.inline_secret", device=device)
        return reference


secret_resolver = SecretResolver()
