"""Exception types.

Request-level errors abort an orchestration before anything is streamed;
task-level errors (``TransferError``, ``OperationTimeout``) never leave the
script task that raised them and end up in its ``TaskResult``.
"""

from __future__ import annotations


class SwitchFleetError(Exception):
    """Base error carrying a short machine-readable code and a human hint."""

    def __init__(self, code: str, hint: str = "") -> None:
        super().__init__(f"{code}: {hint}" if hint else code)
        self.code = code
        self.hint = hint


# ── fatal to the request ──────────────────────────────────────────────────


class RegistryError(SwitchFleetError):
    def __init__(self, hint: str) -> None:
        super().__init__("registry_unreadable", hint)


class DeviceNotFoundError(SwitchFleetError):
    def __init__(self, name: str) -> None:
        super().__init__("device_not_found", name)
        self.name = name


class ScriptListError(SwitchFleetError):
    def __init__(self, hint: str) -> None:
        super().__init__("script_list_unreadable", hint)


class SecretResolutionError(SwitchFleetError):
    def __init__(self, hint: str) -> None:
        super().__init__("secret_unresolved", hint)


class DialError(SwitchFleetError):
    def __init__(self, host: str, hint: str = "", code: str = "dial_failed") -> None:
        super().__init__(code, f"{host}: {hint}" if hint else host)
        self.host = host


class HostKeyError(DialError):
    def __init__(self, host: str, hint: str = "") -> None:
        super().__init__(host, hint, code="host_key_rejected")


class AuthError(SwitchFleetError):
    def __init__(self, host: str, username: str) -> None:
        super().__init__("auth_failed", f"{username}@{host}")
        self.host = host
        self.username = username


# ── fatal to a single task ────────────────────────────────────────────────


class TransferError(SwitchFleetError):
    """Upload failed. ``remote_created`` is True once the remote file was opened."""

    def __init__(self, remote_path: str, hint: str, *, remote_created: bool) -> None:
        super().__init__("transfer_failed", f"{remote_path}: {hint}")
        self.remote_path = remote_path
        self.remote_created = remote_created


class OperationTimeout(SwitchFleetError):
    def __init__(self, operation: str, seconds: float) -> None:
        super().__init__("timeout", f"{operation} exceeded {seconds:.1f}s")
        self.operation = operation
        self.seconds = seconds


class OperationCancelled(SwitchFleetError):
    """Raised inside a worker thread when its cancel token fires."""

    def __init__(self, operation: str) -> None:
        super().__init__("cancelled", operation)
        self.operation = operation
