"""Device registry records and registry-facing response models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


def split_address(address: str, default_port: int = 22) -> tuple[str, int]:
    """Split ``host``, ``host:port`` or ``[v6]:port`` into (host, port).

    Raises ValueError for an empty host or a port that is not 1-65535.
    """
    address = address.strip()
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        port = rest.lstrip(":")
    elif address.count(":") == 1:
        host, port = address.split(":")
    else:
        host, port = address, ""
    if not host:
        raise ValueError(f"no host in address {address!r}")
    if not port:
        return host, default_port
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"invalid port {port!r} in address {address!r}")
    return host, int(port)


class DeviceRecord(BaseModel):
    """One row of the device registry. ``secret`` is a reference, never logged."""

    model_config = ConfigDict(frozen=True)

    name: str
    address: str
    username: str
    secret: str = Field(default="", repr=False, exclude=True)

    def endpoint(self, default_port: int = 22) -> tuple[str, int]:
        return split_address(self.address, default_port)


class RegisteredDevicesResponse(BaseModel):
    registered_devices: list[str]


class DiscoveryTarget(BaseModel):
    """Prometheus HTTP service-discovery entry."""

    targets: list[str]
    labels: dict[str, str] = {}
