"""Structured result of the sequential device probe."""

from __future__ import annotations

from pydantic import BaseModel, Field

MEMORY_TYPES = ["free", "used", "shared", "cache"]


class DeviceSnapshot(BaseModel):
    temperature_sensors: list[str] = Field(default_factory=list)
    containers: list[str] = Field(default_factory=list)
    memory_types: list[str] = Field(default_factory=list)
    os_version: str = ""
    kernel_version: str = ""
    active_interfaces: str = ""
    sai_version: str = ""
    asic_type: str = ""
    # field name -> failure message for probes that degraded to the zero value
    probe_errors: dict[str, str] = Field(default_factory=dict)
