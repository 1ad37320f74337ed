"""Device endpoints: registry listing, discovery, script orchestration, probe."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from switchfleet.auth import require_api_key
from switchfleet.config import settings
from switchfleet.errors import (
    AuthError,
    DeviceNotFoundError,
    DialError,
    SwitchFleetError,
)
from switchfleet.models.devices import DiscoveryTarget, RegisteredDevicesResponse
from switchfleet.models.snapshot import DeviceSnapshot
from switchfleet.services import orchestrator
from switchfleet.services.dispatcher import dispatcher
from switchfleet.services.registry import device_registry
from switchfleet.services.scripts import script_catalog
from switchfleet.services.session import session_manager
from switchfleet.utils.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["devices"], dependencies=[Depends(require_api_key)])


def _http_error(exc: SwitchFleetError) -> HTTPException:
    """Map request-fatal errors onto status codes."""
    if isinstance(exc, DeviceNotFoundError):
        return HTTPException(status_code=404, detail="device not found")
    if isinstance(exc, (DialError, AuthError)):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@router.get("/registered_devices", response_model=RegisteredDevicesResponse)
async def registered_devices() -> RegisteredDevicesResponse:
    try:
        names = device_registry.names()
    except SwitchFleetError as exc:
        raise _http_error(exc) from exc
    return RegisteredDevicesResponse(registered_devices=names)


@router.get("/discovery", response_model=list[DiscoveryTarget])
async def discovery() -> list[DiscoveryTarget]:
    """Prometheus HTTP service discovery: one scrape target per device."""
    try:
        names = device_registry.names()
    except SwitchFleetError as exc:
        raise _http_error(exc) from exc
    return [
        DiscoveryTarget(
            targets=[settings.switchfleet_public_address],
            labels={"path": f"/devices/{name}"},
        )
        for name in names
    ]


@router.get("/devices/{name}")
async def run_scripts(
    name: str,
    ordered: bool = Query(False, description="Emit blocks in script-list order"),
) -> StreamingResponse:
    """Push every listed script to *name*, run it, stream the output."""
    try:
        orch = await orchestrator.prepare(
            name,
            registry=device_registry,
            catalog=script_catalog,
            sessions=session_manager,
            dispatcher=dispatcher,
            ordered=ordered,
        )
    except SwitchFleetError as exc:
        log.warning("devices.orchestrate_rejected", device=name, error=str(exc))
        raise _http_error(exc) from exc
    return StreamingResponse(orch.stream(), media_type="text/plain; charset=utf-8")


@router.get("/details/{name}", response_model=DeviceSnapshot)
async def device_details(name: str) -> DeviceSnapshot:
    """Run the diagnostic probes against *name*."""
    try:
        return await orchestrator.inspect(
            name, registry=device_registry, sessions=session_manager,
        )
    except SwitchFleetError as exc:
        log.warning("devices.inspect_rejected", device=name, error=str(exc))
        raise _http_error(exc) from exc
