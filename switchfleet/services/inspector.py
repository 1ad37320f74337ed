"""Device inspector: sequential diagnostic probes folded into a DeviceSnapshot."""

from __future__ import annotations

from dataclasses import dataclass

from switchfleet.config import Settings, settings
from switchfleet.errors import OperationTimeout
from switchfleet.models.snapshot import MEMORY_TYPES, DeviceSnapshot
from switchfleet.services.tasks import RemoteSession
from switchfleet.utils.logging import get_logger
from switchfleet.utils.parsers import parse_list, parse_single

log = get_logger(__name__)


@dataclass(frozen=True)
class Probe:
    field: str
    command: str
    many: bool = False


PROBES: tuple[Probe, ...] = (
    Probe(
        "temperature_sensors",
        """redis-cli -n 6 keys "*TEMPERATURE_INFO*" | cut -d'|' -f 2""",
        many=True,
    ),
    Probe("containers", 'docker ps -a --format "{{.Names}}"', many=True),
    Probe("os_version", "show version | grep 'SONiC Software Version' | cut -d':' -f 2"),
    Probe("asic_type", "show version | grep 'ASIC:' | cut -d':' -f 2"),
    Probe("kernel_version", "show version | grep 'Kernel' | cut -d':' -f 2"),
    Probe(
        "sai_version",
        """docker exec syncd bash -c "dpkg -l | grep sai" | head -1 | awk '{print $2" "$3}'""",
    ),
    Probe("active_interfaces", """show interfaces status | awk 'NR>2 && $8 == "up"' | wc -l"""),
)


async def inspect_device(
    session: RemoteSession,
    *,
    cfg: Settings | None = None,
    probes: tuple[Probe, ...] = PROBES,
) -> DeviceSnapshot:
    """Run each probe in turn; a failed probe leaves its field empty."""
    _cfg = cfg or settings
    snap = DeviceSnapshot(memory_types=list(MEMORY_TYPES))

    for probe in probes:
        try:
            result = await session.run_command(
                probe.command, timeout=_cfg.switchfleet_command_timeout_seconds,
            )
        except OperationTimeout as exc:
            snap.probe_errors[probe.field] = exc.hint
            log.warning("inspect.probe_timeout", device=session.device.name, field=probe.field)
            continue

        if result.failed:
            detail = result.stderr.decode("utf-8", errors="replace").strip()
            snap.probe_errors[probe.field] = detail or result.error or f"exit status {result.exit_status}"
            log.warning(
                "inspect.probe_failed",
                device=session.device.name,
                field=probe.field,
                error=snap.probe_errors[probe.field],
            )
            continue

        value = parse_list(result.output) if probe.many else parse_single(result.output)
        setattr(snap, probe.field, value)

    log.info(
        "inspect.done",
        device=session.device.name,
        failed_probes=sorted(snap.probe_errors),
    )
    return snap
