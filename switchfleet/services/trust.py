"""Host-key trust policies for paramiko clients.

``known_hosts``  system + configured known_hosts, unknown keys rejected
``pinned``       only keys whose SHA256 fingerprint is pinned for the host
``insecure``     any key accepted; must be chosen explicitly and is logged
"""

from __future__ import annotations

import base64
import hashlib
from pathlib import Path

import paramiko

from switchfleet.config import Settings
from switchfleet.errors import HostKeyError
from switchfleet.utils.logging import get_logger

log = get_logger(__name__)

POLICIES = ("known_hosts", "pinned", "insecure")


def fingerprint(key: paramiko.PKey) -> str:
    """OpenSSH-style ``SHA256:...`` fingerprint."""
    digest = hashlib.sha256(key.asbytes()).digest()
    return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")


def parse_pins(raw: str) -> dict[str, set[str]]:
    """``"sw1=SHA256:aaa,10.0.0.2=SHA256:bbb"`` → ``{host: {fingerprints}}``."""
    pins: dict[str, set[str]] = {}
    for entry in raw.split(","):
        host, sep, fp = entry.strip().partition("=")
        if not sep or not host or not fp:
            continue
        pins.setdefault(host.strip(), set()).add(fp.strip())
    return pins


def _bare_host(hostname: str) -> str:
    # paramiko passes "[host]:port" for non-standard ports
    if hostname.startswith("[") and "]" in hostname:
        return hostname[1:hostname.index("]")]
    return hostname


class RejectUnknownPolicy(paramiko.MissingHostKeyPolicy):
    def missing_host_key(self, client, hostname, key):
        log.warning("trust.unknown_host_key", host=hostname, fingerprint=fingerprint(key))
        raise HostKeyError(hostname, f"unknown host key {fingerprint(key)}")


class PinnedFingerprintPolicy(paramiko.MissingHostKeyPolicy):
    def __init__(self, pins: dict[str, set[str]]) -> None:
        self._pins = pins

    def missing_host_key(self, client, hostname, key):
        fp = fingerprint(key)
        allowed = self._pins.get(hostname) or self._pins.get(_bare_host(hostname), set())
        if fp not in allowed:
            log.warning("trust.pin_mismatch", host=hostname, fingerprint=fp)
            raise HostKeyError(hostname, f"host key {fp} is not pinned")
        log.debug("trust.pin_matched", host=hostname)


class InsecureAcceptPolicy(paramiko.MissingHostKeyPolicy):
    def missing_host_key(self, client, hostname, key):
        log.warning("trust.insecure_host_key", host=hostname, fingerprint=fingerprint(key))


def apply_host_key_policy(client: paramiko.SSHClient, cfg: Settings) -> None:
    """Load trusted keys into *client* and install the configured policy."""
    mode = cfg.switchfleet_host_key_policy.strip().lower()
    if mode == "known_hosts":
        client.load_system_host_keys()
        if cfg.switchfleet_known_hosts_file:
            path = Path(cfg.switchfleet_known_hosts_file).expanduser()
            if path.exists():
                client.load_host_keys(str(path))
            else:
                log.warning("trust.known_hosts_missing", path=str(path))
        client.set_missing_host_key_policy(RejectUnknownPolicy())
    elif mode == "pinned":
        client.set_missing_host_key_policy(
            PinnedFingerprintPolicy(parse_pins(cfg.switchfleet_pinned_host_keys)),
        )
    elif mode == "insecure":
        client.set_missing_host_key_policy(InsecureAcceptPolicy())
    else:
        raise ValueError(f"unknown host key policy {mode!r}; expected one of {POLICIES}")
