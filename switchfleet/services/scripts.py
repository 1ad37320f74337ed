"""Script list loading and ScriptJob construction."""

from __future__ import annotations

import posixpath
import uuid
from pathlib import Path

from switchfleet.config import Settings, settings
from switchfleet.errors import ScriptListError
from switchfleet.models.tasks import ScriptJob
from switchfleet.services.registry import WatchedFile
from switchfleet.utils.logging import get_logger

log = get_logger(__name__)


def load_script_list(path: Path) -> tuple[str, ...]:
    """Newline-delimited local paths; blank lines are ignored."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ScriptListError(f"cannot open {path}: {exc.strerror}") from exc
    except UnicodeDecodeError as exc:
        raise ScriptListError(f"cannot parse {path}: {exc.reason}") from exc
    scripts = tuple(line.strip() for line in text.splitlines() if line.strip())
    log.info("scripts.loaded", path=str(path), scripts=len(scripts))
    return scripts


def remote_path_for(local_path: str, cfg: Settings) -> str:
    """Remote temp path for *local_path*; optionally suffixed to avoid collisions."""
    base = posixpath.basename(local_path.replace("\\", "/"))
    if cfg.switchfleet_unique_remote_names:
        stem, dot, ext = base.rpartition(".")
        tag = uuid.uuid4().hex[:8]
        base = f"{stem}.{tag}.{ext}" if dot and stem else f"{base}.{tag}"
    return posixpath.join(cfg.switchfleet_remote_tmp_dir, base)


def build_jobs(paths: list[str] | tuple[str, ...], cfg: Settings | None = None) -> list[ScriptJob]:
    _cfg = cfg or settings
    jobs = [
        ScriptJob(local_path=p, remote_path=remote_path_for(p, _cfg), index=i)
        for i, p in enumerate(paths)
    ]
    remote = [j.remote_path for j in jobs]
    if len(set(remote)) != len(remote):
        # Only reachable with unique names disabled
        log.warning("scripts.remote_path_collision", paths=remote)
    return jobs


class ScriptCatalog:
    def __init__(self, cfg: Settings | None = None, path: str | None = None) -> None:
        self._cfg = cfg or settings
        self._file = WatchedFile(path or self._cfg.switchfleet_script_list_file, load_script_list)

    def scripts(self) -> tuple[str, ...]:
        return self._file.get()

    def jobs(self) -> list[ScriptJob]:
        return build_jobs(self.scripts(), self._cfg)


script_catalog = ScriptCatalog()
