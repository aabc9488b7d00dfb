from __future__ import annotations
import logging
import platform
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List

from ..config import CFG
from ..models import ProcessRecord, SocketRecord
from .base import Backend

log = logging.getLogger(__name__)

@dataclass(frozen=True)
class Snapshot:
    sockets: List[SocketRecord]
    processes: List[ProcessRecord]

def select_backend(cfg: CFG) -> Backend:
    if platform.system() == 'Linux':
        from .linux import LinuxBackend
        return LinuxBackend(proc_root=cfg.proc_root)
    from .generic import PsutilBackend
    return PsutilBackend()

def take_snapshot(backend: Backend, cfg: CFG) -> Snapshot:
    """Read the socket and process tables once.

    The two reads share nothing, so they may run side by side; both must
    finish before anything is joined.
    """
    log.debug("backend=%s protocols=%s families=%s", backend.name, cfg.protocols, cfg.families)
    if cfg.parallel:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="portwho") as pool:
            fs = pool.submit(backend.sockets, cfg.protocols, cfg.families)
            fp = pool.submit(backend.processes)
            sockets = fs.result()
            procs = fp.result()
    else:
        sockets = backend.sockets(cfg.protocols, cfg.families)
        procs = backend.processes()
    log.debug("snapshot: %d sockets, %d processes", len(sockets), len(procs))
    return Snapshot(sockets=sockets, processes=procs)
