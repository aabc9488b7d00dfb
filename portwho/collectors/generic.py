from __future__ import annotations
import logging
import socket
from typing import FrozenSet, Iterator, List, Optional

import psutil

from ..config import PSUTIL_STATE
from ..errors import SourceUnavailable
from ..models import ConnHandle, ProcessRecord, SocketRecord
from ..utils.net import WILDCARD
from .base import Backend

log = logging.getLogger(__name__)

FAMILY = {4: socket.AF_INET, 6: socket.AF_INET6}
PROTO = {"tcp": socket.SOCK_STREAM, "udp": socket.SOCK_DGRAM}

# per-process read failures that only cost that process its details
GONE_OR_DENIED = (psutil.NoSuchProcess, psutil.AccessDenied, PermissionError, FileNotFoundError)

def _addr(a, family: int) -> tuple[str, int]:
    if not a:
        return (WILDCARD[family], 0)
    ip = a.ip if hasattr(a, 'ip') else a[0]
    port = a.port if hasattr(a, 'port') else a[1]
    return (ip, port)

def _family_of(af) -> Optional[int]:
    if af == socket.AF_INET:
        return 4
    if af == socket.AF_INET6:
        return 6
    return None

def handle_for(c, family: int) -> ConnHandle:
    """Key shared by the system-wide and the per-process connection listing."""
    return ConnHandle(family=int(c.family), type=int(c.type),
                      laddr=_addr(c.laddr, family), raddr=_addr(c.raddr, family),
                      fd=c.fd)

def process_handles(p) -> FrozenSet[ConnHandle]:
    try:
        conns = p.net_connections(kind="inet")
    except GONE_OR_DENIED:
        return frozenset()
    out = set()
    for c in conns:
        family = _family_of(c.family)
        if family is not None:
            out.add(handle_for(c, family))
    return frozenset(out)


class PsutilBackend(Backend):
    """Socket and process tables through psutil (macOS, Windows, BSD)."""

    name = "psutil"

    def read_table(self, proto: str, family: int) -> Iterator[SocketRecord]:
        kind = f"{proto}{family}"
        try:
            conns = psutil.net_connections(kind=kind)
        except psutil.AccessDenied:
            log.debug("%s: system table denied, reading per-process listings", kind)
            conns = self._visible_connections(kind)
        for c in conns:
            state = PSUTIL_STATE.get(str(c.status), str(c.status)) if proto == "tcp" else None
            yield SocketRecord(proto=proto, family=family,
                               laddr=_addr(c.laddr, family), raddr=_addr(c.raddr, family),
                               state=state, key=handle_for(c, family))

    def _visible_connections(self, kind: str) -> list:
        """Sockets of the processes whose own listing this user may read.

        Sockets of other users' processes are not visible this way.
        """
        conns = []
        readable = 0
        for p in psutil.process_iter():
            try:
                conns.extend(p.net_connections(kind=kind))
            except GONE_OR_DENIED:
                continue
            readable += 1
        if not readable:
            raise SourceUnavailable(f"{kind} socket table", "access denied")
        return conns

    def processes(self) -> List[ProcessRecord]:
        attrs = ["pid", "name", "exe", "cmdline", "cwd", "username"]
        if hasattr(psutil.Process, "uids"):
            attrs.append("uids")
        procs: List[ProcessRecord] = []
        try:
            for p in psutil.process_iter(attrs=attrs, ad_value=None):
                procs.append(self._record(p))
        except OSError as e:
            raise SourceUnavailable("process table", str(e)) from e
        return procs

    def _record(self, p) -> ProcessRecord:
        info = p.info
        uids = info.get("uids")
        cmdline = info.get("cmdline")
        return ProcessRecord(
            pid=info["pid"],
            uid=uids.real if uids is not None else None,
            name=info.get("name") or None,
            exe=info.get("exe") or None,
            cmdline=" ".join(cmdline) if cmdline else None,
            cwd=info.get("cwd") or None,
            user=info.get("username") or None,
            keys=process_handles(p),
        )
