"""Join socket and process snapshots into UnifiedRecords.

Nothing here touches the OS; the username lookup is injected so the whole
join can be driven from synthetic records.
"""
from __future__ import annotations
from typing import Callable, Dict, Iterable, List, Optional

from .config import PROTO_ORDER
from .linker import UserDirectory, build_index, link
from .models import UNKNOWN, MaybeUnknown, ProcessRecord, SocketRecord, UnifiedRecord
from .utils.net import addr_sort_key

UserLookup = Callable[[Optional[int]], MaybeUnknown]

def sort_key(r: UnifiedRecord) -> tuple:
    return (
        r.laddr[1],
        PROTO_ORDER.get(r.label, len(PROTO_ORDER)),
        addr_sort_key(r.laddr[0]),
        addr_sort_key(r.raddr[0]),
        r.raddr[1],
        r.state or "",
        r.pid if isinstance(r.pid, int) else -1,
    )

def _known(v) -> MaybeUnknown:
    return UNKNOWN if v is None else v

def unify(sock: SocketRecord, proc: Optional[ProcessRecord], users: UserLookup) -> UnifiedRecord:
    base = dict(proto=sock.proto, family=sock.family, laddr=sock.laddr,
                raddr=sock.raddr, state=sock.state)
    if proc is None:
        return UnifiedRecord(**base)
    user = users(proc.uid) if proc.uid is not None else UNKNOWN
    if user is UNKNOWN and proc.user:
        user = proc.user
    return UnifiedRecord(
        **base,
        pid=proc.pid,
        uid=_known(proc.uid),
        user=user,
        name=_known(proc.name),
        exe=_known(proc.exe),
        cmdline=_known(proc.cmdline),
        cwd=_known(proc.cwd),
    )

def resolve(sockets: Iterable[SocketRecord], processes: Iterable[ProcessRecord],
            users: Optional[UserLookup] = None) -> List[UnifiedRecord]:
    """One UnifiedRecord per socket, ordered by local port.

    Ties are broken by protocol (TCP, TCP6, UDP, UDP6), local address,
    remote address, remote port, state and finally PID (unknown first).
    """
    sockets = list(sockets)
    processes = list(processes)
    by_pid: Dict[int, ProcessRecord] = {p.pid: p for p in processes}
    users = users or UserDirectory()
    pids = link(sockets, build_index(processes))
    out = [unify(s, by_pid.get(pid) if pid is not None else None, users)
           for s, pid in zip(sockets, pids)]
    out.sort(key=sort_key)
    return out
