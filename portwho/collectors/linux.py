from __future__ import annotations
import logging
import os
import re
from pathlib import Path
from typing import FrozenSet, Iterator, List, Optional, Set

import psutil

from ..config import TCP_STATE
from ..errors import SourceUnavailable
from ..models import ProcessRecord, SocketRecord
from ..utils.net import parse_hex_endpoint
from .base import Backend

log = logging.getLogger(__name__)

SOCKET_RE = re.compile(r"^socket:\[(?P<inode>\d+)\]$")

PROC_ATTRS = ["pid", "uids", "name", "exe", "cmdline", "cwd"]

def _safe_int(s: str, default: int = 0) -> int:
    try:
        return int(s)
    except ValueError:
        return default

def parse_proc_net_line(line: str, proto: str, family: int) -> Optional[SocketRecord]:
    """
    One data row of /proc/net/{tcp,tcp6,udp,udp6}:
      sl  local_address rem_address   st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode
      0: 3500007F:0035 00000000:0000 0A 00000000:00000000 00:00000000 00000000   101        0 20873 1 ...
    """
    parts = line.split()
    if len(parts) < 10 or not parts[0].endswith(':'):
        return None
    try:
        laddr = parse_hex_endpoint(parts[1])
        raddr = parse_hex_endpoint(parts[2])
    except ValueError:
        return None
    inode = _safe_int(parts[9])
    state = TCP_STATE.get(parts[3].upper(), "UNKNOWN") if proto == "tcp" else None
    return SocketRecord(proto=proto, family=family, laddr=laddr, raddr=raddr,
                        state=state, key=inode or None)

def socket_inodes(fd_dir: Path) -> FrozenSet[int]:
    """Socket inodes held open by one process; empty if the fd table is unreadable."""
    inodes: Set[int] = set()
    try:
        entries = os.listdir(fd_dir)
    except OSError:
        return frozenset()
    for fd in entries:
        try:
            target = os.readlink(fd_dir / fd)
        except OSError:
            # fd closed since listdir
            continue
        m = SOCKET_RE.match(target)
        if m:
            inodes.add(int(m.group("inode")))
    return frozenset(inodes)

def _opt(v) -> Optional[str]:
    return v or None


class LinuxBackend(Backend):
    name = "linux"

    def __init__(self, proc_root: str = "/proc"):
        self.proc_root = Path(proc_root)

    def read_table(self, proto: str, family: int) -> Iterator[SocketRecord]:
        path = self.proc_root / "net" / f"{proto}{'6' if family == 6 else ''}"
        with path.open("r", encoding="ascii", errors="replace") as f:
            lines = f.read().splitlines()[1:]  # skip header
        seen: Set[int] = set()
        for line in lines:
            rec = parse_proc_net_line(line, proto, family)
            if rec is None:
                log.debug("skipping malformed line in %s: %r", path, line)
                continue
            if rec.key is not None:
                if rec.key in seen:
                    continue
                seen.add(rec.key)
            yield rec

    def processes(self) -> List[ProcessRecord]:
        if not self.proc_root.is_dir():
            raise SourceUnavailable("process table", f"{self.proc_root} is not mounted")
        saved = psutil.PROCFS_PATH
        psutil.PROCFS_PATH = str(self.proc_root)
        procs: List[ProcessRecord] = []
        try:
            for p in psutil.process_iter(attrs=PROC_ATTRS, ad_value=None):
                procs.append(self._record(p))
        except OSError as e:
            raise SourceUnavailable("process table", str(e)) from e
        finally:
            psutil.PROCFS_PATH = saved
        return procs

    def _record(self, p) -> ProcessRecord:
        info = p.info
        uids = info.get("uids")
        cmdline = info.get("cmdline")
        return ProcessRecord(
            pid=info["pid"],
            uid=uids.real if uids is not None else None,
            name=_opt(info.get("name")),
            exe=_opt(info.get("exe")),
            cmdline=" ".join(cmdline) if cmdline else None,
            cwd=_opt(info.get("cwd")),
            keys=socket_inodes(self.proc_root / str(info["pid"]) / "fd"),
        )
