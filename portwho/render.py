from __future__ import annotations
from typing import Iterable, List, Sequence

import orjson

from .models import UNKNOWN, UnifiedRecord
from .utils.net import format_endpoint, is_wildcard

HEADER = ("PORT", "PID", "UID", "USER", "STATE", "PROTO", "PROCESS", "LOCAL", "REMOTE")

def remote_text(r: UnifiedRecord) -> str:
    if is_wildcard(r.raddr):
        return "*:*"
    return format_endpoint(r.raddr, r.family)

def row(r: UnifiedRecord) -> List[str]:
    return [str(r.local_port), str(r.pid), str(r.uid), str(r.user), r.state or "-",
            r.label, str(r.name), format_endpoint(r.laddr, r.family), remote_text(r)]

def render_table(records: Iterable[UnifiedRecord]) -> str:
    rows: List[Sequence[str]] = [HEADER] + [row(r) for r in records]
    widths = [max(len(cells[i]) for cells in rows) for i in range(len(HEADER))]
    lines = []
    for cells in rows:
        line = "  ".join(c.ljust(w) for c, w in zip(cells, widths))
        lines.append(line.rstrip())
    return "\n".join(lines)

def render_detail(r: UnifiedRecord) -> str:
    out = [
        f"Port {r.local_port}/{r.label}:",
        f"  Local Address: {format_endpoint(r.laddr, r.family)}",
        f"  Remote Address: {remote_text(r)}",
        f"  State: {r.state or '-'}",
        f"  Process: {r.name} (PID: {r.pid})",
        f"  UID: {r.uid} (User: {r.user})",
    ]
    if r.cmdline is not UNKNOWN:
        out.append(f"  Command: {r.cmdline}")
    if r.exe is not UNKNOWN:
        out.append(f"  Executable: {r.exe}")
    if r.cwd is not UNKNOWN:
        out.append(f"  Working Directory: {r.cwd}")
    return "\n".join(out)

def render_details(records: Iterable[UnifiedRecord]) -> str:
    return "\n\n".join(render_detail(r) for r in records)

def dumps(records: Iterable[UnifiedRecord]) -> str:
    return orjson.dumps([r.as_dict() for r in records], option=orjson.OPT_INDENT_2).decode()
