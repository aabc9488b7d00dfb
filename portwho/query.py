from __future__ import annotations
from typing import Iterable, List

from .models import UnifiedRecord
from .utils.net import is_wildcard

def filter_by_port(records: Iterable[UnifiedRecord], port: int) -> List[UnifiedRecord]:
    """Records whose local or remote port is `port`, in input order."""
    return [r for r in records if r.laddr[1] == port or r.raddr[1] == port]

def is_listening(r: UnifiedRecord) -> bool:
    if r.proto == "tcp":
        return r.state == "LISTEN"
    return is_wildcard(r.raddr)

def only_listening(records: Iterable[UnifiedRecord]) -> List[UnifiedRecord]:
    return [r for r in records if is_listening(r)]
