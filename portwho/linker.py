from __future__ import annotations
import logging
import os
from typing import Dict, Hashable, Iterable, List, Optional

from .models import UNKNOWN, MaybeUnknown, ProcessRecord, SocketRecord

log = logging.getLogger(__name__)

def build_index(processes: Iterable[ProcessRecord]) -> Dict[Hashable, int]:
    """Inverted index: linking key -> PID.

    A key held by two processes (shared after fork, or a kernel race)
    resolves to the process enumerated last.
    """
    index: Dict[Hashable, int] = {}
    for proc in processes:
        for key in proc.keys:
            prev = index.get(key)
            if prev is not None and prev != proc.pid:
                log.debug("key %r held by pid %d and %d, using %d", key, prev, proc.pid, proc.pid)
            index[key] = proc.pid
    return index

def link(sockets: Iterable[SocketRecord], index: Dict[Hashable, int]) -> List[Optional[int]]:
    return [index.get(s.key) if s.key is not None else None for s in sockets]


class UserDirectory:
    """UID -> user name through the system user database.

    Lookups are memoised for the lifetime of one instance, i.e. one run.
    """

    def __init__(self):
        self._cache: Dict[int, MaybeUnknown] = {}

    def lookup(self, uid) -> MaybeUnknown:
        if uid is None or uid is UNKNOWN:
            return UNKNOWN
        if uid not in self._cache:
            self._cache[uid] = self._getpwuid(uid)
        return self._cache[uid]

    __call__ = lookup

    @staticmethod
    def _getpwuid(uid: int) -> MaybeUnknown:
        if os.name != "posix":
            return UNKNOWN
        import pwd
        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError:
            return UNKNOWN
