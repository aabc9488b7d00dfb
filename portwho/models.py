from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Hashable, NamedTuple, Optional, Tuple, Union


class _Unknown:
    """Single marker for identity data that could not be resolved.

    Falsy, prints as ``unknown`` and compares equal only to itself.
    """
    __slots__ = ()
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __str__(self) -> str:
        return "unknown"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Unknown, ())


UNKNOWN = _Unknown()

Addr = Tuple[str, int]
MaybeUnknown = Union[Any, _Unknown]


def is_unknown(value: Any) -> bool:
    return value is UNKNOWN


class ConnHandle(NamedTuple):
    """Connection-table handle used as linking key where no inode exists."""
    family: int
    type: int
    laddr: Addr
    raddr: Addr
    fd: int


@dataclass(frozen=True)
class SocketRecord:
    proto: str                 # 'tcp' | 'udp'
    family: int                # 4 | 6
    laddr: Addr
    raddr: Addr
    state: Optional[str]       # None for UDP
    key: Optional[Hashable]    # inode or ConnHandle; None if the kernel reports no owner

    @property
    def label(self) -> str:
        return self.proto.upper() + ("6" if self.family == 6 else "")


@dataclass(frozen=True)
class ProcessRecord:
    pid: int
    uid: Optional[int] = None
    name: Optional[str] = None
    exe: Optional[str] = None
    cmdline: Optional[str] = None
    cwd: Optional[str] = None
    user: Optional[str] = None
    keys: FrozenSet[Hashable] = field(default_factory=frozenset)


@dataclass(frozen=True)
class UnifiedRecord:
    proto: str
    family: int
    laddr: Addr
    raddr: Addr
    state: Optional[str]
    pid: MaybeUnknown = UNKNOWN
    uid: MaybeUnknown = UNKNOWN
    user: MaybeUnknown = UNKNOWN
    name: MaybeUnknown = UNKNOWN
    exe: MaybeUnknown = UNKNOWN
    cmdline: MaybeUnknown = UNKNOWN
    cwd: MaybeUnknown = UNKNOWN

    @property
    def label(self) -> str:
        return self.proto.upper() + ("6" if self.family == 6 else "")

    @property
    def local_port(self) -> int:
        return self.laddr[1]

    @property
    def remote_port(self) -> int:
        return self.raddr[1]

    def as_dict(self) -> dict:
        def plain(v):
            return str(v) if v is UNKNOWN else v
        return {
            "proto": self.label,
            "local_addr": self.laddr[0],
            "local_port": self.laddr[1],
            "remote_addr": self.raddr[0],
            "remote_port": self.raddr[1],
            "state": self.state,
            "pid": plain(self.pid),
            "uid": plain(self.uid),
            "user": plain(self.user),
            "name": plain(self.name),
            "exe": plain(self.exe),
            "cmdline": plain(self.cmdline),
            "cwd": plain(self.cwd),
        }
