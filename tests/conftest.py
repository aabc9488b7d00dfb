from __future__ import annotations
import logging
from typing import Dict, List, Tuple

import pytest

from portwho.collectors.base import Backend
from portwho.config import CONFIG_ENV
from portwho.models import ProcessRecord, SocketRecord


def sock(proto="tcp", laddr=("0.0.0.0", 0), raddr=("0.0.0.0", 0), state="LISTEN",
         key=None, family=4) -> SocketRecord:
    if proto == "udp" and state == "LISTEN":
        state = None
    return SocketRecord(proto=proto, family=family, laddr=laddr, raddr=raddr, state=state, key=key)


def proc(pid, uid=None, name=None, keys=(), **kw) -> ProcessRecord:
    return ProcessRecord(pid=pid, uid=uid, name=name, keys=frozenset(keys), **kw)


class FakeBackend(Backend):
    name = "fake"

    def __init__(self, tables: Dict[Tuple[str, int], List[SocketRecord]], procs: List[ProcessRecord]):
        self.tables = tables
        self.procs = procs
        self.calls: List[Tuple[str, int]] = []

    def read_table(self, proto, family):
        self.calls.append((proto, family))
        if (proto, family) not in self.tables:
            raise FileNotFoundError(f"no {proto}{family} table")
        return list(self.tables[(proto, family)])

    def processes(self):
        return list(self.procs)


@pytest.fixture
def resolver_backend():
    """127.0.0.53:53 owned by systemd-resolved plus an orphan on 10.255.255.254:53."""
    tables = {
        ("tcp", 4): [
            sock("tcp", ("127.0.0.53", 53), key=1001),
            sock("tcp", ("10.255.255.254", 53), key=1002),
            sock("tcp", ("0.0.0.0", 22), key=1003),
        ],
        ("udp", 4): [sock("udp", ("127.0.0.53", 53), key=1004)],
        ("tcp", 6): [sock("tcp", ("::", 22), ("::", 0), key=1005, family=6)],
        ("udp", 6): [],
    }
    procs = [
        proc(101, uid=101, name="systemd-resolved", keys={1001, 1004},
             exe="/usr/lib/systemd/systemd-resolved", cmdline="/usr/lib/systemd/systemd-resolved", cwd="/"),
        proc(640, uid=0, name="sshd", keys={1003, 1005}),
    ]
    return FakeBackend(tables, procs)


@pytest.fixture(autouse=True)
def no_config_env(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("portwho")
    logger.handlers[:] = []
    logger.setLevel(logging.NOTSET)
