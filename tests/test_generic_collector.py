import socket
from collections import namedtuple

import psutil
import pytest

from portwho.collectors.generic import PsutilBackend, handle_for
from portwho.engine import resolve
from portwho.errors import SourceUnavailable
from portwho.models import UNKNOWN, ConnHandle

addr = namedtuple("addr", "ip port")
sconn = namedtuple("sconn", "fd family type laddr raddr status pid")
pconn = namedtuple("pconn", "fd family type laddr raddr status")
Uids = namedtuple("Uids", "real effective saved")

TCP, UDP = socket.SOCK_STREAM, socket.SOCK_DGRAM
V4, V6 = socket.AF_INET, socket.AF_INET6

SYSTEM = {
    "tcp4": [
        sconn(5, V4, TCP, addr("127.0.0.53", 53), (), "LISTEN", 101),
        sconn(-1, V4, TCP, addr("10.255.255.254", 53), (), "LISTEN", None),
        sconn(7, V4, TCP, addr("10.0.0.5", 41000), addr("10.0.0.1", 443), "SYN_RECV", 300),
    ],
    "tcp6": [sconn(3, V6, TCP, addr("::", 22), (), "LISTEN", 640)],
    "udp4": [sconn(6, V4, UDP, addr("127.0.0.53", 53), (), "NONE", 101)],
    "udp6": [],
}


KINDS = {"tcp4": (V4, TCP), "tcp6": (V6, TCP), "udp4": (V4, UDP), "udp6": (V6, UDP)}


class FakeProcess:
    def __init__(self, conns=None, denied=False, **info):
        self.info = info
        self._conns = conns or []
        self._denied = denied

    def net_connections(self, kind="inet"):
        if self._denied:
            raise psutil.AccessDenied(pid=self.info["pid"])
        if kind == "inet":
            return list(self._conns)
        family, type_ = KINDS[kind]
        return [c for c in self._conns if c.family == family and c.type == type_]


PROCS = [
    FakeProcess(pid=101, name="systemd-resolved", exe="/lib/systemd/systemd-resolved",
                cmdline=["/lib/systemd/systemd-resolved"], cwd="/", username="systemd-resolve",
                uids=Uids(101, 101, 101),
                conns=[pconn(5, V4, TCP, addr("127.0.0.53", 53), (), "LISTEN"),
                       pconn(6, V4, UDP, addr("127.0.0.53", 53), (), "NONE")]),
    FakeProcess(pid=640, name="sshd", exe=None, cmdline=None, cwd=None, username=None,
                uids=Uids(0, 0, 0), denied=True),
    FakeProcess(pid=300, name="curl", exe="/usr/bin/curl", cmdline=["curl", "https://10.0.0.1"],
                cwd="/home/alice", username="alice", uids=Uids(1000, 1000, 1000),
                conns=[pconn(7, V4, TCP, addr("10.0.0.5", 41000), addr("10.0.0.1", 443), "SYN_RECV")]),
]


@pytest.fixture
def fake_psutil(monkeypatch):
    def net_connections(kind="inet"):
        return list(SYSTEM[kind])

    monkeypatch.setattr(psutil, "net_connections", net_connections)
    monkeypatch.setattr(psutil, "process_iter", lambda attrs=None, ad_value=None: iter(PROCS))


def test_handle_matches_between_listings():
    system = SYSTEM["tcp4"][0]
    per_proc = PROCS[0]._conns[0]
    assert handle_for(system, 4) == handle_for(per_proc, 4)
    assert handle_for(system, 4) == ConnHandle(int(V4), int(TCP), ("127.0.0.53", 53), ("0.0.0.0", 0), 5)


def test_read_tables(fake_psutil):
    backend = PsutilBackend()
    tcp = list(backend.read_table("tcp", 4))
    assert [r.state for r in tcp] == ["LISTEN", "LISTEN", "SYN_RECEIVED"]
    [udp] = backend.read_table("udp", 4)
    assert udp.state is None
    assert udp.raddr == ("0.0.0.0", 0)
    [tcp6] = backend.read_table("tcp", 6)
    assert tcp6.raddr == ("::", 0)


def denied(kind="inet"):
    raise psutil.AccessDenied()


def test_access_denied_everywhere(monkeypatch):
    monkeypatch.setattr(psutil, "net_connections", denied)
    locked = [FakeProcess(pid=1, denied=True), FakeProcess(pid=2, denied=True)]
    monkeypatch.setattr(psutil, "process_iter", lambda attrs=None, ad_value=None: iter(locked))
    with pytest.raises(SourceUnavailable):
        PsutilBackend().sockets()


def test_processes_and_join(fake_psutil):
    backend = PsutilBackend()
    procs = backend.processes()
    by_pid = {p.pid: p for p in procs}
    assert len(by_pid[101].keys) == 2
    assert by_pid[640].keys == frozenset()
    assert by_pid[300].cmdline == "curl https://10.0.0.1"

    records = resolve(backend.sockets(), procs, lambda uid: UNKNOWN)
    assert len(records) == 5
    got = {(r.label, r.laddr): r for r in records}
    assert got[("TCP", ("127.0.0.53", 53))].pid == 101
    assert got[("UDP", ("127.0.0.53", 53))].user == "systemd-resolve"
    assert got[("TCP", ("10.255.255.254", 53))].pid is UNKNOWN
    # sshd's own listing was denied, so its socket stays unknown
    assert got[("TCP6", ("::", 22))].pid is UNKNOWN
    curl = got[("TCP", ("10.0.0.5", 41000))]
    assert (curl.pid, curl.uid, curl.user, curl.cwd) == (300, 1000, "alice", "/home/alice")


def test_unprivileged_falls_back_to_own_listings(fake_psutil, monkeypatch):
    # system-wide table needs root (macOS); only readable processes contribute
    monkeypatch.setattr(psutil, "net_connections", denied)
    backend = PsutilBackend()
    sockets = backend.sockets()
    assert sorted((s.label, s.laddr) for s in sockets) == [
        ("TCP", ("10.0.0.5", 41000)),
        ("TCP", ("127.0.0.53", 53)),
        ("UDP", ("127.0.0.53", 53)),
    ]

    records = resolve(sockets, backend.processes(), lambda uid: UNKNOWN)
    assert {(r.label, r.local_port): r.pid for r in records} == {
        ("TCP", 53): 101, ("UDP", 53): 101, ("TCP", 41000): 300,
    }
    assert [r.state for r in records if r.pid == 300] == ["SYN_RECEIVED"]
