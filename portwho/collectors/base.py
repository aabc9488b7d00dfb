from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Sequence

from ..errors import SourceUnavailable
from ..models import ProcessRecord, SocketRecord

log = logging.getLogger(__name__)


class Backend(ABC):
    """Per-platform access to the socket and process tables."""

    name = "base"

    @abstractmethod
    def read_table(self, proto: str, family: int) -> Iterable[SocketRecord]:
        """Read one (protocol, family) socket table.

        Raises OSError or SourceUnavailable when the table cannot be read.
        """

    @abstractmethod
    def processes(self) -> List[ProcessRecord]:
        """Read the process table, raising SourceUnavailable if it cannot be listed."""

    def sockets(self, protocols: Sequence[str] = ("tcp", "udp"),
                families: Sequence[int] = (4, 6)) -> List[SocketRecord]:
        out: List[SocketRecord] = []
        failed: List[str] = []
        for proto in protocols:
            for family in families:
                table = f"{proto}{'6' if family == 6 else ''}"
                try:
                    rows = list(self.read_table(proto, family))
                except (OSError, SourceUnavailable) as e:
                    log.warning("%s socket table unavailable: %s", table, e)
                    failed.append(table)
                    continue
                log.debug("%s: %d sockets", table, len(rows))
                out.extend(rows)
        if failed and len(failed) == len(protocols) * len(families):
            raise SourceUnavailable("socket table", "no readable table (" + ", ".join(failed) + ")")
        return out
