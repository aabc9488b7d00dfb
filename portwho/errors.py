from __future__ import annotations


class PortwhoError(Exception):
    """Base class for errors that end a run."""


class SourceUnavailable(PortwhoError):
    """An OS socket or process table could not be read at all."""

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        msg = f"cannot read {source}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ConfigError(PortwhoError):
    pass
