from __future__ import annotations
from dataclasses import dataclass, fields
import json
import logging
import os
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError
from .utils.path import to_abs_path

log = logging.getLogger(__name__)

CONFIG_ENV = "PORTWHO_CONFIG"

@dataclass
class CFG:
    tcp: bool = True
    udp: bool = True
    ipv4: bool = True
    ipv6: bool = True
    listening_only: bool = False
    output: str = "table"        # 'table' | 'json'
    parallel: bool = True
    proc_root: str = "/proc"

    @property
    def protocols(self) -> tuple[str, ...]:
        return tuple(p for p, on in (("tcp", self.tcp), ("udp", self.udp)) if on)

    @property
    def families(self) -> tuple[int, ...]:
        return tuple(f for f, on in ((4, self.ipv4), (6, self.ipv6)) if on)

OUTPUT_FORMATS = ("table", "json")

# /proc/net/tcp 'st' column
TCP_STATE = {
    "01": "ESTABLISHED", "02": "SYN_SENT", "03": "SYN_RECEIVED", "04": "FIN_WAIT1",
    "05": "FIN_WAIT2", "06": "TIME_WAIT", "07": "CLOSED", "08": "CLOSE_WAIT",
    "09": "LAST_ACK", "0A": "LISTEN", "0B": "CLOSING", "0C": "SYN_RECEIVED",
}

# psutil status strings -> the names above
PSUTIL_STATE = {
    "ESTABLISHED": "ESTABLISHED", "SYN_SENT": "SYN_SENT", "SYN_RECV": "SYN_RECEIVED",
    "FIN_WAIT1": "FIN_WAIT1", "FIN_WAIT2": "FIN_WAIT2", "TIME_WAIT": "TIME_WAIT",
    "CLOSE": "CLOSED", "CLOSE_WAIT": "CLOSE_WAIT", "LAST_ACK": "LAST_ACK",
    "LISTEN": "LISTEN", "CLOSING": "CLOSING", "DELETE_TCB": "DELETE_TCB",
}

PROTO_ORDER = {"TCP": 0, "TCP6": 1, "UDP": 2, "UDP6": 3}

def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Read a YAML (.yaml/.yml) or JSON file of CFG defaults.

    A missing path given explicitly is an error; no path at all yields {}.
    """
    if not path:
        return {}
    p = to_abs_path(path)
    if not p or not p.exists():
        raise ConfigError(f"config not found: {p or path}")
    try:
        txt = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"cannot read {p}: {e}") from e
    try:
        data = yaml.safe_load(txt) if p.suffix in (".yaml", ".yml") else json.loads(txt)
    except (yaml.YAMLError, ValueError) as e:
        raise ConfigError(f"cannot parse {p}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{p}: top level must be a mapping")
    log.debug("config loaded from %s", p)
    return data

def apply_config(cfg: CFG, data: Dict[str, Any]) -> CFG:
    known = {f.name: f for f in fields(CFG)}
    for k, v in data.items():
        key = k.replace("-", "_")
        if key not in known:
            log.warning("ignoring unknown config key %r", k)
            continue
        default = getattr(CFG, key)
        if isinstance(default, bool):
            if not isinstance(v, bool):
                raise ConfigError(f"config key {k!r} must be true or false")
        elif not isinstance(v, str):
            raise ConfigError(f"config key {k!r} must be a string")
        setattr(cfg, key, v)
    if cfg.output not in OUTPUT_FORMATS:
        raise ConfigError(f"output must be one of {', '.join(OUTPUT_FORMATS)}")
    return cfg

def init_cfg_from_args(args) -> CFG:
    cfg = CFG()
    path = getattr(args, "config", None) or os.environ.get(CONFIG_ENV)
    apply_config(cfg, load_config(path))

    # -t/-u and -4/-6 narrow; giving neither keeps the file defaults
    if args.tcp or args.udp:
        cfg.tcp, cfg.udp = bool(args.tcp), bool(args.udp)
    if args.ipv4 or args.ipv6:
        cfg.ipv4, cfg.ipv6 = bool(args.ipv4), bool(args.ipv6)
    if args.listening:
        cfg.listening_only = True
    if args.json:
        cfg.output = "json"
    if args.sequential:
        cfg.parallel = False
    if args.proc_root:
        cfg.proc_root = args.proc_root

    if not cfg.protocols:
        raise ConfigError("both tcp and udp are disabled")
    if not cfg.families:
        raise ConfigError("both ipv4 and ipv6 are disabled")
    return cfg
