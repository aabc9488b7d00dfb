from __future__ import annotations
import argparse, logging, sys
from . import __version__
from .collectors import select_backend, take_snapshot
from .config import CONFIG_ENV, init_cfg_from_args
from .engine import resolve
from .errors import ConfigError, SourceUnavailable
from .query import filter_by_port, only_listening
from .render import dumps, render_details, render_table

log = logging.getLogger("portwho")

def port_number(s: str) -> int:
    try:
        n = int(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a port number: {s!r}")
    if not 0 <= n <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {n}")
    return n

def parse_args(argv=None):
    ap = argparse.ArgumentParser(prog='portwho', description='Lists ports in use and their owning processes')
    ap.add_argument('-p', '--port', type=port_number, default=None, help='show details for sockets on this port')
    ap.add_argument('-t', '--tcp', action='store_true', help='TCP sockets only')
    ap.add_argument('-u', '--udp', action='store_true', help='UDP sockets only')
    ap.add_argument('-4', dest='ipv4', action='store_true', help='IPv4 sockets only')
    ap.add_argument('-6', dest='ipv6', action='store_true', help='IPv6 sockets only')
    ap.add_argument('-l', '--listening', action='store_true', help='listening sockets only')
    ap.add_argument('--json', action='store_true', help='print records as JSON')
    ap.add_argument('-c', '--config', type=str, default=None, help=f'YAML or JSON defaults (env: {CONFIG_ENV})')
    ap.add_argument('--proc-root', type=str, default=None, help='procfs mount point on Linux (default /proc)')
    ap.add_argument('--sequential', action='store_true', help='read sockets and processes one after the other')
    ap.add_argument('-v', '--verbose', action='store_true')
    ap.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return ap.parse_args(argv)

def setup_logging(verbose: bool) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    root = logging.getLogger("portwho")
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)

def run(cfg, port=None, backend=None) -> int:
    backend = backend or select_backend(cfg)
    snap = take_snapshot(backend, cfg)
    records = resolve(snap.sockets, snap.processes)
    if cfg.listening_only:
        records = only_listening(records)
    if port is not None:
        records = filter_by_port(records, port)

    if cfg.output == "json":
        print(dumps(records))
    elif port is None:
        print(render_table(records))
    elif not records:
        print(f"No process found on port {port}.")
    else:
        print(render_details(records))
    return 0

def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)
    try:
        cfg = init_cfg_from_args(args)
    except ConfigError as e:
        log.error("%s", e)
        return 2
    try:
        return run(cfg, port=args.port)
    except SourceUnavailable as e:
        log.error("%s", e)
        return 1

if __name__ == '__main__':
    sys.exit(main())
