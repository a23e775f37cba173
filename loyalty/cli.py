"""Command line entry point: ``python -m loyalty`` / ``loyalty-server``.

Flags mirror the environment variables; an environment variable that is
already set wins over the flag.
"""
import argparse
import os
from typing import Optional, Sequence

# flag dest -> environment variable it feeds
FLAG_ENV = {
    "run_address": "RUN_ADDRESS",
    "database_uri": "DATABASE_URI",
    "accrual_address": "ACCRUAL_SYSTEM_ADDRESS",
    "log_level": "LOG_LEVEL",
}

def parse_run_address(address: str) -> tuple[str, int]:
    """``:8081`` -> ``("0.0.0.0", 8081)``; ``localhost:9000`` -> ``("localhost", 9000)``."""
    address = address.strip()
    if "://" in address:
        address = address.split("://", 1)[1]
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Run address must look like host:port, got {address!r}")
    return host or "0.0.0.0", int(port)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="loyalty", description="Loyalty accrual service")
    parser.add_argument("-a", dest="run_address", help="host:port to listen on (RUN_ADDRESS)")
    parser.add_argument("-d", dest="database_uri", help="database URI (DATABASE_URI)")
    parser.add_argument("-r", dest="accrual_address", help="accrual service address (ACCRUAL_SYSTEM_ADDRESS)")
    parser.add_argument("-l", dest="log_level", help="log level (LOG_LEVEL)")
    return parser

def apply_flags(args: argparse.Namespace) -> None:
    for dest, env_name in FLAG_ENV.items():
        value = getattr(args, dest, None)
        if value:
            os.environ.setdefault(env_name, value)

def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    apply_flags(args)

    # config is read at import time, so import only after the environment is final
    import uvicorn
    from loyalty.config import RUN_ADDRESS, LOG_LEVEL

    host, port = parse_run_address(RUN_ADDRESS)
    uvicorn.run(
        "loyalty.main:app",
        host=host,
        port=port,
        log_level=LOG_LEVEL.lower(),
        access_log=False
    )

if __name__ == "__main__":
    main()
