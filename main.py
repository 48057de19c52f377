"""Main entry point for the PII detection service.

Starts the FastAPI server with uvicorn.  ``--port 0`` picks a free port,
which is printed to stdout so a parent process can read it.
"""

from __future__ import annotations

import argparse
import logging
import socket
import sys

import uvicorn

from core.config import config


def find_free_port() -> int:
    """Find an available TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="PII detection service")
    parser.add_argument("--host", default=config.host)
    parser.add_argument("--port", type=int, default=config.port)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    port = args.port if args.port != 0 else find_free_port()
    config.host, config.port = args.host, port

    print(f"PORT:{port}", flush=True)

    log = logging.getLogger("pii_pipeline")
    log.info(f"Starting on {config.host}:{port}")

    uvicorn.run(
        "api.server:app",
        host=config.host,
        port=port,
        log_level=args.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
