"""Run the relay: ``python -m polyarena``."""
from __future__ import annotations

import argparse
import logging

import uvicorn

from . import config
from .config import RelayConfig
from .server import create_app


def main() -> None:
    parser = argparse.ArgumentParser(description="PolyArena multiplayer relay")
    parser.add_argument("--host", default=config.DEFAULT_HOST, help="Bind address")
    parser.add_argument("--port", type=int, default=config.DEFAULT_PORT, help="Bind port")
    parser.add_argument("--log-level", default="info", help="Logging level")
    parser.add_argument(
        "--peer-queue-size",
        type=int,
        default=config.PEER_QUEUE_SIZE,
        help="Frames buffered per connection before it is dropped",
    )
    parser.add_argument(
        "--inbox-size",
        type=int,
        default=config.INBOX_SIZE,
        help="Frames buffered per room before new ones are dropped",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    relay_config = RelayConfig(peer_queue_size=args.peer_queue_size, inbox_size=args.inbox_size)
    try:
        relay_config.validate()
    except ValueError as exc:
        parser.error(str(exc))
    uvicorn.run(create_app(relay_config), host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
