"""Headless bot client: ``python -m polyarena.client``.

The bot wanders around the arena with the kinematic predictor, fires now
and then, and logs the scoreboard.  It has no collision detection, so its
bullets only ever expire.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import math
import random

from .. import config
from .connection import ClientConnection, room_url
from .prediction import Predictor, forward, muzzle
from .session import ClientSession, GamePhase

logger = logging.getLogger(__name__)

RENDER_RATE = 60


async def wander(connection: ClientConnection, duration: float) -> None:
    session = connection.session
    predictor = Predictor()
    loop = asyncio.get_running_loop()
    started = loop.time()
    dt = 1.0 / RENDER_RATE
    heading = random.uniform(-math.pi, math.pi)
    next_report = started + 5.0

    while not connection.closed.is_set() and loop.time() - started < duration:
        local = session.mirror.local
        if local is not None and session.phase is GamePhase.PLAYING:
            if random.random() < 0.02:
                heading = random.uniform(-math.pi, math.pi)
            position, rotation = predictor.predict(
                local.position, local.rotation, math.sin(heading), -math.cos(heading), 0.0, dt
            )
            session.set_local_pose(position, rotation)
            if random.random() < 0.05:
                session.shoot(muzzle(position, rotation), forward(rotation))
        session.tick(dt)

        now = loop.time()
        if now >= next_report:
            board = ", ".join(f"{p.nickname}={p.score}" for p in session.mirror.scoreboard())
            logger.info("[%s] hp=%s scores: %s", session.phase.value, local.hp if local else "-", board)
            next_report = now + 5.0
        await asyncio.sleep(dt)

    await connection.close()


async def run(url: str, name: str, duration: float) -> None:
    session = ClientSession(nickname=name)
    connection = ClientConnection(url, session)
    await asyncio.gather(connection.run(), wander(connection, duration))


def main() -> None:
    parser = argparse.ArgumentParser(description="PolyArena headless bot")
    parser.add_argument(
        "--url",
        default=room_url(f"ws://localhost:{config.DEFAULT_PORT}"),
        help="Relay room URL",
    )
    parser.add_argument("--name", default="Bot", help="Nickname")
    parser.add_argument("--duration", type=float, default=60.0, help="Seconds to play")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        asyncio.run(run(args.url, args.name, args.duration))
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
