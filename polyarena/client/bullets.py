"""Locally simulated bullets.

Bullets are spawn-only on the network: the shooter creates one immediately,
peers create theirs when the ``shoot`` message arrives, and each observer
removes its own copy on collision or timeout.  Two observers may therefore
disagree on when a bullet disappears.
"""
from __future__ import annotations

import itertools
import time
from typing import Callable, Dict, List, Optional

from .. import config
from ..models import Bullet, Vector3


class BulletTracker:
    """Live bullets known to one client."""

    def __init__(self, ttl: float = config.BULLET_TTL, clock: Callable[[], float] = time.monotonic):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self._clock = clock
        self._bullets: Dict[str, Bullet] = {}
        self._counter = itertools.count(1)

    def __len__(self) -> int:
        return len(self._bullets)

    def __contains__(self, bullet_id: object) -> bool:
        return bullet_id in self._bullets

    def spawn(
        self, owner_id: str, position: Vector3, direction: Vector3, now: Optional[float] = None
    ) -> Bullet:
        bullet = Bullet(
            id=f"{owner_id}-{next(self._counter)}",
            owner_id=owner_id,
            position=position,
            direction=direction.normalized(),
            timestamp=self._clock() if now is None else now,
        )
        self._bullets[bullet.id] = bullet
        return bullet

    def get(self, bullet_id: str) -> Optional[Bullet]:
        return self._bullets.get(bullet_id)

    def remove(self, bullet_id: str) -> Optional[Bullet]:
        return self._bullets.pop(bullet_id, None)

    def expire(self, now: Optional[float] = None) -> List[Bullet]:
        """Drop and return every bullet that outlived the ttl."""

        now = self._clock() if now is None else now
        expired = [bullet for bullet in self._bullets.values() if bullet.expired(now, self.ttl)]
        for bullet in expired:
            del self._bullets[bullet.id]
        return expired

    def live(self) -> List[Bullet]:
        return list(self._bullets.values())

    def positions(self, now: Optional[float] = None) -> Dict[str, Vector3]:
        now = self._clock() if now is None else now
        return {bullet_id: bullet.position_at(now) for bullet_id, bullet in self._bullets.items()}

    def clear(self) -> None:
        self._bullets.clear()
