"""
Client-side reconciliation: merges relayed state with local prediction.

The local player is predicted (its pose is authored here and only sampled
out to the relay), remote players change only when a message arrives, and
hits are reported exclusively by the client that owns the bullet.
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Mapping, Optional

from .. import config
from ..models import Bullet, Player, Vector3
from ..protocol import (
    HitMessage,
    JoinMessage,
    Message,
    ProtocolError,
    ShootMessage,
    UpdateMessage,
    decode,
    encode,
)
from .bullets import BulletTracker
from .interpolation import DisplayedPose, Interpolator
from .mirror import WorldMirror

logger = logging.getLogger(__name__)

SendFn = Callable[[str], None]


class GamePhase(Enum):
    LOBBY = "lobby"
    PLAYING = "playing"
    DEAD = "dead"


@dataclass(frozen=True)
class FrameView:
    """Everything the renderer reads for one tick."""

    phase: GamePhase
    players: Mapping[str, Player]
    poses: Dict[str, DisplayedPose]
    bullets: Dict[str, Vector3]


class ClientSession:
    """
    One player's view of a room.

    ``send`` is fire-and-forget: it is handed an encoded frame and must not
    block.  Without a ``send`` the session works offline and outbound frames
    are dropped.
    """

    def __init__(
        self,
        nickname: str = "",
        player_id: Optional[str] = None,
        send: Optional[SendFn] = None,
        clock: Callable[[], float] = time.monotonic,
        fire_rate: float = config.FIRE_RATE,
        hit_damage: int = config.HIT_DAMAGE,
    ):
        self.player_id = player_id or str(uuid.uuid4())
        self.nickname = nickname or config.DEFAULT_NICKNAME
        self.send = send
        self.fire_rate = fire_rate
        self.hit_damage = hit_damage
        self.phase = GamePhase.LOBBY
        self.mirror = WorldMirror(self.player_id)
        self.interpolator = Interpolator()
        self.bullets = BulletTracker(clock=clock)
        self._clock = clock
        self._last_shot: Optional[float] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Spawn locally right away and ask the relay to join."""

        self.mirror.ensure_local(self.nickname)
        self.phase = GamePhase.PLAYING
        self._emit(JoinMessage(id=self.player_id, nickname=self.nickname))

    def reset(self) -> None:
        self.mirror.reset()
        self.interpolator.clear()
        self.bullets.clear()
        self._last_shot = None
        self.phase = GamePhase.LOBBY

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    def handle_frame(self, frame: str) -> None:
        try:
            message = decode(frame)
        except ProtocolError as exc:
            logger.debug("Dropping frame from relay: %s", exc)
            return
        self.handle_message(message)

    def handle_message(self, message: Message) -> None:
        if isinstance(message, ShootMessage):
            if message.id != self.player_id:
                self.bullets.spawn(message.id, message.position, message.direction)
            return
        self.mirror.apply(message)
        local = self.mirror.local
        if self.phase is GamePhase.PLAYING and local is not None and local.is_dead:
            logger.info("%s was eliminated", self.nickname)
            self.phase = GamePhase.DEAD

    # ------------------------------------------------------------------
    # Local input
    # ------------------------------------------------------------------
    def set_local_pose(self, position: Vector3, rotation: float) -> None:
        self.mirror.set_local_pose(position, rotation)

    def build_update(self) -> Optional[UpdateMessage]:
        local = self.mirror.local
        if local is None:
            return None
        return UpdateMessage(id=local.id, position=local.position, rotation=local.rotation)

    def send_update(self) -> bool:
        """Sample the predicted pose out to the relay; called on a fixed timer."""

        if self.phase is not GamePhase.PLAYING:
            return False
        message = self.build_update()
        if message is None:
            return False
        return self._emit(message)

    def shoot(self, position: Vector3, direction: Vector3, now: Optional[float] = None) -> Optional[Bullet]:
        """Fire immediately on this client and tell the peers about it."""

        if self.phase is not GamePhase.PLAYING or direction.length() == 0:
            return None
        now = self._clock() if now is None else now
        if self._last_shot is not None and now - self._last_shot < self.fire_rate:
            return None
        self._last_shot = now
        bullet = self.bullets.spawn(self.player_id, position, direction, now=now)
        self._emit(ShootMessage(id=self.player_id, position=bullet.position, direction=bullet.direction))
        return bullet

    def on_bullet_collision(self, bullet_id: str, target_id: Optional[str] = None) -> Optional[HitMessage]:
        """
        Handle a bullet intersecting something in the local physics world.

        The bullet always disappears locally.  A ``hit`` goes out only when
        this client owns the bullet and it struck another living player;
        every other client sees the same collision and stays silent.
        """
        bullet = self.bullets.remove(bullet_id)
        if bullet is None or target_id is None:
            return None
        if bullet.owner_id != self.player_id or target_id == self.player_id:
            return None
        target = self.mirror.get(target_id)
        if target is None or target.is_dead:
            return None
        message = HitMessage(target_id=target_id, source_id=self.player_id, damage=self.hit_damage)
        self._emit(message)
        return message

    # ------------------------------------------------------------------
    # Render tick
    # ------------------------------------------------------------------
    def tick(self, dt: float, now: Optional[float] = None) -> FrameView:
        now = self._clock() if now is None else now
        self.bullets.expire(now)
        poses = self.interpolator.step(self.mirror.remote_players(), dt)
        return FrameView(
            phase=self.phase,
            players=self.mirror.snapshot(),
            poses=poses,
            bullets=self.bullets.positions(now),
        )

    def _emit(self, message: Message) -> bool:
        if self.send is None:
            logger.debug("Offline, dropping %s", message.type)
            return False
        self.send(encode(message))
        return True
