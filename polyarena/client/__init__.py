"""Client-side state synchronisation for PolyArena.

Rendering, physics and input capture stay outside this package: they feed
poses, collisions and shoot intents into :class:`ClientSession` and read a
:class:`FrameView` back every tick.
"""

from .bullets import BulletTracker
from .interpolation import DisplayedPose, Interpolator
from .mirror import WorldMirror
from .prediction import Predictor
from .session import ClientSession, FrameView, GamePhase

__all__ = [
    "BulletTracker",
    "ClientSession",
    "DisplayedPose",
    "FrameView",
    "GamePhase",
    "Interpolator",
    "Predictor",
    "WorldMirror",
]
