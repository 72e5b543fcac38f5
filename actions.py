"""
Actions produced by actuators and consumed by the physics and thermal worlds.
"""

from dataclasses import dataclass
from enum import Enum

from genome import Direction


class MoveDirection(Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    ROTATION = "rotation"


@dataclass(frozen=True)
class Action:
    """Base action; a bare ``Action()`` does nothing."""

    def to_dict(self) -> dict:
        return {"Type": "NoAction"}


NO_ACTION = Action()


@dataclass(frozen=True)
class MoveAction(Action):
    direction: MoveDirection
    impulse: float

    def to_dict(self) -> dict:
        return {"Type": "Move", "Direction": self.direction.value,
                "Impulse": round(float(self.impulse), 4)}


@dataclass(frozen=True)
class ThermalAction(Action):
    delta: float

    def to_dict(self) -> dict:
        return {"Type": "Thermal", "Delta": round(float(self.delta), 4)}


# Facing for each orientation index; index r matches morphology rotation r
ORIENTATIONS = (Direction.UP, Direction.LEFT, Direction.DOWN, Direction.RIGHT)

ORIENTATION_FLOATS = {
    Direction.UP:    0.0,
    Direction.RIGHT: 0.25,
    Direction.DOWN:  0.5,
    Direction.LEFT:  0.75,
}


def orientation_to_float(direction) -> float:
    """Map a facing direction to [0, 1); anything else maps to 0.0."""
    return ORIENTATION_FLOATS.get(direction, 0.0)


class PhysicsActionAccumulator:
    """
    Folds a list of actions into the single dominant move: the largest of
    the summed horizontal impulse, vertical impulse and spin.
    """

    def __init__(self):
        self.horizontal = 0.0
        self.vertical = 0.0
        self.spin = 0.0

    def accumulate(self, action):
        if not isinstance(action, MoveAction):
            return self
        if action.direction is MoveDirection.HORIZONTAL:
            self.horizontal += action.impulse
        elif action.direction is MoveDirection.VERTICAL:
            self.vertical += action.impulse
        else:
            self.spin += action.impulse
        return self

    def to_action(self) -> Action:
        vertical, horizontal, spin = abs(self.vertical), abs(self.horizontal), abs(self.spin)
        best = max(vertical, horizontal, spin)
        if best == 0.0:
            return NO_ACTION
        # Ties resolve vertical, then horizontal, then rotation
        if best == vertical:
            return MoveAction(MoveDirection.VERTICAL, self.vertical)
        if best == horizontal:
            return MoveAction(MoveDirection.HORIZONTAL, self.horizontal)
        return MoveAction(MoveDirection.ROTATION, self.spin)


def dominant_move(actions) -> Action:
    accum = PhysicsActionAccumulator()
    for action in actions:
        accum.accumulate(action)
    return accum.to_action()


def thermal_delta(actions) -> float:
    return sum(a.delta for a in actions if isinstance(a, ThermalAction))
