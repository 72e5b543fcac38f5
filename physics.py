"""
Physics World for Polyminis.

The world is a fixed-size integer grid. Every registered body occupies the
cells of its morphology in its current rotation; static objects occupy
axis-aligned boxes. A cell holds at most one body.

Moves requested during the act phase are only queued; ``step()`` resolves
them one body at a time in registration order. A move that would leave the
world or overlap another body is rejected and recorded as a collision.

A tick is split into MOVE_PASSES passes. Every body moves on the first pass;
each speed trait segment of its morphology buys it one more pass, until its
first rejected move.
"""

import logging
import math
from dataclasses import dataclass, field

from actions import (MoveAction, MoveDirection, NO_ACTION, ORIENTATIONS,
                     dominant_move)
from config import WORLD_WIDTH, WORLD_HEIGHT, PLACEMENT_RETRIES, MOVE_PASSES
from exceptions import DuplicateObjectError, UnknownObjectError
from serialization import SerializationFlags, has_flag

logger = logging.getLogger(__name__)

# Placement retry offsets: +x, -y, -x, +y, scaled by the attempt magnitude
_DISPLACEMENTS = ((1, 0), (0, -1), (-1, 0), (0, 1))


@dataclass
class PhysicsState:
    """Snapshot of one body, as returned by ``PhysicsWorld.query``."""
    position: tuple
    orientation: int = 0
    move_succeeded: bool = True
    collisions: list = field(default_factory=list)
    last_action: object = NO_ACTION


class _Body:
    __slots__ = ("uid", "shapes", "position", "orientation", "is_static",
                 "pending", "move_succeeded", "collisions", "last_action", "speed")

    def __init__(self, uid, shapes, position, is_static=False, speed=0):
        self.uid = uid
        self.shapes = shapes              # 4 tuples of cell offsets
        self.position = position          # integer anchor (x, y)
        self.orientation = 0
        self.is_static = is_static
        self.pending = NO_ACTION
        self.move_succeeded = True
        self.collisions = []
        self.last_action = NO_ACTION
        self.speed = speed

    def cells(self, position=None, orientation=None):
        x, y = self.position if position is None else position
        r = self.orientation if orientation is None else orientation
        return [(x + dx, y + dy) for dx, dy in self.shapes[r % 4]]


def _shapes_for(morphology):
    shapes = tuple(tuple(morphology.positions(r)) for r in range(4))
    if not shapes[0]:
        # A body without segments still occupies its anchor cell
        shapes = (((0, 0),),) * 4
    return shapes


def _box_shape(dimensions):
    w, h = (max(1, int(d)) for d in dimensions)
    box = tuple((dx, dy) for dy in range(h) for dx in range(w))
    return (box,) * 4


class PhysicsWorld:
    """
    Owns every body of an epoch. Only ``step()`` moves bodies.
    """

    def __init__(self, dimensions=(WORLD_WIDTH, WORLD_HEIGHT), move_passes: int = MOVE_PASSES):
        self.dimensions = (float(dimensions[0]), float(dimensions[1]))
        self.move_passes = max(1, int(move_passes))
        self.width  = int(self.dimensions[0])
        self.height = int(self.dimensions[1])
        self._bodies = {}       # uid → _Body, in registration order
        self._occupancy = {}    # (x, y) → uid
        self.static_objects = []

    # ──────────────────────────────────────────────────────────────────────────
    # Registration
    # ──────────────────────────────────────────────────────────────────────────

    def add(self, uid, morphology, position) -> bool:
        """
        Register a body near `position`. Colliding placements are retried
        with growing displacements; returns False if no free spot was found.
        Registering an identity twice is an invariant violation.
        """
        if uid in self._bodies:
            raise DuplicateObjectError("PhysicsWorld", uid)
        body = _Body(uid, _shapes_for(morphology), self._to_cell(position),
                     speed=morphology.speed())
        candidate = self._clamp(body, body.position)
        for attempt in range(PLACEMENT_RETRIES + 1):
            if self._fits(body, candidate, body.orientation):
                body.position = candidate
                self._register(body)
                return True
            m = min(10, math.ceil((attempt + 1) / 4))
            dx, dy = _DISPLACEMENTS[attempt % len(_DISPLACEMENTS)]
            candidate = self._clamp(body, (candidate[0] + dx * m, candidate[1] + dy * m))
        logger.warning("Could not place %s near %s", uid, position)
        return False

    def add_static(self, uid, position, dimensions=(1, 1)) -> bool:
        if uid in self._bodies:
            raise DuplicateObjectError("PhysicsWorld", uid)
        body = _Body(uid, _box_shape(dimensions), self._to_cell(position), is_static=True)
        if not self._fits(body, body.position, 0):
            logger.warning("Static object %s overlaps an existing body", uid)
            return False
        self._register(body)
        self.static_objects.append({"ID": uid, "Position": list(position),
                                    "Dimensions": list(dimensions)})
        return True

    def remove(self, uid):
        body = self._bodies.pop(uid, None)
        if body is None:
            return
        for cell in body.cells():
            if self._occupancy.get(cell) == uid:
                del self._occupancy[cell]

    def __contains__(self, uid):
        return uid in self._bodies

    def __len__(self):
        return len(self._bodies)

    # ──────────────────────────────────────────────────────────────────────────
    # Stepping
    # ──────────────────────────────────────────────────────────────────────────

    def apply(self, uid, action):
        """Queue `action` for `uid`; it takes effect on the next ``step()``."""
        self._get(uid).pending = action

    def step(self):
        """Resolve every queued move, pass by pass, in registration order."""
        movers = []
        for body in self._bodies.values():
            if body.is_static:
                continue
            action, body.pending = body.pending, NO_ACTION
            body.last_action = action
            if isinstance(action, MoveAction) and action.impulse != 0.0:
                movers.append((body, action))

        for move_pass in range(self.move_passes):
            for body, action in movers:
                if move_pass > body.speed:
                    continue
                if move_pass > 0 and not body.move_succeeded:
                    continue
                self._resolve(body, action)

    def _resolve(self, body, action):
        position, orientation = self._target(body, action)
        blockers = self._blockers(body, position, orientation)
        if blockers:
            body.move_succeeded = False
            body.collisions = blockers
            return
        self._unregister(body)
        body.position, body.orientation = position, orientation
        self._register(body)
        body.move_succeeded = True
        body.collisions = []

    # ──────────────────────────────────────────────────────────────────────────
    # Queries
    # ──────────────────────────────────────────────────────────────────────────

    def query(self, uid) -> PhysicsState:
        body = self._get(uid)
        return PhysicsState(position=(float(body.position[0]), float(body.position[1])),
                            orientation=body.orientation,
                            move_succeeded=body.move_succeeded,
                            collisions=list(body.collisions),
                            last_action=body.last_action)

    def query_position(self, uid) -> tuple:
        return self.query(uid).position

    def occupied_cells(self, uid) -> list:
        return self._get(uid).cells()

    def body_at(self, x: int, y: int):
        """uid occupying cell (x, y) or None."""
        return self._occupancy.get((x, y))

    # ──────────────────────────────────────────────────────────────────────────

    def _get(self, uid) -> _Body:
        try:
            return self._bodies[uid]
        except KeyError:
            raise UnknownObjectError("PhysicsWorld", uid) from None

    def _to_cell(self, position):
        return (int(math.floor(position[0])), int(math.floor(position[1])))

    def _in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def _clamp(self, body, position, orientation=None):
        """Shift `position` so the body's cells stay inside the world."""
        offsets = body.shapes[(body.orientation if orientation is None else orientation) % 4]
        min_dx = min(dx for dx, _ in offsets)
        max_dx = max(dx for dx, _ in offsets)
        min_dy = min(dy for _, dy in offsets)
        max_dy = max(dy for _, dy in offsets)
        x = max(-min_dx, min(self.width - 1 - max_dx, position[0]))
        y = max(-min_dy, min(self.height - 1 - max_dy, position[1]))
        return (x, y)

    def _blockers(self, body, position, orientation) -> list:
        """uids (or "wall") preventing `body` from taking this pose."""
        blockers = []
        for cell in body.cells(position, orientation):
            if not self._in_bounds(*cell):
                if "wall" not in blockers:
                    blockers.append("wall")
                continue
            other = self._occupancy.get(cell)
            if other is not None and other != body.uid and other not in blockers:
                blockers.append(other)
        return blockers

    def _fits(self, body, position, orientation) -> bool:
        return not self._blockers(body, position, orientation)

    def _register(self, body):
        self._bodies[body.uid] = body
        for cell in body.cells():
            self._occupancy[cell] = body.uid

    def _unregister(self, body):
        for cell in body.cells():
            if self._occupancy.get(cell) == body.uid:
                del self._occupancy[cell]

    @staticmethod
    def _target(body, action):
        sign = 1 if action.impulse > 0 else -1
        x, y = body.position
        if action.direction is MoveDirection.HORIZONTAL:
            return (x + sign, y), body.orientation
        if action.direction is MoveDirection.VERTICAL:
            return (x, y + sign), body.orientation
        return (x, y), (body.orientation + sign) % 4

    def to_dict(self, flags=None) -> dict:
        return {"Dimensions": {"x": self.dimensions[0], "y": self.dimensions[1]},
                "MovePasses": self.move_passes,
                "StaticObjects": list(self.static_objects)}


# ──────────────────────────────────────────────────────────────────────────────
# Per-individual handle
# ──────────────────────────────────────────────────────────────────────────────

class Physics:
    """
    An individual's cached view of its body in the physics world.
    Refreshed from the world in the consequence phase.
    """

    def __init__(self, uid, position=(0.0, 0.0), orientation: int = 0):
        self.uid = uid
        self.position = (float(position[0]), float(position[1]))
        self.starting_position = self.position
        self.orientation = orientation
        self.move_succeeded = True
        self.collisions = []
        self.last_action = NO_ACTION
        self.world_dimensions = (1.0, 1.0)

    def register(self, world: PhysicsWorld, morphology) -> bool:
        if not world.add(self.uid, morphology, self.position):
            return False
        self.position = world.query_position(self.uid)
        self.starting_position = self.position
        self.world_dimensions = world.dimensions
        return True

    def act_on(self, actions, world: PhysicsWorld):
        self.last_action = dominant_move(actions)
        world.apply(self.uid, self.last_action)

    def update_state(self, world: PhysicsWorld):
        state = world.query(self.uid)
        self.position = state.position
        self.orientation = state.orientation
        self.move_succeeded = state.move_succeeded
        self.collisions = state.collisions

    def reset(self, position):
        logger.debug("Resetting physics of %s to %s (was %s)",
                     self.uid, position, self.position)
        self.position = (float(position[0]), float(position[1]))
        self.starting_position = self.position
        self.orientation = 0
        self.move_succeeded = True
        self.collisions = []
        self.last_action = NO_ACTION

    @property
    def facing(self):
        return ORIENTATIONS[self.orientation % 4]

    def acted(self) -> bool:
        return self.last_action != NO_ACTION

    def normalized_position(self) -> tuple:
        return (self.position[0] / self.world_dimensions[0],
                self.position[1] / self.world_dimensions[1])

    def distance_moved(self) -> float:
        return math.dist(self.position, self.starting_position)

    def to_dict(self, flags=None) -> dict:
        data = {"ID": self.uid, "Position": {"x": self.position[0], "y": self.position[1]}}
        if has_flag(flags, SerializationFlags.STATIC):
            data["StartingPos"] = {"x": self.starting_position[0],
                                   "y": self.starting_position[1]}
        if has_flag(flags, SerializationFlags.DYNAMIC):
            data["Orientation"] = str(self.facing)
            data["Collisions"] = list(self.collisions)
            data["LastAction"] = self.last_action.to_dict()
        return data
