"""
Thermal World for Polyminis.

The world is split into square cells of THERMAL_GRID_SIZE units, each holding
a temperature in [0, 1]. Static heat sources set the grid: the source's own
cell takes its temperature and every cell within `intensity` cells moves
towards it, the closer the more. Individuals drift a fixed fraction towards
the temperature of the cell they stand on every step.
"""

import logging
from dataclasses import dataclass

import numpy as np

from actions import ThermalAction, thermal_delta
from config import (WORLD_WIDTH, WORLD_HEIGHT, THERMAL_GRID_SIZE,
                    THERMAL_BASE_TEMP, THERMAL_RATE, THERMO_MIN, THERMO_MAX)
from exceptions import DuplicateObjectError, UnknownObjectError
from serialization import SerializationFlags, has_flag

logger = logging.getLogger(__name__)

INDIVIDUAL_INTENSITY = 5.0


@dataclass
class _ThermoData:
    uid: object
    temperature: float
    intensity: float
    position: tuple
    is_individual: bool
    pending: float = 0.0


def coord_to_grid_position(position, dimensions, x_len: int, y_len: int) -> tuple:
    """
    Map a world position onto grid indices.

    Negative coordinates map to 0. x is capped at the last column; y is only
    pulled back when it lands exactly one past the last row.
    """
    px, py = position
    if px < 0 or py < 0:
        logger.debug("Negative thermal position %s", position)
    x = int(np.floor(px / dimensions[0] * x_len)) if px >= 0 else 0
    if x >= x_len:
        x = x_len - 1
    y = int(np.floor(py / dimensions[1] * y_len)) if py >= 0 else 0
    if y == y_len:
        y -= 1
    return (x, y)


class ThermoWorld:
    """
    Temperature grid plus every registered thermal object.
    """

    def __init__(self, dimensions=(WORLD_WIDTH, WORLD_HEIGHT),
                 base_temperature: float = THERMAL_BASE_TEMP):
        self.dimensions = (float(dimensions[0]), float(dimensions[1]))
        self.base_temperature = base_temperature
        self.grid_square_size = THERMAL_GRID_SIZE
        self._objects = {}
        self.grid = self._fresh_grid()

    def _fresh_grid(self) -> np.ndarray:
        x_len = max(1, int(self.dimensions[0] / self.grid_square_size))
        y_len = max(1, int(self.dimensions[1] / self.grid_square_size))
        return np.full((x_len, y_len), self.base_temperature, dtype=np.float32)

    def _cell(self, position) -> tuple:
        return coord_to_grid_position(position, self.dimensions, *self.grid.shape)

    def _get(self, uid) -> _ThermoData:
        try:
            return self._objects[uid]
        except KeyError:
            raise UnknownObjectError("ThermoWorld", uid) from None

    def __contains__(self, uid):
        return uid in self._objects

    # ──────────────────────────────────────────────────────────────────────────

    def add(self, thermo: "Thermo", position) -> bool:
        """Register an individual; its temperature starts drifting to its cell."""
        if thermo.uid in self._objects:
            raise DuplicateObjectError("ThermoWorld", thermo.uid)
        gx, gy = self._cell(position)
        thermo.current += THERMAL_RATE * (float(self.grid[gx, gy]) - thermo.current)
        self._objects[thermo.uid] = _ThermoData(thermo.uid, thermo.current,
                                                INDIVIDUAL_INTENSITY,
                                                tuple(position), True)
        return True

    def add_static(self, uid, position, intensity: float, temperature: float = 1.0):
        """Register a heat source and rebuild the grid."""
        self._objects[uid] = _ThermoData(uid, float(temperature), float(intensity),
                                         tuple(position), False)
        self.recalculate()

    def remove(self, uid):
        self._objects.pop(uid, None)

    def apply(self, uid, action):
        """Queue a thermal action; it takes effect on the next ``step()``."""
        data = self._get(uid)
        if isinstance(action, ThermalAction):
            data.pending += action.delta
        else:
            logger.error("Non thermal action %s sent to thermal world", action)

    def set_position(self, uid, position):
        self._get(uid).position = tuple(position)

    def step(self):
        x_len, y_len = self.grid.shape
        for data in self._objects.values():
            if not data.is_individual:
                continue
            gx, gy = self._cell(data.position)
            gx = min(max(gx, 0), x_len - 1)
            gy = min(max(gy, 0), y_len - 1)
            data.temperature += data.pending
            data.pending = 0.0
            data.temperature += THERMAL_RATE * (float(self.grid[gx, gy]) - data.temperature)
            data.temperature = min(1.0, max(0.0, data.temperature))

    def query_temperature(self, uid) -> float:
        return self._get(uid).temperature

    def recalculate(self):
        """Rebuild the grid from the base temperature and every static source."""
        self.grid = self._fresh_grid()
        x_len, y_len = self.grid.shape
        tx, ty = np.meshgrid(np.arange(x_len), np.arange(y_len), indexing="ij")
        for data in self._objects.values():
            if data.is_individual:
                continue
            gx, gy = self._cell(data.position)
            diff_x = np.abs(tx - gx).astype(np.float32)
            diff_y = np.abs(ty - gy).astype(np.float32)
            source = (diff_x <= 0.001) & (diff_y <= 0.001)
            reach = (diff_x < data.intensity) & (diff_y < data.intensity) & ~source
            with np.errstate(divide="ignore", invalid="ignore"):
                step = (data.temperature - self.grid) / np.maximum(diff_x, diff_y)
            grid = np.where(reach, self.grid + step, self.grid)
            grid = np.clip(grid, 0.0, 1.0)
            grid[source] = data.temperature
            self.grid = grid.astype(np.float32)

    def to_dict(self, flags=None) -> dict:
        return {"Dimensions": {"x": self.grid.shape[0], "y": self.grid.shape[1]},
                "Grid": [round(float(v), 4) for v in self.grid.ravel()]}

    def __str__(self):
        return "\n".join(" ".join(f"{v:.2f}" for v in row) for row in self.grid)


# ──────────────────────────────────────────────────────────────────────────────
# Per-individual handle
# ──────────────────────────────────────────────────────────────────────────────

class Thermo:
    """An individual's temperature and its comfort range."""

    def __init__(self, uid, minimum: float = THERMO_MIN, maximum: float = THERMO_MAX):
        self.uid = uid
        self.min = minimum
        self.max = maximum
        self.current = (minimum + maximum) / 2.0

    def act_on(self, actions, world: ThermoWorld):
        world.apply(self.uid, ThermalAction(thermal_delta(actions)))

    def update_state(self, world: ThermoWorld):
        self.current = world.query_temperature(self.uid)

    def reset(self):
        self.current = (self.min + self.max) / 2.0

    def inside_range(self) -> bool:
        return self.min <= self.current <= self.max

    def delta_from_range(self) -> float:
        if self.current < self.min:
            return self.min - self.current
        if self.current > self.max:
            return self.current - self.max
        return 0.0

    def to_dict(self, flags=None) -> dict:
        data = {}
        if has_flag(flags, SerializationFlags.DYNAMIC):
            data["Current"] = self.current
            data["InRange"] = self.inside_range()
        if not has_flag(flags, SerializationFlags.DYNAMIC) or has_flag(flags, SerializationFlags.DEBUG):
            data["Min"] = self.min
            data["Max"] = self.max
        return data
