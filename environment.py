"""
Environment for Polyminis.

An Environment bundles everything an epoch's individuals live in: the
physics world, the thermal world, the static objects placed in both and the
sensors every individual gets regardless of its body.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from config import WORLD_WIDTH, WORLD_HEIGHT, SPECIES_SLOTS, DEFAULT_SENSORS, THERMAL_BASE_TEMP
from physics import PhysicsWorld
from serialization import SerializationFlags, has_flag
from thermal import ThermoWorld
from traits import SensorTag

logger = logging.getLogger(__name__)


@dataclass
class WorldObject:
    """
    A static obstacle. With a temperature set it is also a heat source whose
    influence reaches `intensity` thermal grid squares.
    """
    position: tuple
    dimensions: tuple = (1, 1)
    temperature: Optional[float] = None
    intensity: float = 5.0
    uid: Optional[str] = None

    @classmethod
    def new_heat_source(cls, position, temperature: float, intensity: float = 5.0,
                        dimensions=(1, 1)):
        return cls(tuple(position), tuple(dimensions), float(temperature), float(intensity))

    def to_dict(self) -> dict:
        data = {"Position": list(self.position), "Dimensions": list(self.dimensions)}
        if self.temperature is not None:
            data["Temperature"] = self.temperature
            data["Intensity"] = self.intensity
        return data

    @classmethod
    def from_dict(cls, data: dict):
        return cls(tuple(data.get("Position", (0.0, 0.0))),
                   tuple(data.get("Dimensions", (1, 1))),
                   data.get("Temperature"),
                   float(data.get("Intensity", 5.0)))


def parse_sensors(names) -> list:
    """Sensor tags for `names`; unknown names are logged and skipped."""
    tags = []
    for name in names:
        tag = name if isinstance(name, SensorTag) else SensorTag.from_string(name)
        if tag is None:
            logger.warning("Unknown default sensor %r", name)
            continue
        tags.append(tag)
    return tags


class Environment:

    def __init__(self, species_slots: int = SPECIES_SLOTS, default_sensors=None,
                 dimensions=(WORLD_WIDTH, WORLD_HEIGHT), objects=(),
                 base_temperature: float = THERMAL_BASE_TEMP):
        self.species_slots = int(species_slots)
        self.default_sensors = parse_sensors(
            DEFAULT_SENSORS if default_sensors is None else default_sensors)
        self.dimensions = (float(dimensions[0]), float(dimensions[1]))
        self.base_temperature = base_temperature
        self.physics_world = PhysicsWorld(self.dimensions)
        self.thermo_world = ThermoWorld(self.dimensions, base_temperature)
        self.objects = []
        for obj in objects:
            self.add_object(obj)

    @property
    def width(self) -> float:
        return self.dimensions[0]

    @property
    def height(self) -> float:
        return self.dimensions[1]

    # ──────────────────────────────────────────────────────────────────────────

    def add_individual(self, individual) -> bool:
        """Register `individual` in both worlds; False if it cannot be placed."""
        if not individual.physics.register(self.physics_world, individual.morphology):
            return False
        return self.thermo_world.add(individual.thermo, individual.physics.position)

    def remove_individual(self, individual):
        self.physics_world.remove(individual.uid)
        self.thermo_world.remove(individual.uid)

    def add_object(self, obj: WorldObject) -> bool:
        if obj.uid is None:
            obj.uid = f"object-{len(self.objects)}"
        if not self.physics_world.add_static(obj.uid, obj.position, obj.dimensions):
            return False
        if obj.temperature is not None:
            self.thermo_world.add_static(obj.uid, obj.position, obj.intensity, obj.temperature)
        self.objects.append(obj)
        return True

    def restart(self) -> "Environment":
        """Fresh worlds with the same configuration and static objects."""
        return Environment(self.species_slots, self.default_sensors, self.dimensions,
                           [WorldObject(o.position, o.dimensions, o.temperature, o.intensity)
                            for o in self.objects],
                           self.base_temperature)

    def advance_epoch(self) -> "Environment":
        return self.restart()

    # ──────────────────────────────────────────────────────────────────────────

    def to_dict(self, flags=None) -> dict:
        data = {
            "SpeciesSlots": self.species_slots,
            "DefaultSensors": [str(s) for s in self.default_sensors],
            "Dimensions": list(self.dimensions),
            "BaseTemperature": self.base_temperature,
            "Objects": [o.to_dict() for o in self.objects],
        }
        if has_flag(flags, SerializationFlags.DEBUG):
            data["Physics"] = self.physics_world.to_dict(flags)
            data["Thermal"] = self.thermo_world.to_dict(flags)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Environment":
        return cls(data.get("SpeciesSlots", SPECIES_SLOTS),
                   data.get("DefaultSensors", DEFAULT_SENSORS),
                   tuple(data.get("Dimensions", (WORLD_WIDTH, WORLD_HEIGHT))),
                   [WorldObject.from_dict(o) for o in data.get("Objects", [])],
                   float(data.get("BaseTemperature", THERMAL_BASE_TEMP)))
