"""
Control unit for Polyminis.

The Control unit is the individual's decision black box:

  sense(payload)  copy sensor readings into the input vector
  think()         run the neural network
  act()           turn each output into an action through its actuator
"""

import logging
from dataclasses import dataclass

import numpy as np

from actions import MoveAction, MoveDirection, ThermalAction, NO_ACTION
from config import HIDDEN_MIN, HIDDEN_MAX, THERMAL_ACTION_GAIN
from neural_network import NeuralNetwork
from serialization import SerializationFlags, has_flag
from traits import ActuatorTag, SensorTag

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Perspective:
    """What an individual knows about itself when the world is sensed."""
    uid: int
    position: tuple
    orientation: object
    last_move_succeeded: bool
    temperature: float = 0.0


@dataclass(frozen=True)
class Sensor:
    tag: SensorTag
    size: int = 1


@dataclass(frozen=True)
class Actuator:
    tag: ActuatorTag
    index: int = 0

    def get_action(self, stimulus: float):
        if self.tag is ActuatorTag.MOVE_HORIZONTAL:
            return MoveAction(MoveDirection.HORIZONTAL, float(stimulus))
        if self.tag is ActuatorTag.MOVE_VERTICAL:
            return MoveAction(MoveDirection.VERTICAL, float(stimulus))
        if self.tag is ActuatorTag.ROTATE:
            return MoveAction(MoveDirection.ROTATION, float(stimulus))
        if self.tag is ActuatorTag.THERMAL_REGULATION:
            return ThermalAction(float(stimulus) * THERMAL_ACTION_GAIN)
        return NO_ACTION


def sensors_from_tags(tags) -> list:
    return [Sensor(tag) for tag in tags]


def actuators_from_tags(tags) -> list:
    return [Actuator(tag, i) for i, tag in enumerate(tags)]


class Control:
    """
    Feed-forward decision unit: one input per sensor, one output per actuator.
    """

    def __init__(self, sensor_list=(), actuator_list=(), network=None,
                 hidden: int = None, rng=None):
        self.sensor_list   = list(sensor_list)
        self.actuator_list = list(actuator_list)
        if network is None:
            if rng is None:
                rng = np.random.default_rng()
            if hidden is None:
                hidden = int(rng.integers(HIDDEN_MIN, HIDDEN_MAX))
            network = NeuralNetwork([len(self.sensor_list), hidden,
                                     len(self.actuator_list)], rng)
        self.network = network
        self.inputs  = np.zeros(len(self.sensor_list), dtype=np.float32)
        self.outputs = np.zeros(len(self.actuator_list), dtype=np.float32)

    # ──────────────────────────────────────────────────────────────────────────

    def sense(self, payload: dict):
        """
        Copy payload values into the input vector in sensor order.
        Stimuli are clamped to [-1, 1]; a sensor missing from the payload
        reads 0.0.
        """
        for i, sensor in enumerate(self.sensor_list):
            value = payload.get(sensor.tag)
            if value is None:
                logger.debug("No reading for sensor %s", sensor.tag)
                value = 0.0
            self.inputs[i] = min(1.0, max(-1.0, float(value)))

    def think(self):
        self.outputs = self.network.forward(self.inputs)

    def act(self) -> list:
        return [actuator.get_action(self.outputs[i])
                for i, actuator in enumerate(self.actuator_list)]

    # ──────────────────────────────────────────────────────────────────────────
    # Genetics
    # ──────────────────────────────────────────────────────────────────────────

    def crossover(self, other: "Control", rng) -> "Control":
        return Control(self.sensor_list, self.actuator_list,
                       network=self.network.crossover(other.network, rng))

    def mutate(self, rng):
        self.network.mutate(rng)

    def rewired(self, sensor_list, actuator_list, rng) -> "Control":
        """Control for a new body; reuses this network where shapes overlap."""
        sensor_list, actuator_list = list(sensor_list), list(actuator_list)
        if sensor_list == self.sensor_list and actuator_list == self.actuator_list:
            return Control(sensor_list, actuator_list, network=self.network.copy())
        network = self.network.resized(len(sensor_list), len(actuator_list), rng)
        return Control(sensor_list, actuator_list, network=network)

    # ──────────────────────────────────────────────────────────────────────────

    def to_dict(self, flags=None) -> dict:
        data = {
            "Sensors": [str(s.tag) for s in self.sensor_list],
            "Actuators": [str(a.tag) for a in self.actuator_list],
        }
        if has_flag(flags, SerializationFlags.STATIC) or has_flag(flags, SerializationFlags.DB):
            data["Network"] = self.network.to_dict()
        if has_flag(flags, SerializationFlags.DYNAMIC):
            data["Inputs"] = [round(float(v), 4) for v in self.inputs]
            data["Outputs"] = [round(float(v), 4) for v in self.outputs]
        return data
