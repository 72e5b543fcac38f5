"""
Fitness evaluation for Polyminis.

During an epoch every individual collects a list of FitnessStatistic
observations. At the end of the epoch each FitnessEvaluator folds the whole
list into one (instinct, delta) pair, the deltas are summed per instinct in a
FitnessAccumulator and the species' instinct weights turn the totals into one
scalar fitness.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from actions import MoveAction
from traits import TagEnum
from exceptions import AccumulatorError

logger = logging.getLogger(__name__)


class Instinct(TagEnum):
    BASIC = "basic"
    HERDING = "herding"
    HOARDING = "hoarding"
    NOMADIC = "nomadic"
    PREDATORY = "predatory"


# ──────────────────────────────────────────────────────────────────────────────
# Observations
# ──────────────────────────────────────────────────────────────────────────────

class StatisticKind(Enum):
    NO_OP = "NoOp"
    MOVED = "Moved"
    DISTANCE_TRAVELLED = "DistanceTravelled"
    TOTAL_CELLS = "TotalCells"
    FINAL_POSITION = "FinalPosition"
    DIED = "Died"


@dataclass(frozen=True)
class FitnessStatistic:
    """One observation; `values` carries the payload of valued kinds."""
    kind: StatisticKind
    values: tuple = ()

    @classmethod
    def no_op(cls):
        return cls(StatisticKind.NO_OP)

    @classmethod
    def moved(cls):
        return cls(StatisticKind.MOVED)

    @classmethod
    def distance_travelled(cls, distance: float):
        return cls(StatisticKind.DISTANCE_TRAVELLED, (float(distance),))

    @classmethod
    def total_cells(cls, cells: int):
        return cls(StatisticKind.TOTAL_CELLS, (int(cells),))

    @classmethod
    def final_position(cls, x: float, y: float):
        """Position normalised to [0, 1] on both axes."""
        return cls(StatisticKind.FINAL_POSITION,
                   (min(1.0, max(0.0, float(x))), min(1.0, max(0.0, float(y)))))

    @classmethod
    def died(cls):
        return cls(StatisticKind.DIED)

    @classmethod
    def from_action(cls, action):
        return cls.moved() if isinstance(action, MoveAction) else cls.no_op()

    @property
    def value(self):
        return self.values[0] if self.values else None

    def __str__(self):
        if not self.values:
            return self.kind.value
        return f"{self.kind.value}({', '.join(str(v) for v in self.values)})"


# ──────────────────────────────────────────────────────────────────────────────
# Evaluators
# ──────────────────────────────────────────────────────────────────────────────

class FitnessEvaluator:
    """
    Folds a full observation list into one (instinct, delta) pair.
    Subclasses form a closed set, looked up by name in ``from_string``.
    """
    name = ""
    instinct = Instinct.BASIC

    def evaluate(self, statistics) -> tuple:
        raise NotImplementedError

    @staticmethod
    def from_string(name, target=None):
        key = name.strip().lower() if isinstance(name, str) else None
        cls = _EVALUATORS.get(key)
        if cls is None:
            return None
        if cls is TargetPosition:
            return TargetPosition(target if target is not None else (0.5, 0.5))
        return cls()

    def to_string(self) -> str:
        return self.name

    def __repr__(self):
        return f"{type(self).__name__}()"


class OverallMovement(FitnessEvaluator):
    name = "overallmovement"
    instinct = Instinct.NOMADIC

    def evaluate(self, statistics) -> tuple:
        v = sum(0.5 for s in statistics if s.kind is StatisticKind.MOVED)
        logger.debug("Evaluated %s for %s due to Overall Movement", v, self.instinct)
        return self.instinct, v


class DistanceTravelled(FitnessEvaluator):
    name = "distancetravelled"
    instinct = Instinct.NOMADIC

    def evaluate(self, statistics) -> tuple:
        v = sum(2.5 * s.value for s in statistics
                if s.kind is StatisticKind.DISTANCE_TRAVELLED)
        logger.debug("Evaluated %s for %s due to Distance Travelled", v, self.instinct)
        return self.instinct, v


class Shape(FitnessEvaluator):
    name = "shape"
    instinct = Instinct.HOARDING

    def evaluate(self, statistics) -> tuple:
        v = sum(10.0 - abs(10.0 - s.value) for s in statistics
                if s.kind is StatisticKind.TOTAL_CELLS)
        logger.debug("Evaluated %s for %s due to Shape", v, self.instinct)
        return self.instinct, v


class Alive(FitnessEvaluator):
    name = "alive"
    instinct = Instinct.BASIC

    def evaluate(self, statistics) -> tuple:
        died = any(s.kind is StatisticKind.DIED for s in statistics)
        v = 0.0 if died else 10.0
        logger.debug("Evaluated %s for %s due to Staying Alive", v, self.instinct)
        return self.instinct, v


class TargetPosition(FitnessEvaluator):
    """Rewards ending close to `target`, given in normalised coordinates."""
    name = "targetposition"
    instinct = Instinct.BASIC

    def __init__(self, target=(0.5, 0.5)):
        self.target = (float(target[0]), float(target[1]))

    def evaluate(self, statistics) -> tuple:
        v = 0.0
        for s in statistics:
            if s.kind is StatisticKind.FINAL_POSITION:
                x, y = s.values
                v = 20.0 - 10.0 * abs(self.target[0] - x) - 10.0 * abs(self.target[1] - y)
        logger.debug("Evaluated %s for %s due to Target Position %s",
                     v, self.instinct, self.target)
        return self.instinct, v

    def __repr__(self):
        return f"TargetPosition({self.target})"


_EVALUATORS = {cls.name: cls for cls in
               (OverallMovement, DistanceTravelled, Shape, Alive, TargetPosition)}


# ──────────────────────────────────────────────────────────────────────────────
# Accumulation
# ──────────────────────────────────────────────────────────────────────────────

class FitnessAccumulator:
    """Running score per instinct; the instinct set is fixed at construction."""

    def __init__(self, instincts):
        instincts = list(instincts)
        if not instincts:
            raise AccumulatorError("No instincts will yield no evolution")
        self.accumulated = {i: 0.0 for i in instincts}

    def add(self, instinct, value: float):
        if instinct not in self.accumulated:
            raise AccumulatorError(
                f"Incorrectly initialised accumulator found {instinct} instinct")
        self.accumulated[instinct] += float(value)
        logger.debug("Inserting %s for %s", self.accumulated[instinct], instinct)

    def __getitem__(self, instinct):
        return self.accumulated[instinct]

    def to_dict(self) -> dict:
        return {str(i): v for i, v in self.accumulated.items()}


class PolyminiEvaluationCtx:
    """Ordered evaluators feeding one accumulator."""

    def __init__(self, evaluators=(), accumulator=None):
        self.evaluators = list(evaluators)
        self.accumulator = accumulator or FitnessAccumulator([Instinct.BASIC])

    def evaluate(self, statistics):
        logger.debug("Evaluating %d observations", len(statistics))
        for evaluator in self.evaluators:
            instinct, delta = evaluator.evaluate(statistics)
            self.accumulator.add(instinct, delta)

    def get_fitness(self, weights: dict) -> float:
        """Weighted sum over instincts; missing weights count as 1.0."""
        return sum(score * weights.get(instinct, 1.0)
                   for instinct, score in self.accumulator.accumulated.items())

    def get_raw(self) -> float:
        return self.get_fitness({})
