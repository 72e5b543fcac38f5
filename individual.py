"""
Individual (a "polymini") for Polyminis.

Each individual has:
  - a Morphology built from its chromosome
  - a Control unit wired to the body's sensors and actuators
  - Physics and Thermo handles into the epoch's worlds
  - Statistics (hp, energy, alive) and the FitnessStatistic observations
    collected over the epoch

Every tick the epoch calls, in order and exactly once:
  1. sense(payload)
  2. think()
  3. act(physics_world)
  4. apply_consequence(physics_world)
"""

import logging
from dataclasses import dataclass
from enum import Enum

from actions import dominant_move
from config import GENOME_SIZE, MUTATION_RATE
from control import Control, Perspective, actuators_from_tags, sensors_from_tags
from evaluation import FitnessStatistic
from genome import crossover as crossover_genomes
from genome import gene_from_bytes, mutate_genome, random_genome
from morphology import Morphology
from neural_network import NeuralNetwork
from physics import Physics
from serialization import SerializationFlags, has_flag
from thermal import Thermo

logger = logging.getLogger(__name__)


class DeathReason(Enum):
    NONE = "None"
    PLACEMENT = "Placement"


@dataclass
class Statistics:
    hp: float = 100.0
    energy: float = 100.0
    alive: bool = True
    death_reason: DeathReason = DeathReason.NONE
    death_step: int = 0

    def to_dict(self) -> dict:
        return {"HP": self.hp, "Energy": self.energy, "Alive": self.alive,
                "DeathReason": self.death_reason.value, "DeathStep": self.death_step}


def sensor_tags_for(morphology, default_sensors) -> list:
    """Default sensors first, then the body's own, without duplicates."""
    tags = list(default_sensors)
    for tag in morphology.sensor_list():
        if tag not in tags:
            tags.append(tag)
    return tags


class Individual:
    """
    One evolvable creature. The translation table and default sensors are
    shared with the species and used to rebuild bodies on crossover/mutation.
    """
    __slots__ = (
        "uid", "morphology", "control", "physics", "thermo",
        "statistics", "fitness_statistics", "fitness", "raw",
        "translation_table", "default_sensors",
    )

    def __init__(self, uid, morphology: Morphology, control: Control = None,
                 position=(0.0, 0.0), translation_table=None, default_sensors=(),
                 rng=None):
        self.uid        = uid
        self.morphology = morphology
        self.translation_table = translation_table
        self.default_sensors   = list(default_sensors)
        if control is None:
            control = Control(sensors_from_tags(sensor_tags_for(morphology, self.default_sensors)),
                              actuators_from_tags(morphology.actuator_list()),
                              rng=rng)
        self.control    = control
        self.physics    = Physics(uid, position)
        self.thermo     = Thermo(uid)
        self.statistics = Statistics()
        self.fitness_statistics = []
        self.fitness    = 0.0
        self.raw        = 0.0

    @classmethod
    def new_random(cls, uid, translation_table, default_sensors, rng,
                   genome_size: int = GENOME_SIZE, position=(0.0, 0.0)):
        chromosome = random_genome(genome_size, rng)
        morphology = Morphology.from_genes(chromosome, translation_table)
        return cls(uid, morphology, position=position, translation_table=translation_table,
                   default_sensors=default_sensors, rng=rng)

    @classmethod
    def from_dict(cls, data: dict, uid, translation_table, default_sensors, rng):
        """Rebuild from a serialized individual; the network is kept if present."""
        chromosome = [gene_from_bytes(b) for b in data["Morphology"]["Chromosome"]]
        morphology = Morphology.from_genes(chromosome, translation_table)
        sensors = sensors_from_tags(sensor_tags_for(morphology, default_sensors))
        actuators = actuators_from_tags(morphology.actuator_list())
        network_data = data.get("Control", {}).get("Network")
        if network_data is not None:
            network = NeuralNetwork.from_dict(network_data)
            if network.n_inputs != len(sensors) or network.n_outputs != len(actuators):
                network = network.resized(len(sensors), len(actuators), rng)
            control = Control(sensors, actuators, network=network)
        else:
            control = Control(sensors, actuators, rng=rng)
        position = data.get("Physics", {}).get("StartingPos", {"x": 0.0, "y": 0.0})
        return cls(uid, morphology, control, (position["x"], position["y"]),
                   translation_table, default_sensors)

    # ──────────────────────────────────────────────────────────────────────────
    # Simulation phases
    # ──────────────────────────────────────────────────────────────────────────

    def sense(self, payload: dict):
        self.control.sense(payload)

    def think(self):
        self.control.think()

    def act(self, target, thermo_world=None):
        """
        Turn the control outputs into actions. A list `target` collects them;
        otherwise `target` is the physics world and the dominant move is
        queued into it (thermal actions go to `thermo_world` when given).
        """
        actions = self.control.act()
        if isinstance(target, list):
            target.extend(actions)
            return
        self.physics.act_on(actions, target)
        self.fitness_statistics.append(
            FitnessStatistic.from_action(dominant_move(actions)))
        if thermo_world is not None:
            self.thermo.act_on(actions, thermo_world)

    def apply_consequence(self, physics_world):
        self.physics.update_state(physics_world)

    def apply_thermal(self, thermo_world):
        self.thermo.update_state(thermo_world)

    def get_perspective(self) -> Perspective:
        return Perspective(self.uid, self.physics.position, self.physics.facing,
                           self.physics.move_succeeded, self.thermo.current)

    # ──────────────────────────────────────────────────────────────────────────
    # Genetics
    # ──────────────────────────────────────────────────────────────────────────

    def crossover(self, other: "Individual", rng, id_gen) -> "Individual":
        """Child with a recombined chromosome and control, and a new identity."""
        chromosome = crossover_genomes(self.morphology.chromosome,
                                       other.morphology.chromosome, rng)
        morphology = Morphology.from_genes(chromosome, self.translation_table)
        control = self.control.crossover(other.control, rng).rewired(
            sensors_from_tags(sensor_tags_for(morphology, self.default_sensors)),
            actuators_from_tags(morphology.actuator_list()), rng)
        return Individual(id_gen.next(), morphology, control,
                          self.physics.starting_position,
                          self.translation_table, self.default_sensors)

    def mutate(self, rng, rate: float = MUTATION_RATE):
        """Flip chromosome bits, rebuild the body and nudge the network."""
        chromosome = mutate_genome(list(self.morphology.chromosome), rate, rng)
        if chromosome != list(self.morphology.chromosome):
            self.morphology = Morphology.from_genes(chromosome, self.translation_table)
            self.control = self.control.rewired(
                sensors_from_tags(sensor_tags_for(self.morphology, self.default_sensors)),
                actuators_from_tags(self.morphology.actuator_list()), rng)
        self.control.mutate(rng)

    # ──────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────────────────

    def reset(self, rng, placement):
        """Start a new epoch: new placement, clean statistics."""
        self.physics.reset(placement(rng))
        self.thermo.reset()
        self.statistics = Statistics()
        self.fitness_statistics = []

    def restart(self, rng, placement):
        """
        Rerun within the same epoch. Observations of the finished run are
        kept so the evaluation covers every run.
        """
        self.finalize_statistics()
        self.physics.reset(placement(rng))
        self.thermo.reset()
        self.statistics = Statistics()

    def die(self, reason: DeathReason, step: int = 0):
        logger.debug("Individual %s died: %s at step %d", self.uid, reason.value, step)
        self.statistics.alive = False
        self.statistics.death_reason = reason
        self.statistics.death_step = step

    @property
    def alive(self) -> bool:
        return self.statistics.alive

    def finalize_statistics(self):
        """Append the observations only known at the end of a run."""
        self.fitness_statistics.append(
            FitnessStatistic.distance_travelled(self.physics.distance_moved()))
        self.fitness_statistics.append(FitnessStatistic.total_cells(len(self.morphology)))
        self.fitness_statistics.append(
            FitnessStatistic.final_position(*self.physics.normalized_position()))
        if not self.statistics.alive:
            self.fitness_statistics.append(FitnessStatistic.died())

    # ──────────────────────────────────────────────────────────────────────────

    def to_dict(self, flags=None) -> dict:
        data = {
            "ID": self.uid,
            "Morphology": self.morphology.to_dict(flags),
            "Control": self.control.to_dict(flags),
            "Physics": self.physics.to_dict(flags),
        }
        if has_flag(flags, SerializationFlags.DYNAMIC):
            data["Thermo"] = self.thermo.to_dict(flags)
        if has_flag(flags, SerializationFlags.STATIC):
            data["Fitness"] = self.fitness
            data["Raw"] = self.raw
            data["Statistics"] = self.statistics.to_dict()
        if has_flag(flags, SerializationFlags.DEBUG):
            data["FitnessStatistics"] = [str(s) for s in self.fitness_statistics]
        return data

    def __repr__(self):
        return (f"Individual(uid={self.uid}, cells={len(self.morphology)}, "
                f"fitness={self.fitness:.3f})")
