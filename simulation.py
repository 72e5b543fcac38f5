"""
Simulation Engine for Polyminis.

A SimulationEpoch is one bounded run of ticks over a fixed set of species:

  Building   species are added until the environment's slots are full
  Stepping   every tick runs five phases over every individual:
               init → sense → think → act → consequence
  Done       steps == max_steps (and no restarts left)

advance() then breeds every species and moves them into a brand-new epoch.
The Simulation drives epochs one after another:

  for each epoch:
    1. step until done (optionally under a wall-clock budget)
    2. evaluate every species
    3. log stats
    4. advance into the next epoch
"""

import logging
import time

import numpy as np

from actions import orientation_to_float
from config import MAX_STEPS, RESTARTS, MAX_EPOCHS, MASTER_TRANSLATION_TABLE
from environment import Environment, WorldObject
from exceptions import ConfigurationError
from genetics import genetic_diversity
from identity import IdGenerator
from individual import DeathReason
from serialization import SerializationFlags, has_flag, load_json
from species import Species
from traits import SensorTag, TraitTier, TranslationTable

logger = logging.getLogger(__name__)


class SimulationEpoch:
    """
    Owns the Environment (and through it the physics and thermal worlds)
    and the ordered species list for one epoch.

    Each tick runs the phases over the living individuals, species-major and
    in registration order. Sense reads the cached state refreshed by the
    previous consequence phase, act only queues actions, and the consequence
    phase is the one place where the worlds are stepped. After `max_steps`
    ticks the epoch restarts from fresh placements while `restarts_left` is
    positive; otherwise it is done and further steps are ignored.
    """

    def __init__(self, environment: Environment = None, max_steps: int = MAX_STEPS,
                 restarts: int = RESTARTS):
        self.environment   = environment if environment is not None else Environment()
        self.species       = []
        self.proportions   = []
        self.steps         = 0
        self.max_steps     = int(max_steps)
        self.restarts      = int(restarts)
        self.restarts_left = int(restarts)

    # ──────────────────────────────────────────────────────────────────────────
    # Building
    # ──────────────────────────────────────────────────────────────────────────

    def is_full(self) -> bool:
        return len(self.species) >= self.environment.species_slots

    def add_species(self, species: Species):
        """
        Register every individual of `species` and append it. A full epoch
        ignores the call. Individuals that cannot be placed die immediately.
        """
        if self.is_full():
            logger.debug("Epoch full, ignoring species %s", species.name)
            return
        for ind in species.individuals:
            if not self.environment.add_individual(ind):
                ind.die(DeathReason.PLACEMENT, 0)
        self.species.append(species)
        self._update_proportions()

    def add_object(self, obj: WorldObject) -> bool:
        return self.environment.add_object(obj)

    def _update_proportions(self):
        total = sum(s.accumulated_score for s in self.species)
        if total > 0.0:
            self.proportions = [s.accumulated_score / total for s in self.species]
        else:
            self.proportions = [1.0 / len(self.species)] * len(self.species)

    def individuals(self):
        """Every individual, species-major then in registration order."""
        for s in self.species:
            yield from s.individuals

    def living(self):
        return (ind for ind in self.individuals() if ind.alive)

    # ──────────────────────────────────────────────────────────────────────────
    # Stepping
    # ──────────────────────────────────────────────────────────────────────────

    def step(self):
        if self.steps >= self.max_steps:
            if self.restarts_left == 0:
                logger.debug("Epoch already done, ignoring step")
                return
            self.restart()
            self.restarts_left -= 1

        self._init_phase()
        self._sense_phase()
        self._think_phase()
        self._act_phase()
        self._consequence_phase()
        self.steps += 1

    def done(self) -> bool:
        return self.steps == self.max_steps and self.restarts_left == 0

    def restart(self):
        """Rerun the same population from fresh placements in a fresh world."""
        logger.debug("Restarting epoch, %d restarts left", self.restarts_left)
        self.environment = self.environment.restart()
        species, self.species = self.species, []
        for s in species:
            s.restart()
            self.add_species(s)
        self.steps = 0

    def _init_phase(self):
        pass

    def _sense_phase(self):
        for ind in self.living():
            ind.sense(self.sense_for(ind.get_perspective()))

    def _think_phase(self):
        for ind in self.living():
            ind.think()

    def _act_phase(self):
        env = self.environment
        for ind in self.living():
            ind.act(env.physics_world, env.thermo_world)

    def _consequence_phase(self):
        env = self.environment
        env.physics_world.step()
        living = list(self.living())
        for ind in living:
            ind.apply_consequence(env.physics_world)

        for ind in living:
            env.thermo_world.set_position(ind.uid, ind.physics.position)
        env.thermo_world.step()
        for ind in living:
            ind.apply_thermal(env.thermo_world)

    def sense_for(self, perspective) -> dict:
        env = self.environment
        return {
            SensorTag.POSITION_X: perspective.position[0] / env.width,
            SensorTag.POSITION_Y: perspective.position[1] / env.height,
            SensorTag.LAST_MOVE_SUCCEEDED: 1.0 if perspective.last_move_succeeded else 0.0,
            SensorTag.ORIENTATION: orientation_to_float(perspective.orientation),
            SensorTag.TEMPERATURE: perspective.temperature,
        }

    # ──────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────────────────

    def evaluate_species(self):
        for s in self.species:
            s.evaluate()

    def advance(self) -> "SimulationEpoch":
        """
        Breed every species and move them into a new epoch with a fresh
        environment. This epoch is left without species.
        """
        for s in self.species:
            s.advance_epoch()
        species, self.species = self.species, []
        new_epoch = SimulationEpoch(self.environment.advance_epoch(),
                                    self.max_steps, self.restarts)
        for s in species:
            new_epoch.add_species(s)
        return new_epoch

    # ──────────────────────────────────────────────────────────────────────────

    def to_dict(self, flags=None) -> dict:
        data = {}
        if has_flag(flags, SerializationFlags.DYNAMIC):
            data["Step"] = self.steps
        if has_flag(flags, SerializationFlags.STATIC):
            data["MaxSteps"] = self.max_steps
            data["Restarts"] = self.restarts
            data["Proportions"] = list(self.proportions)
        data["Environment"] = self.environment.to_dict(flags)
        if not has_flag(flags, SerializationFlags.DB):
            data["Species"] = [s.to_dict(flags) for s in self.species]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SimulationEpoch":
        """Epoch settings only; species are added by the owning Simulation."""
        env = Environment.from_dict(data.get("Environment", {}))
        epoch = cls(env, int(data.get("MaxSteps", MAX_STEPS)),
                    int(data.get("Restarts", RESTARTS)))
        epoch.proportions = [float(p) for p in data.get("Proportions", [])]
        return epoch


def master_table_from_list(entries) -> dict:
    """``[{"Tier": "TierI", "TID": 1, "Trait": "speedtrait"}, ...]`` → master dict."""
    master = {}
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning("Wrong type of entry in MasterTranslationTable: %r", entry)
            continue
        tier = entry.get("Tier")
        if isinstance(tier, int):
            tier = str(TraitTier.from_int(tier))
        if TraitTier.from_string(tier) is None or "TID" not in entry or "Trait" not in entry:
            logger.warning("Unrecognised MasterTranslationTable entry %r", entry)
            continue
        master[(tier, int(entry["TID"]))] = entry["Trait"]
    return master


class Simulation:
    """
    Main simulation controller: holds the current epoch, the epoch counter
    and the identity generator handed to everything that creates individuals.
    """

    def __init__(self, epoch: SimulationEpoch = None, id_gen: IdGenerator = None,
                 epoch_num: int = 0, seed: int = None,
                 on_step_callback=None,     # called every tick (for live viz)
                 on_epoch_callback=None):   # called at the end of each epoch
        self.current_epoch = epoch if epoch is not None else SimulationEpoch()
        self.id_gen        = id_gen if id_gen is not None else IdGenerator()
        self.epoch_num     = epoch_num
        self.rng           = np.random.default_rng(seed)
        self.on_step_callback  = on_step_callback
        self.on_epoch_callback = on_epoch_callback

        # History
        self.stats = []          # list of dicts, one per epoch
        self._epoch_started = time.time()

    @classmethod
    def new_random(cls, n_species: int = 1, config=None, environment: Environment = None,
                   max_steps: int = MAX_STEPS, restarts: int = RESTARTS,
                   master=MASTER_TRANSLATION_TABLE, seed: int = None):
        """A simulation with `n_species` random species using every master trait."""
        environment = environment if environment is not None else Environment(
            species_slots=max(1, n_species))
        sim = cls(SimulationEpoch(environment, max_steps, restarts), seed=seed)
        table = TranslationTable.from_master_config(master)
        for i in range(n_species):
            sim.current_epoch.add_species(Species.new_random(
                f"Species {i + 1}", table, environment.default_sensors, sim.id_gen,
                config))
        return sim

    @classmethod
    def from_dict(cls, data: dict, placement=None) -> "Simulation":
        if not isinstance(data, dict):
            raise ConfigurationError("Simulation data must be an object")
        master = MASTER_TRANSLATION_TABLE
        if "MasterTranslationTable" in data:
            master = master_table_from_list(data["MasterTranslationTable"])
        epoch = SimulationEpoch.from_dict(data.get("Epoch", {}))
        sim = cls(epoch, epoch_num=int(data.get("EpochNum", 0)))

        species_data = data.get("Species", data.get("Epoch", {}).get("Species", []))
        if not isinstance(species_data, list):
            logger.error("Species is set but has the wrong type of value %r", species_data)
            species_data = []
        for entry in species_data:
            epoch.add_species(Species.from_dict(entry, epoch.environment.default_sensors,
                                                sim.id_gen, master, placement))
        return sim

    @classmethod
    def from_json_file(cls, path: str, placement=None) -> "Simulation":
        return cls.from_dict(load_json(path), placement)

    # ──────────────────────────────────────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────────────────────────────────────

    def step(self) -> bool:
        """One tick of the current epoch; True once the epoch is done."""
        self.current_epoch.step()
        if self.on_step_callback:
            self.on_step_callback(self.current_epoch.steps, self.current_epoch)
        return self.current_epoch.done()

    def swap_epoch(self, new_epoch: SimulationEpoch):
        self.current_epoch = new_epoch
        self._epoch_started = time.time()

    def advance_epoch(self) -> dict:
        """Evaluate the finished epoch, record its stats and move to the next."""
        self.current_epoch.evaluate_species()
        stats = self._compute_stats(self.current_epoch)
        stats["elapsed_s"] = round(time.time() - self._epoch_started, 3)
        self.stats.append(stats)
        if self.on_epoch_callback:
            self.on_epoch_callback(self.epoch_num, stats, self.current_epoch)

        logger.info("Advancing Epoch - %d to %d", self.epoch_num, self.epoch_num + 1)
        self.epoch_num += 1
        self.swap_epoch(self.current_epoch.advance())
        return stats

    def run_epoch(self, max_seconds: float = None) -> bool:
        """
        Step until the epoch is done. The wall-clock budget is only checked
        between ticks; returns False if it ran out first.
        """
        t0 = time.time()
        while not self.current_epoch.done():
            if max_seconds is not None and time.time() - t0 > max_seconds:
                logger.warning("Epoch %d stopped at step %d: time budget exhausted",
                               self.epoch_num, self.current_epoch.steps)
                return False
            self.step()
        return True

    def run(self, max_epochs: int = MAX_EPOCHS, max_seconds: float = None):
        """Run and advance `max_epochs` epochs."""
        for _ in range(max_epochs):
            self.run_epoch(max_seconds)
            self.advance_epoch()

    # ──────────────────────────────────────────────────────────────────────────
    # Stats
    # ──────────────────────────────────────────────────────────────────────────

    def _compute_stats(self, epoch: SimulationEpoch) -> dict:
        individuals = list(epoch.individuals())
        fitness = [ind.fitness for ind in individuals]
        species = []
        for s in epoch.species:
            best = s.get_best() if len(s) else None
            species.append({
                "name":       s.name,
                "population": len(s),
                "best":       best.fitness if best is not None else 0.0,
                "best_cells": len(best.morphology) if best is not None else 0,
                "score":      s.accumulated_score,
                "diversity":  genetic_diversity(s.individuals, self.rng),
            })
        return {
            "epoch":        self.epoch_num,
            "steps":        epoch.steps,
            "population":   len(individuals),
            "alive":        sum(1 for ind in individuals if ind.alive),
            "best_fitness": max(fitness) if fitness else 0.0,
            "mean_fitness": float(np.mean(fitness)) if fitness else 0.0,
            "diversity":    float(np.mean([s["diversity"] for s in species])) if species else 0.0,
            "species":      species,
        }

    def to_dict(self, flags=None) -> dict:
        return {"EpochNum": self.epoch_num, "Epoch": self.current_epoch.to_dict(flags)}
