"""
Species for Polyminis.

A species is one lineage of individuals sharing a translation table, a GA
configuration, instinct weights and a deterministic random context seeded
from the species name.
"""

import logging
import math
import zlib

import numpy as np

from config import WORLD_WIDTH, WORLD_HEIGHT, MASTER_TRANSLATION_TABLE
from evaluation import Instinct
from genetics import CreationCtx, GAConfig, PopulationEvolver
from identity import IdGenerator
from individual import Individual
from serialization import SerializationFlags, has_flag
from traits import TranslationTable

logger = logging.getLogger(__name__)


def default_placement(rng) -> tuple:
    """Uniform integer position anywhere in a default-sized world."""
    return (math.floor(rng.uniform(0.0, WORLD_WIDTH)),
            math.floor(rng.uniform(0.0, WORLD_HEIGHT)))


def rng_for_name(name: str):
    """Deterministic RNG for a species: seeded from the CRC32 of its name."""
    return np.random.default_rng(zlib.crc32(name.encode("utf-8")))


class Species:
    """
    One lineage inside an epoch.

    Holds the PopulationEvolver with the current generation, the CreationCtx
    used to breed new individuals (translation table, default sensors, the
    species RNG and the simulation's IdGenerator), the placement function
    that picks starting positions and the instinct weights that turn
    accumulated instinct scores into fitness. `accumulated_score` is the sum
    of raw scores of the last evaluation and drives the epoch proportions.
    """

    def __init__(self, name: str, individuals, creation_ctx: CreationCtx,
                 config: GAConfig = None, placement=None, instinct_weights=None,
                 percentage: float = 0.0):
        self.name = name
        self.evolver = PopulationEvolver(individuals, config)
        self.creation_ctx = creation_ctx
        self.placement = placement or default_placement
        self.instinct_weights = dict(instinct_weights or {})
        self.accumulated_score = 0.0
        self.percentage = percentage

    @classmethod
    def new_random(cls, name: str, translation_table, default_sensors, id_gen: IdGenerator,
                   config: GAConfig = None, placement=None, instinct_weights=None):
        config = config or GAConfig()
        placement = placement or default_placement
        rng = rng_for_name(name)
        individuals = [
            Individual.new_random(id_gen.next(), translation_table, default_sensors,
                                  rng, config.genome_size, placement(rng))
            for _ in range(config.population_size)
        ]
        ctx = CreationCtx(translation_table, default_sensors, id_gen, rng)
        return cls(name, individuals, ctx, config, placement, instinct_weights)

    @classmethod
    def from_dict(cls, data: dict, default_sensors, id_gen: IdGenerator,
                  master=MASTER_TRANSLATION_TABLE, placement=None):
        """
        Load a species configuration. Saved individuals are rebuilt when
        present; otherwise a random population is created.
        """
        master_table = TranslationTable.from_master_config(master).entries
        translation_table = TranslationTable.from_list(data.get("TranslationTable", []),
                                                       master_table)
        config = GAConfig.from_dict(data.get("GAConfiguration"))
        name = data.get("SpeciesName") or "Test Species"
        percentage = float(data.get("Percentage", 0.0))

        weights = {}
        for key, value in (data.get("InstinctWeights") or {}).items():
            instinct = Instinct.from_string(key)
            if instinct is None:
                logger.warning("Species %s: unknown instinct %r, skipping", name, key)
                continue
            weights[instinct] = float(value)

        saved = data.get("Individuals") or []
        if not saved:
            species = cls.new_random(name, translation_table, default_sensors, id_gen,
                                     config, placement, weights)
            species.percentage = percentage
            return species

        rng = rng_for_name(name)
        individuals = [Individual.from_dict(ind, id_gen.next(), translation_table,
                                            default_sensors, rng)
                       for ind in saved]
        ctx = CreationCtx(translation_table, default_sensors, id_gen, rng)
        species = cls(name, individuals, ctx, config, placement, weights, percentage)
        species.reset()
        return species

    # ──────────────────────────────────────────────────────────────────────────

    @property
    def individuals(self) -> list:
        return self.evolver.generation.individuals

    def __len__(self):
        return len(self.evolver.generation)

    def get_best(self):
        return self.evolver.generation[0]

    def evaluate(self):
        self.evolver.evaluate_population(self.instinct_weights)
        self.accumulated_score = sum(ind.raw for ind in self.individuals)

    def advance_epoch(self):
        self.evolver.step(self.creation_ctx)
        self.reset()

    def reset(self):
        for ind in self.individuals:
            ind.reset(self.creation_ctx.rng, self.placement)

    def restart(self):
        for ind in self.individuals:
            ind.restart(self.creation_ctx.rng, self.placement)

    # ──────────────────────────────────────────────────────────────────────────

    def to_dict(self, flags=None) -> dict:
        data = {"SpeciesName": self.name}
        if has_flag(flags, SerializationFlags.STATIC):
            data["TranslationTable"] = self.creation_ctx.translation_table.to_list()
            data["GAConfiguration"] = self.evolver.config.to_dict()
            data["InstinctWeights"] = {str(i): w for i, w in self.instinct_weights.items()}
            data["Percentage"] = self.percentage
            data["Score"] = self.accumulated_score
        if self.individuals:
            data["Individuals"] = [ind.to_dict(flags) for ind in self.individuals]
        return data

    def __repr__(self):
        return f"Species({self.name!r}, individuals={len(self)})"
