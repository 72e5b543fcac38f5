"""
Genetic algorithm driver for Polyminis.

Each species owns a PopulationEvolver. At the end of an epoch:
  1. evaluate_population() scores every individual and sorts the generation
  2. step() keeps the elite share, breeds the rest from the elite by
     crossover and mutates each child with probability percentage_mutation
"""

import logging
from dataclasses import dataclass, field

import numpy as np

from config import (POPULATION, PERCENTAGE_ELITISM, PERCENTAGE_MUTATION,
                    GENOME_SIZE, MUTATION_RATE, FITNESS_EVALUATORS, INSTINCTS)
from evaluation import (FitnessAccumulator, FitnessEvaluator, Instinct,
                        PolyminiEvaluationCtx, TargetPosition)
from genome import genome_similarity

logger = logging.getLogger(__name__)


def parse_evaluators(items) -> list:
    evaluators = []
    for item in items:
        if isinstance(item, FitnessEvaluator):
            evaluators.append(item)
            continue
        if isinstance(item, dict):
            evaluator = FitnessEvaluator.from_string(item.get("Name"), item.get("Target"))
        else:
            evaluator = FitnessEvaluator.from_string(item)
        if evaluator is None:
            logger.warning("Unknown fitness evaluator %r, skipping", item)
            continue
        evaluators.append(evaluator)
    return evaluators


def parse_instincts(items) -> list:
    instincts = []
    for item in items:
        instinct = item if isinstance(item, Instinct) else Instinct.from_string(item)
        if instinct is None:
            logger.warning("Unknown instinct %r, skipping", item)
            continue
        instincts.append(instinct)
    return instincts


@dataclass
class GAConfig:
    population_size: int = POPULATION
    percentage_elitism: float = PERCENTAGE_ELITISM
    percentage_mutation: float = PERCENTAGE_MUTATION
    genome_size: int = GENOME_SIZE
    mutation_rate: float = MUTATION_RATE
    fitness_evaluators: list = field(
        default_factory=lambda: parse_evaluators(FITNESS_EVALUATORS))
    instincts: list = field(default_factory=lambda: parse_instincts(INSTINCTS))

    @classmethod
    def from_dict(cls, data: dict) -> "GAConfig":
        """Missing keys fall back to the defaults in config.py."""
        config = cls()
        if not isinstance(data, dict):
            return config
        config.population_size = int(data.get("PopulationSize", config.population_size))
        config.percentage_elitism = float(data.get("PercentageElitism", config.percentage_elitism))
        config.percentage_mutation = float(data.get("PercentageMutation", config.percentage_mutation))
        config.genome_size = int(data.get("GenomeSize", config.genome_size))
        config.mutation_rate = float(data.get("MutationRate", config.mutation_rate))
        if "FitnessEvaluators" in data:
            config.fitness_evaluators = parse_evaluators(data["FitnessEvaluators"])
        if "Instincts" in data:
            config.instincts = parse_instincts(data["Instincts"])
        return config

    def to_dict(self) -> dict:
        evaluators = []
        for e in self.fitness_evaluators:
            if isinstance(e, TargetPosition):
                evaluators.append({"Name": e.name, "Target": list(e.target)})
            else:
                evaluators.append(e.name)
        return {
            "PopulationSize": self.population_size,
            "PercentageElitism": self.percentage_elitism,
            "PercentageMutation": self.percentage_mutation,
            "GenomeSize": self.genome_size,
            "MutationRate": self.mutation_rate,
            "FitnessEvaluators": evaluators,
            "Instincts": [str(i) for i in self.instincts],
        }


class CreationCtx:
    """What a species needs to create new individuals."""

    def __init__(self, translation_table, default_sensors, id_gen, rng=None):
        self.translation_table = translation_table
        self.default_sensors = list(default_sensors)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.id_gen = id_gen


class Generation:
    """A population kept sorted high-is-best by fitness after evaluation."""

    def __init__(self, individuals=()):
        self.individuals = list(individuals)

    def sort(self):
        self.individuals.sort(key=lambda ind: ind.fitness, reverse=True)

    def __len__(self):
        return len(self.individuals)

    def __iter__(self):
        return iter(self.individuals)

    def __getitem__(self, i):
        return self.individuals[i]


# ──────────────────────────────────────────────────────────────────────────────
# Operators
# ──────────────────────────────────────────────────────────────────────────────

def crossover(a, b, rng, id_gen):
    return a.crossover(b, rng, id_gen)


def mutate(individual, rng, rate: float = MUTATION_RATE):
    individual.mutate(rng, rate)


def genetic_diversity(individuals, rng, sample: int = 50) -> float:
    """
    Estimate genetic diversity as average pairwise dissimilarity.
    Returns value 0 (identical) → 1 (maximally diverse).
    """
    individuals = list(individuals)
    if len(individuals) < 2:
        return 0.0
    sample_size = min(sample, len(individuals))
    idx = rng.choice(len(individuals), sample_size, replace=False)
    sampled = [individuals[i].morphology.chromosome for i in idx]
    total, count = 0.0, 0
    for i in range(len(sampled)):
        for j in range(i + 1, len(sampled)):
            total += 1.0 - genome_similarity(sampled[i], sampled[j])
            count += 1
    return total / count if count else 0.0


def advance_generation(population, config: GAConfig, creation_ctx: CreationCtx) -> list:
    """
    Next population: the elite share survives as is, the rest are children
    of random elite pairs, each mutated with probability percentage_mutation.
    `population` must already be sorted best first.
    """
    population = list(population)
    if not population:
        return []
    rng = creation_ctx.rng
    size = config.population_size
    n_elite = max(1, int(round(size * config.percentage_elitism)))
    elite = population[:min(n_elite, len(population))]

    next_population = list(elite)
    n = len(elite)
    while len(next_population) < size:
        pa = elite[int(rng.integers(0, n))]
        pb = elite[int(rng.integers(0, n))]
        child = crossover(pa, pb, rng, creation_ctx.id_gen)
        if rng.random() < config.percentage_mutation:
            mutate(child, rng, config.mutation_rate)
        next_population.append(child)
    return next_population[:size]


class PopulationEvolver:
    """
    Keeps one species' Generation and drives evaluation and breeding.
    """

    def __init__(self, individuals, config: GAConfig = None):
        self.config = config or GAConfig(population_size=len(individuals))
        self.generation = Generation(individuals)
        self.generation_num = 0

    def evaluate_population(self, weights: dict):
        for ind in self.generation:
            ind.finalize_statistics()
            ctx = PolyminiEvaluationCtx(self.config.fitness_evaluators,
                                        FitnessAccumulator(self.config.instincts))
            ctx.evaluate(ind.fitness_statistics)
            ind.fitness = ctx.get_fitness(weights)
            ind.raw = ctx.get_raw()
        self.generation.sort()

    def step(self, creation_ctx: CreationCtx):
        self.generation = Generation(
            advance_generation(self.generation, self.config, creation_ctx))
        self.generation_num += 1
        logger.debug("Generation %d bred, %d individuals",
                     self.generation_num, len(self.generation))
