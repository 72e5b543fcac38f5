"""
Shared pytest fixtures for the Polyminis test suite.
"""

import numpy as np
import pytest

from config import ADJ_LEFT, ADJ_RIGHT, DEFAULT_SENSORS
from environment import parse_sensors
from genome import encode_gene
from identity import IdGenerator
from morphology import Morphology
from traits import TranslationTable


# ===== Randomness / identity =====

@pytest.fixture
def rng():
    """Seeded numpy generator so every test is reproducible."""
    return np.random.default_rng(1234)


@pytest.fixture
def id_gen():
    """Fresh identity generator starting at 1."""
    return IdGenerator()


# ===== Traits =====

@pytest.fixture
def translation_table():
    """Translation table holding every trait of the master table."""
    return TranslationTable.from_master_config()


@pytest.fixture
def default_sensors():
    return parse_sensors(DEFAULT_SENSORS)


# ===== Morphologies =====

@pytest.fixture
def line_chromosome():
    """A LEFT+RIGHT head followed by two bare segments: a 3×1 body."""
    return [encode_gene(0, ADJ_LEFT | ADJ_RIGHT, 6), encode_gene(0, 0, 6),
            encode_gene(0, 0, 6)]


@pytest.fixture
def line_morphology(line_chromosome):
    return Morphology.from_genes(line_chromosome)


@pytest.fixture
def single_cell():
    """One segment with no adjacency."""
    return Morphology.from_genes([encode_gene(0, 0, 0)])
