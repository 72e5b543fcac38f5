"""
Genome encoding / decoding for Polyminis.

Each gene is a 32-bit integer divided into 3 fields:

 Bits 31-24 : control payload    (8 bits, behavioural, unused by the body)
 Bits 23-16 : adjacency payload  (8 bits, one bit per cardinal direction)
 Bits 15-0  : genetic payload    (16 bits, translated into a segment trait)

Adjacency bits, low to high: UP, DOWN, LEFT, RIGHT. A set bit means a body
segment must exist in that direction. The upper 4 bits are ignored.

Grid convention: row 0 is the head edge and rows grow downward, so UP from a
cell at row 0 is not navigable.
"""

from enum import Enum

import numpy as np

from config import (GENOME_SIZE, MUTATION_RATE,
                    ADJ_UP, ADJ_DOWN, ADJ_LEFT, ADJ_RIGHT)


class Direction(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    def __str__(self):
        return self.value


# Fixed decode order and bit for each direction
DIRECTION_BITS = (
    (Direction.UP,    ADJ_UP),
    (Direction.DOWN,  ADJ_DOWN),
    (Direction.LEFT,  ADJ_LEFT),
    (Direction.RIGHT, ADJ_RIGHT),
)

# (dx, dy) for each direction; y grows away from the head
DIRECTION_OFFSETS = {
    Direction.UP:    (0, -1),
    Direction.DOWN:  (0, 1),
    Direction.LEFT:  (-1, 0),
    Direction.RIGHT: (1, 0),
}


class AdjacencyInfo:
    """Set of directions in which a neighbouring segment must exist."""

    __slots__ = ("directions",)

    def __init__(self, directions=()):
        wanted = set(directions)
        # Normalise to decode order so traversal is independent of input order
        self.directions = tuple(d for d, _ in DIRECTION_BITS if d in wanted)

    def get_neighbours(self, coord: tuple) -> list:
        """
        Neighbour coordinates of `coord`, in UP, DOWN, LEFT, RIGHT order.
        UP is skipped when the coordinate is already on the head row.
        """
        x, y = coord
        neighbours = []
        for d in self.directions:
            if d is Direction.UP and y <= 0:
                continue
            dx, dy = DIRECTION_OFFSETS[d]
            neighbours.append((x + dx, y + dy))
        return neighbours

    def __contains__(self, direction):
        return direction in self.directions

    def __len__(self):
        return len(self.directions)

    def __eq__(self, other):
        return isinstance(other, AdjacencyInfo) and self.directions == other.directions

    def __hash__(self):
        return hash(self.directions)

    def __repr__(self):
        return f"AdjacencyInfo({[str(d) for d in self.directions]})"


# ──────────────────────────────────────────────────────────────────────────────
# Gene helpers
# ──────────────────────────────────────────────────────────────────────────────

def gene_fields(gene: int) -> tuple:
    """Unpack a 32-bit int into (control, adjacency, genetic)."""
    gene = int(gene) & 0xFFFFFFFF
    control   = (gene >> 24) & 0xFF
    adjacency = (gene >> 16) & 0xFF
    genetic   =  gene        & 0xFFFF
    return control, adjacency, genetic


def encode_gene(control: int, adjacency: int, genetic: int) -> int:
    """Pack gene fields back into a 32-bit int."""
    gene  = (control   & 0xFF) << 24
    gene |= (adjacency & 0xFF) << 16
    gene |= (genetic   & 0xFFFF)
    return gene


def decode_adjacency(adjacency: int) -> AdjacencyInfo:
    """Directions whose bit is set in an adjacency byte."""
    return AdjacencyInfo([d for d, bit in DIRECTION_BITS if adjacency & bit])


def decode_gene(gene: int) -> AdjacencyInfo:
    """Decode the adjacency payload of a gene. Every 32-bit input is valid."""
    _, adjacency, _ = gene_fields(gene)
    return decode_adjacency(adjacency)


def gene_from_bytes(chromosome_bytes) -> int:
    """Build a gene from 4 bytes, most significant first."""
    b0, b1, b2, b3 = (int(b) & 0xFF for b in chromosome_bytes)
    return (b0 << 24) | (b1 << 16) | (b2 << 8) | b3


def gene_to_bytes(gene: int) -> list:
    gene = int(gene) & 0xFFFFFFFF
    return [(gene >> 24) & 0xFF, (gene >> 16) & 0xFF, (gene >> 8) & 0xFF, gene & 0xFF]


# ──────────────────────────────────────────────────────────────────────────────
# Population-level operations
# ──────────────────────────────────────────────────────────────────────────────

def random_genome(size: int = GENOME_SIZE, rng=None) -> list:
    """Generate a random genome as a list of unsigned 32-bit ints."""
    if rng is None:
        rng = np.random.default_rng()
    return [int(g) for g in rng.integers(0, 2**32, size=size, dtype=np.uint64)]


def mutate_genome(genome: list, rate: float = MUTATION_RATE, rng=None) -> list:
    """
    Flip individual bits with probability `rate` per bit.
    Each 32-bit gene has 32 bits → expected flips ≈ rate * 32 per gene.
    """
    if rng is None:
        rng = np.random.default_rng()
    mutated = []
    for gene in genome:
        gene = int(gene) & 0xFFFFFFFF
        flips = rng.random(32) < rate
        for bit in np.flatnonzero(flips):
            gene ^= (1 << int(bit))
        mutated.append(gene & 0xFFFFFFFF)
    return mutated


def crossover(genome_a: list, genome_b: list, rng=None) -> list:
    """
    Single-point crossover: pick a random split point, take genes
    [0:split] from parent A and [split:] from parent B.
    """
    if rng is None:
        rng = np.random.default_rng()
    size = min(len(genome_a), len(genome_b))
    split = int(rng.integers(0, size + 1))
    return list(genome_a[:split]) + list(genome_b[split:])


def genome_similarity(genome_a: list, genome_b: list) -> float:
    """Genetic similarity (0..1) based on fraction of identical bits."""
    if not genome_a or not genome_b:
        return 0.0
    total_bits = 0
    matching   = 0
    for a, b in zip(genome_a, genome_b):
        xor = (int(a) ^ int(b)) & 0xFFFFFFFF
        matching   += 32 - bin(xor).count('1')
        total_bits += 32
    return matching / total_bits if total_bits else 1.0
