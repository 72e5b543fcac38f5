"""
Body plans for Polyminis.

A Morphology is built once from a chromosome:

  1. every gene becomes a Segment (adjacency rule + optional trait)
  2. a depth-first traversal places the segments on an integer grid
  3. the placement is rotated three times by 90° to give four
     index-aligned representations used for orientation-stable hit shapes
"""

import logging
from dataclasses import dataclass
from typing import Optional

from genome import AdjacencyInfo, decode_adjacency, gene_fields, gene_to_bytes
from serialization import SerializationFlags, has_flag
from traits import ActuatorTag, SensorTag, TraitTag

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Segment:
    """One grid cell of a body plan."""
    adjacency: AdjacencyInfo
    trait: Optional[object] = None


def segments_from_genes(chromosome, translation_table=None) -> list:
    """One Segment per gene, in gene order."""
    segments = []
    for gene in chromosome:
        _, adjacency, genetic = gene_fields(gene)
        trait = translation_table.translate(genetic) if translation_table else None
        segments.append(Segment(decode_adjacency(adjacency), trait))
    return segments


def rotate(coords) -> tuple:
    """Rotate every coordinate by 90°: (x, y) → (y, −x)."""
    return tuple((y, -x) for x, y in coords)


class Morphology:
    """
    Segments plus four rotations of their grid placement.

    ``representations[r][i]`` is the coordinate of ``segments[i]`` after r
    quarter turns; ``dimensions`` is the (width, height) of rotation 0.
    """

    def __init__(self, segments=(), representations=None, dimensions=(0, 0),
                 chromosome=()):
        self.segments = tuple(segments)
        self.representations = tuple(
            tuple(r) for r in (representations or ((), (), (), ())))
        self.dimensions = tuple(dimensions)
        self.chromosome = tuple(int(g) for g in chromosome)

    @classmethod
    def from_genes(cls, chromosome, translation_table=None):
        chromosome = list(chromosome)
        return build_morphology(segments_from_genes(chromosome, translation_table),
                                chromosome)

    # ──────────────────────────────────────────────────────────────────────────

    def __len__(self):
        return len(self.segments)

    def positions(self, rotation: int = 0) -> tuple:
        return self.representations[rotation % 4]

    def rotated_dimensions(self, rotation: int) -> tuple:
        w, h = self.dimensions
        return (w, h) if rotation % 2 == 0 else (h, w)

    def corner(self, rotation: int = 0) -> tuple:
        """Top-left (min x, min y) of a rotation's placement."""
        coords = self.positions(rotation)
        if not coords:
            return (0, 0)
        return (min(x for x, _ in coords), min(y for _, y in coords))

    def sensor_list(self) -> list:
        return self._tags_of(SensorTag)

    def actuator_list(self) -> list:
        return self._tags_of(ActuatorTag)

    def traits(self) -> list:
        return [s.trait for s in self.segments if s.trait is not None]

    def speed(self) -> int:
        """Number of speed trait segments."""
        return sum(1 for s in self.segments if s.trait is TraitTag.SPEED_TRAIT)

    def _tags_of(self, tag_cls) -> list:
        seen = []
        for seg in self.segments:
            if isinstance(seg.trait, tag_cls) and seg.trait not in seen:
                seen.append(seg.trait)
        return seen

    def to_dict(self, flags=None) -> dict:
        data = {"Chromosome": [gene_to_bytes(g) for g in self.chromosome]}
        if has_flag(flags, SerializationFlags.DEBUG):
            data["Dimensions"] = list(self.dimensions)
            data["Body"] = [
                {"Coord": list(coord),
                 "Adjacency": [str(d) for d in seg.adjacency.directions],
                 "Trait": str(seg.trait) if seg.trait is not None else None}
                for seg, coord in zip(self.segments, self.representations[0])
            ]
        return data

    def __repr__(self):
        return (f"Morphology(segments={len(self.segments)}, "
                f"dimensions={self.dimensions})")


# ──────────────────────────────────────────────────────────────────────────────
# Builder
# ──────────────────────────────────────────────────────────────────────────────

def build_morphology(segments, chromosome=()) -> Morphology:
    """
    Place `segments` on the grid with a depth-first traversal.

    Segment i is expanded from the coordinate popped after segment i-1.
    Placement stops early when the stack runs dry; segments beyond the
    number of placed positions are dropped.
    """
    cells = list(segments)
    if not cells:
        return Morphology(chromosome=chromosome)

    curr = (0, 0)
    visited = {curr}
    positions = [curr]
    stack = []

    for seg in cells:
        for coord in seg.adjacency.get_neighbours(curr):
            if coord in visited:
                continue
            visited.add(coord)
            stack.append(coord)
            positions.append(coord)
        if not stack:
            break
        curr = stack.pop()

    keep = min(len(cells), len(positions))
    if keep < len(cells):
        logger.debug("Dropping %d unreachable segments", len(cells) - keep)
    cells = cells[:keep]
    positions = positions[:keep]

    # Bounding box over the kept placement (the origin is always kept)
    min_x = min(x for x, _ in positions)
    max_x = max(x for x, _ in positions)
    min_y = min(y for _, y in positions)
    max_y = max(y for _, y in positions)
    dimensions = (max_x - min_x + 1, max_y - min_y + 1)

    r0 = tuple(positions)
    r1 = rotate(r0)
    r2 = rotate(r1)
    r3 = rotate(r2)
    return Morphology(cells, (r0, r1, r2, r3), dimensions, chromosome)
