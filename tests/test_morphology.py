"""
Tests for body-plan construction.
"""

import pytest

from config import ADJ_UP, ADJ_DOWN, ADJ_RIGHT
from genome import encode_gene, random_genome
from morphology import Morphology, build_morphology, rotate, segments_from_genes
from traits import ActuatorTag, SensorTag


def random_chromosomes(rng, n=25, size=8):
    return [random_genome(size, rng) for _ in range(n)]


class TestScenarios:

    def test_line_is_three_by_one(self, line_morphology):
        """A LEFT+RIGHT head with two bare segments spans 3×1."""
        assert line_morphology.dimensions == (3, 1)
        assert len(line_morphology) == 3
        assert line_morphology.positions(0) == ((0, 0), (-1, 0), (1, 0))

    def test_up_from_head_row_places_nothing(self):
        morphology = Morphology.from_genes([encode_gene(0, ADJ_UP, 0)])
        assert morphology.positions(0) == ((0, 0),)
        assert morphology.dimensions == (1, 1)

    def test_up_below_head_row_reaches_visited_cell(self):
        chromosome = [encode_gene(0, ADJ_DOWN, 0),
                      encode_gene(0, ADJ_UP | ADJ_RIGHT, 0),
                      encode_gene(0, 0, 0)]
        morphology = Morphology.from_genes(chromosome)
        assert morphology.positions(0) == ((0, 0), (0, 1), (1, 1))
        assert morphology.dimensions == (2, 2)

    def test_unreachable_segments_are_dropped(self):
        """The first segment opens no neighbour, so placement stops after it."""
        morphology = Morphology.from_genes([encode_gene(0, 0, 0),
                                            encode_gene(0, ADJ_RIGHT, 0)])
        assert len(morphology) == 1
        assert morphology.dimensions == (1, 1)

    def test_empty_chromosome(self):
        morphology = Morphology.from_genes([])
        assert len(morphology) == 0
        assert morphology.dimensions == (0, 0)
        assert morphology.representations == ((), (), (), ())

    def test_default_constructor_is_empty(self):
        assert Morphology().dimensions == (0, 0)


class TestInvariants:

    def test_representations_are_index_aligned(self, rng):
        for chromosome in random_chromosomes(rng):
            morphology = Morphology.from_genes(chromosome)
            for r in range(4):
                assert len(morphology.positions(r)) == len(morphology.segments)

    def test_rotation_closure(self, rng):
        """Four quarter turns reproduce the unrotated placement."""
        for chromosome in random_chromosomes(rng):
            morphology = Morphology.from_genes(chromosome)
            coords = morphology.positions(0)
            assert rotate(rotate(rotate(rotate(coords)))) == coords

    def test_rotations_are_successive(self, rng):
        for chromosome in random_chromosomes(rng):
            reps = Morphology.from_genes(chromosome).representations
            for r in range(3):
                assert reps[r + 1] == rotate(reps[r])

    def test_bounding_box_is_tight(self, rng):
        for chromosome in random_chromosomes(rng):
            morphology = Morphology.from_genes(chromosome)
            xs = [x for x, _ in morphology.positions(0)]
            ys = [y for _, y in morphology.positions(0)]
            width, height = morphology.dimensions
            assert width == max(xs) - min(xs) + 1
            assert height == max(ys) - min(ys) + 1

    def test_traversal_is_deterministic(self, rng):
        for chromosome in random_chromosomes(rng, n=10):
            segments = segments_from_genes(chromosome)
            a = build_morphology(segments)
            b = build_morphology(segments)
            assert a.positions(0) == b.positions(0)
            assert a.dimensions == b.dimensions

    def test_placed_positions_are_unique(self, rng):
        for chromosome in random_chromosomes(rng):
            coords = Morphology.from_genes(chromosome).positions(0)
            assert len(set(coords)) == len(coords)

    @pytest.mark.parametrize("rotation, expected", [(0, (3, 1)), (1, (1, 3)),
                                                    (2, (3, 1)), (3, (1, 3))])
    def test_rotated_dimensions(self, line_morphology, rotation, expected):
        assert line_morphology.rotated_dimensions(rotation) == expected


class TestTraits:

    def test_sensor_and_actuator_lists(self, translation_table):
        # genetic payload 1 → movehorizontal, 4 → temperature
        chromosome = [encode_gene(0, ADJ_RIGHT, 1), encode_gene(0, 0, 4)]
        morphology = Morphology.from_genes(chromosome, translation_table)
        assert morphology.actuator_list() == [ActuatorTag.MOVE_HORIZONTAL]
        assert morphology.sensor_list() == [SensorTag.TEMPERATURE]

    def test_lists_have_no_duplicates(self, translation_table):
        chromosome = [encode_gene(0, ADJ_RIGHT, 3), encode_gene(0, ADJ_RIGHT, 3),
                      encode_gene(0, 0, 3)]
        morphology = Morphology.from_genes(chromosome, translation_table)
        assert morphology.actuator_list() == [ActuatorTag.ROTATE]
        assert len(morphology.traits()) == 3

    def test_no_table_means_no_traits(self, line_morphology):
        assert line_morphology.traits() == []

    def test_speed_counts_speed_segments(self, translation_table, line_morphology):
        # genetic payload 0 → speedtrait
        chromosome = [encode_gene(0, ADJ_RIGHT, 0), encode_gene(0, ADJ_RIGHT, 1),
                      encode_gene(0, 0, 0)]
        assert Morphology.from_genes(chromosome, translation_table).speed() == 2
        assert line_morphology.speed() == 0

    def test_chromosome_is_kept(self, line_chromosome, line_morphology):
        assert list(line_morphology.chromosome) == line_chromosome
