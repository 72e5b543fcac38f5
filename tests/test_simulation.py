"""
Tests for the SimulationEpoch state machine and the Simulation driver.
"""

import json

import pytest

from control import Perspective
from environment import Environment, WorldObject
from evaluation import Instinct
from exceptions import ConfigurationError, DuplicateObjectError
from genetics import CreationCtx, GAConfig
from genome import Direction, encode_gene
from identity import IdGenerator
from individual import DeathReason, Individual
from morphology import Morphology
from simulation import Simulation, SimulationEpoch, master_table_from_list
from serialization import SerializationFlags
from species import Species
from traits import SensorTag


def small_placement(rng):
    return (int(rng.integers(0, 20)), int(rng.integers(0, 20)))


def make_species(translation_table, default_sensors, id_gen, name="Test Species",
                 population=4):
    return Species.new_random(name, translation_table, default_sensors, id_gen,
                              GAConfig(population_size=population),
                              placement=small_placement)


@pytest.fixture
def epoch(translation_table, default_sensors, id_gen):
    env = Environment(species_slots=1, dimensions=(20, 20))
    epoch = SimulationEpoch(env, max_steps=10)
    epoch.add_species(make_species(translation_table, default_sensors, id_gen))
    return epoch


class TestEpochLifecycle:

    def test_done_after_exactly_max_steps(self, epoch):
        for _ in range(9):
            epoch.step()
        assert not epoch.done()
        epoch.step()
        assert epoch.done()
        assert epoch.steps == 10

    def test_step_after_done_is_ignored(self, epoch):
        for _ in range(12):
            epoch.step()
        assert epoch.steps == 10
        assert epoch.done()

    def test_full_epoch_ignores_new_species(self, epoch, translation_table,
                                            default_sensors, id_gen):
        assert epoch.is_full()
        epoch.add_species(make_species(translation_table, default_sensors, id_gen,
                                       name="Other"))
        assert len(epoch.species) == 1

    def test_every_individual_is_registered(self, epoch):
        world = epoch.environment.physics_world
        assert all(ind.uid in world for ind in epoch.individuals())
        assert len(world) == 4

    def test_unplaceable_individuals_die(self, translation_table, default_sensors, id_gen):
        env = Environment(species_slots=1, dimensions=(1, 1))
        epoch = SimulationEpoch(env, max_steps=3)
        epoch.add_species(make_species(translation_table, default_sensors, id_gen,
                                       population=3))
        dead = [ind for ind in epoch.individuals() if not ind.alive]
        assert len(dead) >= 2
        assert all(ind.statistics.death_reason is DeathReason.PLACEMENT for ind in dead)
        for _ in range(3):
            epoch.step()
        assert epoch.done()

    def test_observation_per_tick(self, epoch):
        for _ in range(10):
            epoch.step()
        for ind in epoch.living():
            assert len(ind.fitness_statistics) == 10

    def test_equal_proportions_without_score(self, epoch):
        assert epoch.proportions == [1.0]

    def test_advance_builds_fresh_epoch(self, epoch):
        for _ in range(10):
            epoch.step()
        epoch.evaluate_species()
        successor = epoch.advance()
        assert successor is not epoch
        assert successor.steps == 0
        assert successor.max_steps == 10
        assert len(successor.species) == 1
        assert len(successor.species[0]) == 4
        assert epoch.species == []
        assert successor.environment is not epoch.environment
        assert all(ind.uid in successor.environment.physics_world
                   for ind in successor.living())

    def test_advance_keeps_static_objects(self, translation_table, default_sensors, id_gen):
        epoch = SimulationEpoch(Environment(species_slots=1, dimensions=(20, 20)))
        assert epoch.add_object(WorldObject.new_heat_source((15, 15), temperature=1.0))
        epoch.add_species(make_species(translation_table, default_sensors, id_gen))
        successor = epoch.advance()
        assert len(successor.environment.objects) == 1
        assert successor.environment.thermo_world.grid.max() == pytest.approx(1.0)


class TestIdentities:

    def test_species_sharing_a_generator_get_distinct_bodies(self, translation_table,
                                                             default_sensors, id_gen):
        env = Environment(species_slots=2, dimensions=(20, 20))
        epoch = SimulationEpoch(env, max_steps=3)
        epoch.add_species(make_species(translation_table, default_sensors, id_gen, "A", 3))
        epoch.add_species(make_species(translation_table, default_sensors, id_gen, "B", 3))
        uids = [ind.uid for ind in epoch.individuals()]
        assert len(set(uids)) == 6
        placed = [ind for ind in epoch.living()]
        assert len(env.physics_world) == len(placed)
        for _ in range(3):
            epoch.step()
        for ind in epoch.living():
            assert env.physics_world.query_position(ind.uid) == ind.physics.position

    def test_reused_identities_are_rejected(self, translation_table, default_sensors):
        env = Environment(species_slots=2, dimensions=(20, 20))
        epoch = SimulationEpoch(env, max_steps=3)
        epoch.add_species(make_species(translation_table, default_sensors,
                                       IdGenerator(), "A", 3))
        with pytest.raises(DuplicateObjectError):
            epoch.add_species(make_species(translation_table, default_sensors,
                                           IdGenerator(), "B", 3))
        assert len(epoch.species) == 1


class TestRestarts:

    def test_restarts_extend_the_epoch(self, translation_table, default_sensors, id_gen):
        env = Environment(species_slots=1, dimensions=(20, 20))
        epoch = SimulationEpoch(env, max_steps=3, restarts=1)
        epoch.add_species(make_species(translation_table, default_sensors, id_gen))
        for _ in range(3):
            epoch.step()
        assert not epoch.done()
        epoch.step()
        assert epoch.steps == 1
        assert epoch.restarts_left == 0
        assert epoch.environment is not env
        epoch.step()
        epoch.step()
        assert epoch.done()

    def test_restart_keeps_earlier_observations(self, translation_table,
                                                default_sensors, id_gen):
        env = Environment(species_slots=1, dimensions=(20, 20))
        epoch = SimulationEpoch(env, max_steps=2, restarts=1)
        epoch.add_species(make_species(translation_table, default_sensors, id_gen))
        for _ in range(4):
            epoch.step()
        # two ticks, three end-of-run observations, two more ticks
        for ind in epoch.living():
            assert len(ind.fitness_statistics) == 7


class TestSensing:

    def test_payload(self):
        epoch = SimulationEpoch(Environment(species_slots=1, dimensions=(20, 40)))
        payload = epoch.sense_for(Perspective(1, (10.0, 10.0), Direction.RIGHT, False, 0.4))
        assert payload[SensorTag.POSITION_X] == 0.5
        assert payload[SensorTag.POSITION_Y] == 0.25
        assert payload[SensorTag.LAST_MOVE_SUCCEEDED] == 0.0
        assert payload[SensorTag.ORIENTATION] == 0.25
        assert payload[SensorTag.TEMPERATURE] == 0.4

    def test_sense_reads_pre_step_positions(self, translation_table, default_sensors,
                                            id_gen, rng, monkeypatch):
        """Moves queued in act only show up after the consequence phase."""
        env = Environment(species_slots=1, dimensions=(40, 40))
        mover = Morphology.from_genes([encode_gene(0, 0, 1)], translation_table)
        individuals = [Individual(id_gen.next(), mover, position=(x, 20),
                                  translation_table=translation_table,
                                  default_sensors=default_sensors, rng=rng)
                       for x in (5, 15, 25, 35)]
        species = Species("Movers", individuals,
                          CreationCtx(translation_table, default_sensors, id_gen, rng),
                          GAConfig(population_size=4))
        epoch = SimulationEpoch(env, max_steps=5)
        epoch.add_species(species)

        seen = []
        original_sense = Individual.sense

        def recording_sense(ind, payload):
            world = epoch.environment.physics_world
            seen.append((epoch.steps, ind.uid, world.query_position(ind.uid),
                         ind.physics.position, payload[SensorTag.POSITION_X],
                         tuple(world.query_position(i.uid) for i in individuals)))
            original_sense(ind, payload)

        monkeypatch.setattr(Individual, "sense", recording_sense)
        for _ in range(5):
            epoch.step()

        assert len(seen) == 20
        for tick in range(5):
            calls = [c for c in seen if c[0] == tick]
            assert len(calls) == 4
            # nobody moved while the tick was sensing
            assert len({c[5] for c in calls}) == 1
            for _, _, in_world, cached, sensed_x, _ in calls:
                assert in_world == cached
                assert sensed_x == cached[0] / 40.0
        first = [c[3] for c in seen if c[0] == 0]
        last = [ind.physics.position for ind in individuals]
        assert first != last


class TestSimulation:

    def _small(self, seed=1):
        return Simulation.new_random(1, GAConfig(population_size=4),
                                     Environment(species_slots=1, dimensions=(30, 30)),
                                     max_steps=5, seed=seed)

    def test_step_reports_done(self):
        sim = self._small()
        results = [sim.step() for _ in range(5)]
        assert results == [False] * 4 + [True]

    def test_advance_epoch(self):
        sim = self._small()
        assert sim.run_epoch()
        stats = sim.advance_epoch()
        assert stats["epoch"] == 0
        assert stats["steps"] == 5
        assert stats["population"] == 4
        assert sim.epoch_num == 1
        assert sim.current_epoch.steps == 0
        assert len(sim.current_epoch.species) == 1
        assert len(sim.stats) == 1

    def test_epoch_callback_sees_finished_epoch(self):
        seen = []
        sim = self._small()
        sim.on_epoch_callback = lambda n, stats, epoch: seen.append((n, epoch.steps,
                                                                     len(epoch.species)))
        sim.run(2)
        assert seen == [(0, 5, 1), (1, 5, 1)]

    def test_time_budget_stops_between_ticks(self):
        sim = self._small()
        assert not sim.run_epoch(max_seconds=-1)
        assert sim.current_epoch.steps == 0

    def test_identities_are_unique(self):
        sim = Simulation.new_random(2, GAConfig(population_size=3),
                                    Environment(species_slots=2, dimensions=(30, 30)),
                                    max_steps=2)
        uids = [ind.uid for ind in sim.current_epoch.individuals()]
        assert uids == [1, 2, 3, 4, 5, 6]
        sim.run(1)
        new_uids = [ind.uid for ind in sim.current_epoch.individuals()]
        assert len(set(new_uids)) == 6
        assert max(new_uids) > 6

    def test_species_are_deterministic(self):
        a = self._small(seed=1)
        b = self._small(seed=2)
        chromosomes_a = [ind.morphology.chromosome for ind in a.current_epoch.individuals()]
        chromosomes_b = [ind.morphology.chromosome for ind in b.current_epoch.individuals()]
        assert chromosomes_a == chromosomes_b


class TestLoading:

    RUN = {
        "EpochNum": 3,
        "Epoch": {"MaxSteps": 7, "Restarts": 1,
                  "Environment": {"SpeciesSlots": 2, "Dimensions": [40, 40]}},
        "Species": [{
            "SpeciesName": "Alpha",
            "TranslationTable": [{"Tier": "TierI", "TID": 2}],
            "GAConfiguration": {"PopulationSize": 3, "FitnessEvaluators": ["alive"]},
            "InstinctWeights": {"nomadic": 2.0, "bogus": 1.0},
        }],
    }

    def test_from_dict(self):
        sim = Simulation.from_dict(self.RUN)
        epoch = sim.current_epoch
        assert sim.epoch_num == 3
        assert epoch.max_steps == 7
        assert epoch.restarts == 1
        assert epoch.environment.species_slots == 2
        species = epoch.species[0]
        assert species.name == "Alpha"
        assert len(species) == 3
        assert species.instinct_weights == {Instinct.NOMADIC: 2.0}
        assert len(species.creation_ctx.translation_table) == 1

    def test_species_inside_epoch(self):
        data = {"Epoch": dict(self.RUN["Epoch"], Species=self.RUN["Species"])}
        assert len(Simulation.from_dict(data).current_epoch.species) == 1

    def test_non_object_is_rejected(self):
        with pytest.raises(ConfigurationError):
            Simulation.from_dict(["not", "a", "run"])

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "run.json"
        path.write_text(json.dumps(self.RUN))
        sim = Simulation.from_json_file(str(path))
        assert sim.current_epoch.species[0].name == "Alpha"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            Simulation.from_json_file(str(tmp_path / "missing.json"))

    def test_saved_individuals_are_reloaded(self):
        sim = Simulation.from_dict(self.RUN)
        saved = [s.to_dict(SerializationFlags.STATIC) for s in sim.current_epoch.species]
        again = Simulation.from_dict({"Species": saved})
        chromosomes = [ind.morphology.chromosome for ind in again.current_epoch.individuals()]
        assert chromosomes == [ind.morphology.chromosome
                               for ind in sim.current_epoch.individuals()]

    def test_master_table_from_list(self):
        master = master_table_from_list([
            {"Tier": "TierI", "TID": 1, "Trait": "rotate"},
            {"Tier": 2, "TID": 1, "Trait": "temperature"},
            {"Tier": "TierX", "TID": 1, "Trait": "rotate"},
            "junk",
        ])
        assert master == {("TierI", 1): "rotate", ("TierII", 1): "temperature"}

    def test_fresh_id_generator(self):
        assert Simulation().id_gen.peek() == 1
        assert Simulation(id_gen=IdGenerator(10)).id_gen.peek() == 10
