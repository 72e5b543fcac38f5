"""
Tests for flag-selected projections and the JSON helpers.
"""

import json

import pytest

from environment import Environment, WorldObject
from exceptions import ConfigurationError
from genetics import GAConfig
from physics import Physics
from serialization import SerializationFlags, has_flag, load_json, to_json
from simulation import Simulation

STATIC = SerializationFlags.STATIC
DYNAMIC = SerializationFlags.DYNAMIC
DEBUG = SerializationFlags.DEBUG
DB = SerializationFlags.DB


@pytest.fixture
def sim():
    env = Environment(species_slots=1, dimensions=(20, 20))
    env.add_object(WorldObject.new_heat_source((10, 10), temperature=0.9))
    sim = Simulation.new_random(1, GAConfig(population_size=3), env, max_steps=3)
    sim.step()
    return sim


class TestHasFlag:

    def test_none_selects_nothing(self):
        assert not has_flag(None, STATIC)

    def test_debug_implies_static_and_dynamic(self):
        assert has_flag(DEBUG, STATIC)
        assert has_flag(DEBUG, DYNAMIC)
        assert not has_flag(DEBUG, DB)

    def test_combined_flags(self):
        assert has_flag(STATIC | DB, DB)
        assert not has_flag(STATIC | DB, DYNAMIC)


class TestProjections:

    def test_physics_fields(self):
        physics = Physics(7, (1, 2))
        assert set(physics.to_dict()) == {"ID", "Position"}
        assert "StartingPos" in physics.to_dict(STATIC)
        assert {"Orientation", "Collisions", "LastAction"} <= set(physics.to_dict(DYNAMIC))

    def test_epoch_step_is_dynamic(self, sim):
        assert sim.current_epoch.to_dict(DYNAMIC)["Step"] == 1
        assert "Step" not in sim.current_epoch.to_dict(STATIC)

    def test_epoch_species_omitted_for_db(self, sim):
        assert "Species" not in sim.current_epoch.to_dict(DB)
        assert len(sim.current_epoch.to_dict(STATIC)["Species"]) == 1

    def test_individual_fields(self, sim):
        ind = next(sim.current_epoch.individuals())
        static = ind.to_dict(STATIC)
        assert "Fitness" in static and "Thermo" not in static
        assert "Network" in static["Control"]
        dynamic = ind.to_dict(DYNAMIC)
        assert "Inputs" in dynamic["Control"] and "Network" not in dynamic["Control"]
        assert "FitnessStatistics" in ind.to_dict(DEBUG)

    def test_thermal_grid_only_for_debug(self, sim):
        env = sim.current_epoch.environment
        assert "Thermal" not in env.to_dict(STATIC)
        assert len(env.to_dict(DEBUG)["Thermal"]["Grid"]) == 4
        physics = env.to_dict(DEBUG)["Physics"]
        assert physics["MovePasses"] == 4
        assert physics["StaticObjects"][0]["ID"] == "object-0"

    def test_to_json_is_valid(self, sim):
        data = json.loads(to_json(sim, DEBUG))
        assert data["EpochNum"] == 0
        assert data["Epoch"]["Environment"]["Objects"][0]["Temperature"] == 0.9


class TestLoadJson:

    def test_non_object_file(self, tmp_path):
        path = tmp_path / "run.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigurationError):
            load_json(str(path))

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "run.json"
        path.write_text("{nope")
        with pytest.raises(ConfigurationError):
            load_json(str(path))

    def test_object_file(self, tmp_path):
        path = tmp_path / "run.json"
        path.write_text('{"EpochNum": 2}')
        assert load_json(str(path)) == {"EpochNum": 2}
