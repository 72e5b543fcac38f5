"""
Tests for traits, actions, the neural network and the Control unit.
"""

import numpy as np
import pytest

from actions import (MoveAction, MoveDirection, NO_ACTION, ThermalAction,
                     dominant_move, orientation_to_float, thermal_delta)
from control import Actuator, Control, Sensor
from genome import Direction
from neural_network import NeuralNetwork
from traits import (ActuatorTag, SensorTag, TraitTag, TraitTier, TranslationTable,
                    parse_trait)


class TestTags:

    def test_from_string_is_case_insensitive(self):
        assert SensorTag.from_string(" PositionX ") is SensorTag.POSITION_X

    def test_unknown_tag_is_none(self):
        assert SensorTag.from_string("smell") is None
        assert ActuatorTag.from_string(None) is None

    def test_parse_trait_lookup_order(self):
        assert parse_trait("rotate") is ActuatorTag.ROTATE
        assert parse_trait("temperature") is SensorTag.TEMPERATURE
        assert parse_trait("speedtrait") is TraitTag.SPEED_TRAIT
        assert parse_trait("wings") is None

    def test_tier_from_int(self):
        assert TraitTier.from_int(2) is TraitTier.TIER_II
        with pytest.raises(ValueError):
            TraitTier.from_int(4)


class TestTranslationTable:

    def test_translate_by_position(self, translation_table):
        # six entries plus the "no trait" slot
        assert translation_table.translate(0) is TraitTag.SPEED_TRAIT
        assert translation_table.translate(1) is ActuatorTag.MOVE_HORIZONTAL
        assert translation_table.translate(6) is None
        assert translation_table.translate(7) is TraitTag.SPEED_TRAIT

    def test_empty_table_translates_nothing(self):
        assert TranslationTable().translate(3) is None

    def test_from_list_skips_unknown_entries(self, translation_table):
        table = TranslationTable.from_list(
            [{"Tier": "TierI", "TID": 2}, {"Tier": "TierIX", "TID": 1},
             {"Tier": "TierII", "TID": 9}, "junk"],
            translation_table.entries)
        assert len(table) == 1
        assert table.to_list() == [{"Tier": "TierI", "TID": 2}]

    def test_master_config_skips_unknown_traits(self):
        table = TranslationTable.from_master_config({("TierI", 1): "rotate",
                                                     ("TierI", 2): "wings"})
        assert len(table) == 1


class TestActions:

    def test_dominant_move_takes_largest_axis(self):
        actions = [MoveAction(MoveDirection.HORIZONTAL, 0.3),
                   MoveAction(MoveDirection.VERTICAL, -0.5),
                   MoveAction(MoveDirection.ROTATION, 0.1)]
        assert dominant_move(actions) == MoveAction(MoveDirection.VERTICAL, -0.5)

    def test_dominant_move_sums_per_axis(self):
        actions = [MoveAction(MoveDirection.HORIZONTAL, 0.3),
                   MoveAction(MoveDirection.HORIZONTAL, 0.4),
                   MoveAction(MoveDirection.VERTICAL, 0.5)]
        move = dominant_move(actions)
        assert move.direction is MoveDirection.HORIZONTAL
        assert move.impulse == pytest.approx(0.7)

    def test_no_moves_is_no_action(self):
        assert dominant_move([ThermalAction(0.2)]) is NO_ACTION
        assert dominant_move([]) is NO_ACTION

    def test_thermal_delta(self):
        actions = [ThermalAction(0.1), MoveAction(MoveDirection.ROTATION, 1.0),
                   ThermalAction(0.2)]
        assert thermal_delta(actions) == pytest.approx(0.3)

    @pytest.mark.parametrize("direction, value", [
        (Direction.UP, 0.0), (Direction.RIGHT, 0.25),
        (Direction.DOWN, 0.5), (Direction.LEFT, 0.75), (None, 0.0)])
    def test_orientation_table(self, direction, value):
        assert orientation_to_float(direction) == value


class TestNeuralNetwork:

    def test_forward_shape_and_range(self, rng):
        net = NeuralNetwork([3, 5, 2], rng)
        out = net.forward(np.array([1.0, -1.0, 0.5], dtype=np.float32))
        assert out.shape == (2,)
        assert np.all(np.abs(out) <= 1.0)

    def test_resized_keeps_shared_weights(self, rng):
        net = NeuralNetwork([3, 4, 2], rng)
        bigger = net.resized(5, 3, rng)
        assert bigger.layer_sizes == [5, 4, 3]
        np.testing.assert_array_equal(bigger.weights[0][:, :3], net.weights[0])
        np.testing.assert_array_equal(bigger.weights[1][:2, :], net.weights[1])

    def test_crossover_of_mismatched_shapes_copies_self(self, rng):
        a = NeuralNetwork([2, 3, 1], rng)
        b = NeuralNetwork([2, 4, 1], rng)
        child = a.crossover(b, rng)
        np.testing.assert_array_equal(child.weights[0], a.weights[0])
        assert child.weights[0] is not a.weights[0]

    def test_from_dict_rebuilds_weights(self, rng):
        net = NeuralNetwork([2, 3, 2], rng)
        again = NeuralNetwork.from_dict(net.to_dict())
        for w_a, w_b in zip(net.weights, again.weights):
            np.testing.assert_array_equal(w_a, w_b)

    def test_empty_output_layer(self, rng):
        net = NeuralNetwork([4, 3, 0], rng)
        assert net.forward(np.zeros(4, dtype=np.float32)).shape == (0,)
        net.mutate(rng)


class TestControl:

    def test_sense_clamps_and_defaults(self, rng):
        control = Control([Sensor(SensorTag.POSITION_X), Sensor(SensorTag.POSITION_Y),
                           Sensor(SensorTag.TEMPERATURE)], [], rng=rng)
        control.sense({SensorTag.POSITION_X: 5.0, SensorTag.TEMPERATURE: -3.0})
        assert list(control.inputs) == [1.0, 0.0, -1.0]

    def test_one_action_per_actuator(self, rng):
        control = Control([Sensor(SensorTag.POSITION_X)],
                          [Actuator(ActuatorTag.MOVE_HORIZONTAL, 0),
                           Actuator(ActuatorTag.THERMAL_REGULATION, 1)], rng=rng)
        control.sense({SensorTag.POSITION_X: 0.5})
        control.think()
        actions = control.act()
        assert len(actions) == 2
        assert isinstance(actions[0], MoveAction)
        assert actions[0].direction is MoveDirection.HORIZONTAL
        assert isinstance(actions[1], ThermalAction)

    def test_rewired_matches_new_body(self, rng):
        control = Control([Sensor(SensorTag.POSITION_X)],
                          [Actuator(ActuatorTag.ROTATE)], rng=rng)
        rewired = control.rewired([Sensor(SensorTag.POSITION_X), Sensor(SensorTag.POSITION_Y)],
                                  [], rng)
        assert rewired.network.n_inputs == 2
        assert rewired.network.n_outputs == 0
        assert rewired.act() == []
