#!/usr/bin/env python
# -*- coding: utf-8 -*-
import numpy as np
import pytest

from seistau.models import available_models, get_velocity_model
from seistau.velocity_layer import VelocityLayer, evaluate_velocity_at
from seistau.velocity_model import VelocityModel


class TestVelocityModel:
    def test_iasp91(self, iasp91_velocity_model):
        v_mod = iasp91_velocity_model

        assert v_mod.model_name == "iasp91"
        assert v_mod.radius_of_planet == 6371.0
        assert v_mod.moho_depth == 35.0
        assert v_mod.cmb_depth == 2889.0
        assert v_mod.iocb_depth == pytest.approx(5153.9)
        assert v_mod.min_radius == pytest.approx(0.0)
        assert v_mod.max_radius == 6371.0
        assert v_mod.validate()

        discontinuities = v_mod.get_discontinuity_depths()
        for depth in [0.0, 20.0, 35.0, 410.0, 660.0, 2889.0, 5153.9,
                      6371.0]:
            assert np.any(np.isclose(discontinuities, depth))

        # check boundary cases
        assert v_mod.layer_number_above(6371.0)[0] == len(v_mod) - 1
        assert v_mod.layer_number_below(0.0)[0] == 0
        with pytest.raises(LookupError):
            v_mod.layer_number_above(0.0)
        with pytest.raises(LookupError):
            v_mod.layer_number_below(6371.0)

        # evaluate at cmb
        assert v_mod.evaluate_above(2889.0, 'p')[0] == \
            pytest.approx(13.6908, abs=1e-3)
        assert v_mod.evaluate_below(2889.0, 'p')[0] == \
            pytest.approx(8.0088, abs=1e-3)
        assert v_mod.evaluate_below(2889.0, 's')[0] == 0.0
        assert v_mod.evaluate_above(2889.0, 's')[0] > 7.0
        # Surface layers of iasp91 are homogeneous.
        assert v_mod.evaluate_below(10.0, 'p')[0] == pytest.approx(5.8)
        assert v_mod.evaluate_below(25.0, 'S')[0] == pytest.approx(3.75)

    def test_layers_are_contiguous(self, iasp91_velocity_model):
        layers = iasp91_velocity_model.layers
        assert layers[0]['top_depth'] == 0.0
        assert layers[-1]['bot_depth'] == pytest.approx(6371.0)
        np.testing.assert_array_equal(layers['bot_depth'][:-1],
                                      layers['top_depth'][1:])
        assert np.all(layers['bot_depth'] > layers['top_depth'])

    def test_single_property_discontinuity(self, iasp91_velocity_model):
        # Only S velocity jumps at 210 km, P velocity has no step at all.
        v_mod = iasp91_velocity_model
        assert np.any(np.isclose(v_mod.get_discontinuity_depths(), 210.0))
        assert v_mod.evaluate_above(210.0, 'p')[0] == \
            v_mod.evaluate_below(210.0, 'p')[0]
        assert v_mod.evaluate_below(210.0, 's')[0] - \
            v_mod.evaluate_above(210.0, 's')[0] > 1e-3

    def test_available_models(self):
        assert "iasp91" in available_models()
        assert get_velocity_model("IASP91").model_name == "iasp91"
        with pytest.raises(ValueError):
            get_velocity_model("no_such_model")


class TestFromBreakpoints:
    """
    Velocity models from (depth, vp, vs, density) rows.
    """
    breakpoints = [
        (0.0, 5.0, 3.0, 2.6),
        (20.0, 5.0, 3.0, 2.6),
        (20.0, 6.0, 3.5, 2.9),
        (35.0, 6.5, 3.8, 3.0),
        (35.0, 8.0, 4.5, 3.3),
        (3000.0, 13.0, 7.0, 5.5),
        (3000.0, 8.0, 0.0, 10.0),
        (5000.0, 10.0, 0.0, 12.0),
        (5000.0, 11.0, 3.5, 12.5),
        (6371.0, 11.3, 3.7, 13.0),
    ]

    def test_layers(self):
        v_mod = VelocityModel.from_breakpoints("simple", self.breakpoints)
        # Zero thickness layers at repeated depths are dropped.
        assert len(v_mod) == 5
        assert v_mod.radius_of_planet == 6371.0
        np.testing.assert_array_equal(
            v_mod.get_discontinuity_depths(),
            [0.0, 20.0, 35.0, 3000.0, 5000.0, 6371.0])
        assert v_mod.moho_depth == 35.0
        assert v_mod.cmb_depth == 3000.0
        assert v_mod.iocb_depth == 5000.0

        # Properties vary linearly between breakpoints.
        assert v_mod.evaluate_below(20.0, 'p')[0] == 6.0
        assert v_mod.evaluate_above(20.0, 'p')[0] == 5.0
        assert v_mod.evaluate_above(27.5, 'p')[0] == pytest.approx(6.25)
        assert v_mod.evaluate_below(4000.0, 'd')[0] == pytest.approx(11.0)

    def test_invalid_breakpoints(self):
        with pytest.raises(ValueError):
            VelocityModel.from_breakpoints("one", [(0.0, 5.0, 3.0, 2.6)])
        with pytest.raises(ValueError):
            # Depths out of order.
            VelocityModel.from_breakpoints("unordered", [
                (0.0, 5.0, 3.0, 2.6), (30.0, 5.0, 3.0, 2.6),
                (20.0, 6.0, 3.5, 2.9)])
        with pytest.raises(ValueError):
            # S faster than P.
            VelocityModel.from_breakpoints("fast_s", [
                (0.0, 5.0, 6.0, 2.6), (30.0, 5.0, 3.0, 2.6)])
        with pytest.raises(ValueError):
            # Non-positive P velocity.
            VelocityModel.from_breakpoints("zero_p", [
                (0.0, 0.0, 0.0, 2.6), (30.0, 5.0, 3.0, 2.6)])
        with pytest.raises(ValueError):
            # Density missing.
            VelocityModel.from_breakpoints("no_density", [
                (0.0, 5.0, 3.0), (30.0, 5.0, 3.0)])


class TestVelocityLayer:
    def test_evaluate(self):
        layer = np.array([(10.0, 30.0, 3.0, 5.0, 2.0, 4.0, 2.6, 2.8)],
                         dtype=VelocityLayer)
        assert evaluate_velocity_at(layer, 20.0, 'p')[0] == \
            pytest.approx(4.0)
        assert evaluate_velocity_at(layer, 10.0, 's')[0] == \
            pytest.approx(2.0)
        assert evaluate_velocity_at(layer, 30.0, 'd')[0] == \
            pytest.approx(2.8)
        with pytest.raises(ValueError):
            evaluate_velocity_at(layer, 20.0, 'x')
