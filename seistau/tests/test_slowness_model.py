#!/usr/bin/env python
# -*- coding: utf-8 -*-
import numpy as np
import pytest

from seistau import _DEFAULT_VALUES
from seistau.helper_classes import SamplingSettings, SlownessModelError
from seistau.slowness_layer import (SlownessLayer, bullen_depth_for,
                                    create_from_vlayer, evaluate_at_bullen,
                                    layer_time_dist)
from seistau.slowness_model import SlownessModel
from seistau.velocity_layer import VelocityLayer


class TestSlownessLayer:
    def test_create_from_vlayer(self):
        v_layer = np.array([(10, 31, 3, 5, 2, 4,
                             _DEFAULT_VALUES["density"],
                             _DEFAULT_VALUES["density"])],
                           dtype=VelocityLayer)
        a = create_from_vlayer(v_layer, True, radius_of_planet=6371.0)
        assert a[0]['bot_p'] == 1268.0
        assert a[0]['bot_depth'] == 31.0
        b = create_from_vlayer(v_layer, False, radius_of_planet=6371.0)
        assert b[0]['top_p'] == 3180.5

    def test_fluid_layer_has_infinite_s_slowness(self):
        v_layer = np.array([(3000, 3100, 8, 9, 0, 0, 10, 10)],
                           dtype=VelocityLayer)
        s_layer = create_from_vlayer(v_layer, False, radius_of_planet=6371.0)
        assert np.isinf(s_layer[0]['top_p'])

    def test_bullen_depth_overflow(self):
        sl = np.array([(2548.4, 6.546970605878823, 1846.2459389213773,
                        13.798727310994103)], dtype=SlownessLayer)
        try:
            depth = bullen_depth_for(sl, 2197.322969460689, 6371)
        except SlownessModelError:
            pytest.fail('SlownessModelError was incorrectly raised.')
        assert not np.any(np.isnan(depth))
        assert 6.546970605878823 < depth[0] < 13.798727310994103

    def test_bullen_depth_outside_layer(self):
        sl = np.array([(1000.0, 0.0, 900.0, 100.0)], dtype=SlownessLayer)
        with pytest.raises(SlownessModelError):
            bullen_depth_for(sl, 1100.0, 6371.0)
        depth = bullen_depth_for(sl, 1100.0, 6371.0, check=False)
        assert np.isnan(depth[0])

    def test_evaluate_at_bullen_is_inverse_of_depth(self):
        sl = np.array((1000.0, 0.0, 900.0, 100.0), dtype=SlownessLayer)
        p = evaluate_at_bullen(sl, 40.0, 6371.0)
        assert 900.0 < p < 1000.0
        assert float(bullen_depth_for(sl, p, 6371.0)) == \
            pytest.approx(40.0)

    def test_layer_time_dist(self):
        layers = np.array([(1000.0, 0.0, 900.0, 100.0),
                           (900.0, 100.0, 900.0, 100.0)],
                          dtype=SlownessLayer)
        # A vertical ray takes no distance.
        time, dist = layer_time_dist(layers[0], 0.0, 6371.0)
        assert dist == 0.0
        assert time > 0.0
        # Zero thickness layers take no time.
        time, dist = layer_time_dist(layers[1], 500.0, 6371.0)
        assert time == 0.0
        assert dist == 0.0
        # Rays turning within the layer only pass when turning is allowed.
        time, dist = layer_time_dist(layers[0], 950.0, 6371.0)
        assert np.isnan(time)
        time, dist = layer_time_dist(layers[0], 950.0, 6371.0,
                                     allow_turn=True)
        assert time > 0.0
        assert dist > 0.0


class TestSlownessModel:
    @pytest.fixture(scope='class')
    def s_mod(self, iasp91):
        return iasp91.s_mod

    def test_validate(self, s_mod):
        assert s_mod.validate()
        assert s_mod.get_num_layers(True) == len(s_mod.p_layers)
        assert s_mod.get_num_layers(False) == len(s_mod.s_layers)

    def test_layers_are_read_only(self, s_mod):
        with pytest.raises(ValueError):
            s_mod.p_layers['top_p'][0] = 0.0
        with pytest.raises(ValueError):
            s_mod.critical_depths['depth'][0] = 1.0

    def test_sampling_bounds(self, s_mod):
        """
        The sampling limits of the settings hold for every layer.

        Zero thickness layers hold the slowness jump of a discontinuity and
        may span more than max_delta_p, e.g. the S jump at the inner core
        boundary, which can not be split in the fluid above.
        """
        settings = s_mod.settings
        for layers in (s_mod.p_layers, s_mod.s_layers):
            thickness = layers['bot_depth'] - layers['top_depth']
            delta_p = np.abs(layers['top_p'] - layers['bot_p'])
            assert np.all(delta_p[thickness > 0] <=
                          settings.max_delta_p * (1 + 1e-9))
            assert np.all(thickness <= settings.max_depth_interval + 1e-6)
            assert np.all(thickness >= 0.0)

    def test_critical_depths(self, s_mod):
        depths = s_mod.critical_depths['depth']
        for depth in [0.0, 35.0, 410.0, 660.0, 2889.0]:
            assert depth in depths
        assert np.any(np.isclose(depths, 5153.9))

    def test_outer_core(self, s_mod):
        # The outer core is fluid and a high slowness zone for P.
        assert any(zone.top_depth == pytest.approx(2889.0) and
                   zone.bot_depth == pytest.approx(5153.9)
                   for zone in s_mod.fluid_layer_depths)
        assert any(zone.top_depth <= 2889.0 <= zone.bot_depth
                   for zone in s_mod.high_slowness_layer_depths_p)
        assert s_mod.depth_in_fluid(3000.0)
        assert not s_mod.depth_in_fluid(1000.0)

    def test_no_mantle_high_slowness_zone(self, s_mod):
        # iasp91 has no low velocity zone, the outer core is the only P
        # high slowness zone.
        assert len(s_mod.high_slowness_layer_depths_p) == 1
        assert s_mod.high_slowness_layer_depths_p[0].top_depth == \
            pytest.approx(2889.0)

    def test_travel_time_curve_resolution(self, s_mod):
        """
        All layers looked at by the distance check meet its limits.
        """
        checked = 0
        for is_p_wave in (True, False):
            for layer_num in range(s_mod.get_num_layers(is_p_wave)):
                if not s_mod.needs_distance_check(layer_num, is_p_wave):
                    continue
                checked += 1
                layer = s_mod.get_slowness_layer(layer_num, is_p_wave)
                jump, error = s_mod.interpolation_error(layer_num,
                                                        is_p_wave)
                assert (jump <= s_mod.max_range_interval or
                        abs(layer['top_p'] - layer['bot_p']) <=
                        2 * s_mod.min_delta_p)
                # NaN, for a curve without width, passes as in the check.
                assert not abs(error) > s_mod.max_interp_error
        assert checked > 50

    def test_interpolation_error(self, s_mod):
        jump, error = s_mod.interpolation_error(0, True)
        assert jump > 0.0
        assert not abs(error) > s_mod.max_interp_error
        # The outer core starts a high slowness zone.
        layer_num = s_mod.layer_number_below(2889.0, True)
        assert not s_mod.needs_distance_check(layer_num, True)

    def test_layer_numbers(self, s_mod):
        assert s_mod.layer_number_below(0.0, True) == 0
        assert s_mod.layer_number_above(6371.0, True) == \
            len(s_mod.p_layers) - 1
        layer = s_mod.get_slowness_layer(
            s_mod.layer_number_above(100.0, True), True)
        assert layer['top_depth'] < 100.0 <= layer['bot_depth']
        layer = s_mod.get_slowness_layer(
            s_mod.layer_number_below(100.0, False), False)
        assert layer['top_depth'] <= 100.0 < layer['bot_depth']

    def test_split_layer_leaves_model_untouched(self, s_mod):
        n_p = len(s_mod.p_layers)
        n_s = len(s_mod.s_layers)
        info = s_mod.split_layer(101.0, True)
        assert info.needed_split
        assert not info.moved_sample
        assert info.s_mod is not s_mod
        assert len(s_mod.p_layers) == n_p
        assert len(s_mod.s_layers) == n_s
        assert len(info.s_mod.p_layers) == n_p + 1
        assert 101.0 in info.s_mod.p_layers['bot_depth']
        assert info.s_mod.validate()

    def test_subdivision_limit(self, iasp91_velocity_model):
        settings = SamplingSettings(max_subdivisions=0)
        with pytest.raises(SlownessModelError):
            SlownessModel(iasp91_velocity_model, settings)

    def test_finer_interpolation_error(self, s_mod, iasp91_velocity_model):
        settings = s_mod.settings._replace(
            max_interp_error=s_mod.max_interp_error / 5)
        fine = SlownessModel(iasp91_velocity_model, settings)
        assert len(fine.p_layers) > len(s_mod.p_layers)
        assert fine.validate()
