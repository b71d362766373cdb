#!/usr/bin/env python
# -*- coding: utf-8 -*-
import numpy as np
import pytest

from seistau.sampling import (slowness_curve, travel_time_curve,
                              velocity_curve)
from seistau.seismic_phase import SeismicPhase


class TestSampling:
    def test_slowness_curve(self, iasp91):
        s_mod = iasp91.s_mod
        curve = slowness_curve(s_mod, True)
        assert curve.name == "P slowness"
        assert curve.bounds.x_min == 0.0
        assert curve.bounds.x_max == s_mod.radius_of_planet
        assert curve.bounds.y_min == 0.0
        samples = list(curve.samples())
        assert len(samples) == 2 * len(s_mod.p_layers)
        assert samples[0] == (0.0, float(s_mod.p_layers[0]['top_p']))
        assert max(y for _, y in samples) == curve.bounds.y_max
        # Every call gives a fresh iterator.
        assert list(curve.samples()) == samples

    def test_s_slowness_curve_is_finite(self, iasp91):
        curve = slowness_curve(iasp91.s_mod, False)
        assert curve.name == "S slowness"
        assert np.isfinite(curve.bounds.y_max)

    def test_velocity_curve(self, iasp91_velocity_model):
        v_mod = iasp91_velocity_model
        curve = velocity_curve(v_mod, "p")
        assert curve.name == "P velocity"
        assert curve.x_label == "Depth (km)"
        samples = list(curve.samples())
        assert len(samples) == 2 * len(v_mod)
        assert samples[0] == (0.0, pytest.approx(5.8))
        depths = [x for x, _ in samples]
        assert depths == sorted(depths)
        assert curve.bounds.y_max == max(y for _, y in samples)

        curve = velocity_curve(v_mod, "d")
        assert curve.name == "Density"
        assert all(y > 0 for _, y in curve.samples())

    def test_travel_time_curve(self, iasp91):
        phase = SeismicPhase("P", iasp91.depth_correct(10.0))
        curve = travel_time_curve(phase)
        assert curve.name == "P"
        samples = list(curve.samples())
        assert len(samples) == len(phase.ray_param)
        assert curve.bounds.x_min == pytest.approx(
            np.degrees(phase.min_distance))
        assert curve.bounds.x_max == pytest.approx(
            np.degrees(phase.max_distance))
        assert curve.bounds.y_max == max(t for _, t in samples)

    def test_empty_travel_time_curve(self, iasp91):
        phase = SeismicPhase("Pn", iasp91.depth_correct(100.0))
        curve = travel_time_curve(phase)
        assert tuple(curve.bounds) == (0.0, 0.0, 0.0, 0.0)
        assert list(curve.samples()) == []
