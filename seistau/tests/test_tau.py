#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Tests the high level seistau.tau interface.
"""
import logging
import math

import pytest

from seistau import Arrival, Arrivals, PhaseSettings, TravelTimeModel
from seistau.tau_model import TauModel
from seistau.utils import get_phase_names, parse_phase_list


@pytest.fixture(scope='module')
def model(iasp91):
    return TravelTimeModel(iasp91)


class TestTravelTimeModel:
    """
    Test suite for the TravelTimeModel class.
    """
    def test_p_iasp91(self, model):
        """
        P at 35 degrees from a 10 km deep source.
        """
        arrivals = model.get_travel_times(source_depth_in_km=10.0,
                                          distance_in_degree=35.0,
                                          phase_list=["P"])
        assert len(arrivals) == 1
        p_arrival = arrivals[0]

        assert p_arrival.name == "P"
        assert p_arrival.purist_name == "P"
        assert p_arrival.distance == 35.0
        assert p_arrival.source_depth == 10.0
        assert p_arrival.time == pytest.approx(412.43, abs=0.5)
        assert p_arrival.ray_param_sec_degree == pytest.approx(8.613,
                                                               abs=0.05)
        assert p_arrival.takeoff_angle == pytest.approx(26.74, abs=0.5)
        assert p_arrival.incident_angle == pytest.approx(26.70, abs=0.5)
        assert p_arrival.purist_distance == pytest.approx(35.0, abs=1e-3)

    def test_p_surface_source_30_degrees(self, model):
        """
        P from a surface source to a surface receiver at 30 degrees.

        Reference time from obspy's TauPyModel("iasp91"), 370.264 s.
        """
        arrivals = model.get_travel_times(source_depth_in_km=0.0,
                                          distance_in_degree=30.0,
                                          phase_list=["P"],
                                          receiver_depth_in_km=0.0)
        assert len(arrivals) == 1
        arrival = arrivals[0]
        assert arrival.time == pytest.approx(370.264, abs=0.01)
        # The ray parameter reproduces the arrival when shot again.
        shot = arrival.phase.shoot_ray(30.0, arrival.ray_param)
        assert shot.purist_dist == pytest.approx(math.radians(30.0),
                                                 abs=1e-4)
        assert shot.time == pytest.approx(arrival.time, abs=0.01)
        assert shot.ray_param == pytest.approx(arrival.ray_param, abs=1e-4)

    def test_p_and_s_iasp91(self, model):
        arrivals = model.get_travel_times(10.0, 50.0, phase_list=["P", "S"])
        assert [a.name for a in arrivals] == ["P", "S"]
        assert arrivals[0].time == pytest.approx(534.4, abs=5.0)
        assert arrivals[1].time == pytest.approx(965.1, abs=5.0)

    def test_arrivals_sorted_by_time(self, model):
        arrivals = model.get_travel_times(100.0, 75.0, phase_list=["ttall"])
        assert len(arrivals) > 5
        times = [a.time for a in arrivals]
        assert times == sorted(times)
        names = set(a.name for a in arrivals)
        for name in ("P", "S", "pP", "PcP", "ScS"):
            assert name in names

    def test_model_of_arrivals(self, model):
        arrivals = model.get_travel_times(300.0, 40.0, phase_list=["P"],
                                          receiver_depth_in_km=20.0)
        assert isinstance(arrivals.model, TauModel)
        assert arrivals.model.source_depth == 300.0
        assert 20.0 in arrivals.model.get_branch_depths()
        assert arrivals[0].receiver_depth == 20.0
        # The base model is not touched.
        assert model.model.source_depth == 0.0
        assert 300.0 not in model.model.get_branch_depths()

    def test_invalid_phase_is_skipped(self, model, caplog):
        with caplog.at_level(logging.WARNING, logger="seistau"):
            arrivals = model.get_travel_times(10.0, 35.0,
                                              phase_list=["P", "Ps"])
        assert [a.name for a in arrivals] == ["P"]
        assert "Error with phase Ps, skipping it" in caplog.text

    def test_no_arrivals(self, model):
        # PKiKP does not reach 170 degrees and Pn needs a crustal source.
        arrivals = model.get_travel_times(100.0, 170.0,
                                          phase_list=["Pn", "PKiKP"])
        assert len(arrivals) == 0
        assert isinstance(arrivals, Arrivals)

    def test_get_phases(self, model):
        phases = model.get_phases(10.0, phase_list=["ttp"])
        assert sorted(p.name for p in phases) == parse_phase_list(["ttp"])
        for phase in phases:
            assert phase.source_depth == 10.0

    def test_reciprocity(self, model):
        """
        Swapping source and receiver depth gives the same travel times.
        """
        for source_depth, receiver_depth, distance in [(10.0, 50.0, 90.0),
                                                       (10.0, 50.0, 5.0),
                                                       (2.39, 2.40, 30.0)]:
            forward = model.get_travel_times(
                source_depth, distance, phase_list=["P"],
                receiver_depth_in_km=receiver_depth)
            backward = model.get_travel_times(
                receiver_depth, distance, phase_list=["P"],
                receiver_depth_in_km=source_depth)
            assert len(forward) == len(backward) == 1
            a, b = forward[0], backward[0]
            assert a.time == pytest.approx(b.time, abs=1e-3)
            assert a.purist_dist == pytest.approx(b.purist_dist, abs=1e-4)
            assert a.ray_param == pytest.approx(b.ray_param, rel=1e-4)
            assert a.takeoff_angle == pytest.approx(b.incident_angle,
                                                    abs=1e-2)
            assert a.incident_angle == pytest.approx(b.takeoff_angle,
                                                     abs=1e-2)

    def test_phase_settings(self, iasp91):
        settings = PhaseSettings(max_diffraction_in_radians=0.0)
        short = TravelTimeModel(iasp91, phase_settings=settings)
        assert len(short.get_travel_times(0.0, 115.0, ["Pdiff"])) == 0
        default = TravelTimeModel(iasp91)
        assert len(default.get_travel_times(0.0, 115.0, ["Pdiff"])) == 1

    def test_named_model(self):
        model = TravelTimeModel("iasp91")
        assert model.model.s_mod.v_mod.model_name == "iasp91"
        with pytest.raises(ValueError):
            TravelTimeModel("no_such_model")


class TestArrivals:
    @pytest.fixture(scope='class')
    def arrivals(self, model):
        return model.get_travel_times(10.0, 50.0, phase_list=["P", "S",
                                                              "PcP"])

    def test_str(self, arrivals):
        text = str(arrivals)
        assert text.startswith("%d arrivals\n\t" % len(arrivals))
        assert "P phase arrival at" in text

    def test_list_operations(self, arrivals):
        assert len(arrivals) == 3
        first = arrivals[0]
        assert isinstance(first, Arrival)

        sliced = arrivals[:2]
        assert isinstance(sliced, Arrivals)
        assert sliced.model is arrivals.model
        assert len(sliced) == 2

        added = arrivals + first
        assert isinstance(added, Arrivals)
        assert len(added) == 4
        added = arrivals + sliced
        assert len(added) == 5
        assert added.model is arrivals.model

        doubled = arrivals * 2
        assert isinstance(doubled, Arrivals)
        assert len(doubled) == 6
        assert len(2 * arrivals) == 6

        copied = arrivals.copy()
        assert isinstance(copied, Arrivals)
        copied += first
        assert len(copied) == 4
        assert len(arrivals) == 3
        copied *= 2
        assert len(copied) == 8

    def test_type_checks(self, arrivals):
        copied = arrivals.copy()
        with pytest.raises(TypeError):
            copied.append(1.0)
        with pytest.raises(TypeError):
            copied.extend([arrivals[0], "P"])
        with pytest.raises(TypeError):
            copied[0] = "P"
        with pytest.raises(TypeError):
            copied + [1, 2]
        with pytest.raises(TypeError):
            copied * 2.5
        copied[0] = arrivals[1]
        assert copied[0] is arrivals[1]


class TestPhaseList:
    def test_parse_phase_list(self):
        assert parse_phase_list(["P", "P", "S"]) == ["P", "S"]
        assert parse_phase_list(["ttp"]) == sorted(
            ["p", "P", "Pn", "Pdiff", "PKP", "PKiKP", "PKIKP"])
        expanded = parse_phase_list(["TTBASIC"])
        assert "PcP" in expanded
        assert "SKiKP" not in expanded
        assert "SKiKP" in parse_phase_list(["ttall"])
        assert len(expanded) == len(set(expanded))

    def test_get_phase_names(self):
        assert get_phase_names("PKIKP") == ["PKIKP"]
        assert "sS" in get_phase_names("tts+")
