#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Tests the SeismicPhase class.
"""
import math

import numpy as np
import pytest

from seistau.helper_classes import (PhaseSettings, SlownessModelError,
                                    TauModelError)
from seistau.seismic_phase import Leg, SeismicPhase, leg_puller


class TestLegPuller:
    def test_tokens(self):
        assert leg_puller("PcP") == ["P", "c", "P", "END"]
        assert leg_puller("p^410P") == ["p", "^410", "P", "END"]
        assert leg_puller("PKiKP") == ["P", "K", "i", "K", "P", "END"]
        assert leg_puller("Pdiff") == ["Pdiff", "END"]
        assert leg_puller("SKSSKS") == ["S", "K", "S", "S", "K", "S", "END"]
        assert leg_puller("Pvmp") == ["P", "vm", "p", "END"]
        assert leg_puller("P410s") == ["P", "410", "s", "END"]
        assert leg_puller("4.5kmps") == ["4.5kmps", "END"]

    def test_invalid_names(self):
        for name in ("Ps", "Sp", "PXP", "", "P^", "P^xP"):
            with pytest.raises(TauModelError):
                leg_puller(name)


class TestTauPySeismicPhase:
    """
    Test suite for the SeismicPhase class.
    """
    depth = 119

    @pytest.fixture(scope='class')
    def tau_model(self, iasp91):
        """Return the tau model for testing."""
        return iasp91.depth_correct(self.depth)

    def test_shoot_existing_ray_param(self, tau_model):
        for name in ('P', 'S', 'p', 's', 'PP', 'SS', 'PcP', 'ScS', 'PKIKP',
                     'SKIKS'):
            self.do_shoot_existing_ray_param_for_phase(name, tau_model)

    def do_shoot_existing_ray_param_for_phase(self, phase_name, tau_model):
        phase = SeismicPhase(phase_name, tau_model)
        assert phase.has_arrivals()
        for i, ray_param in enumerate(phase.ray_param):
            max_rp_arrival = phase.shoot_ray(-1, ray_param)
            assert abs(phase.dist[i] - max_rp_arrival.purist_dist) < 0.0001
            assert abs(phase.time[i] - max_rp_arrival.time) < 0.0001

    def test_shoot_middle_ray_param(self, tau_model):
        """
        A ray between two samples lies between them on the tau curve.

        tau = T - pX falls monotonically with p since dtau/dp = -X. Travel
        times are not bracketed where a caustic lies between two samples,
        since dT/dp = p dX/dp changes sign there.
        """
        phase = SeismicPhase('P', tau_model)
        tau = phase.time - phase.ray_param * phase.dist
        for i in range(phase.ray_param.shape[0] - 1):
            rp = (phase.ray_param[i] + phase.ray_param[i + 1]) / 2
            max_rp_arrival = phase.shoot_ray(-1, rp)
            assert abs(phase.dist[i] - max_rp_arrival.purist_dist) < 0.1
            assert abs(phase.dist[i + 1] - max_rp_arrival.purist_dist) < 0.1
            mid_tau = max_rp_arrival.time - rp * max_rp_arrival.purist_dist
            tol = 1e-4
            assert min(tau[i], tau[i + 1]) - tol <= mid_tau
            assert mid_tau <= max(tau[i], tau[i + 1]) + tol

    def test_shoot_ray_outside_range(self, tau_model):
        phase = SeismicPhase('P', tau_model)
        with pytest.raises(SlownessModelError):
            phase.shoot_ray(10.0, phase.max_ray_param * 1.1)
        diffracted = SeismicPhase('Pdiff', tau_model)
        with pytest.raises(SlownessModelError):
            diffracted.shoot_ray(110.0, diffracted.min_ray_param)

    def test_ray_params_decrease(self, tau_model):
        for name in ('P', 'S', 'PKP', 'PKiKP', 'SKS'):
            phase = SeismicPhase(name, tau_model)
            assert np.all(np.diff(phase.ray_param) <= 0)
            assert phase.min_ray_param <= phase.max_ray_param
            assert phase.max_distance >= phase.min_distance

    def test_invalid_phase_names(self, tau_model):
        for name in ("Ps", "PXP", "PvP0", "Pb", "PKPv0P"):
            with pytest.raises(TauModelError):
                SeismicPhase(name, tau_model)

    def test_purist_name(self, tau_model):
        assert SeismicPhase("P410s", tau_model).purist_name == "P410s"
        # Numeric depths are snapped to the closest discontinuity.
        assert SeismicPhase("P400s", tau_model).purist_name == "P410s"
        assert SeismicPhase("P^650P", tau_model).purist_name == "P^660P"
        assert SeismicPhase("PcP", tau_model).purist_name == "PcP"

    def test_legs(self, tau_model):
        phase = SeismicPhase("PcP", tau_model)
        assert phase.leg_sequence == [
            Leg("P", "P", True, "reflect"),
            Leg("P", "P", False, "end")]

        phase = SeismicPhase("PKiKP", tau_model)
        assert [leg.wave_type for leg in phase.leg_sequence] == \
            ["P", "K", "K", "P"]
        assert [leg.is_down for leg in phase.leg_sequence] == \
            [True, True, False, False]
        assert [leg.interaction for leg in phase.leg_sequence] == \
            ["transmit", "reflect", "transmit", "end"]

        phase = SeismicPhase("Pdiff", tau_model)
        assert phase.leg_sequence[0].interaction == "diffract"
        assert phase.leg_sequence[-1].interaction == "end"

        phase = SeismicPhase("pP", tau_model)
        assert phase.leg_sequence[0] == Leg("p", "P", False,
                                            "underside_reflect")

    def test_branch_mult(self, tau_model):
        phase = SeismicPhase("PcP", tau_model)
        mult = phase.calc_branch_mult(tau_model)
        assert mult.shape == (2, len(tau_model.tau_branches[0]))
        # Down and up through every mantle branch below the source, up
        # only above it.
        assert np.all(mult[0, :tau_model.source_branch] == 1)
        assert np.all(mult[0, tau_model.source_branch:
                           tau_model.cmb_branch] == 2)
        assert np.all(mult[0, tau_model.cmb_branch:] == 0)
        assert np.all(mult[1] == 0)

    def test_no_arrivals(self, tau_model):
        # Head waves need a source above the Moho.
        phase = SeismicPhase("Pn", tau_model)
        assert not phase.has_arrivals()
        assert phase.calc_time(10.0) == []

    def test_pkikp_beyond_range(self, tau_model):
        phase = SeismicPhase("PKiKP", tau_model)
        assert phase.has_arrivals()
        max_distance = math.degrees(phase.max_distance)
        assert max_distance < 175.0
        assert phase.calc_time(max_distance + 5.0) == []
        arrivals = phase.calc_time(max_distance - 10.0)
        assert len(arrivals) >= 1
        assert all(a.name == "PKiKP" for a in arrivals)

    def test_calc_time(self, tau_model):
        phase = SeismicPhase("P", tau_model)
        arrivals = phase.calc_time(40.0)
        assert len(arrivals) == 1
        arrival = arrivals[0]
        assert arrival.distance == 40.0
        assert arrival.purist_distance == pytest.approx(40.0, abs=0.01)
        assert arrival.source_depth == self.depth
        assert arrival.receiver_depth == 0.0
        assert phase.min_ray_param <= arrival.ray_param <= \
            phase.max_ray_param
        # A distance and its complement around the planet are the same.
        other = phase.calc_time(320.0)
        assert other[0].time == pytest.approx(arrival.time)
        other = phase.calc_time(-40.0)
        assert other[0].time == pytest.approx(arrival.time)

    def test_arrivals_sorted(self, tau_model):
        # P triplicates in the upper mantle.
        phase = SeismicPhase("P", tau_model)
        for degrees in np.arange(10.0, 30.0, 2.0):
            times = [a.time for a in phase.calc_time(degrees)]
            assert times == sorted(times)

    def test_angles(self, tau_model):
        arrival = SeismicPhase("P", tau_model).calc_time(30.0)[0]
        v_mod = tau_model.s_mod.v_mod
        radius = tau_model.radius_of_planet
        sin_takeoff = (arrival.ray_param *
                       v_mod.evaluate_below(self.depth, 'p')[0] /
                       (radius - self.depth))
        assert arrival.takeoff_angle == pytest.approx(
            math.degrees(math.asin(sin_takeoff)))
        sin_incident = (arrival.ray_param *
                        v_mod.evaluate_below(0.0, 'p')[0] / radius)
        assert arrival.incident_angle == pytest.approx(
            math.degrees(math.asin(sin_incident)))

        # Upgoing first legs leave the source at more than 90 degrees.
        arrival = SeismicPhase("p", tau_model).calc_time(0.5)[0]
        assert 90.0 < arrival.takeoff_angle <= 180.0

    def test_ray_param_for_takeoff(self, tau_model):
        phase = SeismicPhase("P", tau_model)
        arrival = phase.calc_time(50.0)[0]
        ray_param = phase.calc_ray_param_for_takeoff(arrival.takeoff_angle)
        assert ray_param == pytest.approx(arrival.ray_param)

    def test_surface_wave(self, iasp91):
        phase = SeismicPhase("4kmps", iasp91)
        arrivals = phase.calc_time(10.0)
        # Both ways around the planet.
        assert len(arrivals) == 2
        radius = iasp91.radius_of_planet
        assert arrivals[0].time == pytest.approx(
            math.radians(10.0) * radius / 4.0)
        assert arrivals[1].time == pytest.approx(
            math.radians(350.0) * radius / 4.0)
        assert arrivals[0].takeoff_angle == 0

    def test_diffraction_limit(self, tau_model):
        settings = PhaseSettings(max_diffraction_in_radians=np.radians(10.0))
        phase = SeismicPhase("Pdiff", tau_model, settings=settings)
        start = math.degrees(phase.dist[0])
        assert math.degrees(phase.max_distance) == \
            pytest.approx(start + 10.0)
        assert len(phase.calc_time(start + 5.0)) == 1
        assert phase.calc_time(start + 15.0) == []

    def test_arrival_is_read_only(self, tau_model):
        arrival = SeismicPhase("P", tau_model).calc_time(30.0)[0]
        with pytest.raises(AttributeError):
            arrival.time = 5.0
        with pytest.raises(AttributeError):
            del arrival.name


class TestBuriedReceiver:
    """
    Phases between a source and a receiver at depth.
    """
    def model(self, iasp91, source_depth, receiver_depth):
        model = iasp91.depth_correct(source_depth)
        if receiver_depth != source_depth:
            model = model.split_branch(receiver_depth)
        return model

    def arrivals(self, iasp91, name, source_depth, receiver_depth, degrees):
        model = self.model(iasp91, source_depth, receiver_depth)
        phase = SeismicPhase(name, model, receiver_depth)
        return phase.calc_time(degrees)

    def assert_reciprocal(self, a, b):
        assert abs(a.time - b.time) < 1e-3
        assert abs(a.purist_dist - b.purist_dist) < 1e-4
        assert abs(a.ray_param - b.ray_param) <= 1e-4 * a.ray_param
        assert a.takeoff_angle == pytest.approx(b.incident_angle, abs=1e-2)
        assert a.incident_angle == pytest.approx(b.takeoff_angle, abs=1e-2)

    @pytest.mark.parametrize("source_depth, receiver_depth, degrees", [
        (10.0, 50.0, 30.0),
        (2.39, 2.40, 20.0),
        (100.0, 600.0, 60.0),
    ])
    def test_reciprocity(self, iasp91, source_depth, receiver_depth,
                         degrees):
        """
        Exchanging source and receiver gives the same arrivals.
        """
        forward = self.arrivals(iasp91, "P", source_depth, receiver_depth,
                                degrees)
        backward = self.arrivals(iasp91, "P", receiver_depth, source_depth,
                                 degrees)
        assert len(forward) == len(backward) >= 1
        for a, b in zip(forward, backward):
            self.assert_reciprocal(a, b)

    @pytest.mark.parametrize("wave", ["P", "S"])
    @pytest.mark.parametrize("shallow, deep", [
        (0.0, 150.0),
        (10.0, 50.0),
        (2.39, 2.40),
        (150.0, 600.0),
    ])
    def test_reciprocity_over_distance(self, iasp91, wave, shallow, deep):
        """
        Rays between a shallow and a deep point agree in both directions
        every 11 degrees.

        Turning rays keep their name. The direct ray leaves the shallow
        point downgoing, e.g. Ped, and reaches it upgoing, e.g. p.
        """
        down = self.model(iasp91, shallow, deep)
        up = self.model(iasp91, deep, shallow)
        pairs = [
            (SeismicPhase(wave, down, deep), SeismicPhase(wave, up, shallow)),
            (SeismicPhase(wave + "ed", down, deep),
             SeismicPhase(wave.lower(), up, shallow)),
        ]
        turning = pairs[0]
        max_degrees = math.degrees(min(turning[0].max_distance,
                                       turning[1].max_distance))
        compared = 0
        for degrees in range(0, 100, 11):
            if degrees >= max_degrees:
                break
            for forward_phase, backward_phase in pairs:
                forward = forward_phase.calc_time(degrees)
                backward = backward_phase.calc_time(degrees)
                assert len(forward) == len(backward), \
                    (forward_phase.name, backward_phase.name, degrees)
                for a, b in zip(forward, backward):
                    self.assert_reciprocal(a, b)
                compared += len(forward)
        assert compared > 0

    def test_pcp_additivity(self, iasp91):
        """
        PcP to the surface is PcP to a buried receiver plus the upgoing
        ray from the receiver to the surface.
        """
        receiver_depth = 100.0
        full = SeismicPhase("PcP", iasp91)
        ray_param = full.ray_param[len(full.ray_param) // 2]

        to_receiver = SeismicPhase(
            "PcP", iasp91.split_branch(receiver_depth), receiver_depth)
        from_receiver = SeismicPhase(
            "p", iasp91.depth_correct(receiver_depth))

        whole = full.shoot_ray(0.0, ray_param)
        first = to_receiver.shoot_ray(0.0, ray_param)
        second = from_receiver.shoot_ray(0.0, ray_param)
        assert whole.time == pytest.approx(first.time + second.time,
                                           rel=1e-6)
        assert whole.purist_dist == pytest.approx(
            first.purist_dist + second.purist_dist, rel=1e-6)

    def test_receiver_leg(self, iasp91):
        # Ped ends downgoing at the receiver.
        arrivals = self.arrivals(iasp91, "Ped", 0.0, 50.0, 1.0)
        assert len(arrivals) >= 1
        assert arrivals[0].incident_angle > 90.0
        # Not possible for a surface receiver.
        phase = SeismicPhase("Ped", iasp91.depth_correct(10.0))
        assert not phase.has_arrivals()
