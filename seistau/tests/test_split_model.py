#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Tests splitting and depth correction of the TauModel class.
"""
import numpy as np
import pytest

from seistau.helper_classes import TauModelError


class TestSplitTauModel:
    """
    Test suite for splitting of the TauModel class.
    """
    depth = 110

    @pytest.fixture(scope='class')
    def split_model(self, iasp91):
        return iasp91.split_branch(self.depth)

    def test_split(self, iasp91, split_model):
        assert len(iasp91.tau_branches[0]) + 1 == \
            len(split_model.tau_branches[0])
        assert len(iasp91.tau_branches[1]) + 1 == \
            len(split_model.tau_branches[1])
        # One new P and one new S ray parameter.
        assert len(iasp91.ray_params) + 2 == len(split_model.ray_params)
        new = np.where(~np.isin(split_model.ray_params, iasp91.ray_params))[0]
        assert len(new) == 2
        assert 110.0 in split_model.get_branch_depths()
        assert split_model.validate()

        # The original is untouched.
        assert 110.0 not in iasp91.get_branch_depths()
        assert iasp91.validate()

    def test_other_branches_keep_their_values(self, iasp91, split_model):
        split_index = iasp91.find_branch(self.depth)
        new = np.where(~np.isin(split_model.ray_params, iasp91.ray_params))[0]
        for is_p_wave in (True, False):
            for b in range(len(iasp91.tau_branches[0])):
                if b == split_index:
                    continue
                orig = iasp91.get_tau_branch(b, is_p_wave)
                changed = split_model.get_tau_branch(
                    b if b < split_index else b + 1, is_p_wave)
                assert orig.top_depth == changed.top_depth
                assert orig.bot_depth == changed.bot_depth
                np.testing.assert_allclose(np.delete(changed.dist, new),
                                           orig.dist, atol=1e-8)
                np.testing.assert_allclose(np.delete(changed.time, new),
                                           orig.time, atol=1e-8)

    def test_split_branch_adds_up(self, iasp91, split_model):
        split_index = iasp91.find_branch(self.depth)
        new = np.where(~np.isin(split_model.ray_params, iasp91.ray_params))[0]
        for is_p_wave in (True, False):
            orig = iasp91.get_tau_branch(split_index, is_p_wave)
            above = split_model.get_tau_branch(split_index, is_p_wave)
            below = split_model.get_tau_branch(split_index + 1, is_p_wave)
            assert above.top_depth == orig.top_depth
            assert above.bot_depth == below.top_depth == self.depth
            assert below.bot_depth == orig.bot_depth
            assert np.isclose(above.min_ray_param, below.max_ray_param)
            np.testing.assert_allclose(
                np.delete(above.dist + below.dist, new), orig.dist,
                rtol=1e-7, atol=1e-9)
            np.testing.assert_allclose(
                np.delete(above.time + below.time, new), orig.time,
                rtol=1e-7, atol=1e-9)

    def test_split_on_boundary_shares_branches(self, iasp91):
        for depth in (0.0, 35.0, 2889.0):
            split = iasp91.split_branch(depth)
            assert split is not iasp91
            assert split.get_branch_depths() == iasp91.get_branch_depths()
            for ours, theirs in zip(split.tau_branches[0],
                                    iasp91.tau_branches[0]):
                assert ours is theirs

    def test_split_out_of_range(self, iasp91):
        with pytest.raises(TauModelError):
            iasp91.split_branch(-1.0)
        with pytest.raises(TauModelError):
            iasp91.split_branch(7000.0)


class TestDepthCorrection:
    def test_ray_params_strictly_decreasing(self, iasp91):
        assert np.all(np.diff(iasp91.ray_params) < 0)
        for depth in (0.0, 10.0, 2.39, 2.40, 119.0, 800.0, 3500.0):
            corrected = iasp91.depth_correct(depth)
            assert np.all(np.diff(corrected.ray_params) < 0)
            for branches in corrected.tau_branches:
                for branch in branches:
                    assert len(branch.dist) == len(corrected.ray_params)

    def test_arrays_are_read_only(self, iasp91):
        corrected = iasp91.depth_correct(300.0)
        with pytest.raises(ValueError):
            corrected.ray_params[0] = 1.0
        with pytest.raises(ValueError):
            iasp91.ray_params[0] = 1.0

    def test_source_branch(self, iasp91):
        corrected = iasp91.depth_correct(300.0)
        assert corrected.source_depth == 300.0
        branch = corrected.tau_branches[0][corrected.source_branch]
        assert branch.top_depth == 300.0
        # Branch indices below the source move down by one.
        assert corrected.cmb_branch == iasp91.cmb_branch + 1
        assert corrected.iocb_branch == iasp91.iocb_branch + 1
        assert corrected.moho_branch == iasp91.moho_branch
        assert corrected.cmb_depth == iasp91.cmb_depth

    def test_idempotent(self, iasp91):
        first = iasp91.depth_correct(150.0)
        second = iasp91.depth_correct(150.0)
        assert first.get_branch_depths() == second.get_branch_depths()
        np.testing.assert_array_equal(first.ray_params, second.ray_params)
        # Splitting at the source depth again changes nothing.
        again = first.split_branch(150.0)
        assert again.get_branch_depths() == first.get_branch_depths()
        np.testing.assert_array_equal(again.ray_params, first.ray_params)

    def test_commutes_with_split(self, iasp91):
        source_depth = 10.0
        receiver_depth = 50.0
        one = iasp91.depth_correct(source_depth).split_branch(receiver_depth)
        two = iasp91.split_branch(receiver_depth).depth_correct(source_depth)
        assert one.get_branch_depths() == two.get_branch_depths()
        np.testing.assert_allclose(one.ray_params, two.ray_params)
        assert one.source_branch == two.source_branch
        assert one.cmb_branch == two.cmb_branch

    def test_invalid_depths(self, iasp91):
        with pytest.raises(TauModelError):
            iasp91.depth_correct(-10.0)
        with pytest.raises(TauModelError):
            iasp91.depth_correct(iasp91.radius_of_planet + 1.0)
        with pytest.raises(TauModelError):
            # Only surface source models can be corrected.
            iasp91.depth_correct(10.0).depth_correct(20.0)

    def test_find_branch(self, iasp91):
        assert iasp91.find_branch(0.0) == 0
        assert iasp91.find_branch(iasp91.cmb_depth) == iasp91.cmb_branch
        assert iasp91.find_branch(iasp91.radius_of_planet) == \
            len(iasp91.tau_branches[0]) - 1
        with pytest.raises(TauModelError):
            iasp91.find_branch(-5.0)
