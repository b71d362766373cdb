# -*- coding: utf-8 -*-
"""
Internal TauModel class.
"""
from collections import OrderedDict
from copy import copy
from itertools import count
import logging
import threading

import numpy as np

from .helper_classes import SlownessModelError, TauModelError
from .tau_branch import TauBranch


logger = logging.getLogger("seistau.tau_model")

#: Number of depth corrected models kept per surface source model.
DEPTH_CACHE_SIZE = 128


class TauModel(object):
    """
    Provides storage of all the TauBranches comprising a model.

    A tau model is immutable once created. Depth corrected models for other
    source depths are new objects that share all branches the correction does
    not need to touch.

    :param s_mod: The sampled slowness model.
    :type s_mod: :class:`~seistau.slowness_model.SlownessModel`
    :param radius_of_planet: Radius of the planet in km. Defaults to the
        radius of the slowness model.
    :type radius_of_planet: float
    :param skip_calc: Do not calculate the branches, used when the branches
        are filled in by the caller.
    :type skip_calc: bool
    """
    def __init__(self, s_mod, radius_of_planet=None, is_spherical=True,
                 skip_calc=False):
        # Depth for which the tau model was constructed.
        self.source_depth = 0.0
        if radius_of_planet is None:
            radius_of_planet = s_mod.radius_of_planet
        self.radius_of_planet = radius_of_planet
        self.is_spherical = is_spherical
        # Ray parameters used to construct the tau branches. This may only be
        # a subset of the slownesses/ray parameters saved in the slowness
        # model due to high slowness zones (low velocity zones).
        self.ray_params = None
        # Tuple of the P branch tuple and the S branch tuple. Branches
        # correspond to depth regions between discontinuities or reversals in
        # slowness gradient for a wave type. Each branch contains time,
        # distance, and tau increments for each ray parameter in ray_params.
        # Rays that turn above the branch get 0 increments.
        self.tau_branches = None

        self.s_mod = s_mod

        # Branch with the source at its top.
        self.source_branch = 0
        # Depths that should not have reflections or phase conversions. For
        # instance, if the source is not at a branch boundary then
        # no_discon_depths contains source depth and reflections and phase
        # conversions are not allowed at this branch boundary. If the source
        # happens to fall on a real discontinuity then it is not included.
        self.no_discon_depths = []

        self._depth_cache = OrderedDict()
        self._depth_cache_lock = threading.Lock()

        if not skip_calc:
            self.calc_tau_inc_from()

    def calc_tau_inc_from(self):
        """
        Calculates tau for each branch within a slowness model.
        """
        # At least one slowness layer is needed to calculate a distance.
        if self.s_mod.get_num_layers(True) == 0 \
                or self.s_mod.get_num_layers(False) == 0:
            raise SlownessModelError(
                "Can't calculate tauInc when get_num_layers() = 0. "
                "I need more slowness samples.")
        self.s_mod.validate()
        # Only ray parameters that are not in a high slowness zone are kept,
        # i.e. they are smaller than the minimum ray parameter encountered so
        # far. The S samples suffice since P waves have been constructed to
        # be a subset of the S samples.
        min_p_so_far = self.s_mod.s_layers[0]['top_p']
        ray_params = [min_p_so_far]
        for curr_s_layer in self.s_mod.s_layers:
            # Not added if the slowness is continuous across the layer
            # boundary.
            if curr_s_layer['top_p'] < min_p_so_far:
                ray_params.append(curr_s_layer['top_p'])
                min_p_so_far = curr_s_layer['top_p']
            # Always added unless we are within a high slowness zone.
            if curr_s_layer['bot_p'] < min_p_so_far:
                ray_params.append(curr_s_layer['bot_p'])
                min_p_so_far = curr_s_layer['bot_p']
        self.ray_params = np.array(ray_params, dtype=np.float64)
        self.ray_params.flags.writeable = False
        logger.debug("Number of slowness samples for tau: %d",
                     len(self.ray_params))

        critical_depths = self.s_mod.critical_depths
        branches = ([], [])
        for wave_num, is_p_wave in enumerate([True, False]):
            name = 'p_layer_num' if is_p_wave else 's_layer_num'
            min_p_so_far = self.s_mod.get_slowness_layer(0, is_p_wave)['top_p']
            for crit_num, top_crit_depth, bot_crit_depth in zip(
                    count(), critical_depths[:-1], critical_depths[1:]):
                top_crit_layer_num = top_crit_depth[name]
                bot_crit_layer_num = bot_crit_depth[name] - 1
                branch = TauBranch(top_crit_depth['depth'],
                                   bot_crit_depth['depth'], is_p_wave)
                branch.create_branch(self.s_mod, min_p_so_far,
                                     self.ray_params)
                branches[wave_num].append(branch)
                # The new min_p_so_far could be at the start of a
                # discontinuity over a high slowness zone, so check the top,
                # the bottom and the layer just above the discontinuity.
                top_s_layer = self.s_mod.get_slowness_layer(top_crit_layer_num,
                                                            is_p_wave)
                bot_s_layer = self.s_mod.get_slowness_layer(bot_crit_layer_num,
                                                            is_p_wave)
                min_p_so_far = min(min_p_so_far, top_s_layer['top_p'],
                                   bot_s_layer['bot_p'])
                bot_s_layer = self.s_mod.get_slowness_layer(
                    self.s_mod.layer_number_above(bot_crit_depth['depth'],
                                                  is_p_wave), is_p_wave)
                min_p_so_far = min(min_p_so_far, bot_s_layer['bot_p'])
        self.tau_branches = (tuple(branches[0]), tuple(branches[1]))

        # The branches closest to the Moho, CMB and IOCB are found by
        # comparing the depth of the top of each branch with the depths in
        # the velocity model.
        v_mod = self.s_mod.v_mod
        best_moho = 1e300
        best_cmb = 1e300
        best_iocb = 1e300
        for branch_num, t_branch in enumerate(self.tau_branches[0]):
            if abs(t_branch.top_depth - v_mod.moho_depth) <= best_moho:
                # Branch with Moho at its top.
                self.moho_branch = branch_num
                best_moho = abs(t_branch.top_depth - v_mod.moho_depth)
            if abs(t_branch.top_depth - v_mod.cmb_depth) < best_cmb:
                self.cmb_branch = branch_num
                best_cmb = abs(t_branch.top_depth - v_mod.cmb_depth)
            if abs(t_branch.top_depth - v_mod.iocb_depth) < best_iocb:
                self.iocb_branch = branch_num
                best_iocb = abs(t_branch.top_depth - v_mod.iocb_depth)
        # Boundaries are set to the tops of the chosen branches.
        self.moho_depth = self.tau_branches[0][self.moho_branch].top_depth
        self.cmb_depth = self.tau_branches[0][self.cmb_branch].top_depth
        self.iocb_depth = self.tau_branches[0][self.iocb_branch].top_depth
        logger.debug("Tau model with %d branches, moho=%f cmb=%f iocb=%f",
                     len(self.tau_branches[0]), self.moho_depth,
                     self.cmb_depth, self.iocb_depth)
        self.validate()

    def __str__(self):
        desc = "Tau model of %s for a source at %s km\n" % (
            self.s_mod.v_mod.model_name, self.source_depth)
        desc += " %d ray parameters, %d branches\n" % (
            len(self.ray_params), len(self.tau_branches[0]))
        desc += " moho_branch=%d cmb_branch=%d iocb_branch=%d " \
                "source_branch=%d\n" % (self.moho_branch, self.cmb_branch,
                                        self.iocb_branch, self.source_branch)
        desc += " branch depths: %s\n" % (self.get_branch_depths(), )
        return desc

    def validate(self):
        """
        Check the consistency of ray parameters and branches.

        :raises TauModelError: If the model is inconsistent.
        """
        if np.any(np.diff(self.ray_params) >= 0):
            raise TauModelError("Ray parameters are not strictly decreasing.")
        p_branches, s_branches = self.tau_branches
        if len(p_branches) != len(s_branches):
            raise TauModelError("Number of P and S branches differs.")
        for branches in self.tau_branches:
            for above, below in zip(branches[:-1], branches[1:]):
                if above.bot_depth != below.top_depth:
                    raise TauModelError(
                        "Gap between branches at depth %f." % (
                            above.bot_depth, ))
            for branch in branches:
                if not (len(branch.time) == len(branch.dist) ==
                        len(branch.tau) == len(self.ray_params)):
                    raise TauModelError(
                        "Branch %s is not sampled on all ray parameters." % (
                            branch, ))
        return True

    def depth_correct(self, depth):
        """
        Computes a new tau model for a source at depth using the previously
        computed branches for a surface source. No change is needed to the
        branches above and below the branch containing the depth, except for
        the addition of a slowness sample. The branch containing the source
        depth is split into 2 branches, an up going branch and a downgoing
        branch. Additionally, the slowness at the source depth must be sampled
        exactly as it is an extremal point for each of these branches. Cf.
        [Buland1983]_, page 1290.

        The most recently used corrections are cached.

        :param depth: The source depth in km.
        :type depth: float
        :rtype: :class:`TauModel`
        """
        if self.source_depth != 0:
            raise TauModelError("Can't depth correct a TauModel that is not "
                                "originally for a surface source.")
        if depth < 0:
            raise TauModelError("Can't depth correct to a negative depth.")
        if depth > self.radius_of_planet:
            raise TauModelError("Can't depth correct to a source deeper than "
                                "the radius of the planet.")
        with self._depth_cache_lock:
            # Retrieve and insert again to get LRU cache behaviour.
            try:
                value = self._depth_cache.pop(depth)
            except KeyError:
                value = self._load_depth_corrected(depth)
            self._depth_cache[depth] = value
            while len(self._depth_cache) > DEPTH_CACHE_SIZE:
                self._depth_cache.popitem(last=False)
        return value

    def _load_depth_corrected(self, depth):
        logger.debug("Depth correcting %s to %f km.",
                     self.s_mod.v_mod.model_name, depth)
        depth_corrected = self.split_branch(depth)
        depth_corrected.source_depth = depth
        depth_corrected.source_branch = depth_corrected.find_branch(depth)
        depth_corrected.validate()
        return depth_corrected

    def _shallow_copy(self):
        out = copy(self)
        out.no_discon_depths = list(self.no_discon_depths)
        out._depth_cache = OrderedDict()
        out._depth_cache_lock = threading.Lock()
        return out

    def split_branch(self, depth):
        """
        Returns a new TauModel with the branches containing depth split at
        depth. Used for putting a source at depth since a source can only be
        located on a branch boundary.

        :param depth: The depth in km.
        :type depth: float
        :rtype: :class:`TauModel`
        """
        if depth < 0 or depth > self.radius_of_planet:
            raise TauModelError("Can't split the model at depth %f." % (
                depth, ))
        # If depth is already a branch boundary, the branches can be shared.
        for tb in self.tau_branches[0]:
            if tb.top_depth == depth or tb.bot_depth == depth:
                return self._shallow_copy()
        index_p = -1
        p_wave_ray_param = -1
        index_s = -1
        s_wave_ray_param = -1
        out_s_mod = self.s_mod
        out_ray_params = self.ray_params
        # S waves first since the S ray param is > P ray param.
        for is_p_wave in [False, True]:
            split_info = out_s_mod.split_layer(depth, is_p_wave)
            out_s_mod = split_info.s_mod
            if split_info.needed_split and not split_info.moved_sample:
                new_ray_param = split_info.ray_param
                above = out_ray_params[:-1]
                below = out_ray_params[1:]
                index = (above > new_ray_param) & (new_ray_param > below)
                if np.any(index):
                    index = np.where(index)[0][0] + 1
                    out_ray_params = np.insert(out_ray_params, index,
                                               new_ray_param)
                    if is_p_wave:
                        index_p = index
                        p_wave_ray_param = new_ray_param
                    else:
                        index_s = index
                        s_wave_ray_param = new_ray_param
        out_ray_params.flags.writeable = False

        def with_new_samples(branch):
            # The new ray parameters are added to branches of both wave
            # types.
            if index_s != -1:
                branch = branch.insert(s_wave_ray_param, out_s_mod, index_s)
            if index_p != -1:
                branch = branch.insert(p_wave_ray_param, out_s_mod, index_p)
            return branch

        # Add a sample to each branch above the depth, split the branch
        # containing the depth, and add a sample to each deeper branch.
        branch_to_split = self.find_branch(depth)
        new_tau_branches = ([], [])
        for p_or_s, branches in enumerate(self.tau_branches):
            new_branches = new_tau_branches[p_or_s]
            for branch in branches[:branch_to_split]:
                new_branches.append(with_new_samples(branch))
            orig = branches[branch_to_split]
            top_branch = TauBranch(orig.top_depth, depth, p_or_s == 0)
            top_branch.create_branch(out_s_mod, orig.max_ray_param,
                                     out_ray_params)
            new_branches.append(top_branch)
            new_branches.append(orig.difference(
                top_branch, index_p, index_s, out_s_mod,
                top_branch.min_ray_param, out_ray_params))
            for branch in branches[branch_to_split + 1:]:
                new_branches.append(with_new_samples(branch))

        # A branch was split, so the branch indices below it are off by 1.
        tau_model = TauModel(out_s_mod,
                             radius_of_planet=self.radius_of_planet,
                             is_spherical=self.is_spherical, skip_calc=True)
        tau_model.source_depth = self.source_depth
        tau_model.source_branch = self.source_branch + (
            self.source_depth > depth)
        tau_model.moho_branch = self.moho_branch + (self.moho_depth > depth)
        tau_model.moho_depth = self.moho_depth
        tau_model.cmb_branch = self.cmb_branch + (self.cmb_depth > depth)
        tau_model.cmb_depth = self.cmb_depth
        tau_model.iocb_branch = self.iocb_branch + (self.iocb_depth > depth)
        tau_model.iocb_depth = self.iocb_depth
        tau_model.ray_params = out_ray_params
        tau_model.tau_branches = (tuple(new_tau_branches[0]),
                                  tuple(new_tau_branches[1]))
        tau_model.no_discon_depths = self.no_discon_depths + [depth]
        tau_model.validate()
        return tau_model

    def find_branch(self, depth):
        """
        Finds the branch that either has the depth as its top boundary, or
        strictly contains the depth. Also, we allow the bottom-most branch to
        contain its bottom depth, so that the center of the planet is
        contained within the bottom branch.

        :rtype: int
        """
        for i, tb in enumerate(self.tau_branches[0]):
            if tb.top_depth <= depth < tb.bot_depth:
                return i
        # Check to see if depth is centre of the planet.
        if self.tau_branches[0][-1].bot_depth == depth:
            return len(self.tau_branches[0]) - 1
        raise TauModelError("No TauBranch contains this depth.")

    def get_tau_branch(self, branch_nu, is_p_wave):
        if is_p_wave:
            return self.tau_branches[0][branch_nu]
        else:
            return self.tau_branches[1][branch_nu]

    def get_branch_depths(self):
        """
        Return a list of the depths that are boundaries between branches.
        """
        branches = self.tau_branches[0]
        return [branches[0].top_depth] + [tb.bot_depth for tb in branches]
