# -*- coding: utf-8 -*-
"""
Object dealing with branches in the model.
"""
import logging

import numpy as np

from .helper_classes import TauModelError, TimeDist


logger = logging.getLogger("seistau.tau_branch")


class TauBranch(object):
    """
    Provides storage and methods for distance, time and tau increments for a
    branch. A branch is a group of layers bounded by discontinuities or
    reversals in slowness gradient.

    The ``time``, ``dist`` and ``tau`` arrays hold one value per ray parameter
    of the tau model the branch belongs to. Branches are never modified once
    filled; :meth:`insert` and :meth:`difference` return new branches.
    """
    def __init__(self, top_depth=0, bot_depth=0, is_p_wave=False):
        self.top_depth = top_depth
        self.bot_depth = bot_depth
        self.is_p_wave = is_p_wave
        self.max_ray_param = None
        self.min_turn_ray_param = None
        self.min_ray_param = None
        self.time = None
        self.dist = None
        self.tau = None

    def __str__(self):
        desc = "Tau Branch\n"
        desc += " top_depth = " + str(self.top_depth) + "\n"
        desc += " bot_depth = " + str(self.bot_depth) + "\n"
        desc += " max_ray_param=" + str(self.max_ray_param) + \
            " min_turn_ray_param=" + str(self.min_turn_ray_param)
        desc += " min_ray_param=" + str(self.min_ray_param) + "\n"
        return desc

    def __eq__(self, other):
        if not isinstance(other, TauBranch):
            return False
        for key in ('top_depth', 'bot_depth', 'is_p_wave', 'max_ray_param',
                    'min_turn_ray_param', 'min_ray_param'):
            if getattr(self, key) != getattr(other, key):
                return False
        for key in ('time', 'dist', 'tau'):
            if not np.array_equal(getattr(self, key), getattr(other, key)):
                return False
        return True

    def __ne__(self, other):
        return not self.__eq__(other)

    def _layer_range(self, s_mod):
        top_layer_num = s_mod.layer_number_below(self.top_depth,
                                                 self.is_p_wave)
        bot_layer_num = s_mod.layer_number_above(self.bot_depth,
                                                 self.is_p_wave)
        return top_layer_num, bot_layer_num

    def create_branch(self, s_mod, min_p_so_far, ray_params):
        """
        Calculates tau for this branch, between slowness layers top_layer_num
        and bot_layer_num, inclusive.

        :param s_mod: The slowness model the branch is part of.
        :type s_mod: :class:`~seistau.slowness_model.SlownessModel`
        :param min_p_so_far: Smallest slowness above the branch, which is the
            largest ray parameter that can penetrate it.
        :type min_p_so_far: float
        :param ray_params: The ray parameters of the tau model, in s/rad.
        :type ray_params: :class:`~numpy.ndarray`
        """
        top_layer_num, bot_layer_num = self._layer_range(s_mod)
        top_s_layer = s_mod.get_slowness_layer(top_layer_num, self.is_p_wave)
        bot_s_layer = s_mod.get_slowness_layer(bot_layer_num, self.is_p_wave)
        if top_s_layer['top_depth'] != self.top_depth \
                or bot_s_layer['bot_depth'] != self.bot_depth:
            if top_s_layer['top_depth'] != self.top_depth \
                    and abs(top_s_layer['top_depth'] -
                            self.top_depth) < 0.000001:
                # Really close, so just move the top.
                logger.debug("Changing top_depth %f --> %f", self.top_depth,
                             top_s_layer['top_depth'])
                self.top_depth = top_s_layer['top_depth']
            elif bot_s_layer['bot_depth'] != self.bot_depth and \
                    abs(bot_s_layer['bot_depth'] - self.bot_depth) < 0.000001:
                # Really close, so just move the bottom.
                logger.debug("Changing bot_depth %f --> %f", self.bot_depth,
                             bot_s_layer['bot_depth'])
                self.bot_depth = bot_s_layer['bot_depth']
            else:
                raise TauModelError("create_branch: TauBranch not compatible "
                                    "with slowness sampling at top_depth" +
                                    str(self.top_depth))
        # min_turn_ray_param turns within the branch, not including total
        # reflections off of the bottom. max_ray_param is the largest ray
        # parameter that can penetrate this branch. min_ray_param is the
        # minimum ray parameter that turns or is totally reflected in this
        # branch.
        self.max_ray_param = min_p_so_far
        self.min_turn_ray_param = s_mod.get_min_turn_ray_param(
            self.bot_depth, self.is_p_wave)
        self.min_ray_param = s_mod.get_min_ray_param(self.bot_depth,
                                                     self.is_p_wave)

        time_dist = self.calc_time_dist(s_mod, top_layer_num, bot_layer_num,
                                        ray_params)
        self.time = time_dist['time']
        self.dist = time_dist['dist']
        self.tau = self.time - ray_params * self.dist

    @staticmethod
    def _sum_layers(s_mod, is_p_wave, top_layer_num, bot_layer_num,
                    ray_params, allow_turn_in_layer=False):
        """
        Sum the time and distance increments of the given layers.

        Each ray parameter only collects the layers it passes through
        completely, i.e. down to the first layer it turns in or is reflected
        at. With ``allow_turn_in_layer``, that turning layer is included down
        to the turning depth.
        """
        ray_params = np.asarray(ray_params, dtype=np.float64)
        layer_num = np.arange(top_layer_num, bot_layer_num + 1)
        layer = s_mod.get_slowness_layer(layer_num, is_p_wave)

        plen = len(ray_params)
        llen = len(layer_num)
        time_dist = np.zeros(shape=ray_params.shape, dtype=TimeDist)
        time_dist['p'] = ray_params
        if not plen or not llen:
            return time_dist
        p = np.repeat(ray_params, llen).reshape((plen, llen))
        layer_grid = np.tile(layer_num, plen).reshape((plen, llen))

        # Some combinations are invalid; they are masked out below.
        with np.errstate(divide='ignore', invalid='ignore'):
            time, dist = s_mod.layer_time_dist(
                p, layer_grid, is_p_wave, check=False, allow_turn=True)

        passes = (p <= layer['top_p']) & (p <= layer['bot_p'])
        passes = np.cumprod(passes, axis=1).astype(np.bool_)
        time_dist['time'] = np.sum(np.where(passes, time, 0.0), axis=1)
        time_dist['dist'] = np.sum(np.where(passes, dist, 0.0), axis=1)

        if allow_turn_in_layer:
            # The first layer not passed, if the ray turns within it.
            turn = np.sum(passes, axis=1)
            rows = np.where(turn < llen)[0]
            cols = turn[rows]
            in_layer = ((layer['top_p'][cols] >= p[rows, cols]) &
                        (p[rows, cols] > layer['bot_p'][cols]))
            rows = rows[in_layer]
            cols = cols[in_layer]
            time_dist['time'][rows] += time[rows, cols]
            time_dist['dist'][rows] += dist[rows, cols]
        return time_dist

    def calc_time_dist(self, s_mod, top_layer_num, bot_layer_num, ray_params,
                       allow_turn_in_layer=False):
        """
        Calculate time and distance of rays through the branch layers.

        Ray parameters larger than ``self.max_ray_param`` cannot reach the
        branch and get zero time and distance.

        :rtype: :class:`~numpy.ndarray`
            (dtype = :const:`~seistau.helper_classes.TimeDist`)
        """
        time_dist = self._sum_layers(s_mod, self.is_p_wave, top_layer_num,
                                     bot_layer_num, ray_params,
                                     allow_turn_in_layer)
        blocked = time_dist['p'] > self.max_ray_param
        time_dist['time'][blocked] = 0.0
        time_dist['dist'][blocked] = 0.0
        return time_dist

    def insert(self, ray_param, s_mod, index):
        """
        Inserts the distance, time, and tau increment for the slowness sample
        given to the branch. This is used for making the depth correction to a
        tau model for a non-surface source.

        :returns: A new branch with the additional sample at ``index``.
        :rtype: :class:`TauBranch`
        """
        top_layer_num, bot_layer_num = self._layer_range(s_mod)
        top_s_layer = s_mod.get_slowness_layer(top_layer_num, self.is_p_wave)
        bot_s_layer = s_mod.get_slowness_layer(bot_layer_num, self.is_p_wave)
        if top_s_layer['top_depth'] != self.top_depth \
                or bot_s_layer['bot_depth'] != self.bot_depth:
            raise TauModelError(
                "TauBranch depths not compatible with slowness sampling.")

        time_dist = self._sum_layers(s_mod, self.is_p_wave, top_layer_num,
                                     bot_layer_num, [ray_param])
        new_time = time_dist['time'][0]
        new_dist = time_dist['dist'][0]

        out = TauBranch(self.top_depth, self.bot_depth, self.is_p_wave)
        out.max_ray_param = self.max_ray_param
        out.min_turn_ray_param = self.min_turn_ray_param
        out.min_ray_param = self.min_ray_param
        out.time = np.insert(self.time, index, new_time)
        out.dist = np.insert(self.dist, index, new_dist)
        out.tau = np.insert(self.tau, index, new_time - ray_param * new_dist)
        return out

    def difference(self, top_branch, index_p, index_s, s_mod, min_p_so_far,
                   ray_params):
        """
        Generates a new tau branch by "subtracting" the given tau branch from
        this tau branch (self). The given tau branch is assumed to be the
        upper part of this branch. index_p specifies where a new ray
        corresponding to a P wave sample has been added; it is -1 if no ray
        parameter has been added to top_branch. index_s is similar to index_p
        except for a S wave sample. Note that although the ray parameters
        for index_p and index_s were for the P and S waves that turned at the
        source depth, both ray parameters need to be added to both P and S
        branches.

        :param top_branch: Upper part of this branch, sampled on the new ray
            parameters.
        :type top_branch: :class:`TauBranch`
        :param ray_params: The new ray parameters, including the samples at
            ``index_p`` and ``index_s``.
        :type ray_params: :class:`~numpy.ndarray`
        :rtype: :class:`TauBranch`
        """
        if top_branch.top_depth != self.top_depth \
                or top_branch.bot_depth > self.bot_depth:
            raise TauModelError(
                "TauBranch not compatible with slowness sampling.")
        if top_branch.is_p_wave != self.is_p_wave:
            raise TauModelError(
                "Can't subtract branches if is_p_wave doesn't agree.")
        # Find the top and bottom slowness layers of the bottom half.
        top_layer_num = s_mod.layer_number_below(top_branch.bot_depth,
                                                 self.is_p_wave)
        bot_layer_num = s_mod.layer_number_below(self.bot_depth,
                                                 self.is_p_wave)
        top_s_layer = s_mod.get_slowness_layer(top_layer_num, self.is_p_wave)
        bot_s_layer = s_mod.get_slowness_layer(bot_layer_num, self.is_p_wave)
        if bot_s_layer['top_depth'] == self.bot_depth \
                and bot_s_layer['bot_depth'] > self.bot_depth:
            # Gone one too far.
            bot_layer_num -= 1
            bot_s_layer = s_mod.get_slowness_layer(bot_layer_num,
                                                   self.is_p_wave)
        if top_s_layer['top_depth'] != top_branch.bot_depth \
                or bot_s_layer['bot_depth'] != self.bot_depth:
            raise TauModelError(
                "TauBranch not compatible with slowness sampling.")
        # index_p and index_s must be new ray parameters at the top of the
        # bottom half.
        for index, is_p_wave, name in ((index_p, True, "P"),
                                       (index_s, False, "S")):
            s_layer = s_mod.get_slowness_layer(s_mod.layer_number_below(
                top_branch.bot_depth, is_p_wave), is_p_wave)
            if index >= 0 and s_layer['top_p'] != ray_params[index]:
                raise TauModelError(
                    "%s wave index doesn't match top layer." % (name, ))

        # The new TauBranch goes from the bottom of the top half to the
        # bottom of the whole branch.
        bot_branch = TauBranch(top_branch.bot_depth, self.bot_depth,
                               self.is_p_wave)
        bot_branch.max_ray_param = top_branch.min_ray_param
        bot_branch.min_turn_ray_param = self.min_turn_ray_param
        bot_branch.min_ray_param = self.min_ray_param

        new_index = sorted(set(i for i in (index_p, index_s) if i != -1))
        keep = np.ones(len(ray_params), dtype=np.bool_)
        keep[new_index] = False
        if np.count_nonzero(keep) != len(self.time):
            raise TauModelError(
                "Number of ray parameters doesn't match the original branch.")

        bot_branch.time = np.empty(len(ray_params))
        bot_branch.dist = np.empty(len(ray_params))
        bot_branch.time[keep] = self.time - top_branch.time[keep]
        bot_branch.dist[keep] = self.dist - top_branch.dist[keep]
        if new_index:
            time_dist = bot_branch.calc_time_dist(
                s_mod, top_layer_num, bot_layer_num, ray_params[new_index])
            bot_branch.time[new_index] = time_dist['time']
            bot_branch.dist[new_index] = time_dist['dist']
        bot_branch.tau = bot_branch.time - ray_params * bot_branch.dist
        return bot_branch
