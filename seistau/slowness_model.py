# -*- coding: utf-8 -*-
"""
Slowness model class.
"""
from copy import copy
import logging
import math

import numpy as np

from . import _DEFAULT_VALUES
from .helper_classes import (CriticalDepth, DepthRange, SamplingSettings,
                             SlownessLayer, SlownessModelError,
                             SplitLayerInfo, TimeDist)
from .slowness_layer import (bullen_depth_for, bullen_radial_slowness,
                             create_from_vlayer, evaluate_at_bullen,
                             layer_time_dist)
from .velocity_layer import (VelocityLayer, evaluate_velocity_at_bottom,
                             evaluate_velocity_at_top)


logger = logging.getLogger("seistau.slowness_model")


def _fix_critical_depths(critical_depths, layer_num, is_p_wave):
    """
    Shift the critical layer numbers below an inserted slowness layer.
    """
    name = 'p_layer_num' if is_p_wave else 's_layer_num'
    mask = critical_depths[name] > layer_num
    critical_depths[name][mask] += 1


class _ZoneTracker(object):
    """
    High slowness zone search state of one wave type.

    ``min_p`` is the smallest slowness seen so far on the way down. A zone
    opens where the slowness rises above it and closes where the slowness
    falls below it again.
    """
    def __init__(self, min_p):
        self.min_p = min_p
        self.open_zone = None
        self.zones = []

    @property
    def inside(self):
        return self.open_zone is not None

    def start(self, top_depth):
        self.open_zone = DepthRange(top_depth=top_depth, ray_param=self.min_p)

    def finish(self, bot_depth):
        self.zones.append(self.open_zone._replace(bot_depth=bot_depth))
        self.open_zone = None

    def lower(self, *slownesses):
        self.min_p = min(self.min_p, *[float(p) for p in slownesses])


class SlownessModel(object):
    """
    Storage and methods for generating slowness-depth pairs.

    The model is sampled on construction and must not be changed
    afterwards; :meth:`split_layer` returns a new model instead.

    :param v_mod: The velocity model to discretise.
    :type v_mod: :class:`~seistau.velocity_model.VelocityModel`
    :param settings: Sampling parameters.
    :type settings: :class:`~seistau.helper_classes.SamplingSettings`
    :param skip_model_creation: Only store the parameters without sampling
        the velocity model.
    :type skip_model_creation: bool
    """
    # For methods that have an is_p_wave parameter.
    p_wave = True
    s_wave = False

    def __init__(self, v_mod, settings=None, skip_model_creation=False):
        if settings is None:
            settings = SamplingSettings()
        self.settings = settings
        self.v_mod = v_mod
        self.radius_of_planet = v_mod.radius_of_planet
        self.min_delta_p = settings.min_delta_p
        self.max_delta_p = settings.max_delta_p
        self.max_depth_interval = settings.max_depth_interval
        self.max_range_interval = math.radians(settings.max_range_interval)
        self.max_interp_error = settings.max_interp_error
        self.allow_inner_core_s = settings.allow_inner_core_s
        self.slowness_tolerance = settings.slowness_tolerance
        self.max_subdivisions = settings.max_subdivisions

        # Depths of critical points (discontinuities or reversals in the
        # slowness gradient) with the velocity and slowness layer numbers
        # below them. These form the branches of the tau model.
        self.critical_depths = None
        # High slowness zones and fluid zones as lists of DepthRange.
        self.high_slowness_layer_depths_p = []
        self.high_slowness_layer_depths_s = []
        self.fluid_layer_depths = []
        self.p_layers = None
        self.s_layers = None
        self._subdivisions = 0
        if skip_model_creation:
            return
        self.create_sample()

    def __str__(self):
        def depths(zones):
            return [(zone.top_depth, zone.bot_depth) for zone in zones]

        lines = ["%s=%s" % (name, getattr(self, name)) for name in (
            'radius_of_planet', 'max_delta_p', 'min_delta_p',
            'max_depth_interval', 'max_range_interval', 'allow_inner_core_s',
            'slowness_tolerance')]
        lines += [
            "P layers=%d" % self.get_num_layers(self.p_wave),
            "S layers=%d" % self.get_num_layers(self.s_wave),
            "fluid zones=%s" % depths(self.fluid_layer_depths),
            "P high slowness zones=%s" % depths(
                self.high_slowness_layer_depths_p),
            "S high slowness zones=%s" % depths(
                self.high_slowness_layer_depths_s),
            "critical depths:",
            str(self.critical_depths),
        ]
        return "\n".join(lines) + "\n"

    def create_sample(self):
        """
        Discretise the velocity model into slowness layers.

        The layers sample slowness and depth finely enough that the travel
        time curves can be rebuilt from the tau function by linear
        interpolation.
        """
        self.v_mod.validate()
        if len(self.v_mod) == 0:
            raise SlownessModelError("Velocity model %s has no layers." %
                                     self.v_mod.model_name)
        if self.v_mod.layers[0]['top_s_velocity'] == 0:
            raise SlownessModelError(
                "Unable to handle zero S velocity layers at surface.")
        logger.debug("Sampling velocity model %s with %d layers.",
                     self.v_mod.model_name, len(self.v_mod))

        self.find_critical_points()
        self.coarse_sample()
        self.ray_param_inc_check()
        self.depth_inc_check()
        self.distance_check()
        self.fix_critical_points()

        self.validate()
        for array in (self.p_layers, self.s_layers, self.critical_depths):
            array.flags.writeable = False
        logger.debug("Created %d P and %d S slowness layers, %d critical "
                     "depths.", len(self.p_layers), len(self.s_layers),
                     len(self.critical_depths))

    def _slowness_layers(self, v_layer, no_s):
        """
        P and S slowness layers of velocity layer(s).

        Where ``no_s`` is set, the P slowness stands in for S. That is the
        case in fluids and, unless allowed, in the inner core.
        """
        p_layer = create_from_vlayer(
            v_layer=v_layer, is_p_wave=self.p_wave,
            radius_of_planet=self.radius_of_planet,
            is_spherical=self.v_mod.is_spherical)
        s_layer = create_from_vlayer(
            v_layer=v_layer, is_p_wave=self.s_wave,
            radius_of_planet=self.radius_of_planet,
            is_spherical=self.v_mod.is_spherical)
        return p_layer, np.where(no_s, p_layer, s_layer)

    def find_critical_points(self):
        """
        Find the critical points of the velocity model.

        Critical points are the surface, the centre, first order
        discontinuities and local extrema of slowness. The high slowness
        zones of both wave types and the fluid zones are collected on the
        way down. A low velocity zone is only a high slowness zone if the
        velocity drops faster than the radius.
        """
        surface = self.v_mod.layers[0]
        prev_v_layer = np.array([(
            surface['top_depth'], surface['top_depth'],
            surface['top_p_velocity'], surface['top_p_velocity'],
            surface['top_s_velocity'], surface['top_s_velocity'],
            surface['top_density'], surface['top_density'])],
            dtype=VelocityLayer)[0]
        prev = dict(zip((self.p_wave, self.s_wave),
                        self._slowness_layers(prev_v_layer, False)))
        trackers = dict((is_p_wave, _ZoneTracker(float(layer['top_p'])))
                        for is_p_wave, layer in prev.items())

        critical = [(0.0, 0, 0, 0)]
        self.fluid_layer_depths = []
        fluid_top = None
        below_outer_core = False

        for layer_num, v_layer in enumerate(self.v_mod.layers):
            if fluid_top is None and v_layer['top_s_velocity'] == 0:
                fluid_top = v_layer['top_depth']
            elif fluid_top is not None and v_layer['top_s_velocity'] != 0:
                if prev_v_layer['bot_depth'] > self.v_mod.iocb_depth:
                    below_outer_core = True
                self.fluid_layer_depths.append(DepthRange(
                    top_depth=fluid_top, bot_depth=prev_v_layer['bot_depth']))
                fluid_top = None

            s_uses_p = fluid_top is not None or (
                below_outer_core and not self.allow_inner_core_s)
            curr = dict(zip((self.p_wave, self.s_wave),
                            self._slowness_layers(v_layer, s_uses_p)))
            depth = v_layer['top_depth']

            jump = any(prev[w]['bot_p'] != curr[w]['top_p'] for w in curr)
            extremum = any(
                (prev[w]['top_p'] - prev[w]['bot_p']) *
                (prev[w]['bot_p'] - curr[w]['bot_p']) < 0 for w in curr)
            if jump or extremum:
                critical.append((depth, layer_num, -1, -1))
                logger.debug("%s at depth %f.", "First order discontinuity"
                             if jump else "Local slowness extremum", depth)

            for is_p_wave, tracker in trackers.items():
                above = prev[is_p_wave]
                layer = curr[is_p_wave]
                if jump:
                    # The top of this layer may end a zone, and total
                    # reflections off the discontinuity are fine even when a
                    # new zone starts below it.
                    if tracker.inside and layer['top_p'] < tracker.min_p:
                        tracker.finish(depth)
                    tracker.lower(layer['top_p'])
                    if not tracker.inside and (
                            above['bot_p'] < layer['top_p'] or
                            layer['top_p'] < layer['bot_p']):
                        tracker.start(depth)
                elif extremum:
                    if not tracker.inside and \
                            layer['top_p'] < layer['bot_p']:
                        tracker.start(depth)

                if tracker.inside and layer['bot_p'] < tracker.min_p:
                    # The zone ends inside this layer.
                    tracker.finish(self.find_depth_from_layers(
                        tracker.min_p, layer_num, layer_num,
                        is_p_wave or s_uses_p))
                tracker.lower(layer['top_p'], layer['bot_p'])
            prev = curr
            prev_v_layer = v_layer

        critical.append((self.radius_of_planet, len(self.v_mod), -1, -1))
        # Models that do not reach the centre may end inside a zone.
        bottom = prev_v_layer['bot_depth']
        for tracker in trackers.values():
            if tracker.inside:
                tracker.finish(bottom)
        if fluid_top is not None:
            self.fluid_layer_depths.append(DepthRange(top_depth=fluid_top,
                                                      bot_depth=bottom))

        self.critical_depths = np.array(critical, dtype=CriticalDepth)
        self.high_slowness_layer_depths_p = trackers[self.p_wave].zones
        self.high_slowness_layer_depths_s = trackers[self.s_wave].zones
        logger.debug("Found %d critical depths, %d P and %d S high slowness "
                     "zones, %d fluid zones.", len(critical),
                     len(self.high_slowness_layer_depths_p),
                     len(self.high_slowness_layer_depths_s),
                     len(self.fluid_layer_depths))

        self.validate()

    def get_num_layers(self, is_p_wave):
        """
        Number of slowness layers.

        :param is_p_wave: Return P layer count (``True``) or S layer count
            (``False``).
        :type is_p_wave: bool
        :rtype: int
        """
        return len(self._layers(is_p_wave))

    def _layers(self, is_p_wave):
        return self.p_layers if is_p_wave else self.s_layers

    def _store_layers(self, layers, is_p_wave):
        if is_p_wave:
            self.p_layers = layers
        else:
            self.s_layers = layers

    def find_depth_from_depths(self, ray_param, top_depth, bot_depth,
                               is_p_wave):
        """
        Find the depth of a slowness between two depths.

        Same as :meth:`find_depth_from_layers`, with the velocity layers
        given by their depths.

        :param ray_param: Slowness to find, in s/rad.
        :type ray_param: float
        :param top_depth: Top of the search range, in km.
        :type top_depth: float
        :param bot_depth: Bottom of the search range, in km.
        :type bot_depth: float
        :param is_p_wave: ``True`` if P wave or ``False`` for S wave.
        :type is_p_wave: bool
        :rtype: float
        """
        top_layer_num = self.v_mod.layer_number_below(top_depth)[0]
        if self.v_mod.layers[top_layer_num]['bot_depth'] == top_depth:
            top_layer_num += 1
        bot_layer_num = self.v_mod.layer_number_above(bot_depth)[0]
        return self.find_depth_from_layers(ray_param, top_layer_num,
                                           bot_layer_num, is_p_wave)

    def find_depth_from_layers(self, p, top_critical_layer, bot_critical_layer,
                               is_p_wave):
        """
        Find the depth of a slowness within a range of velocity layers.

        Slowness is ``(radius_of_planet - depth) / velocity`` and assumed to
        be monotonic within the range, so the first depth found is returned.
        A slowness that falls into the jump between the bottom of one layer
        and the top of the next is a total reflection and gives the depth of
        the boundary. For S waves above a fluid the P velocity below the
        boundary is used.

        :param p: Slowness to find, in s/rad.
        :type p: float
        :param top_critical_layer: First velocity layer to search.
        :type top_critical_layer: int
        :param bot_critical_layer: Last velocity layer to search.
        :type bot_critical_layer: int
        :param is_p_wave: ``True`` if P wave or ``False`` for S wave.
        :type is_p_wave: bool
        :returns: Depth of the slowness, in km.
        :rtype: float
        :raises SlownessModelError: If the range is empty or does not hold
            ``p``, or if a velocity gradient exactly cancels the slowness
            decrease of the sphere.
        """
        if top_critical_layer > bot_critical_layer:
            raise SlownessModelError(
                "No velocity layers between %d and %d to search." % (
                    top_critical_layer, bot_critical_layer))
        wave_type = 'P' if is_p_wave else 'S'
        bot_p = None
        v_layer = None
        for layer_num in range(top_critical_layer, bot_critical_layer + 1):
            v_layer = self.v_mod.layers[layer_num]
            top_velocity = evaluate_velocity_at_top(v_layer, wave_type)
            bot_velocity = evaluate_velocity_at_bottom(v_layer, wave_type)
            top_p = self.to_slowness(top_velocity, v_layer['top_depth'])
            bot_p = self.to_slowness(bot_velocity, v_layer['bot_depth'])
            if abs(top_p - p) < self.slowness_tolerance:
                return v_layer['top_depth']
            if abs(p - bot_p) < self.slowness_tolerance:
                return v_layer['bot_depth']
            if (top_p - p) * (p - bot_p) >= 0:
                gradient = (bot_velocity - top_velocity) / (
                    v_layer['bot_depth'] - v_layer['top_depth'])
                return self.interpolate(p, top_velocity,
                                        v_layer['top_depth'], gradient)

            if layer_num + 1 < len(self.v_mod):
                next_layer = self.v_mod.layers[layer_num + 1]
                next_type = wave_type
                if not is_p_wave and np.any(self.depth_in_fluid(
                        np.array(next_layer['top_depth']))):
                    next_type = 'P'
                next_p = self.to_slowness(
                    evaluate_velocity_at_top(next_layer, next_type),
                    next_layer['top_depth'])
                if bot_p >= p >= next_p:
                    return next_layer['top_depth']

        if bot_p is not None and abs(p - bot_p) < self.slowness_tolerance:
            return v_layer['bot_depth']
        raise SlownessModelError(
            "Slowness %s is not within velocity layers %d to %d." % (
                p, top_critical_layer, bot_critical_layer))

    def to_slowness(self, velocity, depth):
        """
        Convert velocity at some depth to slowness.

        :param velocity: Velocity in km/s.
        :type velocity: :class:`float` or :class:`~numpy.ndarray`
        :param depth: Depth in km, less than the radius of the planet.
        :type depth: :class:`float` or :class:`~numpy.ndarray`
        :returns: Slowness in s/rad.
        :rtype: :class:`float` or :class:`~numpy.ndarray`
        """
        if np.any(velocity == 0):
            raise SlownessModelError(
                "Zero velocity at depth %s has no slowness, S velocity in "
                "a fluid?" % (depth, ))
        return (self.radius_of_planet - depth) / velocity

    def interpolate(self, p, top_velocity, top_depth, slope):
        """
        Depth of a slowness in a layer with linear velocity.

        All parameters must be of the same shape.

        :param p: Slowness in s/rad.
        :param top_velocity: Velocity at the top of the layer, in km/s.
        :param top_depth: Depth of the top of the layer, in km.
        :param slope: Velocity gradient in (km/s)/km.
        :returns: Depth in km.
        :rtype: :class:`float` or :class:`~numpy.ndarray`
        """
        denominator = p * slope + 1
        if np.any(denominator == 0):
            raise SlownessModelError(
                "Negative velocity gradient that just balances the slowness "
                "gradient of the spherical slowness, i.e. planet flattening.")
        return (self.radius_of_planet +
                p * (top_depth * slope - top_velocity)) / denominator

    def depth_in_fluid(self, depth):
        """
        Check whether depths lie in a fluid zone.

        A fluid zone includes its top but not its bottom.

        :param depth: Depth(s) in km.
        :type depth: :class:`~numpy.ndarray`
        :rtype: :class:`~numpy.ndarray` (dtype = :class:`bool`)
        """
        depth = np.asarray(depth)
        ret = np.zeros(shape=depth.shape, dtype=np.bool_)
        for zone in self.fluid_layer_depths:
            ret |= (zone.top_depth <= depth) & (depth < zone.bot_depth)
        return ret

    def coarse_sample(self):
        """
        Make the first, coarse slowness sampling of the velocity model.

        Every velocity layer becomes a slowness layer and every first order
        discontinuity a zero thickness layer holding the slowness jump. The
        bottoms of the high slowness zones are sampled, and each wave type
        gets the slownesses of the other.
        """
        v_layers = self.v_mod.layers
        no_s = self.depth_in_fluid(v_layers['top_depth'])
        if not self.allow_inner_core_s:
            no_s |= v_layers['top_depth'] >= self.v_mod.iocb_depth
        p_layers, s_layers = self._slowness_layers(v_layers, no_s)

        above = v_layers[:-1]
        below = v_layers[1:]
        s_counts = np.logical_or(self.allow_inner_core_s,
                                 below['top_depth'] < self.v_mod.iocb_depth)
        jumps = ((above['bot_p_velocity'] != below['top_p_velocity']) |
                 ((above['bot_s_velocity'] != below['top_s_velocity']) &
                  s_counts))
        above = above[jumps]
        below = below[jumps]

        steps = np.empty(shape=above.shape, dtype=VelocityLayer)
        steps['top_depth'] = above['bot_depth']
        steps['bot_depth'] = above['bot_depth']
        steps['top_p_velocity'] = above['bot_p_velocity']
        steps['bot_p_velocity'] = below['top_p_velocity']
        # The S side of a fluid boundary uses the P velocity of the fluid.
        steps['top_s_velocity'] = np.where(above['bot_s_velocity'] == 0,
                                           above['bot_p_velocity'],
                                           above['bot_s_velocity'])
        steps['bot_s_velocity'] = np.where(below['top_s_velocity'] == 0,
                                           below['top_p_velocity'],
                                           below['top_s_velocity'])
        steps['top_density'] = _DEFAULT_VALUES["density"]
        steps['bot_density'] = _DEFAULT_VALUES["density"]
        no_s = (above['bot_s_velocity'] == 0) & (below['top_s_velocity'] == 0)
        if not self.allow_inner_core_s:
            no_s |= steps['top_depth'] >= self.v_mod.iocb_depth
        step_p, step_s = self._slowness_layers(steps, no_s)

        index = np.flatnonzero(jumps) + 1
        self.p_layers = np.insert(p_layers, index, step_p)
        self.s_layers = np.insert(s_layers, index, step_s)

        for is_p_wave, zones in ((self.s_wave,
                                  self.high_slowness_layer_depths_s),
                                 (self.p_wave,
                                  self.high_slowness_layer_depths_p)):
            for zone in zones:
                self._sample_zone_bottom(zone, is_p_wave)

        for source, target in ((self.p_wave, self.s_wave),
                               (self.s_wave, self.p_wave)):
            layers = self._layers(source)
            for p in np.unique(np.concatenate((layers['top_p'],
                                               layers['bot_p']))):
                self.add_slowness(p, target)

    def _sample_zone_bottom(self, zone, is_p_wave):
        """
        Add the ray parameter of a high slowness zone at its bottom.
        """
        layers = self._layers(is_p_wave)
        layer_num = self.layer_number_above(zone.bot_depth, is_p_wave)
        layer = layers[layer_num]
        # Move down through the zero thickness layers of a discontinuity to
        # the one whose slowness jump holds the ray parameter.
        while layer['top_depth'] == layer['bot_depth'] and (
                (layer['top_p'] - zone.ray_param) *
                (zone.ray_param - layer['bot_p']) < 0):
            layer_num += 1
            layer = layers[layer_num]
        if zone.ray_param != layer['bot_p']:
            self.add_slowness(zone.ray_param, is_p_wave)

    def layer_number_above(self, depth, is_p_wave):
        """
        Find the slowness layer containing a depth, upper one on boundaries.

        At a boundary this is the layer ending at the depth, even if zero
        thickness layers (total reflections) sit at the same depth.

        .. seealso:: :meth:`layer_number_below`

        :param depth: Depth(s) in km.
        :type depth: :class:`float` or :class:`~numpy.ndarray`
        :param is_p_wave: Use the P (``True``) or S (``False``) layers.
        :type is_p_wave: bool
        :rtype: :class:`int` or :class:`~numpy.ndarray`
        :raises SlownessModelError: If the depth is outside of the model.
        """
        layers = self._layers(is_p_wave)
        self._check_depth(depth, layers)
        found = np.searchsorted(layers['top_depth'], depth)
        found = np.maximum(found - 1, 0)
        if np.ndim(depth) == 0:
            return int(found)
        return found

    def layer_number_below(self, depth, is_p_wave):
        """
        Find the slowness layer containing a depth, lower one on boundaries.

        At a boundary this is the layer starting at the depth below any
        zero thickness layers (total reflections) at the same depth.

        .. seealso:: :meth:`layer_number_above`

        :param depth: Depth(s) in km.
        :type depth: :class:`float` or :class:`~numpy.ndarray`
        :param is_p_wave: Use the P (``True``) or S (``False``) layers.
        :type is_p_wave: bool
        :rtype: :class:`int` or :class:`~numpy.ndarray`
        :raises SlownessModelError: If the depth is outside of the model.
        """
        layers = self._layers(is_p_wave)
        self._check_depth(depth, layers)
        found = np.searchsorted(layers['bot_depth'], depth, side='right')
        found = np.minimum(found, len(layers) - 1)
        if np.ndim(depth) == 0:
            return int(found)
        return found

    @staticmethod
    def _check_depth(depth, layers):
        if np.any(depth < layers[0]['top_depth']) or \
                np.any(depth > layers[-1]['bot_depth']):
            raise SlownessModelError("No layer contains depth %s." % (depth, ))

    def get_slowness_layer(self, layer, is_p_wave):
        """
        Return slowness layer(s) of the requested wave type.

        The result is a view into the model, not a copy.

        :param layer: Layer number(s).
        :type layer: :class:`int` or :class:`~numpy.ndarray`
        :param is_p_wave: P (``True``) or S (``False``) layers.
        :type is_p_wave: bool
        :rtype: :class:`~numpy.ndarray`
            (dtype = :const:`~seistau.helper_classes.SlownessLayer`)
        """
        return self._layers(is_p_wave)[layer]

    def add_slowness(self, p, is_p_wave):
        """
        Add a slowness sample to the layers of one wave type.

        Every layer whose slowness range strictly holds ``p`` is split. The
        split depth comes from the velocity model, so it is linear in
        velocity and not a Bullen interpolation. Zero thickness layers are
        split in slowness only. Fluid layers are shared by both wave types
        and are split in both. Only used while sampling.

        :param p: Slowness to add, in s/rad.
        :type p: float
        :param is_p_wave: Split the P (``True``) or S (``False``) layers.
        :type is_p_wave: bool
        """
        layers = self._layers(is_p_wave)
        other = self._layers(not is_p_wave)
        wave = 'P' if is_p_wave else 'S'

        thick = layers['top_depth'] != layers['bot_depth']
        above = self.v_mod.evaluate_above(layers['bot_depth'], wave)
        below = self.v_mod.evaluate_below(layers['top_depth'], wave)
        # Zero thickness layers only need the top velocity to spot fluids.
        top_velocity = np.where(thick, below, above)
        bot_velocity = np.where(thick, above, below)

        hit = (layers['top_p'] - p) * (p - layers['bot_p']) > 0
        if not is_p_wave:
            hit &= top_velocity != 0
            if not self.allow_inner_core_s:
                hit &= ~(layers['bot_depth'] > self.v_mod.iocb_depth)
        index = np.flatnonzero(hit)
        if not len(index):
            return

        old = layers[index]
        split_depth = old['bot_depth'].copy()
        linear = thick[index]
        if np.any(linear):
            top_depth = old['top_depth'][linear]
            gradient = ((bot_velocity[index][linear] -
                         top_velocity[index][linear]) /
                        (old['bot_depth'][linear] - top_depth))
            split_depth[linear] = self.interpolate(
                p, top_velocity[index][linear], top_depth, gradient)

        upper = old.copy()
        upper['bot_p'] = p
        upper['bot_depth'] = split_depth
        lower = old.copy()
        lower['top_p'] = p
        lower['top_depth'] = split_depth

        shared = np.nonzero(other.reshape(1, -1) == old.reshape(-1, 1))
        layers[index] = lower
        self._store_layers(np.insert(layers, index, upper), is_p_wave)
        if len(shared[0]):
            other[shared[1]] = lower[shared[0]]
            self._store_layers(
                np.insert(other, shared[1], upper[shared[0]]),
                not is_p_wave)

    def _add_to_both(self, p):
        self.add_slowness(p, self.p_wave)
        self.add_slowness(p, self.s_wave)

    def ray_param_inc_check(self):
        """
        Split layers spanning more than ``max_delta_p`` in slowness.

        Such layers get equally spaced slowness samples, in both wave types.
        """
        for is_p_wave in (self.s_wave, self.p_wave):
            layers = self._layers(is_p_wave)
            top_p = layers['top_p']
            span = layers['bot_p'] - top_p
            wide = np.abs(span) > self.max_delta_p
            for start, width in zip(top_p[wide], span[wide]):
                count = int(np.ceil(abs(width) / self.max_delta_p))
                for p in start + width * np.arange(1, count) / count:
                    self._add_to_both(p)

    def depth_inc_check(self):
        """
        Split layers thicker than ``max_depth_interval``.

        The new samples are equally spaced in depth, with slownesses taken
        from the velocity model.
        """
        for is_p_wave in (self.s_wave, self.p_wave):
            layers = self._layers(is_p_wave)
            top_depth = layers['top_depth']
            thickness = layers['bot_depth'] - top_depth
            thick = thickness > self.max_depth_interval
            for start, size in zip(top_depth[thick], thickness[thick]):
                count = int(np.ceil(size / self.max_depth_interval))
                depths = start + size * np.arange(1, count) / count
                for p in self._slowness_at(depths, is_p_wave):
                    self._add_to_both(p)

    def _slowness_at(self, depths, is_p_wave):
        """
        Slowness of the velocity model just above the given depths.

        S slowness falls back to P where there are no S waves.
        """
        p_velocity = self.v_mod.evaluate_above(depths, 'P')
        if is_p_wave:
            return self.to_slowness(p_velocity, depths)
        velocity = self.v_mod.evaluate_above(depths, 'S')
        no_s = velocity == 0
        if not self.allow_inner_core_s:
            no_s |= depths >= self.v_mod.iocb_depth
        return self.to_slowness(np.where(no_s, p_velocity, velocity), depths)

    def _subdivide(self, *ray_params):
        """
        Add ray parameters to both wave types during the distance check.

        :raises SlownessModelError: Once more than ``max_subdivisions``
            ray parameters have been added.
        """
        for p in ray_params:
            self._subdivisions += 1
            if self._subdivisions > self.max_subdivisions:
                raise SlownessModelError(
                    "Travel time curve of model %s not sampled within %d "
                    "subdivisions, last ray parameter %f." % (
                        self.v_mod.model_name, self.max_subdivisions, p))
            self._add_to_both(p)

    def interpolation_error(self, layer_num, is_p_wave):
        """
        How well the travel time curve is sampled across a slowness layer.

        Rays from a surface source turning at the top and at the bottom of
        the layer give the two ends of the curve segment. A third ray, with
        the slowness midway between them, turns inside the layer. The time
        of the bottom ray is compared with the line through the top ray and
        the middle ray.

        :param layer_num: Slowness layer number.
        :type layer_num: int
        :param is_p_wave: P (``True``) or S (``False``) layers.
        :type is_p_wave: bool
        :returns: The distance between the ends in radians, and the time
            error of linear interpolation in seconds. The error is NaN or
            infinite where the middle ray lands on the top ray.
        :rtype: tuple of float
        """
        layer = self.get_slowness_layer(layer_num, is_p_wave)
        mid_p = (layer['top_p'] + layer['bot_p']) / 2
        top = self.approx_distance(layer_num - 1, layer['top_p'],
                                   is_p_wave)[0]
        bot = self.approx_distance(layer_num, layer['bot_p'], is_p_wave)[0]
        mid = self.approx_distance(layer_num - 1, mid_p, is_p_wave)[0]

        # Down to the turning point of the middle ray.
        partial = np.array([(
            layer['top_p'], layer['top_depth'], mid_p,
            bullen_depth_for(layer, mid_p, self.radius_of_planet))],
            dtype=SlownessLayer)
        time, dist = bullen_radial_slowness(partial, mid_p,
                                            self.radius_of_planet)
        mid_time = mid['time'] + 2 * time[0]
        mid_dist = mid['dist'] + 2 * dist[0]

        with np.errstate(divide='ignore', invalid='ignore'):
            slope = (mid_time - top['time']) / (mid_dist - top['dist'])
            error = bot['time'] - (top['time'] +
                                   slope * (bot['dist'] - top['dist']))
        return float(abs(bot['dist'] - top['dist'])), float(error)

    def distance_check(self):
        """
        Refine the sampling until the travel time curves are resolved.

        A layer is split at its middle slowness when the rays turning at its
        top and bottom are more than ``max_range_interval`` apart, unless its
        slowness range is below ``2 * min_delta_p``. If its
        :meth:`interpolation_error` exceeds ``max_interp_error``, the layer
        above is split as well, which also fills in caustics. Layers in high
        slowness zones are left alone. Every split adds samples to both wave
        types, so both are checked again until a pass adds nothing.

        :raises SlownessModelError: If more than ``max_subdivisions``
            samples are needed.
        """
        self._subdivisions = 0
        passes = 0
        while True:
            added = self._subdivisions
            for is_p_wave in (self.s_wave, self.p_wave):
                self._distance_pass(is_p_wave)
            passes += 1
            if self._subdivisions == added:
                break
        logger.debug("Distance check added %d slowness samples in %d "
                     "passes.", self._subdivisions, passes)

    def needs_distance_check(self, layer_num, is_p_wave):
        """
        Whether :meth:`distance_check` looks at a slowness layer.

        Layers touching a high slowness zone, or too narrow in slowness to
        be split, are skipped.
        """
        layer = self.get_slowness_layer(layer_num, is_p_wave)
        mid_p = (layer['top_p'] + layer['bot_p']) / 2
        if not (min(layer['top_p'], layer['bot_p']) < mid_p <
                max(layer['top_p'], layer['bot_p'])):
            return False
        return not (self.depth_in_high_slowness(layer['top_depth'],
                                                layer['top_p'], is_p_wave) or
                    self.depth_in_high_slowness(layer['bot_depth'],
                                                layer['bot_p'], is_p_wave))

    def _distance_pass(self, is_p_wave):
        layer_num = 0
        while layer_num < self.get_num_layers(is_p_wave):
            if not self.needs_distance_check(layer_num, is_p_wave):
                layer_num += 1
                continue
            layer = self.get_slowness_layer(layer_num, is_p_wave)
            mid_p = (layer['top_p'] + layer['bot_p']) / 2
            jump, error = self.interpolation_error(layer_num, is_p_wave)
            if jump > self.max_range_interval and \
                    abs(layer['top_p'] - layer['bot_p']) > \
                    2 * self.min_delta_p:
                logger.debug("Distance jump too large at %s layer %d, "
                             "adding slowness %f.", "P" if is_p_wave else "S",
                             layer_num, mid_p)
                self._subdivide(mid_p)
            elif abs(error) > self.max_interp_error:
                if layer_num == 0:
                    self._subdivide(mid_p)
                else:
                    # Both halves of the layer above are checked again.
                    above = self.get_slowness_layer(layer_num - 1, is_p_wave)
                    self._subdivide((above['top_p'] + above['bot_p']) / 2,
                                    mid_p)
                    layer_num -= 1
            else:
                layer_num += 1

    def depth_in_high_slowness(self, depth, ray_param, is_p_wave,
                               return_depth_range=False):
        """
        Check whether a depth and slowness lie in a high slowness zone.

        The ray parameter matters at the zone boundaries. A discontinuity at
        the bottom of a zone is outside the zone for a ray reflecting off
        it, and the ray parameter of the zone itself, which can turn at both
        the top and the bottom, belongs to the zone only at the top.

        :param depth: Depth in km.
        :type depth: float
        :param ray_param: Slowness in s/rad.
        :type ray_param: float
        :param is_p_wave: P (``True``) or S (``False``) zones.
        :type is_p_wave: bool
        :param return_depth_range: Also return the zone.
        :type return_depth_range: bool
        :returns: Whether the point is in a zone, and if
            ``return_depth_range`` is set, the
            :class:`~seistau.helper_classes.DepthRange` of the zone or
            ``None``.
        :rtype: bool, or (bool, DepthRange)
        """
        zones = (self.high_slowness_layer_depths_p if is_p_wave
                 else self.high_slowness_layer_depths_s)
        found = None
        for zone in zones:
            if not zone.top_depth <= depth <= zone.bot_depth:
                continue
            if ray_param > zone.ray_param or (
                    ray_param == zone.ray_param and depth == zone.top_depth):
                found = zone
                break
        if return_depth_range:
            return found is not None, found
        return found is not None

    def approx_distance(self, slowness_turn_layer, p, is_p_wave):
        """
        Time and distance of a surface ray turning at a layer bottom.

        Layer ``-1`` stands for the surface, so the ray takes no time.

        :param slowness_turn_layer: Layer at whose bottom the ray turns.
        :type slowness_turn_layer: int
        :param p: Slowness in s/rad.
        :type p: float
        :param is_p_wave: P (``True``) or S (``False``) layers.
        :type is_p_wave: bool
        :returns: Time in s and distance in radians, down and up.
        :rtype: :class:`~numpy.ndarray`
            (dtype = :const:`~seistau.helper_classes.TimeDist`, shape = (1, ))
        """
        if slowness_turn_layer >= self.get_num_layers(is_p_wave):
            raise SlownessModelError(
                "Layer %d is beyond the bottom of the model." %
                slowness_turn_layer)
        if p < 0:
            raise SlownessModelError("Ray parameter must not be negative!")
        td = np.zeros(1, dtype=TimeDist)
        td['p'] = p
        if slowness_turn_layer >= 0:
            time, dist = self.layer_time_dist(
                p, np.arange(slowness_turn_layer + 1), is_p_wave)
            td['time'] = 2 * np.sum(time)
            td['dist'] = 2 * np.sum(dist)
        return td

    def layer_time_dist(self, spherical_ray_param, layer_num, is_p_wave,
                        check=True, allow_turn=False):
        """
        Time and distance increments of ray(s) crossing slowness layer(s).

        Only one way, down or up. ``spherical_ray_param`` and ``layer_num``
        are broadcast against each other.

        .. seealso:: :func:`seistau.slowness_layer.layer_time_dist`

        :param spherical_ray_param: Ray parameter(s) in s/rad.
        :type spherical_ray_param: :class:`float` or :class:`~numpy.ndarray`
        :param layer_num: Layer number(s).
        :type layer_num: :class:`int` or :class:`~numpy.ndarray`
        :param is_p_wave: P (``True``) or S (``False``) layers.
        :type is_p_wave: bool
        :param check: Raise on rays that cannot cross the layer, instead of
            returning NaN.
        :type check: bool
        :param allow_turn: Rays may turn inside the layer.
        :type allow_turn: bool
        :returns: Time in s and distance in radians.
        :rtype: tuple of :class:`~numpy.ndarray`
        :raises SlownessModelError: If ``check`` is set and a ray cannot
            propagate in, or turns inside, its layer.
        """
        layer = self.get_slowness_layer(layer_num, is_p_wave)
        p = spherical_ray_param
        if check:
            if np.any(np.less(p, 0)):
                raise SlownessModelError("Ray parameter must not be negative!")
            if not allow_turn and np.any(
                    p > np.minimum(layer['top_p'], layer['bot_p'])):
                raise SlownessModelError(
                    "Ray turns inside layer %s." % (layer_num, ))
            if np.any(p > layer['top_p']):
                raise SlownessModelError(
                    "Ray parameter too large to enter layer %s." %
                    (layer_num, ))

        time, dist = layer_time_dist(layer, p, self.radius_of_planet,
                                     self.slowness_tolerance, allow_turn)

        if check and not (np.all(time >= 0) and np.all(dist >= 0)):
            raise SlownessModelError("Layer time or distance is negative or "
                                     "NaN.")
        return time, dist

    def fix_critical_points(self):
        """
        Point the critical depths to the slowness layers below them.
        """
        for name, is_p_wave in (('p_layer_num', self.p_wave),
                                ('s_layer_num', self.s_wave)):
            layer_num = self.layer_number_below(
                self.critical_depths['depth'], is_p_wave)
            s_layer = self.get_slowness_layer(layer_num, is_p_wave)
            # The last critical point is the bottom of the last layer.
            mask = ((layer_num == self.get_num_layers(is_p_wave) - 1) &
                    (s_layer['bot_depth'] == self.critical_depths['depth']))
            layer_num[mask] += 1
            self.critical_depths[name] = layer_num

    def validate(self):
        """
        Check the slowness model for consistency.

        :returns: True if the model is consistent.
        :raises SlownessModelError: If any inconsistency is found.
        """
        if self.radius_of_planet <= 0:
            raise SlownessModelError("Radius of planet must be positive.")
        if self.max_depth_interval <= 0:
            raise SlownessModelError(
                "max_depth_interval must be positive and non-zero.")
        for zones in (self.high_slowness_layer_depths_p,
                      self.high_slowness_layer_depths_s):
            prev_depth = -1e300
            for zone in zones:
                if zone.top_depth >= zone.bot_depth:
                    raise SlownessModelError(
                        "High slowness zone has zero or negative thickness!")
                if (zone.top_depth < prev_depth or (
                        zone.top_depth == prev_depth and
                        not self.v_mod.is_discontinuity(zone.top_depth))):
                    raise SlownessModelError(
                        "High slowness zone overlaps previous zone.")
                prev_depth = zone.bot_depth
        prev_depth = -1e300
        for zone in self.fluid_layer_depths:
            if zone.top_depth >= zone.bot_depth:
                raise SlownessModelError(
                    "Fluid zone has zero or negative thickness!")
            if zone.top_depth <= prev_depth:
                raise SlownessModelError("Fluid zone overlaps previous zone.")
            prev_depth = zone.bot_depth

        for layers in (self.p_layers, self.s_layers):
            if layers is None:
                continue
            if layers['top_depth'][0] != 0:
                raise SlownessModelError(
                    "Slowness layers do not start at the surface.")
            checks = [
                (np.isnan(layers['top_p']) | np.isnan(layers['bot_p']),
                 "Slowness layer has NaN values."),
                ((layers['top_p'] < 0) | (layers['bot_p'] < 0),
                 "Slowness layer has negative slowness."),
                (layers['top_p'][1:] != layers['bot_p'][:-1],
                 "Slowness layer slowness does not agree with previous layer "
                 "(at same depth)!"),
                (np.isnan(layers['top_depth']) | np.isnan(layers['bot_depth']),
                 "Slowness layer depth (top or bottom) is NaN!"),
                (layers['top_depth'] > layers['bot_depth'],
                 "Slowness layer has negative thickness."),
                (layers['top_depth'][1:] > layers['bot_depth'][:-1],
                 "Gap between slowness layers!"),
                (layers['top_depth'][1:] < layers['bot_depth'][:-1],
                 "Slowness layer overlaps previous!"),
                (layers['bot_depth'] > self.radius_of_planet,
                 "Slowness layer is deeper than the centre of the planet."),
            ]
            for mask, msg in checks:
                if np.any(mask):
                    raise SlownessModelError(
                        msg + " Layer(s): %s" % (np.flatnonzero(mask), ))
        return True

    def get_min_turn_ray_param(self, depth, is_p_wave):
        """
        Smallest slowness of a ray turning, not reflecting, at or above a
        depth.

        Usually the slowness at the depth itself, but smaller inside a high
        slowness zone.

        :param depth: Depth in km.
        :type depth: float
        :param is_p_wave: P (``True``) or S (``False``) layers.
        :type is_p_wave: bool
        :returns: Ray parameter in s/rad.
        :rtype: float
        """
        if not self.depth_in_high_slowness(depth, 1e300, is_p_wave):
            s_layer = self.get_slowness_layer(
                self.layer_number_above(depth, is_p_wave), is_p_wave)
            if depth == s_layer['bot_depth']:
                return s_layer['bot_p']
            return evaluate_at_bullen(s_layer, depth, self.radius_of_planet)

        smallest = 1e300
        for s_layer in self._layers(is_p_wave):
            if s_layer['bot_depth'] == depth:
                return min(smallest, s_layer['bot_p'])
            if s_layer['bot_depth'] > depth:
                return min(smallest, evaluate_at_bullen(
                    s_layer, depth, self.radius_of_planet))
            smallest = min(smallest, s_layer['bot_p'])
        return smallest

    def get_min_ray_param(self, depth, is_p_wave):
        """
        Smallest slowness of a ray turning or reflecting at or above a
        depth.

        Like :meth:`get_min_turn_ray_param`, but reflections off a
        discontinuity at the depth count as well.

        :param depth: Depth in km.
        :type depth: float
        :param is_p_wave: P (``True``) or S (``False``) layers.
        :type is_p_wave: bool
        :returns: Ray parameter in s/rad.
        :rtype: float
        """
        smallest = self.get_min_turn_ray_param(depth, is_p_wave)
        s_layer_above = self.get_slowness_layer(
            self.layer_number_above(depth, is_p_wave), is_p_wave)
        s_layer_below = self.get_slowness_layer(
            self.layer_number_below(depth, is_p_wave), is_p_wave)
        if s_layer_above['bot_depth'] == depth:
            smallest = min(smallest, s_layer_above['bot_p'],
                           s_layer_below['top_p'])
        return smallest

    def split_layer(self, depth, is_p_wave):
        """
        Split the slowness layer containing a depth.

        The new slowness comes from the Bullen law of the layer, not from
        the velocity model. This model is left untouched.

        :param depth: Depth of the split, in km.
        :type depth: float
        :param is_p_wave: Split the P (``True``) or S (``False``) layers.
            The other wave type gets the new slowness as well.
        :type is_p_wave: bool
        :returns: The model holding the split, which is this model if
            nothing changed. ``needed_split`` tells whether a layer was
            split, ``moved_sample`` whether a boundary within a micrometre
            was moved onto the depth instead, and ``ray_param`` the
            slowness at the depth in s/rad.
        :rtype: :class:`~seistau.helper_classes.SplitLayerInfo`
        """
        layer_num = self.layer_number_above(depth, is_p_wave)
        layers = self._layers(is_p_wave)
        s_layer = np.array(layers[layer_num], dtype=SlownessLayer)
        if s_layer['top_depth'] == depth or s_layer['bot_depth'] == depth:
            return SplitLayerInfo(self, False, False, 0)

        out = copy(self)
        out_layers = layers.copy()
        if abs(s_layer['top_depth'] - depth) < 0.000001:
            out_layers['top_depth'][layer_num] = depth
            out_layers['bot_depth'][layer_num - 1] = depth
            out._set_layers(out_layers, is_p_wave)
            return SplitLayerInfo(out, False, True, float(s_layer['top_p']))
        elif abs(depth - s_layer['bot_depth']) < 0.000001:
            out_layers['bot_depth'][layer_num] = depth
            out_layers['top_depth'][layer_num + 1] = depth
            out._set_layers(out_layers, is_p_wave)
            return SplitLayerInfo(out, False, True, float(s_layer['bot_p']))

        p = evaluate_at_bullen(s_layer, depth, self.radius_of_planet)
        top_layer = np.array([(s_layer['top_p'], s_layer['top_depth'],
                               p, depth)], dtype=SlownessLayer)
        bot_layer = np.array([(p, depth, s_layer['bot_p'],
                               s_layer['bot_depth'])], dtype=SlownessLayer)
        out_layers[layer_num] = bot_layer[0]
        out_layers = np.insert(out_layers, layer_num, top_layer)
        critical_depths = self.critical_depths.copy()
        _fix_critical_depths(critical_depths, layer_num, is_p_wave)

        other_layers = self._layers(not is_p_wave).copy()
        other_layers = self._fix_other_layers(
            other_layers, p, s_layer, top_layer, bot_layer, critical_depths,
            not is_p_wave)
        out._set_layers(out_layers, is_p_wave)
        out._set_layers(other_layers, not is_p_wave)
        critical_depths.flags.writeable = False
        out.critical_depths = critical_depths
        return SplitLayerInfo(out, True, False, p)

    def _set_layers(self, layers, is_p_wave):
        layers.flags.writeable = False
        self._store_layers(layers, is_p_wave)

    def _fix_other_layers(self, other_layers, p, changed_layer, new_top_layer,
                          new_bot_layer, critical_depths, is_p_wave):
        """
        Give the other wave type the slowness of a :meth:`split_layer`.

        Layers shared with the split layer, i.e. in a fluid, are split the
        same way. Any other layer holding ``p`` is split at its Bullen
        depth for ``p``.
        """
        out = other_layers
        shared = np.flatnonzero(out == changed_layer)
        for offset, layer_num in enumerate(shared):
            layer_num += offset
            out[layer_num] = new_bot_layer[0]
            out = np.insert(out, layer_num, new_top_layer)
            _fix_critical_depths(critical_depths, layer_num, is_p_wave)

        containing = np.flatnonzero((out['top_p'] - p) * (p - out['bot_p']) >
                                    0)
        for offset, layer_num in enumerate(containing):
            layer_num += offset
            s_layer = np.array(out[layer_num], dtype=SlownessLayer)
            depth = float(bullen_depth_for(s_layer, p, self.radius_of_planet))
            top_layer = np.array([(s_layer['top_p'], s_layer['top_depth'],
                                   p, depth)], dtype=SlownessLayer)
            out[layer_num] = (p, depth, s_layer['bot_p'], s_layer['bot_depth'])
            out = np.insert(out, layer_num, top_layer)
            _fix_critical_depths(critical_depths, layer_num, is_p_wave)
        return out
