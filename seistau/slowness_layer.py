# -*- coding: utf-8 -*-
"""
Functions acting on slowness layers.

All functions accept either single layers or arrays of layers together with
scalar or array ray parameters; the arguments are broadcast against each
other.
"""
import math

import numpy as np

from .helper_classes import SlownessLayer, SlownessModelError
from .velocity_layer import (evaluate_velocity_at_bottom,
                             evaluate_velocity_at_top)


def _broadcast(layer, p):
    """
    Broadcast layers and ray parameters to flat, writable arrays.

    Returns the layers, the ray parameters and the original shape.
    """
    layer = np.asarray(layer, dtype=SlownessLayer)
    p = np.asarray(p, dtype=np.float64)
    try:
        layer, p = np.broadcast_arrays(layer, p)
    except ValueError:
        raise TypeError('Either layer or p must be 0D, or they must have '
                        'the same shape.')
    shape = p.shape
    return layer.ravel().copy(), p.ravel().copy(), shape


def bullen_radial_slowness(layer, p, radius_of_planet, check=True):
    """
    Calculate time and distance increments of a spherical ray.

    The time and distance (in radians) increments accumulated by a ray of
    spherical ray parameter p when passing through this layer. Note that this
    gives half of the true range and time increments since there will be both
    an upgoing and a downgoing path. Here we use the Mohorovicic or Bullen
    law: p=A*r^B

    :param layer: The layer(s) in which to calculate the increments.
    :type layer: :class:`~numpy.ndarray`, dtype = :const:`SlownessLayer`
    :param p: The spherical ray paramater to use for calculation, in s/rad.
    :type p: :class:`float` or :class:`~numpy.ndarray`
    :param radius_of_planet: The radius of the planet to use, in km.
    :type radius_of_planet: float
    :param check: Check that the calculated results are not invalid. This
        check may be disabled if the layers requested are expected not to
        include the specified ray.
    :type check: bool

    :returns: Time (in s) and distance (in rad) increments.
    :rtype: tuple of :class:`~numpy.ndarray`
    """
    layer, p, shape = _broadcast(layer, p)
    time = np.zeros(p.shape)
    dist = np.zeros(p.shape)

    thick = layer['top_depth'] != layer['bot_depth']
    top_p = layer['top_p'][thick]
    bot_p = layer['bot_p'][thick]
    ray_param = p[thick]
    top_radius = radius_of_planet - layer['top_depth'][thick]
    bot_radius = radius_of_planet - layer['bot_depth'][thick]

    with np.errstate(divide='ignore', invalid='ignore'):
        log_radius = np.log(top_radius / bot_radius)
        b = np.log(top_p / bot_p) / log_radius
        top_sqrt = np.sqrt(top_p ** 2 - ray_param ** 2)
        bot_sqrt = np.sqrt(bot_p ** 2 - ray_param ** 2)
        layer_time = (top_sqrt - bot_sqrt) / b
        layer_dist = (np.arctan2(ray_param, bot_sqrt) -
                      np.arctan2(ray_param, top_sqrt)) / b

        # Constant slowness over the layer, the limit of B going to zero.
        flat = b == 0
        layer_time[flat] = (top_p[flat] ** 2 / top_sqrt[flat] *
                            log_radius[flat])
        layer_dist[flat] = (ray_param[flat] / top_sqrt[flat] *
                            log_radius[flat])

    time[thick] = layer_time
    dist[thick] = layer_dist

    if check and (np.any(time < 0) or np.any(np.isnan(time)) or
                  np.any(dist < 0) or np.any(np.isnan(dist))):
        raise SlownessModelError("timedist.time or .dist < 0 or Nan")

    return time.reshape(shape), dist.reshape(shape)


def bullen_depth_for(layer, ray_param, radius_of_planet, check=True):
    """
    Finds the depth for a ray parameter within this layer.

    Uses a Bullen interpolant, Ar^B. Special case for ``bot_p == 0`` or
    ``bot_depth == radius_of_planet`` as these cause division by 0; use linear
    interpolation in this case.

    :param layer: The layer(s) to check.
    :type layer: :class:`~numpy.ndarray`, dtype = :const:`SlownessLayer`
    :param ray_param: The ray parameter(s) to use for calculation, in s/rad.
    :type ray_param: :class:`float` or :class:`~numpy.ndarray`
    :param radius_of_planet: The radius (in km) of the planet to use.
    :type radius_of_planet: float
    :param check: Raise if a ray parameter is not within its layer. Otherwise
        NaN is returned for those.
    :type check: bool

    :returns: The depth (in km) for the specified ray parameter.
    :rtype: :class:`~numpy.ndarray`
    """
    layer, ray_param, shape = _broadcast(layer, ray_param)
    top_p = layer['top_p']
    bot_p = layer['bot_p']
    top_depth = layer['top_depth']
    bot_depth = layer['bot_depth']

    valid = (top_p - ray_param) * (ray_param - bot_p) >= 0
    if check and not np.all(valid):
        raise SlownessModelError(
            "Ray parameter is not contained within this slowness layer.")

    depth = np.full(ray_param.shape, np.nan)
    leftover = valid.copy()

    # Easy cases for 0 thickness layer, or ray parameter found at top or
    # bottom.
    for mask, value in ((top_depth == bot_depth, bot_depth),
                        (top_p == ray_param, top_depth),
                        (bot_p == ray_param, bot_depth)):
        mask = leftover & mask
        depth[mask] = value[mask]
        leftover &= ~mask

    power = leftover & (bot_p != 0) & (bot_depth != radius_of_planet)
    if np.any(power):
        top_radius = radius_of_planet - top_depth[power]
        bot_radius = radius_of_planet - bot_depth[power]
        with np.errstate(all='ignore'):
            b = (np.log(top_p[power] / bot_p[power]) /
                 np.log(top_radius / bot_radius))
            temp_depth = radius_of_planet - top_radius * np.power(
                ray_param[power] / top_p[power], 1.0 / b)
        # Numerical instability in the power law, round-off just outside
        # the layer is snapped back, anything else is interpolated linearly.
        top = top_depth[power]
        bot = bot_depth[power]
        temp_depth = np.where((temp_depth < top) & (temp_depth > top - 1e-6),
                              top, temp_depth)
        temp_depth = np.where((temp_depth > bot) & (temp_depth < bot + 1e-6),
                              bot, temp_depth)
        bad = ~np.isfinite(temp_depth) | (temp_depth < top) | \
            (temp_depth > bot)
        power_index = np.where(power)[0]
        depth[power_index[~bad]] = temp_depth[~bad]
        leftover[power_index[~bad]] = False

    # Linear interpolation, also used for the centre of the planet since
    # Ar^B might blow up at r = 0.
    mask = leftover & (top_p != bot_p)
    depth[mask] = (bot_depth[mask] +
                   (ray_param[mask] - bot_p[mask]) *
                   (top_depth[mask] - bot_depth[mask]) /
                   (top_p[mask] - bot_p[mask]))
    leftover &= ~mask
    depth[leftover] = bot_depth[leftover]

    return depth.reshape(shape)


def evaluate_at_bullen(layer, depth, radius_of_planet):
    """
    Find the slowness at the given depth.

    Note that this method assumes a Bullen type of slowness interpolation,
    i.e., p(r) = a*r^b. This will produce results consistent with a tau model
    that uses this interpolant, but it may differ slightly from going directly
    to the velocity model.

    :param layer: The layer to use for the calculation.
    :type layer: :class:`numpy.ndarray`, dtype = :const:`SlownessLayer`
    :param depth: The depth (in km) to use for the calculation. It must be
        contained within the provided ``layer``.
    :type depth: float
    :param radius_of_planet: The radius of the planet to use, in km.
    :type radius_of_planet: float
    :rtype: float
    """
    top_p = float(layer['top_p'])
    bot_p = float(layer['bot_p'])
    top_depth = float(layer['top_depth'])
    bot_depth = float(layer['bot_depth'])
    if bot_depth > radius_of_planet or \
            (top_depth - depth) * (depth - bot_depth) < 0:
        raise SlownessModelError(
            "Depth %f is not within layer %s." % (depth, layer))
    if depth == top_depth:
        return top_p
    elif depth == bot_depth:
        return bot_p

    answer = math.nan
    if bot_p > 0 and top_p > 0 and bot_depth < radius_of_planet:
        top_radius = radius_of_planet - top_depth
        try:
            b = math.log(top_p / bot_p) / math.log(
                top_radius / (radius_of_planet - bot_depth))
            answer = top_p * ((radius_of_planet - depth) / top_radius) ** b
        except (ValueError, OverflowError, ZeroDivisionError):
            answer = math.nan
    if answer < 0 or math.isnan(answer) or math.isinf(answer):
        # Power law unusable, e.g. at the centre of the planet.
        answer = ((bot_p - top_p) / (bot_depth - top_depth) *
                  (depth - top_depth) + top_p)
        if answer < 0 or math.isnan(answer) or math.isinf(answer):
            raise SlownessModelError(
                "Calculated Slowness is NaN or negative!")
    return answer


def create_from_vlayer(v_layer, is_p_wave, radius_of_planet,
                       is_spherical=True):
    """
    Compute the slowness layer from a velocity layer.

    Zero velocities, i.e. S waves in fluids, give infinite slowness.

    :param v_layer: The velocity layer(s) to convert.
    :type v_layer: :class:`numpy.ndarray`, dtype = :const:`VelocityLayer`
    :param is_p_wave: Whether this velocity layer is for compressional/P
         (``True``) or shear/S (``False``) waves.
    :type is_p_wave: bool
    :param radius_of_planet: The radius of the planet to use, in km.
    :type radius_of_planet: float
    :param is_spherical: Whether the model is spherical. Non-spherical models
        are not supported.
    :type is_spherical: bool
    """
    if not is_spherical:
        raise NotImplementedError("no flat models yet")
    ret = np.empty(shape=np.shape(v_layer), dtype=SlownessLayer)
    ret['top_depth'] = v_layer['top_depth']
    ret['bot_depth'] = v_layer['bot_depth']
    wave_type = ('p' if is_p_wave else 's')
    with np.errstate(divide='ignore'):
        ret['top_p'] = (radius_of_planet - ret['top_depth']) / \
            evaluate_velocity_at_top(v_layer, wave_type)
        ret['bot_p'] = (radius_of_planet - ret['bot_depth']) / \
            evaluate_velocity_at_bottom(v_layer, wave_type)
    return ret


def layer_time_dist(layer, p, radius_of_planet, slowness_tolerance=1e-16,
                    allow_turn=False):
    """
    Time and distance increments of rays in slowness layers.

    Handles zero thickness layers, the centre of the planet and constant
    velocity layers in closed form and uses
    :func:`bullen_radial_slowness` for everything else. Rays which cannot
    pass a layer give NaN, unless ``allow_turn`` is set and the ray turns
    within the layer, in which case the increments down to the turning depth
    are returned.

    :param layer: The layer(s).
    :type layer: :class:`numpy.ndarray`, dtype = :const:`SlownessLayer`
    :param p: Ray parameter(s) in s/rad.
    :type p: :class:`float` or :class:`~numpy.ndarray`
    :param radius_of_planet: The radius of the planet to use, in km.
    :type radius_of_planet: float
    :param slowness_tolerance: Tolerance to detect constant velocity layers.
    :type slowness_tolerance: float
    :param allow_turn: Whether rays may turn within a layer.
    :type allow_turn: bool
    :returns: Time (in s) and distance (in rad) increments.
    :rtype: tuple of :class:`~numpy.ndarray`
    """
    layer, p, shape = _broadcast(layer, p)
    time = np.full(p.shape, np.nan)
    dist = np.full(p.shape, np.nan)

    leftover = p <= np.maximum(layer['top_p'], layer['bot_p'])
    turning = leftover & (p > layer['bot_p'])
    if allow_turn:
        if np.any(turning):
            # Turn in a layer, use temporary layers with p at the bottom.
            turn_depth = bullen_depth_for(layer[turning], p[turning],
                                          radius_of_planet, check=False)
            layer['bot_p'][turning] = p[turning]
            layer['bot_depth'][turning] = turn_depth
    else:
        leftover &= ~turning
    leftover &= p >= 0

    # Zero thickness layers come from critically reflected slowness samples.
    zero_thick = leftover & (layer['top_depth'] == layer['bot_depth'])
    time[zero_thick] = 0.0
    dist[zero_thick] = 0.0
    leftover &= ~zero_thick

    # A ray of zero ray parameter through the centre of the planet. The one
    # way time is the spherical slowness at the top of the layer.
    centre = leftover & (p == 0) & (layer['bot_depth'] == radius_of_planet)
    time[centre] = layer['top_p'][centre]
    dist[centre] = math.pi / 2
    leftover &= ~centre

    # Constant velocity layers are straight rays; the path length follows
    # from the law of cosines and the distance from the law of sines.
    top_radius = radius_of_planet - layer['top_depth']
    bot_radius = radius_of_planet - layer['bot_depth']
    with np.errstate(divide='ignore', invalid='ignore'):
        vel = bot_radius / layer['bot_p']
        constant = leftover & (
            np.abs(top_radius / layer['top_p'] - vel) < slowness_tolerance)
    leftover &= ~constant
    if np.any(constant):
        vel = vel[constant]
        top_r = top_radius[constant]
        bot_r = bot_radius[constant]
        ray_param = p[constant]
        top_term = top_r ** 2 - (ray_param * vel) ** 2
        bot_term = bot_r ** 2 - (ray_param * vel) ** 2
        top_term[np.abs(top_term) < slowness_tolerance] = 0.0
        bot_term[ray_param == layer['bot_p'][constant]] = 0.0
        bot_term = np.maximum(bot_term, 0.0)
        b = np.sqrt(top_term) - np.sqrt(bot_term)
        time[constant] = b / vel
        dist[constant] = np.arcsin(
            np.clip(b * ray_param * vel / (top_r * bot_r), -1.0, 1.0))

    if np.any(leftover):
        time[leftover], dist[leftover] = bullen_radial_slowness(
            layer[leftover], p[leftover], radius_of_planet, check=False)

    return time.reshape(shape), dist.reshape(shape)
