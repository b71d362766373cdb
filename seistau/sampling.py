# -*- coding: utf-8 -*-
"""
Curves of models and phases as lazily generated ``(x, y)`` samples.

Nothing in here draws anything. A plotting layer takes a
:class:`SampleCurve`, sets up its axes from ``bounds`` and the labels and
consumes ``samples()``, e.g. with matplotlib::

    curve = travel_time_curve(phase)
    x, y = zip(*curve.samples())
    ax.plot(x, y, label=curve.name)
    ax.set_xlim(curve.bounds.x_min, curve.bounds.x_max)
"""
from collections import namedtuple

import numpy as np

from .velocity_layer import (evaluate_velocity_at_bottom,
                             evaluate_velocity_at_top)


PlotBounds = namedtuple('PlotBounds', ['x_min', 'x_max', 'y_min', 'y_max'])

#: A named curve. ``samples`` is a callable without arguments returning a
#: fresh iterator of ``(x, y)`` tuples each time it is called.
SampleCurve = namedtuple('SampleCurve',
                         ['name', 'x_label', 'y_label', 'bounds', 'samples'])


def _layer_samples(top_depths, top_values, bot_depths, bot_values):
    """
    Yield the top and the bottom of every layer in turn.
    """
    for layer in zip(top_depths, top_values, bot_depths, bot_values):
        yield float(layer[0]), float(layer[1])
        yield float(layer[2]), float(layer[3])


def slowness_curve(s_mod, is_p_wave):
    """
    Depth against ray parameter for all layers of a slowness model.

    :param s_mod: The slowness model.
    :type s_mod: :class:`~seistau.slowness_model.SlownessModel`
    :param is_p_wave: Use the P (``True``) or the S (``False``) layers.
    :type is_p_wave: bool
    :rtype: :class:`SampleCurve`
    """
    layers = s_mod.p_layers if is_p_wave else s_mod.s_layers
    radius = s_mod.radius_of_planet
    max_p = float(max(np.max(layers['top_p']), np.max(layers['bot_p'])))

    def samples():
        return _layer_samples(layers['top_depth'], layers['top_p'],
                              layers['bot_depth'], layers['bot_p'])

    return SampleCurve(
        name="%s slowness" % ("P" if is_p_wave else "S"),
        x_label="Depth (km)", y_label="Ray parameter (s/rad)",
        bounds=PlotBounds(0.0, radius, 0.0, max_p), samples=samples)


def velocity_curve(v_mod, wave_type):
    """
    Depth against a material property of a velocity model.

    :param v_mod: The velocity model.
    :type v_mod: :class:`~seistau.velocity_model.VelocityModel`
    :param wave_type: ``"p"`` or ``"s"`` for the velocities, ``"d"`` for the
        density.
    :type wave_type: str
    :rtype: :class:`SampleCurve`
    """
    layers = v_mod.layers
    top = evaluate_velocity_at_top(layers, wave_type)
    bot = evaluate_velocity_at_bottom(layers, wave_type)
    max_value = float(max(np.max(top), np.max(bot)))
    if wave_type.lower() in ("p", "s"):
        name = "%s velocity" % (wave_type.upper(), )
        y_label = "Velocity (km/s)"
    else:
        name = "Density"
        y_label = "Density (g/cm^3)"

    def samples():
        return _layer_samples(layers['top_depth'], top, layers['bot_depth'],
                              bot)

    return SampleCurve(
        name=name, x_label="Depth (km)", y_label=y_label,
        bounds=PlotBounds(0.0, v_mod.radius_of_planet, 0.0, max_value),
        samples=samples)


def travel_time_curve(phase):
    """
    Distance against travel time of a phase, sampled at the ray parameters
    of the phase.

    Phases without arrivals give an empty curve with all bounds zero.

    :param phase: The seismic phase.
    :type phase: :class:`~seistau.seismic_phase.SeismicPhase`
    :rtype: :class:`SampleCurve`
    """
    dist = np.degrees(phase.dist)
    time = np.array(phase.time)
    if len(dist):
        bounds = PlotBounds(float(dist.min()), float(dist.max()),
                            float(time.min()), float(time.max()))
    else:
        bounds = PlotBounds(0.0, 0.0, 0.0, 0.0)

    def samples():
        return ((float(x), float(y)) for x, y in zip(dist, time))

    return SampleCurve(
        name=phase.name, x_label="Distance (degrees)", y_label="Time (s)",
        bounds=bounds, samples=samples)
