# -*- coding: utf-8 -*-
"""
Built-in reference earth models.

The models are defined analytically and turned into velocity model
breakpoints on request. Built tau models are cached per process since their
creation is a fairly expensive operation.
"""
import logging
import threading

import numpy as np

from .helper_classes import SamplingSettings
from .velocity_model import VelocityModel


logger = logging.getLogger("seistau.models")

#: Spacing in km of the breakpoints used to tabulate smooth model regions.
DEFAULT_SAMPLING_INTERVAL = 25.0

_IASP91_RADIUS = 6371.0

# IASP91 [KennetEngdahl1991]_ as (top radius, bottom radius, vp, vs, density)
# with the properties as polynomial coefficients in normalised radius
# x = r / 6371, lowest order first. IASP91 does not define a density, the
# coefficients are those of PREM [Dziewonski1981]_ for the same region.
_IASP91_REGIONS = [
    (6371.0, 6351.0, [5.80], [3.36], [2.6]),
    (6351.0, 6336.0, [6.50], [3.75], [2.9]),
    (6336.0, 6251.0, [8.78541, -0.74953], [6.706231, -2.248585],
     [2.6910, 0.6924]),
    (6251.0, 6161.0, [25.41389, -17.69722], [5.75020, -1.27420],
     [2.6910, 0.6924]),
    (6161.0, 5961.0, [30.78765, -23.25415], [15.24213, -11.08552],
     [7.1089, -3.8045]),
    (5961.0, 5711.0, [29.38896, -21.40656], [17.70732, -13.50652],
     [11.2494, -8.0298]),
    (5711.0, 5611.0, [25.969838, -16.934118], [20.768902, -16.531471],
     [7.9565, -6.4761, 5.5283, -3.0807]),
    (5611.0, 3631.0, [25.1486, -41.1538, 51.9932, -26.6083],
     [12.9303, -21.2590, 27.8988, -14.1080],
     [7.9565, -6.4761, 5.5283, -3.0807]),
    (3631.0, 3482.0, [14.49470, -1.47089], [8.16616, -1.58206],
     [7.9565, -6.4761, 5.5283, -3.0807]),
    (3482.0, 1217.1, [10.03904, 3.75665, -13.67046], [0.0],
     [12.5815, -1.2638, -3.6426, -5.5281]),
    (1217.1, 0.0, [11.24094, 0.0, -4.09689], [3.56454, 0.0, -3.45241],
     [13.0885, 0.0, -8.8381]),
]

# Velocity jumps smaller than this (km/s) between two regions are gradient
# changes, not discontinuities.
_CONTINUITY_TOLERANCE = 1e-3


def _tabulate_regions(regions, radius, interval):
    """
    Turn analytic regions into ``(depth, vp, vs, density)`` breakpoints.
    """
    rows = []
    for top_r, bot_r, vp, vs, rho in regions:
        count = max(int(np.ceil((top_r - bot_r) / interval)), 1) + 1
        r = np.linspace(top_r, bot_r, count)
        x = r / radius
        block = np.column_stack((
            radius - r,
            np.polynomial.polynomial.polyval(x, vp),
            np.polynomial.polynomial.polyval(x, vs),
            np.polynomial.polynomial.polyval(x, rho)))
        if rows:
            last = rows[-1][-1]
            continuous = (np.abs(last[1:] - block[0, 1:]) <
                          _CONTINUITY_TOLERANCE)
            mean = (last + block[0]) / 2.0
            if continuous[0] and continuous[1]:
                block[0] = mean
                rows[-1] = rows[-1][:-1]
            else:
                # A jump in one property must not leave a tiny jump in the
                # others, e.g. vp at the 210 km vs discontinuity.
                columns = np.concatenate(([False], continuous))
                block[0, columns] = mean[columns]
                rows[-1][-1, columns] = mean[columns]
        rows.append(block)
    return np.concatenate(rows)


def iasp91_breakpoints(interval=DEFAULT_SAMPLING_INTERVAL):
    """
    Tabulate the IASP91 model.

    :param interval: Maximum spacing of the breakpoints in km.
    :type interval: float
    :returns: Array of ``(depth, vp, vs, density)`` rows.
    :rtype: :class:`~numpy.ndarray`
    """
    return _tabulate_regions(_IASP91_REGIONS, _IASP91_RADIUS, interval)


def iasp91(interval=DEFAULT_SAMPLING_INTERVAL):
    """
    Return the IASP91 velocity model.

    :rtype: :class:`~seistau.velocity_model.VelocityModel`
    """
    return VelocityModel.from_breakpoints(
        "iasp91", iasp91_breakpoints(interval),
        radius_of_planet=_IASP91_RADIUS, moho_depth=35.0, cmb_depth=2889.0,
        iocb_depth=5153.9)


_VELOCITY_MODELS = {
    "iasp91": iasp91,
}

_TAU_MODEL_CACHE = {}
_TAU_MODEL_CACHE_LOCK = threading.Lock()


def available_models():
    """
    Return the names of the built-in models.
    """
    return sorted(_VELOCITY_MODELS)


def get_velocity_model(name):
    """
    Return the built-in velocity model of the given name.

    :raises ValueError: If no model of that name exists.
    """
    try:
        factory = _VELOCITY_MODELS[name.lower()]
    except KeyError:
        raise ValueError("Unknown model '%s', available models: %s" % (
            name, ", ".join(available_models())))
    return factory()


def get_tau_model(name, settings=None):
    """
    Return the tau model of the given built-in velocity model.

    Tau models are built once per process and settings, and then shared.
    They are never modified after creation.

    :param name: Name of the built-in model, e.g. ``"iasp91"``.
    :type name: str
    :param settings: Discretisation parameters.
    :type settings: :class:`~seistau.helper_classes.SamplingSettings`
    :rtype: :class:`~seistau.tau_model.TauModel`
    """
    from .slowness_model import SlownessModel
    from .tau_model import TauModel

    if settings is None:
        settings = SamplingSettings()
    key = (name.lower(), settings)
    with _TAU_MODEL_CACHE_LOCK:
        if key not in _TAU_MODEL_CACHE:
            logger.info("Building tau model for %s.", name)
            v_mod = get_velocity_model(name)
            _TAU_MODEL_CACHE[key] = TauModel(SlownessModel(v_mod, settings))
        return _TAU_MODEL_CACHE[key]
