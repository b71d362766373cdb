# -*- coding: utf-8 -*-
"""
seistau - Ray theoretical travel times in layered spherical models
==================================================================

:copyright:
    The ObsPy Development Team (devs@obspy.org)
:license:
    GNU Lesser General Public License, Version 3
    (https://www.gnu.org/copyleft/lesser.html)

Travel times of arbitrary seismic phases are computed with the tau-p method
of [Buland1983]_ in a 1D spherically symmetric background model. The velocity
model is discretised into slowness layers, tau and distance integrals are
tabulated per branch and phase names are interpreted as sequences of legs
through those branches.

Basic Usage
-----------

>>> from seistau import TravelTimeModel
>>> model = TravelTimeModel(model="iasp91")  # doctest: +SKIP
>>> arrivals = model.get_travel_times(source_depth_in_km=10,
...                                   distance_in_degree=35,
...                                   phase_list=["P"])  # doctest: +SKIP
>>> print(arrivals)  # doctest: +SKIP
1 arrivals
    P phase arrival at 412.4... seconds

Each :class:`~seistau.helper_classes.Arrival` carries the travel time, the
ray parameter, the take-off and incident angles as well as the source and
receiver depth.

The lower level objects can be used directly. A
:class:`~seistau.velocity_model.VelocityModel` is built from breakpoints,
discretised into a :class:`~seistau.slowness_model.SlownessModel` and turned
into a :class:`~seistau.tau_model.TauModel`:

>>> from seistau.models import get_velocity_model
>>> from seistau.slowness_model import SlownessModel
>>> from seistau.tau_model import TauModel
>>> v_mod = get_velocity_model("iasp91")
>>> tau_model = TauModel(SlownessModel(v_mod))  # doctest: +SKIP
>>> corrected = tau_model.depth_correct(100.0)  # doctest: +SKIP
>>> with_receiver = corrected.split_branch(35.0)  # doctest: +SKIP

Curves for plotting are exposed by :mod:`seistau.sampling` as lazy sequences
of ``(x, y)`` pairs.
"""
# Default parameters for velocity models and their discretisation.
_DEFAULT_VALUES = {
    "default_moho": 35,
    "default_cmb": 2889.0,
    "default_iocb": 5153.9,
    "default_radius": 6371.0,
    "density": 2.6,
    "slowness_tolerance": 1e-16,
}


from .helper_classes import (  # NOQA
    Arrival, SlownessModelError, TauModelError, SamplingSettings,
    PhaseSettings)
from .tau import TravelTimeModel, Arrivals  # NOQA


__all__ = ["TravelTimeModel", "Arrivals", "Arrival", "SlownessModelError",
           "TauModelError", "SamplingSettings", "PhaseSettings"]
