# -*- coding: utf-8 -*-
"""
Functionality for dealing with a single velocity layer.
"""
import numpy as np


#: The VelocityLayer dtype stores a single layer. An entire velocity model is
#: implemented as an array of layers. Velocities and density vary linearly
#: with depth between the top and the bottom of each layer. The elements are:
#:
#: * ``top_depth``: The top depth of the layer.
#: * ``bot_depth``: The bottom depth of the layer.
#: * ``top_p_velocity``: The compressional (P) wave velocity at the top.
#: * ``bot_p_velocity``: The compressional (P) wave velocity at the bottom.
#: * ``top_s_velocity``: The shear (S) wave velocity at the top.
#: * ``bot_s_velocity``: The shear (S) wave velocity at the bottom.
#: * ``top_density``: The density at the top.
#: * ``bot_density``: The density at the bottom.
VelocityLayer = np.dtype([
    ('top_depth', np.float64),
    ('bot_depth', np.float64),
    ('top_p_velocity', np.float64),
    ('bot_p_velocity', np.float64),
    ('top_s_velocity', np.float64),
    ('bot_s_velocity', np.float64),
    ('top_density', np.float64),
    ('bot_density', np.float64),
])

# Material property code to the (top, bottom) field names of a layer.
_PROPERTY_FIELDS = {
    "p": ("top_p_velocity", "bot_p_velocity"),
    "s": ("top_s_velocity", "bot_s_velocity"),
    "r": ("top_density", "bot_density"),
    "d": ("top_density", "bot_density"),
}


def _property_fields(prop):
    try:
        return _PROPERTY_FIELDS[prop.lower()]
    except KeyError:
        raise ValueError("Unknown material property, use p, s, or d.")


def evaluate_velocity_at_bottom(layer, prop):
    """
    Evaluate material properties at bottom of a velocity layer.

    .. seealso:: :func:`evaluate_velocity_at_top`, :func:`evaluate_velocity_at`

    :param layer: The velocity layer to use for evaluation.
    :type layer: :class:`~numpy.ndarray`, dtype = :py:const:`.VelocityLayer`
    :param prop: The material property to evaluate. One of:

        * ``p``
            Compressional (P) velocity (km/s)
        * ``s``
            Shear (S) velocity (km/s)
        * ``r`` or ``d``
            Density (g/cm^3)
    :type prop: str

    :returns: The value of the material property requested.
    :rtype: :class:`~numpy.ndarray` (dtype = :class:`float`, shape equivalent
        to ``layer``)
    """
    return layer[_property_fields(prop)[1]]


def evaluate_velocity_at_top(layer, prop):
    """
    Evaluate material properties at top of a velocity layer.

    .. seealso:: :func:`evaluate_velocity_at_bottom`,
        :func:`evaluate_velocity_at`
    """
    return layer[_property_fields(prop)[0]]


def evaluate_velocity_at(layer, depth, prop):
    """
    Evaluate material properties at some depth in a velocity layer.

    .. seealso:: :func:`evaluate_velocity_at_top`,
        :func:`evaluate_velocity_at_bottom`

    :param layer: The velocity layer to use for evaluation.
    :type layer: :class:`~numpy.ndarray`, dtype = :py:const:`.VelocityLayer`
    :param depth: The depth at which the material property should be
        evaluated. Must be within the bounds of the layer or results will be
        undefined.
    :type depth: float
    :param prop: The material property to evaluate, see
        :func:`evaluate_velocity_at_bottom`.
    :type prop: str

    :returns: The value of the material property requested.
    :rtype: :class:`~numpy.ndarray` (dtype = :class:`float`, shape equivalent
        to ``layer``)
    """
    top_field, bot_field = _property_fields(prop)
    thick = layer['bot_depth'] - layer['top_depth']
    slope = (layer[bot_field] - layer[top_field]) / thick
    return slope * (depth - layer['top_depth']) + layer[top_field]
