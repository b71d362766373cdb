# -*- coding: utf-8 -*-
"""
Velocity model class.
"""
import logging

import numpy as np

from .velocity_layer import VelocityLayer, evaluate_velocity_at
from . import _DEFAULT_VALUES


logger = logging.getLogger("seistau.velocity_model")


class VelocityModel(object):
    def __init__(self, model_name, radius_of_planet, min_radius, max_radius,
                 moho_depth, cmb_depth, iocb_depth, is_spherical=True,
                 layers=None):
        """
        Object for storing a seismic planet model.

        The layers are frozen on construction, a velocity model never changes
        once it exists.

        :type model_name: str
        :param model_name: name of the velocity model.
        :type radius_of_planet: float
        :param radius_of_planet: reference radius (km), usually radius of the
            planet.
        :type min_radius: float
        :param min_radius: Minimum radius of the model (km).
        :type max_radius: float
        :param max_radius: Maximum radius of the model (km).
        :type moho_depth: float
        :param moho_depth: Depth (km) of the Moho. For phase naming, the tau
            model will choose the closest first order discontinuity.
        :type cmb_depth: float
        :param cmb_depth: Depth (km) of the CMB (core mantle boundary).
        :type iocb_depth: float
        :param iocb_depth: Depth (km) of the IOCB (inner core-outer core
            boundary).
        :type is_spherical: bool
        :param is_spherical: Is this a spherical model? Defaults to true.
        :type layers: :class:`~numpy.ndarray`
        :param layers: The layers of the model
            (dtype = :py:const:`~seistau.velocity_layer.VelocityLayer`).
        """
        self.model_name = model_name
        self.radius_of_planet = radius_of_planet
        self.moho_depth = moho_depth
        self.cmb_depth = cmb_depth
        self.iocb_depth = iocb_depth
        self.min_radius = min_radius
        self.max_radius = max_radius
        self.is_spherical = is_spherical
        self.layers = np.array(layers if layers is not None else [],
                               dtype=VelocityLayer)
        self.layers.flags.writeable = False

    def __len__(self):
        return len(self.layers)

    def is_discontinuity(self, depth):
        return np.any(self.get_discontinuity_depths() == depth)

    def _discontinuity_mask(self):
        above = self.layers[:-1]
        below = self.layers[1:]
        return np.logical_or(
            above['bot_p_velocity'] != below['top_p_velocity'],
            above['bot_s_velocity'] != below['top_s_velocity'])

    def get_discontinuity_depths(self):
        """
        Return the depths of discontinuities within the velocity model,
        including the surface and the centre.

        :rtype: :class:`~numpy.ndarray`
        """
        mask = self._discontinuity_mask()
        return np.concatenate((
            [self.layers[0]['top_depth']],
            self.layers[:-1][mask]['bot_depth'],
            [self.layers[-1]['bot_depth']]))

    def layer_number_above(self, depth):
        """
        Find the layer containing the given depth(s).

        Note this returns the upper layer if the depth happens to be at a layer
        boundary.

        .. seealso:: :meth:`layer_number_below`

        :param depth: The depth to find, in km.
        :type depth: :class:`float` or :class:`~numpy.ndarray`

        :returns: The layer number for the specified depth.
        :rtype: :class:`~numpy.ndarray` (dtype = :class:`int`,
            shape equivalent to ``depth``)
        """
        depth = np.atleast_1d(depth)
        layer = np.logical_and(
            self.layers['top_depth'][np.newaxis, :] < depth[:, np.newaxis],
            depth[:, np.newaxis] <= self.layers['bot_depth'][np.newaxis, :])
        layer = np.where(layer)[-1]
        if len(layer):
            return layer
        raise LookupError("No layer above depth %s." % (depth, ))

    def layer_number_below(self, depth):
        """
        Find the layer containing the given depth(s).

        Note this returns the lower layer if the depth happens to be at a layer
        boundary.

        .. seealso:: :meth:`layer_number_above`
        """
        depth = np.atleast_1d(depth)
        layer = np.logical_and(
            self.layers['top_depth'][np.newaxis, :] <= depth[:, np.newaxis],
            depth[:, np.newaxis] < self.layers['bot_depth'][np.newaxis, :])
        layer = np.where(layer)[-1]
        if len(layer):
            return layer
        raise LookupError("No layer below depth %s." % (depth, ))

    def evaluate_above(self, depth, prop):
        """
        Return the value of the given material property at the given depth(s).

        Note this returns the value at the bottom of the upper layer if the
        depth happens to be at a layer boundary.

        .. seealso:: :meth:`evaluate_below`

        :param depth: The depth to find, in km.
        :type depth: :class:`float` or :class:`~numpy.ndarray`
        :param prop: The material property to evaluate. One of ``p``
            (P velocity in km/s), ``s`` (S velocity in km/s), ``r`` or ``d``
            (density in g/cm^3).
        :type prop: str
        :rtype: :class:`~numpy.ndarray`
        """
        layer = self.layers[self.layer_number_above(depth)]
        return evaluate_velocity_at(layer, depth, prop)

    def evaluate_below(self, depth, prop):
        """
        Return the value of the given material property at the given depth(s).

        Note this returns the value at the top of the lower layer if the depth
        happens to be at a layer boundary.

        .. seealso:: :meth:`evaluate_above`
        """
        layer = self.layers[self.layer_number_below(depth)]
        return evaluate_velocity_at(layer, depth, prop)

    def depth_at_top(self, layer):
        """
        Return the depth at the top of the given layer number(s).
        """
        return self.layers[layer]['top_depth']

    def depth_at_bottom(self, layer):
        """
        Return the depth at the bottom of the given layer number(s).
        """
        return self.layers[layer]['bot_depth']

    def validate(self):
        """
        Perform internal consistency checks on the velocity model.

        :returns: True if the model is consistent.
        :raises ValueError: If the model is inconsistent.
        """
        if self.radius_of_planet <= 0.0:
            raise ValueError("Radius of the planet is not positive: %f" % (
                self.radius_of_planet, ))
        if self.moho_depth < 0.0:
            raise ValueError("moho_depth is not non-negative: %f" % (
                self.moho_depth, ))
        if self.cmb_depth < self.moho_depth:
            raise ValueError("cmb_depth (%f) < moho_depth (%f)" % (
                self.cmb_depth, self.moho_depth))
        if self.cmb_depth <= 0.0:
            raise ValueError("cmb_depth is not positive: %f" % (
                self.cmb_depth, ))
        if self.iocb_depth < self.cmb_depth:
            raise ValueError("iocb_depth (%f) < cmb_depth (%f)" % (
                self.iocb_depth, self.cmb_depth))
        if self.min_radius < 0.0:
            raise ValueError("min_radius is not non-negative: %f " % (
                self.min_radius, ))
        if self.max_radius <= self.min_radius:
            raise ValueError("max_radius (%f) <= min_radius (%f)" % (
                self.max_radius, self.min_radius))
        if not len(self.layers):
            raise ValueError("Velocity model %s has no layers." % (
                self.model_name, ))

        layers = self.layers
        checks = [
            (layers[:-1]['bot_depth'] != layers[1:]['top_depth'],
             "There is a gap in the velocity model below layer(s) %s"),
            (layers['bot_depth'] <= layers['top_depth'],
             "There is a zero or negative thickness layer in the velocity "
             "model at layer(s) %s"),
            ((layers['top_p_velocity'] <= 0.0) |
             (layers['bot_p_velocity'] <= 0.0),
             "There is a non-positive P velocity layer in the velocity "
             "model at layer(s) %s"),
            ((layers['top_s_velocity'] < 0.0) |
             (layers['bot_s_velocity'] < 0.0),
             "There is a negative S velocity layer in the velocity model at "
             "layer(s) %s"),
            ((layers['top_density'] <= 0.0) | (layers['bot_density'] <= 0.0),
             "There is a non-positive density layer in the velocity model at "
             "layer(s) %s"),
            # A layer going to zero S velocity without a discontinuity would
            # cause a division by zero within the layer.
            (((layers['top_s_velocity'] == 0.0) !=
              (layers['bot_s_velocity'] == 0.0)) &
             (layers['top_depth'] != 0),
             "There is a layer that goes to zero S velocity without a "
             "discontinuity in the velocity model at layer(s) %s"),
        ]
        for mask, msg in checks:
            probs = np.where(mask)[0]
            if probs.size:
                raise ValueError(msg % (probs, ) + "\n%s" % (layers[probs], ))
        return True

    def __str__(self):
        desc = ("model_name=%s\n radius_of_planet=%s\n moho_depth=%s\n "
                "cmb_depth=%s\n iocb_depth=%s\n min_radius=%s\n "
                "max_radius=%s\n spherical=%s")
        return desc % (self.model_name, self.radius_of_planet,
                       self.moho_depth, self.cmb_depth, self.iocb_depth,
                       self.min_radius, self.max_radius, self.is_spherical)

    @classmethod
    def from_breakpoints(cls, model_name, breakpoints, radius_of_planet=None,
                         moho_depth=None, cmb_depth=None, iocb_depth=None):
        """
        Create a velocity model from an ordered sequence of breakpoints.

        Each breakpoint is a ``(depth, p_velocity, s_velocity, density)``
        tuple. Properties vary linearly between consecutive breakpoints. A
        depth listed twice marks a first order discontinuity, the first row
        holding the values above it and the second the values below.

        :param model_name: Name of the model.
        :type model_name: str
        :param breakpoints: The breakpoints, ordered by depth.
        :type breakpoints: sequence of tuples or :class:`~numpy.ndarray`
        :param radius_of_planet: Radius in km, defaults to the deepest
            breakpoint.
        :type radius_of_planet: float
        :param moho_depth: Approximate Moho depth in km. It is snapped to the
            closest discontinuity.
        :type moho_depth: float
        :param cmb_depth: Approximate core mantle boundary depth in km.
        :type cmb_depth: float
        :param iocb_depth: Approximate inner core boundary depth in km.
        :type iocb_depth: float

        :raises ValueError: If the breakpoints do not describe a valid model.
        """
        data = np.array(breakpoints, dtype=np.float64)
        if data.ndim != 2 or data.shape[0] < 2:
            raise ValueError("At least two breakpoints are needed.")
        if data.shape[1] < 4:
            raise ValueError("Top density not specified.")
        if np.any(np.diff(data[:, 0]) < 0.0):
            raise ValueError("Breakpoint depths are not ordered: %s" % (
                data[:, 0], ))
        mask = data[:, 2] > data[:, 1]
        if np.any(mask):
            raise ValueError(
                "S velocity is greater than the P velocity\n" +
                str(data[mask]))

        layers = np.empty(data.shape[0] - 1, dtype=VelocityLayer)
        layers['top_depth'] = data[:-1, 0]
        layers['bot_depth'] = data[1:, 0]
        layers['top_p_velocity'] = data[:-1, 1]
        layers['bot_p_velocity'] = data[1:, 1]
        layers['top_s_velocity'] = data[:-1, 2]
        layers['bot_s_velocity'] = data[1:, 2]
        layers['top_density'] = data[:-1, 3]
        layers['bot_density'] = data[1:, 3]

        # Don't use zero thickness layers; first order discontinuities are
        # taken care of by storing top and bottom depths.
        layers = layers[layers['top_depth'] != layers['bot_depth']]

        if radius_of_planet is None:
            radius_of_planet = data[-1, 0]
        v_mod = cls(
            model_name=model_name,
            radius_of_planet=radius_of_planet,
            min_radius=radius_of_planet - data[-1, 0],
            max_radius=radius_of_planet - data[0, 0],
            moho_depth=(_DEFAULT_VALUES["default_moho"]
                        if moho_depth is None else moho_depth),
            cmb_depth=(_DEFAULT_VALUES["default_cmb"]
                       if cmb_depth is None else cmb_depth),
            iocb_depth=(_DEFAULT_VALUES["default_iocb"]
                        if iocb_depth is None else iocb_depth),
            is_spherical=True,
            layers=layers)
        v_mod.fix_discontinuity_depths()
        v_mod.validate()
        logger.debug("Created velocity model %s with %d layers.",
                     model_name, len(v_mod))
        return v_mod

    def fix_discontinuity_depths(self):
        """
        Reset depths of major discontinuities.

        The depths are set to match those existing in the input velocity model.
        The initial values are set such that if there is no discontinuity
        within the top 65 km then the Moho is set to 0.0. Similarly, if there
        are no discontinuities at all then the CMB is set to the radius of the
        planet. Similarly for the IOCB, except it must be a fluid to solid
        boundary and deeper than 100 km to avoid problems with shallower fluid
        layers, e.g., oceans.

        Only meant to be called while a model is being assembled.

        :returns: Whether any of the depths changed.
        :rtype: bool
        """
        moho_min = 65.0
        cmb_min = self.radius_of_planet
        iocb_min = self.radius_of_planet - 100.0

        above = self.layers[:-1]
        below = self.layers[1:]
        mask = self._discontinuity_mask()

        def closest(target, limit, extra_mask=None):
            diff = np.abs(target - above['bot_depth'])
            diff[~mask] = limit
            if extra_mask is not None:
                diff[extra_mask] = limit
            if not len(diff):
                return None
            index = np.argmin(diff)
            if diff[index] < limit:
                return above[index]['bot_depth']
            return None

        moho = closest(self.moho_depth, moho_min)
        cmb = closest(self.cmb_depth, cmb_min)
        # IOCB must transition from S==0 to S!=0.
        iocb = closest(self.iocb_depth, iocb_min,
                       (above['bot_s_velocity'] != 0.0) |
                       (below['top_s_velocity'] <= 0.0))

        new_moho = 0.0 if moho is None else moho
        new_cmb = self.radius_of_planet if cmb is None else cmb
        new_iocb = self.radius_of_planet if iocb is None else iocb
        if new_cmb == new_iocb:
            new_iocb = self.radius_of_planet

        change_made = (self.moho_depth != new_moho or
                       self.cmb_depth != new_cmb or
                       self.iocb_depth != new_iocb)
        self.moho_depth = new_moho
        self.cmb_depth = new_cmb
        self.iocb_depth = new_iocb
        return change_made
