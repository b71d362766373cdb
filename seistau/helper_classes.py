# -*- coding: utf-8 -*-
"""
Holds various helper classes to keep the file number manageable.
"""
from collections import namedtuple

import numpy as np

from . import _DEFAULT_VALUES


class SlownessModelError(Exception):
    pass


class TauModelError(Exception):
    pass


SlownessLayer = np.dtype([
    ('top_p', np.float64),
    ('top_depth', np.float64),
    ('bot_p', np.float64),
    ('bot_depth', np.float64),
])


"""
Holds the ray parameter, time and distance increments, and optionally a
depth, for a ray passing through some layer.
"""
TimeDist = np.dtype([
    ('p', np.float64),
    ('time', np.float64),
    ('dist', np.float64),
    ('depth', np.float64),
])


"""
Tracks critical points (discontinuities or reversals in slowness gradient)
within slowness and velocity models.
"""
CriticalDepth = np.dtype([
    ('depth', np.float64),
    ('vel_layer_num', np.int_),
    ('p_layer_num', np.int_),
    ('s_layer_num', np.int_),
])


#: A depth range with an optional associated ray parameter. Used for high
#: slowness zones and fluid zones.
DepthRange = namedtuple('DepthRange', ['top_depth', 'bot_depth', 'ray_param'])
DepthRange.__new__.__defaults__ = (None, None, -1)


SplitLayerInfo = namedtuple(
    'SplitLayerInfo',
    ['s_mod', 'needed_split', 'moved_sample', 'ray_param']
)


#: Parameters controlling the discretisation of a velocity model into a
#: slowness model.
#:
#: * ``min_delta_p``: Minimum difference between successive slowness samples.
#:   Used to decide when to subdivide a layer.
#: * ``max_delta_p``: Maximum difference between successive slowness samples.
#: * ``max_depth_interval``: Maximum thickness of a slowness layer in km.
#: * ``max_range_interval``: Maximum distance jump in degrees between
#:   successive ray parameters.
#: * ``max_interp_error``: Maximum time error in seconds of linear
#:   interpolation along the travel time curve.
#: * ``allow_inner_core_s``: Whether S waves may propagate in the inner core.
#: * ``slowness_tolerance``: Tolerance for slowness comparisons.
#: * ``max_subdivisions``: Number of layer subdivisions after which the
#:   sampling is given up.
SamplingSettings = namedtuple('SamplingSettings', [
    'min_delta_p', 'max_delta_p', 'max_depth_interval', 'max_range_interval',
    'max_interp_error', 'allow_inner_core_s', 'slowness_tolerance',
    'max_subdivisions'])
SamplingSettings.__new__.__defaults__ = (
    0.1, 11.0, 115.0, 2.5, 0.05, True, _DEFAULT_VALUES['slowness_tolerance'],
    20000)


#: Parameters of the arrival search of a seismic phase.
#:
#: * ``max_diffraction_in_radians``: Maximum length of a diffracted leg.
#: * ``max_refraction_in_radians``: Maximum length of a head wave leg.
#: * ``max_kmps_laps``: Number of laps around the planet for surface waves
#:   given in km/s.
#: * ``refine_dist_radian_tol``: Distance tolerance of arrival refinement.
#: * ``max_recursion``: Maximum recursion depth of arrival refinement.
PhaseSettings = namedtuple('PhaseSettings', [
    'max_diffraction_in_radians', 'max_refraction_in_radians',
    'max_kmps_laps', 'refine_dist_radian_tol', 'max_recursion'])
PhaseSettings.__new__.__defaults__ = (
    np.radians(60.0), np.radians(20.0), 1, np.radians(0.0049), 5)


class Arrival(object):
    """
    Convenience class for storing parameters associated with a phase arrival.

    Arrivals are read-only once created.

    :ivar phase: Phase that generated this arrival
    :vartype phase: :class:`~seistau.seismic_phase.SeismicPhase`
    :ivar distance: Actual distance in degrees
    :vartype distance: float
    :ivar time: Travel time in seconds
    :vartype time: float
    :ivar purist_dist: Purist angular distance (great circle) in radians
    :vartype purist_dist: float
    :ivar ray_param: Ray parameter in seconds per radians
    :vartype ray_param: float
    :ivar ray_param_index: Index of the ray parameter sample just above the
        ray parameter of this arrival
    :vartype ray_param_index: int
    :ivar name: Phase name
    :vartype name: str
    :ivar purist_name: Phase name changed for true depths
    :vartype purist_name: str
    :ivar source_depth: Source depth in kilometers
    :vartype source_depth: float
    :ivar receiver_depth: Receiver depth in kilometers
    :vartype receiver_depth: float
    :ivar incident_angle: Angle (in degrees) at which the ray arrives at the
        receiver
    :vartype incident_angle: float
    :ivar takeoff_angle: Angle (in degrees) at which the ray leaves the source
    :vartype takeoff_angle: float
    """
    _fields = ('phase', 'distance', 'time', 'purist_dist', 'ray_param',
               'ray_param_index', 'name', 'purist_name', 'source_depth',
               'receiver_depth', 'takeoff_angle', 'incident_angle')
    __slots__ = _fields

    def __init__(self, phase, distance, time, purist_dist, ray_param,
                 ray_param_index, name, purist_name, source_depth,
                 receiver_depth, takeoff_angle=None, incident_angle=None):
        if np.isnan(time):
            raise ValueError('Time cannot be NaN')
        if ray_param_index < 0:
            raise ValueError(
                'ray_param_index cannot be negative: %d' % (ray_param_index, ))
        if takeoff_angle is None:
            takeoff_angle = phase.calc_takeoff_angle(ray_param)
        if incident_angle is None:
            incident_angle = phase.calc_incident_angle(ray_param)
        values = (phase, distance, time, purist_dist, ray_param,
                  ray_param_index, name, purist_name, source_depth,
                  receiver_depth, takeoff_angle, incident_angle)
        for key, value in zip(self._fields, values):
            object.__setattr__(self, key, value)

    def __setattr__(self, key, value):
        raise AttributeError("Arrival objects are read-only.")

    def __delattr__(self, key):
        raise AttributeError("Arrival objects are read-only.")

    def __str__(self):
        return "%s phase arrival at %.3f seconds" % (self.phase.name,
                                                     self.time)

    def __repr__(self):
        return "Arrival(%s, distance=%.3f, time=%.3f, ray_param=%.6f)" % (
            self.name, self.distance, self.time, self.ray_param)

    @property
    def ray_param_sec_degree(self):
        """
        Return the ray parameter in seconds per degree.
        """
        return self.ray_param * np.pi / 180.0

    @property
    def purist_distance(self):
        """
        Return the purist distance in degrees.
        """
        return self.purist_dist * 180.0 / np.pi
