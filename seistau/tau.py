# -*- coding: utf-8 -*-
"""
High-level interface to travel-time calculation routines.
"""
import logging

from .helper_classes import Arrival, PhaseSettings, TauModelError
from .models import get_tau_model
from .seismic_phase import SeismicPhase
from .tau_model import TauModel
from .utils import parse_phase_list


logger = logging.getLogger("seistau.tau")


class Arrivals(list):
    """
    List like object of arrivals returned by :class:`TravelTimeModel`
    methods.

    :param arrivals: Initial arrivals to store.
    :type arrivals: :class:`list` of
        :class:`~seistau.helper_classes.Arrival`
    :param model: The depth corrected model used to calculate the arrivals.
    :type model: :class:`~seistau.tau_model.TauModel`
    """
    __slots__ = ["model"]

    def __init__(self, arrivals, model):
        super(Arrivals, self).__init__()
        self.model = model
        self.extend(arrivals)

    def _as_arrivals(self, other):
        if isinstance(other, Arrival):
            return Arrivals([other], model=self.model)
        if not isinstance(other, Arrivals):
            raise TypeError("Only Arrival and Arrivals objects can be "
                            "added, not %s." % type(other).__name__)
        return other

    def __add__(self, other):
        other = self._as_arrivals(other)
        return self.__class__(super(Arrivals, self).__add__(other),
                              model=self.model)

    def __iadd__(self, other):
        self.extend(self._as_arrivals(other))
        return self

    def __mul__(self, num):
        if not isinstance(num, int):
            raise TypeError("Integer expected")
        return self.__class__(super(Arrivals, self).__mul__(num),
                              model=self.model)

    __rmul__ = __mul__

    def __imul__(self, num):
        if not isinstance(num, int):
            raise TypeError("Integer expected")
        return super(Arrivals, self).__imul__(num)

    def __setitem__(self, index, arrival):
        if isinstance(index, slice):
            arrival = list(arrival)
            valid = all(isinstance(x, Arrival) for x in arrival)
        else:
            valid = isinstance(arrival, Arrival)
        if not valid:
            raise TypeError('Only Arrival objects can be assigned.')
        super(Arrivals, self).__setitem__(index, arrival)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return self.__class__(super(Arrivals, self).__getitem__(index),
                                  model=self.model)
        return super(Arrivals, self).__getitem__(index)

    def __str__(self):
        return "{count} arrivals\n\t{arrivals}".format(
            count=len(self),
            arrivals="\n\t".join([str(_i) for _i in self]))

    def __repr__(self):
        return "[%s]" % (", ".join([repr(_i) for _i in self]))

    def append(self, arrival):
        if not isinstance(arrival, Arrival):
            msg = 'Append only supports a single Arrival object as argument.'
            raise TypeError(msg)
        super(Arrivals, self).append(arrival)

    def extend(self, arrivals):
        arrivals = list(arrivals)
        if not all(isinstance(x, Arrival) for x in arrivals):
            raise TypeError('Only Arrival objects can be added.')
        super(Arrivals, self).extend(arrivals)

    def copy(self):
        return self.__class__(super(Arrivals, self).copy(),
                              model=self.model)


class TravelTimeModel(object):
    """
    Representation of a seismic model and methods for travel times through
    it.

    :param model: The name of a built-in model (see
        :func:`seistau.models.available_models`) or an already created
        :class:`~seistau.tau_model.TauModel`.
    :type model: str or :class:`~seistau.tau_model.TauModel`
    :param verbose: Print log messages of the package to stderr.
    :type verbose: bool
    :param sampling_settings: Discretisation parameters used when building
        a named model.
    :type sampling_settings:
        :class:`~seistau.helper_classes.SamplingSettings`
    :param phase_settings: Parameters of the arrival search.
    :type phase_settings: :class:`~seistau.helper_classes.PhaseSettings`

    Usage:

    >>> model = TravelTimeModel()  # doctest: +SKIP
    >>> arrivals = model.get_travel_times(10, 35, ["P", "S"])  # doctest: +SKIP
    >>> arrivals[0].name  # doctest: +SKIP
    'P'
    """
    def __init__(self, model="iasp91", verbose=False, sampling_settings=None,
                 phase_settings=None):
        self.verbose = verbose
        if verbose:
            _configure_logging()
        if isinstance(model, TauModel):
            self.model = model
        else:
            self.model = get_tau_model(model, sampling_settings)
        if phase_settings is None:
            phase_settings = PhaseSettings()
        self.phase_settings = phase_settings

    def get_model(self, source_depth_in_km, receiver_depth_in_km=0.0):
        """
        Return the model corrected for the source depth and split at the
        receiver depth.

        :rtype: :class:`~seistau.tau_model.TauModel`
        """
        model = self.model.depth_correct(source_depth_in_km)
        if receiver_depth_in_km != source_depth_in_km:
            # Does nothing if already split at the receiver depth.
            model = model.split_branch(receiver_depth_in_km)
        return model

    def get_phases(self, source_depth_in_km, phase_list=("ttall",),
                   receiver_depth_in_km=0.0):
        """
        Return the seismic phases of the given names.

        Shortcuts like ``"ttbasic"`` are expanded. Phases that cannot exist
        in the model are logged and skipped.

        :rtype: list of :class:`~seistau.seismic_phase.SeismicPhase`
        """
        model = self.get_model(source_depth_in_km, receiver_depth_in_km)
        phases = []
        for name in parse_phase_list(phase_list):
            try:
                phase = SeismicPhase(name, model, receiver_depth_in_km,
                                     self.phase_settings)
            except TauModelError as e:
                logger.warning("Error with phase %s, skipping it: %s",
                               name, e)
                continue
            phases.append(phase)
        return phases

    def get_travel_times(self, source_depth_in_km, distance_in_degree,
                         phase_list=("ttall",), receiver_depth_in_km=0.0):
        """
        Return travel times of every given phase.

        :param source_depth_in_km: Source depth in km
        :type source_depth_in_km: float
        :param distance_in_degree: Epicentral distance in degrees.
        :type distance_in_degree: float
        :param phase_list: List of phases for which travel times should be
            calculated. Shortcuts such as ``"ttall"`` are expanded by
            :func:`seistau.utils.parse_phase_list`.
        :type phase_list: list of str
        :param receiver_depth_in_km: Receiver depth in km
        :type receiver_depth_in_km: float

        :return: List of ``Arrival`` objects sorted by time, each of which
            has the time, corresponding phase name, ray parameter, takeoff
            angle, etc. as attributes.
        :rtype: :class:`Arrivals`
        """
        phases = self.get_phases(source_depth_in_km, phase_list,
                                 receiver_depth_in_km)
        arrivals = []
        for phase in phases:
            arrivals += phase.calc_time(distance_in_degree)
        logger.debug("%d arrivals of %d phases at %.2f degrees.",
                     len(arrivals), len(phases), distance_in_degree)
        model = phases[0].tau_model if phases else self.model
        return Arrivals(sorted(arrivals, key=lambda x: x.time), model=model)


def _configure_logging():
    """
    Send the log messages of the package to stderr.
    """
    package_logger = logging.getLogger("seistau")
    if any(getattr(h, "_seistau_handler", False)
           for h in package_logger.handlers):
        return
    package_logger.setLevel(logging.DEBUG)
    # Prevent propagating to higher loggers.
    package_logger.propagate = 0
    # Console log handler.
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    formatter = logging.Formatter(
        "[%(asctime)s] - %(name)s - %(levelname)s: %(message)s")
    ch.setFormatter(formatter)
    ch._seistau_handler = True
    package_logger.addHandler(ch)
