# -*- coding: utf-8 -*-
"""
Objects and functions dealing with seismic phases.
"""
from collections import namedtuple
import logging
import math
import re

import numpy as np

from .helper_classes import (Arrival, PhaseSettings, SlownessModelError,
                             TauModelError)


logger = logging.getLogger("seistau.seismic_phase")

# How the path leaves the end branch of a call to add_to_branch.
# The path turns within the end branch, i.e. goes from downward to upward.
_TURN = "turn"
# The path reflects off the top of the end of a segment, ie ^.
_REFLECT_UNDERSIDE = "reflect_underside"
# The path reflects off the bottom of the end of a segment, ie v.
_REFLECT_TOPSIDE = "reflect_topside"
# The path transmits up through the end of a segment.
_TRANSUP = "transup"
# The path transmits down through the end of a segment.
_TRANSDOWN = "transdown"

_INTERACTIONS = {
    _TURN: "turn",
    _REFLECT_UNDERSIDE: "underside_reflect",
    _REFLECT_TOPSIDE: "reflect",
    _TRANSUP: "transmit",
    _TRANSDOWN: "transmit",
}

#: One segment of a phase path. ``wave_type`` is one of ``P``, ``S``, ``K``,
#: ``I`` and ``J``; ``interaction`` describes how the segment ends and is one
#: of ``turn``, ``reflect``, ``underside_reflect``, ``transmit``,
#: ``diffract``, ``head`` and ``end``.
Leg = namedtuple('Leg', ['name', 'wave_type', 'is_down', 'interaction'])

_NON_BODY_WAVES = ('Pdiff', 'Sdiff', 'Pn', 'Sn')


def _is_p_wave_leg(leg, previous):
    """
    Wave type of a leg; legs without one keep the previous type.

    K keeps the type of the last leg so the correct max_ray_param of the
    outer core branches is used: K has a high slowness zone if it entered
    the outer core as a mantle P wave, but not as a mantle S wave.
    """
    if leg in ("p", "k", "I") or leg[0] == "P":
        return True
    elif leg in ("s", "J") or leg[0] == "S":
        return False
    return previous


def _leg_depth(leg):
    try:
        return float(leg)
    except ValueError:
        return None


class SeismicPhase(object):
    """
    Stores and transforms seismic phase names to and from their
    corresponding sequence of branches.

    Nomenclature: "K" - downgoing wave from source in core; "k" - upgoing
    wave from source in core.

    :param name: The phase name, e.g. ``PKiKP``.
    :type name: str
    :param tau_model: The tau model, depth corrected for the source and split
        at the receiver depth.
    :type tau_model: :class:`~seistau.tau_model.TauModel`
    :param receiver_depth: The receiver depth in km.
    :type receiver_depth: float
    :param settings: Limits of diffracted and head waves and of the arrival
        refinement.
    :type settings: :class:`~seistau.helper_classes.PhaseSettings`

    :raises TauModelError: If the name cannot be parsed or makes no sense in
        the model.
    """
    def __init__(self, name, tau_model, receiver_depth=0.0, settings=None):
        self.name = name
        # Normally 0.0 for a surface station, but can be different for
        # borehole calculations.
        self.receiver_depth = receiver_depth
        self.tau_model = tau_model
        self.source_depth = self.tau_model.source_depth
        if settings is None:
            settings = PhaseSettings()
        self.settings = settings

        # List containing strings for each leg.
        self.legs = leg_puller(name)

        # Name with depths corrected to be actual discontinuities in the model.
        self.purist_name = self.create_purist_name(tau_model)

        # Minimum/maximum ray parameters that exist for this phase.
        self.min_ray_param = None
        self.max_ray_param = None
        # Indices within TauModel.ray_params of max_ray_param and
        # min_ray_param. Note that max_ray_param_index < min_ray_param_index
        # as ray parameter decreases with increasing index.
        self.max_ray_param_index = -1
        self.min_ray_param_index = -1
        # Branch number to continue adding to the branch sequence from.
        self.current_branch = None
        # Distances and times of the ray parameters stored in ray_param.
        self.dist = None
        self.time = None
        # Possible ray parameters for this phase.
        self.ray_param = None
        # The range of distances this phase can theoretically be observed at.
        self.min_distance = 0.0
        self.max_distance = 1e300
        # Branch numbers for the given phase, together with the direction
        # and wave type in each of them. This depends upon both the planet
        # model and the source depth.
        self.branch_seq = []
        self.down_going = []
        self.wave_type = []
        # The segments of the path as Leg tuples.
        self.leg_sequence = []

        self._end_action = None
        self._leg_name = None

        self.parse_name(tau_model)
        self.sum_branches(tau_model)

    def __str__(self):
        return "%s (%s): %d ray parameters, %.2f to %.2f degrees" % (
            self.name, self.purist_name, len(self.ray_param),
            np.degrees(self.min_distance), np.degrees(self.max_distance))

    def _is_surface_wave(self):
        return len(self.legs) == 2 and self.legs[0].endswith("kmps")

    def _is_non_body_wave(self):
        return self.name.endswith("kmps") or any(
            phase in self.name for phase in _NON_BODY_WAVES)

    def create_purist_name(self, tau_model):
        """
        Return the phase name with numeric depths replaced by the depth of
        the discontinuity of the model they refer to.
        """
        if self._is_surface_wave():
            return self.name
        purist_name = ""
        # The last leg is always "END".
        for current_leg in self.legs[:-1]:
            if current_leg[0] in "v^":
                discon_branch = closest_branch_to_depth(tau_model,
                                                        current_leg[1:])
                leg_depth = tau_model.tau_branches[0][discon_branch].top_depth
                purist_name += current_leg[0] + str(int(round(leg_depth)))
            elif _leg_depth(current_leg) is not None:
                discon_branch = closest_branch_to_depth(tau_model,
                                                        current_leg)
                leg_depth = tau_model.tau_branches[0][discon_branch].top_depth
                purist_name += str(int(round(leg_depth)))
            else:
                purist_name += current_leg
        return purist_name

    def _no_arrivals(self):
        self.max_ray_param = -1
        self.min_ray_param = -1
        return False

    def _phase_not_recognized(self, *legs):
        raise TauModelError("Phase not recognized: %s in %s" % (
            " followed by ".join(legs), self.name))

    def parse_name(self, tau_model):
        """
        Construct a branch sequence from the given phase name and tau model.
        """
        first_leg = self.legs[0]
        if self._is_surface_wave():
            return

        if "J" in self.name and not tau_model.s_mod.allow_inner_core_s:
            raise TauModelError(
                "J phases are not created for this model: %s" % (self.name, ))

        if first_leg in ("p", "K", "k", "I") or first_leg[0] == "P":
            is_p_wave = True
        elif first_leg in ("s", "J") or first_leg[0] == "S":
            is_p_wave = False
        else:
            raise TauModelError('Unknown starting phase: ' + first_leg)

        # A ray upgoing at the receiver ends in the branch below the
        # receiver, a downgoing one in the branch above.
        self._upgoing_rec_branch = tau_model.find_branch(self.receiver_depth)
        self._downgoing_rec_branch = self._upgoing_rec_branch - 1

        if first_leg[0] in "sS" and \
                tau_model.cmb_depth < self.source_depth < tau_model.iocb_depth:
            # No S sources in fluids.
            self._no_arrivals()
            return

        # max_ray_param is a horizontal ray leaving the source and
        # min_ray_param a vertical (p=0) ray.
        s_mod = tau_model.s_mod
        if first_leg[0] in "PS":
            # Downgoing from source. Treat the initial downgoing leg as if it
            # were an underside reflection.
            self.current_branch = tau_model.source_branch
            self._end_action = _REFLECT_UNDERSIDE
            self.max_ray_param = tau_model.get_tau_branch(
                tau_model.source_branch, is_p_wave).max_ray_param
        elif first_leg in ("p", "s"):
            # Upgoing from source: treat the initial leg as if it were a
            # topside reflection.
            self._end_action = _REFLECT_TOPSIDE
            layer = s_mod.get_slowness_layer(
                s_mod.layer_number_above(self.source_depth, is_p_wave),
                is_p_wave)
            self.max_ray_param = layer['bot_p']
            if tau_model.source_branch == 0:
                # p and s for zero source depth are only at zero distance
                # and then can be called P or S.
                self._no_arrivals()
                return
            self.current_branch = tau_model.source_branch - 1
        else:
            raise TauModelError(
                'First phase not recognised %s: Must be one of P, Pg, Pn, '
                'Pdiff, p, Ped or the S equivalents.' % (first_leg, ))

        if self.receiver_depth != 0:
            if self.legs[-2] in ('Ped', 'Sed'):
                # Downgoing at the receiver, so no turning above it.
                rec_branch = tau_model.get_tau_branch(
                    self._downgoing_rec_branch, is_p_wave)
                limit = rec_branch.min_turn_ray_param
            else:
                # Upgoing at the receiver, so the ray must reach the branch
                # below it.
                rec_branch = tau_model.get_tau_branch(
                    self._upgoing_rec_branch, is_p_wave)
                limit = rec_branch.max_ray_param
            self.max_ray_param = min(limit, self.max_ray_param)

        self.min_ray_param = 0

        # Loop over all the phase legs and construct the branch sequence.
        current_leg = "START"
        next_leg = first_leg
        is_next_leg_depth = False
        for leg_num in range(len(self.legs) - 1):
            prev_leg = current_leg
            current_leg = next_leg
            next_leg = self.legs[leg_num + 1]
            is_leg_depth = is_next_leg_depth
            next_leg_depth = _leg_depth(next_leg)
            is_next_leg_depth = next_leg_depth is not None
            self._leg_name = current_leg

            is_p_wave_previous = is_p_wave
            is_p_wave = _is_p_wave_leg(current_leg, is_p_wave)
            if self.branch_seq and is_p_wave_previous != is_p_wave:
                self.phase_conversion(tau_model, self.branch_seq[-1],
                                      self._end_action, is_p_wave_previous)

            if current_leg in ('Ped', 'Sed'):
                ok = self._parse_receiver_leg(tau_model, current_leg,
                                              next_leg, is_p_wave)
            elif current_leg in ("p", "s", "k"):
                ok = self._parse_upgoing_leg(tau_model, current_leg, next_leg,
                                             is_next_leg_depth, is_p_wave)
            elif current_leg in ("P", "S"):
                ok = self._parse_mantle_leg(tau_model, leg_num, prev_leg,
                                            current_leg, next_leg,
                                            next_leg_depth, is_p_wave)
            elif current_leg[0] in "PS":
                ok = self._parse_composite_leg(tau_model, current_leg,
                                               next_leg, is_p_wave)
            elif current_leg == "K":
                ok = self._parse_outer_core_leg(tau_model, prev_leg,
                                                current_leg, next_leg,
                                                is_p_wave)
            elif current_leg in ("I", "J"):
                ok = self._parse_inner_core_leg(tau_model, next_leg,
                                                is_p_wave)
            elif current_leg in ("m", "c", "i") or current_leg[0] == "^":
                ok = True
            elif current_leg[0] == "v":
                if closest_branch_to_depth(tau_model, current_leg[1:]) == 0:
                    raise TauModelError(
                        "Phase not recognized: %s looks like a top side "
                        "reflection at the free surface." % (current_leg, ))
                ok = True
            elif is_leg_depth:
                # Phases like P0s, but could also be P2s if the first
                # discontinuity is deeper.
                b = closest_branch_to_depth(tau_model, current_leg)
                if b == 0 and next_leg in ("p", "s"):
                    raise TauModelError(
                        "Phase not recognized: %s followed by %s looks like "
                        "an upgoing wave from the free surface as closest "
                        "discontinuity to %s is zero depth." % (
                            current_leg, next_leg, current_leg))
                ok = True
            else:
                self._phase_not_recognized(current_leg, next_leg)
            if not ok:
                return

        if self.max_ray_param != -1 and self.branch_seq:
            if (self._end_action == _REFLECT_UNDERSIDE and
                    self._downgoing_rec_branch == self.branch_seq[-1]):
                # Last action was upgoing, so the last branch should be the
                # upgoing receiver branch.
                self._no_arrivals()
            elif (self._end_action == _REFLECT_TOPSIDE and
                    self._upgoing_rec_branch == self.branch_seq[-1]):
                # Last action was downgoing, so the last branch should be the
                # downgoing receiver branch.
                self._no_arrivals()
            elif self.leg_sequence:
                self.leg_sequence[-1] = self.leg_sequence[-1]._replace(
                    interaction="end")

    def _parse_receiver_leg(self, tau_model, current_leg, next_leg,
                            is_p_wave):
        # Ped and Sed arrive downgoing at a buried receiver.
        if next_leg != "END":
            self._phase_not_recognized(current_leg, next_leg)
        if self.receiver_depth <= 0:
            # Only possible at 0 distance for a 0 depth source, which can be
            # called p or P.
            return self._no_arrivals()
        self._add(tau_model, self._downgoing_rec_branch, is_p_wave,
                  _REFLECT_TOPSIDE)
        return True

    def _parse_upgoing_leg(self, tau_model, current_leg, next_leg,
                           is_next_leg_depth, is_p_wave):
        if next_leg[0] == "v":
            raise TauModelError(
                "p and s must always be upgoing and cannot come "
                "immediately before a top-sided reflection.")
        elif next_leg.startswith("^"):
            discon_branch = closest_branch_to_depth(tau_model, next_leg[1:])
            if self.current_branch < discon_branch:
                self._phase_not_recognized(current_leg, next_leg)
            self._add(tau_model, discon_branch, is_p_wave, _REFLECT_UNDERSIDE)
        elif next_leg == "m" and \
                self.current_branch >= tau_model.moho_branch:
            self._add(tau_model, tau_model.moho_branch, is_p_wave, _TRANSUP)
        elif next_leg[0] in ("P", "S") or next_leg in ("K", "END"):
            if next_leg == 'END':
                discon_branch = self._upgoing_rec_branch
            elif next_leg == 'K':
                discon_branch = tau_model.cmb_branch
            else:
                discon_branch = 0
            if current_leg == 'k' and next_leg != 'K':
                end_action = _TRANSUP
            else:
                end_action = _REFLECT_UNDERSIDE
            self._add(tau_model, discon_branch, is_p_wave, end_action)
        elif is_next_leg_depth:
            discon_branch = closest_branch_to_depth(tau_model, next_leg)
            self._add(tau_model, discon_branch, is_p_wave, _TRANSUP)
        else:
            self._phase_not_recognized(current_leg, next_leg)
        return True

    def _parse_mantle_leg(self, tau_model, leg_num, prev_leg, current_leg,
                          next_leg, next_leg_depth, is_p_wave):
        cmb_branch = tau_model.cmb_branch
        if next_leg in ("P", "S", "Pn", "Sn", "END"):
            if self._end_action in (_TRANSDOWN, _REFLECT_UNDERSIDE):
                # Was downgoing, so must first turn in mantle.
                self._add(tau_model, cmb_branch - 1, is_p_wave, _TURN)
            if next_leg == 'END':
                self._add(tau_model, self._upgoing_rec_branch, is_p_wave,
                          _REFLECT_UNDERSIDE)
            else:
                self._add(tau_model, 0, is_p_wave, _REFLECT_UNDERSIDE)
        elif next_leg[0] == "v":
            discon_branch = closest_branch_to_depth(tau_model, next_leg[1:])
            if self.current_branch > discon_branch - 1:
                self._phase_not_recognized(current_leg, next_leg)
            self._add(tau_model, discon_branch - 1, is_p_wave,
                      _REFLECT_TOPSIDE)
        elif next_leg[0] == "^":
            discon_branch = closest_branch_to_depth(tau_model, next_leg[1:])
            if prev_leg == "K":
                self._add(tau_model, discon_branch, is_p_wave,
                          _REFLECT_UNDERSIDE)
            elif prev_leg[0] == "^" or prev_leg in ("P", "S", "p", "s",
                                                    "START"):
                self._add(tau_model, cmb_branch - 1, is_p_wave, _TURN)
                self._add(tau_model, discon_branch, is_p_wave,
                          _REFLECT_UNDERSIDE)
            elif ((prev_leg[0] == "v" and discon_branch <
                   closest_branch_to_depth(tau_model, prev_leg[1:])) or
                  (prev_leg == "m" and
                   discon_branch < tau_model.moho_branch) or
                  (prev_leg == "c" and discon_branch < cmb_branch)):
                self._add(tau_model, discon_branch, is_p_wave,
                          _REFLECT_UNDERSIDE)
            else:
                self._phase_not_recognized(current_leg, next_leg)
        elif next_leg == "c":
            self._add(tau_model, cmb_branch - 1, is_p_wave, _REFLECT_TOPSIDE)
        elif next_leg == "K":
            self._add(tau_model, cmb_branch - 1, is_p_wave, _TRANSDOWN)
        elif next_leg == "m" or (next_leg_depth is not None and
                                 next_leg_depth < tau_model.cmb_depth):
            # The Moho is treated like 410 type discontinuities.
            discon_branch = closest_branch_to_depth(tau_model, next_leg)
            if self._end_action in (_TURN, _REFLECT_TOPSIDE, _TRANSUP):
                # Upgoing section, the discontinuity must be above.
                if discon_branch > self.current_branch:
                    self._phase_not_recognized(current_leg, next_leg)
                self._add(tau_model, discon_branch, is_p_wave, _TRANSUP)
            else:
                # Downgoing section, the leg after next decides whether to
                # convert on the downgoing or upgoing part of the path.
                next_next_leg = self.legs[leg_num + 2]
                if next_next_leg in ("p", "s"):
                    self._add(tau_model, cmb_branch - 1, is_p_wave, _TURN)
                    self._add(tau_model, discon_branch, is_p_wave, _TRANSUP)
                elif next_next_leg in ("P", "S"):
                    if discon_branch <= self.current_branch:
                        # Discontinuity above a downgoing ray, illegal for
                        # this source depth.
                        return self._no_arrivals()
                    self._add(tau_model, discon_branch - 1, is_p_wave,
                              _TRANSDOWN)
                else:
                    self._phase_not_recognized(current_leg, next_leg,
                                               next_next_leg)
        else:
            self._phase_not_recognized(current_leg, next_leg)
        return True

    def _parse_composite_leg(self, tau_model, current_leg, next_leg,
                             is_p_wave):
        if current_leg in ("Pdiff", "Sdiff"):
            # Pretend to turn at the CMB, then make max_ray_param equal to
            # min_ray_param, which is the deepest turning ray.
            diffracted = tau_model.get_tau_branch(tau_model.cmb_branch - 1,
                                                  is_p_wave)
            if not (self.max_ray_param >= diffracted.min_turn_ray_param >=
                    self.min_ray_param):
                return self._no_arrivals()
            self._add(tau_model, tau_model.cmb_branch - 1, is_p_wave, _TURN)
            self.leg_sequence[-1] = self.leg_sequence[-1]._replace(
                interaction="diffract")
            self.max_ray_param = self.min_ray_param
            self._add_final_upgoing(tau_model, next_leg, is_p_wave)
        elif current_leg in ("Pg", "Sg", "Pn", "Sn"):
            if self.current_branch >= tau_model.moho_branch:
                # Must start above the moho, which rays coming from below,
                # possibly due to the source depth, do not.
                return self._no_arrivals()
            if current_leg in ("Pg", "Sg"):
                self._add(tau_model, tau_model.moho_branch - 1, is_p_wave,
                          _TURN)
                self._add(tau_model, self._upgoing_rec_branch, is_p_wave,
                          _REFLECT_UNDERSIDE)
            else:
                # Pretend to turn below the Moho, then make min_ray_param
                # equal to max_ray_param, which is the head wave ray.
                head = tau_model.get_tau_branch(tau_model.moho_branch,
                                                is_p_wave)
                if not (self.max_ray_param >= head.max_ray_param >=
                        self.min_ray_param):
                    return self._no_arrivals()
                self._add(tau_model, tau_model.moho_branch, is_p_wave, _TURN)
                self._add(tau_model, tau_model.moho_branch, is_p_wave,
                          _TRANSUP)
                self.leg_sequence[-1] = self.leg_sequence[-1]._replace(
                    interaction="head")
                self.min_ray_param = self.max_ray_param
                self._add_final_upgoing(tau_model, next_leg, is_p_wave)
        else:
            self._phase_not_recognized(current_leg, next_leg)
        return True

    def _add_final_upgoing(self, tau_model, next_leg, is_p_wave):
        if next_leg == "END":
            self._add(tau_model, self._upgoing_rec_branch, is_p_wave,
                      _REFLECT_UNDERSIDE)
        elif next_leg[0] in "PS":
            self._add(tau_model, 0, is_p_wave, _REFLECT_UNDERSIDE)

    def _parse_outer_core_leg(self, tau_model, prev_leg, current_leg,
                              next_leg, is_p_wave):
        iocb_branch = tau_model.iocb_branch
        if next_leg in ("P", "S"):
            if prev_leg in ("P", "S", "K", "k", "START"):
                self._add(tau_model, iocb_branch - 1, is_p_wave, _TURN)
            self._add(tau_model, tau_model.cmb_branch, is_p_wave, _TRANSUP)
        elif next_leg == "K":
            if prev_leg in ("P", "S", "K"):
                self._add(tau_model, iocb_branch - 1, is_p_wave, _TURN)
            self._add(tau_model, tau_model.cmb_branch, is_p_wave,
                      _REFLECT_UNDERSIDE)
        elif next_leg in ("I", "J"):
            self._add(tau_model, iocb_branch - 1, is_p_wave, _TRANSDOWN)
        elif next_leg == "i":
            self._add(tau_model, iocb_branch - 1, is_p_wave, _REFLECT_TOPSIDE)
        else:
            self._phase_not_recognized(current_leg, next_leg)
        return True

    def _parse_inner_core_leg(self, tau_model, next_leg, is_p_wave):
        self._add(tau_model, len(tau_model.tau_branches[0]) - 1, is_p_wave,
                  _TURN)
        if next_leg in ("I", "J"):
            self._add(tau_model, tau_model.iocb_branch, is_p_wave,
                      _REFLECT_UNDERSIDE)
        elif next_leg == "K":
            self._add(tau_model, tau_model.iocb_branch, is_p_wave, _TRANSUP)
        return True

    def _add(self, tau_model, end_branch, is_p_wave, end_action):
        self._end_action = end_action
        self.add_to_branch(tau_model, self.current_branch, end_branch,
                           is_p_wave, end_action)

    def phase_conversion(self, tau_model, from_branch, end_action, is_p_to_s):
        """
        Change max_ray_param and min_ray_param where there is a phase
        conversion.

        For instance, SKP needs to change the max_ray_param because there are
        SKS ray parameters that cannot propagate from the CMB into the mantle
        as a P wave.
        """
        branch = tau_model.get_tau_branch(from_branch, is_p_to_s)
        if end_action == _TURN:
            raise TauModelError("Bad end_action: phase conversion is not "
                                "allowed at turn points.")
        elif end_action == _REFLECT_UNDERSIDE:
            other = tau_model.get_tau_branch(from_branch, not is_p_to_s)
            limits = (branch.max_ray_param, other.max_ray_param)
        elif end_action == _REFLECT_TOPSIDE:
            other = tau_model.get_tau_branch(from_branch, not is_p_to_s)
            limits = (branch.min_turn_ray_param, other.min_turn_ray_param)
        elif end_action == _TRANSUP:
            other = tau_model.get_tau_branch(from_branch - 1, not is_p_to_s)
            limits = (branch.max_ray_param, other.min_turn_ray_param)
        elif end_action == _TRANSDOWN:
            other = tau_model.get_tau_branch(from_branch + 1, not is_p_to_s)
            limits = (branch.min_ray_param, other.max_ray_param)
        else:
            raise TauModelError("Illegal end_action = %s" % (end_action, ))
        self.max_ray_param = min(self.max_ray_param, *limits)

    def add_to_branch(self, tau_model, start_branch, end_branch, is_p_wave,
                      end_action):
        """
        Add branch numbers to branch_seq.

        Branches from start_branch to end_branch, inclusive, are added in
        order. Also, current_branch is set correctly based on the value of
        end_action. end_action can be one of transup, transdown,
        reflect_underside, reflect_topside, or turn.
        """
        if end_branch < 0 or end_branch > len(tau_model.tau_branches[0]):
            raise TauModelError('End branch outside range: %d' % (
                end_branch, ))
        branch = tau_model.get_tau_branch(end_branch, is_p_wave)
        if end_action == _TURN:
            end_offset = 0
            is_down_going = True
            self.min_ray_param = max(self.min_ray_param,
                                     branch.min_turn_ray_param)
        elif end_action == _REFLECT_UNDERSIDE:
            end_offset = 0
            is_down_going = False
            self.max_ray_param = min(self.max_ray_param, branch.max_ray_param)
        elif end_action == _REFLECT_TOPSIDE:
            end_offset = 0
            is_down_going = True
            self.max_ray_param = min(self.max_ray_param,
                                     branch.min_turn_ray_param)
        elif end_action == _TRANSUP:
            end_offset = -1
            is_down_going = False
            self.max_ray_param = min(self.max_ray_param, branch.max_ray_param)
        elif end_action == _TRANSDOWN:
            end_offset = 1
            is_down_going = True
            self.max_ray_param = min(self.max_ray_param, branch.min_ray_param)
        else:
            raise TauModelError("Illegal end_action: %s" % (end_action, ))

        if is_down_going:
            branches = range(start_branch, end_branch + 1)
        else:
            branches = range(start_branch, end_branch - 1, -1)
        if not len(branches):
            # Can't go down from below or up from above the end branch.
            self.min_ray_param = -1
            self.max_ray_param = -1
        for i in branches:
            self.branch_seq.append(i)
            self.down_going.append(is_down_going)
            self.wave_type.append(is_p_wave)
        leg_name = self._leg_name or ("P" if is_p_wave else "S")
        if leg_name in ("K", "k", "I", "J"):
            wave_type = leg_name.upper()
        else:
            wave_type = "P" if is_p_wave else "S"
        self.leg_sequence.append(Leg(leg_name, wave_type, is_down_going,
                                     _INTERACTIONS[end_action]))
        self.current_branch = end_branch + end_offset

    def _no_arrival_tables(self):
        self.ray_param = np.empty(0)
        self.min_ray_param = -1
        self.max_ray_param = -1
        self.dist = np.empty(0)
        self.time = np.empty(0)
        self.max_distance = -1

    def sum_branches(self, tau_model):
        """
        Sum the appropriate branches for this phase.
        """
        if self.name.endswith("kmps"):
            # Surface waves of constant velocity.
            velocity = float(self.name[:-4])
            laps = self.settings.max_kmps_laps
            ray_param = tau_model.radius_of_planet / velocity
            self.ray_param = np.array([ray_param, ray_param])
            self.min_ray_param = self.max_ray_param = ray_param
            self.dist = np.array([0.0, 2 * math.pi * laps])
            self.time = self.dist * tau_model.radius_of_planet / velocity
            self.min_distance = 0
            self.max_distance = 2 * math.pi * laps
            self.down_going.append(True)
            return

        if self.max_ray_param < 0 or self.min_ray_param > self.max_ray_param:
            # Phase has no arrivals, possibly due to source depth.
            self._no_arrival_tables()
            return

        # The ray parameter indices of min_ray_param and max_ray_param.
        ray_params = tau_model.ray_params
        index = np.where(ray_params >= self.min_ray_param)[0]
        if len(index):
            self.min_ray_param_index = index[-1]
        index = np.where(ray_params >= self.max_ray_param)[0]
        if len(index):
            self.max_ray_param_index = index[-1]
        if self.max_ray_param_index == self.min_ray_param_index:
            self.ray_param = np.array([self.min_ray_param,
                                       self.min_ray_param])
        else:
            self.ray_param = ray_params[self.max_ray_param_index:
                                        self.min_ray_param_index + 1].copy()

        self.dist = np.zeros(shape=self.ray_param.shape)
        self.time = np.zeros(shape=self.ray_param.shape)

        times_branches = self.calc_branch_mult(tau_model)

        # Sum the branches with the appropriate multiplier.
        size = self.min_ray_param_index - self.max_ray_param_index + 1
        index = slice(self.max_ray_param_index, self.min_ray_param_index + 1)
        for wave_num, branches in enumerate(tau_model.tau_branches):
            for mult, branch in zip(times_branches[wave_num], branches):
                if mult != 0:
                    self.dist[:size] += mult * branch.dist[index]
                    self.time[:size] += mult * branch.time[index]

        if "Sdiff" in self.name or "Pdiff" in self.name:
            if tau_model.s_mod.depth_in_high_slowness(
                    tau_model.cmb_depth - 1e-10, self.min_ray_param,
                    self.name[0] == "P"):
                # No diffraction if there is a high slowness zone at the CMB.
                self._no_arrival_tables()
                return
            diffraction = self.settings.max_diffraction_in_radians
            self.dist[1] = self.dist[0] + diffraction
            self.time[1] = self.time[0] + diffraction * self.min_ray_param
        elif "Pn" in self.name or "Sn" in self.name:
            refraction = self.settings.max_refraction_in_radians
            self.dist[1] = self.dist[0] + refraction
            self.time[1] = self.time[0] + refraction * self.min_ray_param
        elif self.max_ray_param_index == self.min_ray_param_index:
            self.dist[1] = self.dist[0]
            self.time[1] = self.time[0]

        self.min_distance = np.min(self.dist)
        self.max_distance = np.max(self.dist)

        self._insert_shadow_zones(tau_model, times_branches)

    def _insert_shadow_zones(self, tau_model, times_branches):
        """
        Insert shadow zones where the phase crosses a high slowness zone.

        A shadow zone is represented by a repeated ray parameter; the first
        sample is the ray turning just above the high slowness zone.
        """
        s_mod = tau_model.s_mod
        for wave_num, is_p_wave in enumerate([True, False]):
            if is_p_wave:
                hsz = s_mod.high_slowness_layer_depths_p
            else:
                hsz = s_mod.high_slowness_layer_depths_s
            index_offset = 0
            for hszi in hsz:
                if not self.max_ray_param > hszi.ray_param > \
                        self.min_ray_param:
                    continue
                # The wave type must cross the high slowness zone downwards
                # in this phase.
                branch_num = tau_model.find_branch(hszi.top_depth)
                segments = list(zip(self.branch_seq, self.wave_type,
                                    self.down_going))
                crosses = any(
                    above == (branch_num - 1, is_p_wave, True) and
                    below == (branch_num, is_p_wave, True)
                    for above, below in zip(segments[:-1], segments[1:]))
                if not crosses:
                    continue
                hsz_index = np.where(self.ray_param == hszi.ray_param)[0]
                if not len(hsz_index):
                    raise TauModelError(
                        "High slowness zone ray parameter %f is not sampled."
                        % (hszi.ray_param, ))
                hsz_index = hsz_index[0]
                branch_index = (self.max_ray_param_index + hsz_index -
                                index_offset)
                new_dist = 0.0
                new_time = 0.0
                for mults, branches in zip(times_branches,
                                           tau_model.tau_branches):
                    for mult, branch in zip(mults, branches):
                        if mult != 0 and branch.top_depth < hszi.top_depth:
                            new_dist += mult * branch.dist[branch_index]
                            new_time += mult * branch.time[branch_index]
                self.ray_param = np.insert(self.ray_param, hsz_index,
                                           hszi.ray_param)
                self.dist = np.insert(self.dist, hsz_index, new_dist)
                self.time = np.insert(self.time, hsz_index, new_time)
                index_offset += 1

    def calc_branch_mult(self, tau_model):
        """
        Calculate how many times the phase passes through a branch, up or down.

        With this result, we can just multiply instead of doing the ray calc
        for each time.

        :returns: Pass counts, first row P, second row S.
        :rtype: :class:`~numpy.ndarray`
        """
        times_branches = np.zeros((2, len(tau_model.tau_branches[0])))
        for is_p_wave, branch_num in zip(self.wave_type, self.branch_seq):
            times_branches[0 if is_p_wave else 1, branch_num] += 1
        return times_branches

    def has_arrivals(self):
        """
        Whether the phase exists in the model at all.
        """
        return len(self.dist) > 0

    def calc_time(self, degrees):
        """
        Calculate arrival times for this phase, sorted by time.

        :param degrees: The epicentral distance in degrees.
        :type degrees: float
        :rtype: list of :class:`~seistau.helper_classes.Arrival`
        """
        if not self.has_arrivals():
            return []
        temp_deg = abs(degrees) % 360.0
        if temp_deg > 180.0:
            temp_deg = 360.0 - temp_deg
        rad = math.radians(temp_deg)

        dist = self.dist
        left = dist[:-1]
        right = dist[1:]
        flat = self.ray_param[:-1] == self.ray_param[1:]
        arrivals = []
        n = 0
        while n * 2.0 * math.pi + rad <= self.max_distance:
            search_dists = [n * 2 * math.pi + rad]
            if 0 < rad < math.pi:
                search_dists.append((n + 1) * 2 * math.pi - rad)
            for search_dist in search_dists:
                hits = (left - search_dist) * (search_dist - right) >= 0
                # A search distance hitting a sample is found in the pair to
                # the right, except at the very end.
                hits[:-1] &= right[:-1] != search_dist
                if len(self.ray_param) > 2:
                    # Repeated ray parameters are shadow zones.
                    hits &= ~flat
                for ray_num in np.where(hits)[0]:
                    arrivals.append(self.refine_arrival(
                        degrees, ray_num, search_dist,
                        self.settings.refine_dist_radian_tol,
                        self.settings.max_recursion))
            n += 1
        arrivals.sort(key=lambda arrival: arrival.time)
        return arrivals

    def _arrival_at(self, degrees, ray_index, ray_param_index=None):
        if ray_param_index is None:
            ray_param_index = ray_index
        return Arrival(self, degrees, self.time[ray_index],
                       self.dist[ray_index], self.ray_param[ray_index],
                       ray_param_index, self.name, self.purist_name,
                       self.source_depth, self.receiver_depth)

    def refine_arrival(self, degrees, ray_index, dist_radian, tolerance,
                       recursion_limit):
        """
        Find the arrival at ``dist_radian`` between the samples ``ray_index``
        and ``ray_index + 1`` of the distance table.
        """
        left = self._arrival_at(degrees, ray_index)
        # The right one also uses ray_index as dist is between ray_index and
        # ray_index + 1.
        right = self._arrival_at(degrees, ray_index + 1, ray_index)
        return self._refine_arrival(degrees, left, right, dist_radian,
                                    tolerance, recursion_limit)

    def _refine_arrival(self, degrees, left_estimate, right_estimate,
                        search_dist, tolerance, recursion_limit):
        new_estimate = self.linear_interp_arrival(degrees, search_dist,
                                                  left_estimate,
                                                  right_estimate)
        if recursion_limit <= 0 or self._is_non_body_wave():
            # Can't shoot rays for non-body waves.
            return new_estimate

        shoot = self.shoot_ray(degrees, new_estimate.ray_param)
        close = abs(shoot.purist_dist - new_estimate.purist_dist) < tolerance
        if ((left_estimate.purist_dist - search_dist) *
                (search_dist - shoot.purist_dist)) > 0:
            # Search between left and shoot.
            left_estimate, right_estimate = left_estimate, shoot
        else:
            # Search between shoot and right.
            left_estimate, right_estimate = shoot, right_estimate
        if close:
            return self.linear_interp_arrival(degrees, search_dist,
                                              left_estimate, right_estimate)
        return self._refine_arrival(degrees, left_estimate, right_estimate,
                                    search_dist, tolerance,
                                    recursion_limit - 1)

    def shoot_ray(self, degrees, ray_param):
        """
        Calculate the arrival of a single ray parameter by summing the
        branches exactly instead of interpolating the tables.

        :raises SlownessModelError: For non-body waves and for ray parameters
            outside the range of the phase.
        """
        if self._is_non_body_wave():
            raise SlownessModelError('Unable to shoot ray in non-body waves')

        if ray_param < self.min_ray_param or self.max_ray_param < ray_param:
            msg = 'Ray param %f is outside range for this phase: min=%f max=%f'
            raise SlownessModelError(msg % (ray_param, self.min_ray_param,
                                            self.max_ray_param))

        # Index of the last sample above the ray parameter.
        below = np.where(self.ray_param[1:] < ray_param)[0]
        if len(below):
            ray_param_index = below[0]
        else:
            ray_param_index = len(self.ray_param) - 2

        tau_model = self.tau_model
        s_mod = tau_model.s_mod
        times_branches = self.calc_branch_mult(tau_model)
        time = 0.0
        dist = 0.0
        ray_params = np.array([ray_param])
        for wave_num, is_p_wave in enumerate([s_mod.p_wave, s_mod.s_wave]):
            for j, mult in enumerate(times_branches[wave_num]):
                if mult == 0:
                    continue
                br = tau_model.get_tau_branch(j, is_p_wave)
                top_layer = s_mod.layer_number_below(br.top_depth, is_p_wave)
                bot_layer = s_mod.layer_number_above(br.bot_depth, is_p_wave)
                td = br.calc_time_dist(s_mod, top_layer, bot_layer,
                                       ray_params, allow_turn_in_layer=True)
                time += mult * td['time'][0]
                dist += mult * td['dist'][0]

        return Arrival(self, degrees, time, dist, ray_param, ray_param_index,
                       self.name, self.purist_name, self.source_depth,
                       self.receiver_depth)

    def linear_interp_arrival(self, degrees, search_dist, left, right):
        """
        Interpolate time and ray parameter at ``search_dist`` between two
        arrivals.
        """
        if left.ray_param_index == 0 and search_dist == self.dist[0]:
            # Degenerate case.
            return Arrival(self, degrees, self.time[0], search_dist,
                           self.ray_param[0], 0, self.name, self.purist_name,
                           self.source_depth, self.receiver_depth)

        if left.purist_dist == search_dist:
            return left

        arrival_time = ((search_dist - left.purist_dist) /
                        (right.purist_dist - left.purist_dist) *
                        (right.time - left.time)) + left.time
        if math.isnan(arrival_time):
            msg = ('Time is NaN, search=%f leftDist=%f leftTime=%f '
                   'rightDist=%f rightTime=%f')
            raise TauModelError(msg % (search_dist, left.purist_dist,
                                       left.time, right.purist_dist,
                                       right.time))

        ray_param = ((search_dist - right.purist_dist) /
                     (left.purist_dist - right.purist_dist) *
                     (left.ray_param - right.ray_param)) + right.ray_param
        return Arrival(self, degrees, arrival_time, search_dist, ray_param,
                       left.ray_param_index, self.name, self.purist_name,
                       self.source_depth, self.receiver_depth)

    def _velocity(self, depth, wave_type, below):
        v_mod = self.tau_model.s_mod.v_mod
        if below:
            velocity = v_mod.evaluate_below(depth, wave_type)
        else:
            velocity = v_mod.evaluate_above(depth, wave_type)
        return float(velocity[0])

    def calc_ray_param_for_takeoff(self, takeoff_degree):
        """
        Ray parameter (in s/rad) leaving the source at the given take-off
        angle (in degrees).
        """
        takeoff_velocity = self._velocity(self.source_depth, self.name[0],
                                          self.down_going[0])
        return ((self.tau_model.radius_of_planet - self.source_depth) *
                math.sin(np.radians(takeoff_degree)) / takeoff_velocity)

    def calc_takeoff_angle(self, ray_param):
        """
        Angle (in degrees) from the downward vertical at which a ray leaves
        the source.
        """
        if self.name.endswith('kmps'):
            return 0
        takeoff_velocity = self._velocity(self.source_depth, self.name[0],
                                          self.down_going[0])
        takeoff_angle = np.degrees(math.asin(np.clip(
            takeoff_velocity * ray_param /
            (self.tau_model.radius_of_planet - self.source_depth), -1.0, 1.0)))
        if not self.down_going[0]:
            # Upgoing, so the angle is in the 90-180 range.
            takeoff_angle = 180 - takeoff_angle
        return takeoff_angle

    def calc_incident_angle(self, ray_param):
        """
        Angle (in degrees) from the upward vertical at which a ray arrives
        at the receiver.
        """
        if self.name.endswith('kmps'):
            return 0
        # The last leg is "END", the one before starts with P or S.
        last_leg = self.legs[-2][0]
        incident_velocity = self._velocity(self.receiver_depth, last_leg,
                                           not self.down_going[-1])
        incident_angle = np.degrees(math.asin(np.clip(
            incident_velocity * ray_param /
            (self.tau_model.radius_of_planet - self.receiver_depth),
            -1.0, 1.0)))
        if self.down_going[-1]:
            incident_angle = 180 - incident_angle
        return incident_angle


def closest_branch_to_depth(tau_model, depth_string):
    """
    Find the closest discontinuity to the given depth that can have
    reflections and phase transformations.

    :param depth_string: ``m``, ``c``, ``i`` or a depth in km.
    :type depth_string: str
    :rtype: int
    """
    if depth_string == "m":
        return tau_model.moho_branch
    elif depth_string == "c":
        return tau_model.cmb_branch
    elif depth_string == "i":
        return tau_model.iocb_branch
    # Non-standard boundary, given by a number: must look for it.
    discon_branch = -1
    discon_max = 1e300
    discon_depth = float(depth_string)
    for i, t_branch in enumerate(tau_model.tau_branches[0]):
        if (abs(discon_depth - t_branch.top_depth) < discon_max and
                t_branch.top_depth not in tau_model.no_discon_depths):
            discon_branch = i
            discon_max = abs(discon_depth - t_branch.top_depth)
    if discon_branch < 0:
        raise TauModelError("No discontinuity close to depth %s." % (
            depth_string, ))
    return discon_branch


def _token(scanner, token):
    return token


def _invalid_leg(scanner, token):
    raise TauModelError(
        "Invalid phase name: %s cannot be followed by %s in %s" % (
            token[0], token[1], token))


_tokenizer = re.Scanner([
    # Surface wave phase velocity "phases".
    (r"\.?\d+\.?\d*kmps", _token),
    # Composite legs.
    (r"Pn|Sn|Pg|Sg|Pb|Sb|Pdiff|Sdiff|Ped|Sed", _token),
    # Reflections.
    (r"([\^v])([mci]|\.?\d+\.?\d*)", _token),
    # Invalid phases.
    (r"[PS][ps]", _invalid_leg),
    # Single legs.
    (r"[KkIiJmcPpSs]", _token),
    # Single numerical value.
    (r"\.?\d+\.?\d*", _token),
])


def leg_puller(name):
    """
    Tokenize a phase name into legs.

    For example, ``PcS`` becomes ``'P' + 'c' + 'S'`` while ``p^410P`` would
    become ``'p' + '^410' + 'P'``. Only minor error checking is done at this
    point, for instance ``PIP`` passes but ``Ps`` doesn't. ``"END"`` is
    appended as the last leg.

    :raises TauModelError: If the name cannot be tokenized.
    """
    results, remainder = _tokenizer.scan(name)
    if remainder or not results:
        raise TauModelError(
            "Invalid phase name: %r could not be parsed in %r" % (
                remainder, name))
    return results + ["END"]
