# -*- coding: utf-8 -*-
"""
Expansion of phase list shortcuts such as ``ttbasic``.
"""
_PRIMARY_P = ("p", "P", "Pn", "Pdiff", "PKP", "PKiKP", "PKIKP")
_PRIMARY_S = ("s", "S", "Sn", "Sdiff", "SKS", "SKIKS")
_DEPTH_P = ("PcP", "pP", "pPdiff", "pPKP", "pPKIKP", "pPKiKP", "sP",
            "sPdiff", "sPKP", "sPKIKP", "sPKiKP")
_DEPTH_S = ("sS", "sSdiff", "sSKS", "sSKIKS", "ScS", "pS", "pSdiff", "pSKS",
            "pSKIKS")
_BASIC = ("ScP", "SKP", "SKIKP", "PKKP", "PKIKKIKP", "SKKP", "SKIKKIKP",
          "PP", "PKPPKP", "PKIKPPKIKP")
_ALL = ("SKiKP", "PP", "ScS", "PcS", "PKS", "PKIKS", "PKKS", "PKIKKIKS",
        "SKKS", "SKIKKIKS", "SKSSKS", "SKIKSSKIKS", "SS", "SP", "PS")

#: Shortcut names and the phase groups they expand to.
PHASE_SHORTCUTS = {
    "ttp": (_PRIMARY_P, ),
    "tts": (_PRIMARY_S, ),
    "ttp+": (_PRIMARY_P, _DEPTH_P),
    "tts+": (_PRIMARY_S, _DEPTH_S),
    "ttbasic": (_PRIMARY_P, _PRIMARY_S, _DEPTH_P, _DEPTH_S, _BASIC),
    "ttall": (_PRIMARY_P, _PRIMARY_S, _DEPTH_P, _DEPTH_S, _BASIC, _ALL),
}


def parse_phase_list(phase_list):
    """
    Takes a list of phases, returns a sorted list of unique phase names with
    shortcuts like ``"ttall"`` replaced by the phases they stand for.

    >>> parse_phase_list(["P", "ttp", "ScS"])  # doctest: +NORMALIZE_WHITESPACE
    ['P', 'PKIKP', 'PKP', 'PKiKP', 'Pdiff', 'Pn', 'ScS', 'p']
    """
    phase_names = set()
    for phase_name in phase_list:
        phase_names.update(get_phase_names(phase_name))
    return sorted(phase_names)


def get_phase_names(phase_name):
    """
    Replace a shortcut (case insensitive) by its phases. Any other name is
    returned unchanged as a single item list.

    :type phase_name: str
    :rtype: list of str
    """
    groups = PHASE_SHORTCUTS.get(phase_name.lower())
    if groups is None:
        return [phase_name]
    names = []
    for group in groups:
        names.extend(group)
    return names
