# -*- coding: utf-8 -*-
"""
seistau's testing configuration file.
"""
import pytest

from seistau.models import get_tau_model, get_velocity_model


@pytest.fixture(scope='session')
def iasp91_velocity_model():
    """
    The iasp91 velocity model.
    """
    return get_velocity_model("iasp91")


@pytest.fixture(scope='session')
def iasp91():
    """
    The iasp91 tau model at surface source depth.

    Building it is the expensive part of most tests, so it is shared by the
    whole session. Tau models are immutable so sharing is safe.
    """
    return get_tau_model("iasp91")
