"""The onehalo package.

This package computes the real-space one-halo term of galaxy clustering.
"""

from __future__ import annotations

import contextlib
from importlib.metadata import PackageNotFoundError, version

with contextlib.suppress(PackageNotFoundError):
    __version__ = version(__name__)

__all__ = [
    "concentration",
    "halo_model",
    "hod",
    "one_halo",
    "profiles",
    "tools",
    "OneHaloModel",
    "RealSpaceOneHalo",
]

from . import concentration, halo_model, hod, one_halo, profiles, tools
from .halo_model import OneHaloModel
from .one_halo import RealSpaceOneHalo
