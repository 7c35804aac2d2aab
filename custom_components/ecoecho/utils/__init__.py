# File: utils/__init__.py
"""Pure Python utilities for EcoEcho.

This module contains pure Python functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Submodules:
    - dt_utils: Date/time parsing and local calendar helpers
    - math_utils: Rounding, weight normalization, impact estimates, progress

Usage:
    from . import dt_utils
    from .math_utils import normalize_weight
"""

from . import dt_utils, math_utils

__all__ = ["dt_utils", "math_utils"]
