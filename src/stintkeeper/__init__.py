"""
Endurance race timing: race clock, driver stints and fuel tracking
"""

from __future__ import annotations

import importlib.metadata

__version__ = importlib.metadata.version(__name__)
version = __version__
