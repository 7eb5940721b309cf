"""Discrete movement controller for an animated character.

Commands are queued, normalized once, and played back one at a time against
a host-owned object so that every action lands on an exact end state.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
