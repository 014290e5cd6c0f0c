"""EnhancePy public package.

Multi-scale Hessian eigenvalue enhancement with automatic parameter
estimation.
"""

from __future__ import annotations

from ._version import __version__

__all__ = ["__version__"]
