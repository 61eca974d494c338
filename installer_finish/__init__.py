"""Finish-step clients run at the end of an OS installation."""

from .__version__ import __version__

__all__ = ["__version__"]
