"""Samsung TV bridge: discovery, pairing and capability-gated remote control."""

from samsung_tv_bridge.__version__ import __version__

__all__ = ["__version__"]
