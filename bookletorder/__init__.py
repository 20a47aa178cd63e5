"""Page ordering for short-edge bifold booklets."""

__version__ = "0.1.0"
