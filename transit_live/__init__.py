"""transit_live - live transit feed relay and client-side trip engines."""

__version__ = "0.1.0"
