"""Expose every Roon zone as its own MPRIS media player."""

__version__ = "1.0.0"
