"""NeTEx to GTFS calendar resolution."""

__version__ = "0.1.0"
