"""Multi-seat election counting with runoff rounds."""

__version__ = "0.1.0"
