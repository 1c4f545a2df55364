"""BoxWatch: heartbeat and service-status monitor for remote boxes."""

__version__ = "0.1.0"
