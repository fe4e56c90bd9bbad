"""Fair meeting-point finder backed by Google Maps"""

__version__ = "0.1.0"
