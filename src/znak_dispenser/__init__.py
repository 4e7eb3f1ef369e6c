"""Certificate login and report task dispensing for the True API platform."""

__version__ = "0.1.0"
