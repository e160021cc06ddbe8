"""Real-time fan-out relay for a shared drawing surface."""

__version__ = "0.1.0"
