"""Guard Nomad - location safety aggregation backend."""

__version__ = "1.0.0"
