# evoverse/errors.py
from __future__ import annotations


class EvoverseError(Exception):
    """Base class for simulation errors."""


class ConfigError(EvoverseError, ValueError):
    """Raised when a SimConfig cannot describe a runnable simulation."""


class SimulationStateError(EvoverseError, RuntimeError):
    """Raised when the simulation is driven before it has been seeded."""


__all__ = ["EvoverseError", "ConfigError", "SimulationStateError"]
