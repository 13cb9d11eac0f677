"""Device Manager - local inventory of devices, supervisors, loans and alerts."""

__version__ = "0.1.0"
