"""Data contracts between the timing solver and its callers."""

from .timing_result import DeviceCapability, SolveRequest, TimingSolution

__all__ = ['DeviceCapability', 'SolveRequest', 'TimingSolution']
