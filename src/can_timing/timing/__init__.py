"""
Bit timing search for can-bit-timing.

Core algorithm and shared constants.
"""

from .bit_timing_solver import TimingSolver, find_best_timing, rank_candidates
from .can_constants import SYNC_SEG, DEVICE_PRESETS

__all__ = ['TimingSolver', 'find_best_timing', 'rank_candidates', 'SYNC_SEG', 'DEVICE_PRESETS']
