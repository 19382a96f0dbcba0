"""
can-bit-timing: Nominal CAN Bit Timing Calculator

This package finds the best nominal bit timing for a CAN controller: the
clock prescaler and the propagation / phase segment lengths that reproduce a
desired bit rate and sample point within the controller's hardware limits.

Ranking, highest priority first:
    1. Bit rate error
    2. Sample point error
    3. Oscillator tolerance
    4. Lower prescaler (more time quanta per bit)

The solver is a pure function of its inputs. Reading capabilities from
configuration files and presenting results is left to can_timing.main.

Version: 1.0.0
"""

__version__ = "1.0.0"
__license__ = "MPL-2.0"

from .interfaces.timing_result import (
    DeviceCapability,
    SolveRequest,
    TimingSolution,
)
from .timing.bit_timing_solver import TimingSolver, find_best_timing

__all__ = [
    "DeviceCapability",
    "SolveRequest",
    "TimingSolution",
    "TimingSolver",
    "find_best_timing",
    "__version__",
    "__license__",
]
