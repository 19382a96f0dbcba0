"""
Pytest configuration and fixtures for can-bit-timing tests.
"""

import pytest
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))


@pytest.fixture
def reference_capability():
    """Generic 80 MHz controller with wide segment ranges."""
    from can_timing.interfaces.timing_result import DeviceCapability

    return DeviceCapability.from_preset('reference-80mhz')


@pytest.fixture
def small_capability():
    """
    8 MHz controller with narrow ranges.

    At 500 kbit/s prescalers 1 and 2 both hit the bit rate exactly and both
    reach an 87.5 % sample point with the same oscillator tolerance.
    """
    from can_timing.interfaces.timing_result import DeviceCapability

    return DeviceCapability(
        clock=8000000,
        min_ps=1,
        max_ps=2,
        min_tq=4,
        max_tq=25,
        min_prop_seg=1,
        max_prop_seg=16,
        min_tseg1=2,
        max_tseg1=16,
        min_tseg2=1,
        max_tseg2=8,
        max_sjw=4,
    )
