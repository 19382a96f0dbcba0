#!/usr/bin/env python3
"""
CAN Bit Timing Constants - Central Reference for the Timing Solver

================================================================================
PURPOSE
================================================================================
Single source of truth for the fixed bit-timing constants, the oscillator
tolerance factors, and the built-in device capability presets used by the
solver and the command-line tool.

================================================================================
BIT PERIOD LAYOUT
================================================================================
    <---------------------- 1 bit period (N TQ) ---------------------->
    +----------+------------------+---------------+-------------------+
    | SYNC_SEG |    PROP_SEG      |  PHASE_SEG1   !    PHASE_SEG2     |
    +----------+------------------+---------------+-------------------+
      1 TQ      <-------------- TSEG1 ------------><----- TSEG2 ------>
                                                  ^
                                            sample point

    N = SYNC_SEG + PROP_SEG + PHASE_SEG1 + PHASE_SEG2
    sample point = (SYNC_SEG + PROP_SEG + PHASE_SEG1) / N

================================================================================
OSCILLATOR TOLERANCE
================================================================================
Two independent conditions bound the allowed clock deviation df:

    1. Resynchronization after a stuff error: no more than SJW of phase error
       may accumulate over 10 bit times, in both nodes:
           2 * df * 10 * N <= SJW
    2. Sampling of the 13th bit after an error flag (worst case with
       Phase_Seg2 shortening):
           2 * df * (13 * N - PHASE_SEG2) <= min(PHASE_SEG1, PHASE_SEG2)

REFERENCE: Hartwich, F. & Bassemir, A. (1999). "The Configuration of the CAN
           Bit Timing." 6th International CAN Conference (CiA).
"""

# =============================================================================
# BIT TIMING
# =============================================================================
# The synchronization segment is always exactly one time quantum.
SYNC_SEG = 1

# Bit times over which the resynchronization condition is evaluated.
# 2 * df * RESYNC_BIT_TIMES * N <= SJW  ->  df <= SJW / (20 * N)
RESYNC_BIT_TIMES = 10

# Bit times between the last resynchronization and the sample point of the
# bit following an error flag.
# 2 * df * (ERROR_FLAG_BIT_TIMES * N - PS2) <= min(PS1, PS2)
ERROR_FLAG_BIT_TIMES = 13

# =============================================================================
# DEFAULT REQUEST
# =============================================================================
DEFAULT_BAUD_RATE = 500000          # bit/s
DEFAULT_SAMPLE_POINT = 87.5         # percent, CiA recommendation up to 500 kbit/s

# =============================================================================
# DEVICE CAPABILITY PRESETS
# =============================================================================
# Field names match DeviceCapability. All ranges are inclusive.
#
# reference-80mhz: generic controller with a wide prescaler and segment range
#   (TQ limits 4-385, TSEG1 2-256, TSEG2 1-128, SJW up to 128).
# stm32-bxcan-36mhz: STM32F1 bxCAN on a 36 MHz APB1 clock. BRP 1-1024,
#   TS1 1-16, TS2 1-8, SJW 1-4. bxCAN has no separate propagation segment
#   register, so the propagation segment may be zero.
# =============================================================================
DEFAULT_PRESET = 'reference-80mhz'

DEVICE_PRESETS = {
    'reference-80mhz': {
        'clock': 80000000,
        'min_ps': 1,
        'max_ps': 512,
        'min_tq': 4,
        'max_tq': 385,
        'min_prop_seg': 1,
        'max_prop_seg': 385 - (SYNC_SEG + (1 + 1)),
        'min_tseg1': 2,
        'max_tseg1': 256,
        'min_tseg2': 1,
        'max_tseg2': 128,
        'min_sjw': 1,
        'max_sjw': 128,
    },
    'stm32-bxcan-36mhz': {
        'clock': 36000000,
        'min_ps': 1,
        'max_ps': 1024,
        'min_tq': 3,
        'max_tq': 25,
        'min_prop_seg': 0,
        'max_prop_seg': 15,
        'min_tseg1': 1,
        'max_tseg1': 16,
        'min_tseg2': 1,
        'max_tseg2': 8,
        'min_sjw': 1,
        'max_sjw': 4,
    },
}
