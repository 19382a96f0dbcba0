#!/usr/bin/env python3
"""
Bit Timing Solver - Best Nominal CAN Bit Timing for a Controller

================================================================================
PURPOSE
================================================================================
Given a controller's hardware limits (DeviceCapability), a desired bit rate
and a desired sample point, find the prescaler and segment lengths that best
reproduce them.

The hardware constrains every register to a small integer range, so there is
no closed-form answer. The solver enumerates every (prescaler, propagation
segment) pair, derives the phase segments, scores the candidate and keeps the
best one.

================================================================================
SEARCH
================================================================================
    for prescaler in max_ps .. min_ps:              (descending)
        N = round(clock / prescaler / baud)         TQ per bit
        skip unless min_tq <= N <= max_tq
        for prop_seg in min_prop_seg .. cap(N):
            remaining = N - SYNC_SEG - prop_seg
            phase_seg1 = remaining // 2
            phase_seg2 = remaining - phase_seg1     (gets the odd TQ)
            check TSEG1 / TSEG2 limits
            score and compare

The feasible window for N is the intersection of the device's TQ limits with
what the segment limits can add up to:

    min_tq = max(SYNC_SEG + min_tseg1 + min_tseg2, cap.min_tq)
    max_tq = min(SYNC_SEG + max_tseg1 + max_tseg2, cap.max_tq)

The propagation segment is capped per N so that the remaining TQ can still
satisfy the minimum phase segment lengths:

    cap(N) = min(max_prop_seg, N - (SYNC_SEG + (min_tseg1 - min_prop_seg) + min_tseg2))

================================================================================
RANKING
================================================================================
A candidate replaces the best so far when, in order:

    1. its baud error is strictly lower, or
    2. baud error <= best and sample point error strictly lower, or
    3. both errors <= best and oscillator tolerance strictly higher, or
    4. both errors <= best, tolerance >= best and the prescaler differs.

Clause 4 together with the descending prescaler scan makes an exact tie end
on the lowest prescaler, i.e. the most TQ per bit and the finest resolution.
Clause 4 only compares against the recorded best, so a later candidate with
equal errors and equal tolerance at another prescaler always wins. This is
the reference ranking and reported solutions depend on it; keep it as is.

================================================================================
USAGE
================================================================================
    capability = DeviceCapability.from_preset('reference-80mhz')
    solution = TimingSolver().solve(capability, 500000, 87.5)
    if solution is None:
        ...  # no feasible configuration
    print(solution.summary())

REFERENCE: Hartwich, F. & Bassemir, A. (1999). "The Configuration of the CAN
           Bit Timing." 6th International CAN Conference (CiA).

CREDIT: Search and ranking follow the CAN Bus Debugger bit timing calculator
        by Ben Evans (https://www.canbusdebugger.com/can-bit-timing-calculator),
        distributed under MPL-2.0.
"""

import logging
import math
from typing import Iterator, Optional, Tuple

import numpy as np

from ..interfaces.timing_result import DeviceCapability, SolveRequest, TimingSolution
from .can_constants import SYNC_SEG, RESYNC_BIT_TIMES, ERROR_FLAG_BIT_TIMES

logger = logging.getLogger(__name__)

# Column layout of candidate_table(); matches the TimingSolution fields.
CANDIDATE_DTYPE = np.dtype([
    ('baud_rate', np.float64),
    ('baud_error', np.float64),
    ('sample_point', np.float64),
    ('sample_point_error', np.float64),
    ('oscillator_tolerance', np.float64),
    ('prescaler', np.int64),
    ('prop_seg', np.int64),
    ('phase_seg1', np.int64),
    ('phase_seg2', np.int64),
    ('max_sjw', np.int64),
    ('time_quanta', np.int64),
])


def _round_half_up(value: float) -> int:
    """Round to the nearest integer, halves upward (not banker's rounding)."""
    return math.floor(value + 0.5)


def _bound_range(low, high, descending: bool = False) -> range:
    """
    Integers within the inclusive bounds [low, high].

    Bounds may be floats; fractional bounds are pulled inward and a
    non-finite bound gives an empty range.
    """
    if not (math.isfinite(low) and math.isfinite(high)):
        return range(0)
    low, high = math.ceil(low), math.floor(high)
    if descending:
        return range(high, low - 1, -1)
    return range(low, high + 1)


def split_phase_segments(remaining_tq: int) -> Tuple[int, int]:
    """
    Split the TQ left after SYNC_SEG and PROP_SEG between the phase segments.

    An odd remainder gives the extra quantum to phase segment 2.
    """
    phase_seg1 = remaining_tq // 2
    phase_seg2 = remaining_tq - phase_seg1
    return phase_seg1, phase_seg2


def oscillator_tolerance(time_quanta: int, phase_seg1: int, phase_seg2: int, sjw: int) -> float:
    """
    Maximum relative oscillator deviation that still resynchronizes correctly.

    Minimum of the error-flag condition (13 bit times) and the
    resynchronization condition (SJW over 10 bit times, both nodes).

    Args:
        time_quanta: Total TQ per bit
        phase_seg1: Phase segment 1 length (TQ)
        phase_seg2: Phase segment 2 length (TQ)
        sjw: Synchronization jump width (TQ)

    Returns:
        Tolerance as a fraction (0.0125 = 1.25 %)
    """
    df1 = min(phase_seg1, phase_seg2) / (2 * (ERROR_FLAG_BIT_TIMES * time_quanta - phase_seg2))
    df2 = sjw / (2 * RESYNC_BIT_TIMES * time_quanta)
    return min(df1, df2)


def _is_better(candidate: TimingSolution, best: TimingSolution) -> bool:
    """Preference order: baud error, sample point error, tolerance, prescaler."""
    baud_ok = candidate.baud_error <= best.baud_error
    sp_ok = candidate.sample_point_error <= best.sample_point_error
    return (
        candidate.baud_error < best.baud_error
        or (baud_ok and candidate.sample_point_error < best.sample_point_error)
        or (baud_ok and sp_ok and candidate.oscillator_tolerance > best.oscillator_tolerance)
        or (baud_ok and sp_ok
            and candidate.oscillator_tolerance >= best.oscillator_tolerance
            and candidate.prescaler != best.prescaler)
    )


def rank_candidates(table: np.ndarray) -> np.ndarray:
    """
    Order a candidate table from best to worst.

    Sort keys: baud error, sample point error, tolerance (descending),
    prescaler (ascending).
    """
    if len(table) == 0:
        return table
    order = np.lexsort((
        table['prescaler'],
        -table['oscillator_tolerance'],
        table['sample_point_error'],
        table['baud_error'],
    ))
    return table[order]


class TimingSolver:
    """
    Exhaustive search for the best nominal bit timing.

    The solver holds no state between calls; one instance can serve any
    number of capabilities and requests, from any thread.
    """

    def feasible_tq_window(self, capability: DeviceCapability) -> Tuple[int, int]:
        """TQ-per-bit range allowed by both the TQ limits and the segment limits."""
        min_tq = max(SYNC_SEG + capability.min_tseg1 + capability.min_tseg2, capability.min_tq)
        max_tq = min(SYNC_SEG + capability.max_tseg1 + capability.max_tseg2, capability.max_tq)
        return min_tq, max_tq

    def iter_candidates(
        self,
        capability: DeviceCapability,
        desired_baud: float,
        desired_sample_point: float
    ) -> Iterator[TimingSolution]:
        """
        Yield every feasible candidate in search order.

        Prescalers run from max_ps down to min_ps and, within a prescaler,
        the propagation segment runs upward. Candidates whose intermediate
        values are not finite are skipped.
        """
        if not (math.isfinite(desired_baud) and desired_baud > 0):
            logger.debug(f"Desired baud {desired_baud} is not a positive number, nothing to search")
            return
        if not math.isfinite(desired_sample_point):
            logger.debug(f"Desired sample point {desired_sample_point} is not finite, nothing to search")
            return

        sjw_cap = capability.max_sjw
        if math.isfinite(sjw_cap):
            sjw_cap = math.floor(sjw_cap)

        min_tq, max_tq = self.feasible_tq_window(capability)
        logger.debug(f"Feasible TQ window: {min_tq}-{max_tq}")

        for prescaler in _bound_range(capability.min_ps, capability.max_ps, descending=True):
            if prescaler <= 0:
                continue

            exact_tq = capability.clock / prescaler / desired_baud
            if not math.isfinite(exact_tq):
                continue
            time_quanta = _round_half_up(exact_tq)
            if time_quanta <= 0 or not (min_tq <= time_quanta <= max_tq):
                continue

            calculated_baud = capability.clock / (prescaler * time_quanta)
            if not math.isfinite(calculated_baud) or calculated_baud < 0:
                continue
            baud_error = abs(calculated_baud - desired_baud)

            max_prop_seg = min(
                capability.max_prop_seg,
                time_quanta - (SYNC_SEG + (capability.min_tseg1 - capability.min_prop_seg)
                               + capability.min_tseg2)
            )

            for prop_seg in _bound_range(capability.min_prop_seg, max_prop_seg):
                remaining_tq = time_quanta - (SYNC_SEG + prop_seg)
                phase_seg1, phase_seg2 = split_phase_segments(remaining_tq)
                assert SYNC_SEG + prop_seg + phase_seg1 + phase_seg2 == time_quanta, \
                    "Segments do not add up to the total TQ"

                tseg1 = prop_seg + phase_seg1
                if not (capability.min_tseg1 <= tseg1 <= capability.max_tseg1):
                    continue
                if not (capability.min_tseg2 <= phase_seg2 <= capability.max_tseg2):
                    continue

                sjw = min(phase_seg1, phase_seg2, sjw_cap)
                tolerance = oscillator_tolerance(time_quanta, phase_seg1, phase_seg2, sjw)
                if tolerance < 0:
                    continue

                sample_point = ((SYNC_SEG + prop_seg + phase_seg1) / time_quanta) * 100.0

                yield TimingSolution(
                    baud_rate=calculated_baud,
                    baud_error=baud_error,
                    sample_point=sample_point,
                    sample_point_error=abs(desired_sample_point - sample_point),
                    oscillator_tolerance=tolerance,
                    prescaler=prescaler,
                    prop_seg=prop_seg,
                    phase_seg1=phase_seg1,
                    phase_seg2=phase_seg2,
                    max_sjw=sjw,
                    time_quanta=time_quanta,
                )

    def solve(
        self,
        capability: DeviceCapability,
        desired_baud: float,
        desired_sample_point: float
    ) -> Optional[TimingSolution]:
        """
        Find the best nominal bit timing.

        Args:
            capability: Controller hardware limits
            desired_baud: Target bit rate (bit/s)
            desired_sample_point: Target sample point (percent)

        Returns:
            Best TimingSolution, or None if no configuration satisfies the
            hardware limits
        """
        # Starting point every real candidate is compared against
        best = TimingSolution(
            baud_rate=0.0,
            baud_error=math.inf,
            sample_point=0.0,
            sample_point_error=100.0,
            oscillator_tolerance=0.0,
            prescaler=0,
            prop_seg=0,
            phase_seg1=0,
            phase_seg2=0,
            max_sjw=0,
        )
        found = False

        for candidate in self.iter_candidates(capability, desired_baud, desired_sample_point):
            if _is_better(candidate, best):
                best = candidate
                found = True
                logger.debug(f"New best: {candidate.summary()}")

        label = capability.name or f"{capability.clock} Hz device"
        if not found:
            logger.warning(
                f"No bit timing for {desired_baud} bit/s at {desired_sample_point}% on {label}"
            )
            return None

        logger.info(f"Best timing for {label}: {best.summary()}")
        return best

    def solve_request(
        self,
        capability: DeviceCapability,
        request: SolveRequest
    ) -> Optional[TimingSolution]:
        """solve() taking a SolveRequest."""
        return self.solve(capability, request.desired_baud, request.desired_sample_point)

    def candidate_table(
        self,
        capability: DeviceCapability,
        desired_baud: float,
        desired_sample_point: float
    ) -> np.ndarray:
        """
        All feasible candidates as a structured array (CANDIDATE_DTYPE), in
        search order.
        """
        rows = [
            tuple(getattr(candidate, name) for name in CANDIDATE_DTYPE.names)
            for candidate in self.iter_candidates(capability, desired_baud, desired_sample_point)
        ]
        return np.array(rows, dtype=CANDIDATE_DTYPE)


def find_best_timing(
    capability: DeviceCapability,
    desired_baud: float,
    desired_sample_point: float
) -> Optional[TimingSolution]:
    """Convenience wrapper around TimingSolver().solve()."""
    return TimingSolver().solve(capability, desired_baud, desired_sample_point)
