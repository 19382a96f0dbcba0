#!/usr/bin/env python3
"""
can-bit-timing: Nominal CAN Bit Timing Calculator

Command-line entry point. Reads a device capability (built-in preset or TOML
configuration), runs the timing solver and prints the chosen configuration.

Usage:
    # Reference 80 MHz device, 500 kbit/s, 87.5 % sample point
    can-bit-timing

    # Preset with a different request
    can-bit-timing --preset stm32-bxcan-36mhz --baud 250000 --sample-point 87.5

    # Device described in a configuration file, JSON output
    can-bit-timing --config my_controller.toml --json

Configuration file:
    [request]
    baud_rate = 500000
    sample_point = 87.5

    [capability]
    preset = "reference-80mhz"   # optional base
    clock = 40000000             # any field overrides the preset

Exit status is 0 when a solution is found and 1 otherwise.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import toml

from .interfaces.timing_result import DeviceCapability, SolveRequest
from .timing.bit_timing_solver import TimingSolver, rank_candidates
from .timing.can_constants import (
    DEFAULT_BAUD_RATE,
    DEFAULT_PRESET,
    DEFAULT_SAMPLE_POINT,
    DEVICE_PRESETS,
)

logger = logging.getLogger('can-bit-timing')


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from TOML file."""
    if config_path and Path(config_path).exists():
        with open(config_path, 'r') as f:
            return toml.load(f)

    if config_path:
        logger.warning(f"Config file {config_path} not found, using defaults")

    # Default configuration
    return {
        'request': {
            'baud_rate': DEFAULT_BAUD_RATE,
            'sample_point': DEFAULT_SAMPLE_POINT,
        },
        'capability': {
            'preset': DEFAULT_PRESET,
        },
    }


def capability_from_config(config: Dict[str, Any]) -> DeviceCapability:
    """
    Build the device capability from the [capability] table.

    A 'preset' key selects a built-in device; any other keys override its
    fields. Without a preset every required field must be present.

    Raises:
        ValueError: unknown preset or incomplete / invalid fields
    """
    section = dict(config.get('capability', {}))
    preset = section.pop('preset', None)

    if preset is None:
        return DeviceCapability.from_dict(section)

    if preset not in DEVICE_PRESETS:
        available = ', '.join(sorted(DEVICE_PRESETS))
        raise ValueError(f"Unknown device preset: {preset} (available: {available})")

    name = section.pop('name', None)
    if name is None:
        name = f"{preset} (modified)" if section else preset

    merged = dict(DEVICE_PRESETS[preset])
    merged.update(section)
    return DeviceCapability.from_dict(merged, name=name)


def request_from_config(config: Dict[str, Any]) -> SolveRequest:
    """Build the solve request from the [request] table, falling back to defaults."""
    section = config.get('request', {})
    return SolveRequest.from_dict({
        'baud_rate': section.get('baud_rate', DEFAULT_BAUD_RATE),
        'sample_point': section.get('sample_point', DEFAULT_SAMPLE_POINT),
    })


def format_candidates(table: np.ndarray, limit: int) -> List[str]:
    """Render the best `limit` rows of a candidate table, one line each."""
    ranked = rank_candidates(table)[:limit]
    lines = [
        f"{'#':>3} {'presc':>5} {'TQ':>4} {'prop':>4} {'ps1':>4} {'ps2':>4} {'sjw':>4} "
        f"{'baud':>12} {'sample%':>8} {'osc tol%':>8}"
    ]
    for i, row in enumerate(ranked, 1):
        lines.append(
            f"{i:>3} {row['prescaler']:>5} {row['time_quanta']:>4} {row['prop_seg']:>4} "
            f"{row['phase_seg1']:>4} {row['phase_seg2']:>4} {row['max_sjw']:>4} "
            f"{row['baud_rate']:>12.1f} {row['sample_point']:>8.2f} "
            f"{row['oscillator_tolerance'] * 100:>8.3f}"
        )
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='can-bit-timing: Nominal CAN Bit Timing Calculator',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Reference device, default request
    can-bit-timing

    # Built-in preset, 125 kbit/s
    can-bit-timing --preset stm32-bxcan-36mhz --baud 125000

    # Capability from a config file, show the ten best candidates
    can-bit-timing --config controller.toml --candidates 10
        """
    )

    parser.add_argument(
        '--config', '-c',
        help='Path to TOML configuration file'
    )
    parser.add_argument(
        '--preset', '-p',
        help='Built-in device preset; fields in the config [capability] table still override it'
    )
    parser.add_argument(
        '--baud', '-b',
        type=float,
        help=f'Desired bit rate in bit/s (default: {DEFAULT_BAUD_RATE})'
    )
    parser.add_argument(
        '--sample-point', '-s',
        type=float,
        help=f'Desired sample point in percent (default: {DEFAULT_SAMPLE_POINT})'
    )
    parser.add_argument(
        '--candidates', '-n',
        type=int,
        default=0,
        help='Also list the N best feasible candidates'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the solution as JSON'
    )
    parser.add_argument(
        '--list-presets',
        action='store_true',
        help='List built-in device presets and exit'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if args.list_presets:
        for name in sorted(DEVICE_PRESETS):
            preset = DEVICE_PRESETS[name]
            print(f"{name:<20} clock {preset['clock']} Hz, "
                  f"prescaler {preset['min_ps']}-{preset['max_ps']}, "
                  f"TQ {preset['min_tq']}-{preset['max_tq']}")
        return 0

    # Load configuration
    config = load_config(args.config)

    # Apply command-line overrides
    if args.preset:
        config.setdefault('capability', {})['preset'] = args.preset
    if args.baud is not None:
        config.setdefault('request', {})['baud_rate'] = args.baud
    if args.sample_point is not None:
        config.setdefault('request', {})['sample_point'] = args.sample_point

    try:
        capability = capability_from_config(config)
        request = request_from_config(config)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    for problem in capability.validate():
        logger.warning(f"Capability: {problem}")

    solver = TimingSolver()
    solution = solver.solve_request(capability, request)

    if args.candidates > 0:
        table = solver.candidate_table(
            capability, request.desired_baud, request.desired_sample_point
        )
        print(f"{len(table)} feasible candidates")
        for line in format_candidates(table, args.candidates):
            print(line)

    if solution is None:
        logger.error(
            f"No bit timing satisfies {request.desired_baud:.0f} bit/s "
            f"at {request.desired_sample_point}%"
        )
        if args.json:
            print(json.dumps({'solution_found': False}))
        return 1

    if args.json:
        data = solution.to_dict()
        data['solution_found'] = True
        print(json.dumps(data, indent=2))
    else:
        print(f"Bit rate:      {solution.baud_rate:.3f} bit/s (error {solution.baud_error:.3f})")
        print(f"Sample point:  {solution.sample_point:.2f}% (error {solution.sample_point_error:.2f})")
        print(f"Prescaler:     {solution.prescaler}")
        print(f"Time quanta:   {solution.time_quanta} ({solution.time_quantum_ns:.1f} ns each)")
        print(f"Prop seg:      {solution.prop_seg}")
        print(f"Phase seg 1:   {solution.phase_seg1}")
        print(f"Phase seg 2:   {solution.phase_seg2}")
        print(f"Max SJW:       {solution.max_sjw}")
        print(f"Osc tolerance: {solution.oscillator_tolerance * 100:.3f}%")
    return 0


if __name__ == '__main__':
    sys.exit(main())
