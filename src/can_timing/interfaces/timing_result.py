"""
Bit Timing Data Models

These dataclasses define the contract between the timing solver and its
callers: the hardware limits of a CAN controller going in, and the chosen
segment configuration coming out. A TimingSolution is serialized to JSON by
the command-line tool.

Contract Version: 1.0.0
"""

from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, List, Optional
import json
import math


@dataclass(frozen=True)
class DeviceCapability:
    """
    Hardware timing limits of one CAN controller.

    All ranges are inclusive and expressed in time quanta, except the clock
    (Hz) and the prescaler (clock divider). TSEG1 is the combined length of
    the propagation segment and phase segment 1; TSEG2 is phase segment 2.

    The solver takes these values as given. Use validate() to report
    inconsistent limits before solving.
    """
    clock: int              # Oscillator frequency feeding the prescaler (Hz)
    min_ps: int             # Prescaler range
    max_ps: int
    min_tq: int             # Total time quanta per bit
    max_tq: int
    min_prop_seg: int       # Propagation segment
    max_prop_seg: int
    min_tseg1: int          # prop_seg + phase_seg1
    max_tseg1: int
    min_tseg2: int          # phase_seg2
    max_tseg2: int
    max_sjw: int            # Synchronization jump width cap
    min_sjw: int = 1
    name: Optional[str] = None

    _RANGES = (
        ('min_ps', 'max_ps'),
        ('min_tq', 'max_tq'),
        ('min_prop_seg', 'max_prop_seg'),
        ('min_tseg1', 'max_tseg1'),
        ('min_tseg2', 'max_tseg2'),
        ('min_sjw', 'max_sjw'),
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any], name: Optional[str] = None) -> "DeviceCapability":
        """
        Build a capability from a mapping of field names to values.

        Raises:
            ValueError: on unknown fields, missing fields, or values that are
                not whole numbers
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown capability fields: {', '.join(unknown)}")

        required = [f.name for f in fields(cls) if f.name not in ('min_sjw', 'name')]
        missing = [key for key in required if key not in data]
        if missing:
            raise ValueError(f"Missing capability fields: {', '.join(missing)}")

        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key == 'name':
                values[key] = None if value is None else str(value)
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Capability field {key} must be a number, got {value!r}")
            # Clock, prescaler and segment limits are register counts
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(f"Capability field {key} must be a whole number, got {value!r}")
            values[key] = int(value)

        if name is not None:
            values['name'] = name
        return cls(**values)

    @classmethod
    def from_preset(cls, preset: str) -> "DeviceCapability":
        """Look up a built-in device preset by name."""
        from ..timing.can_constants import DEVICE_PRESETS

        if preset not in DEVICE_PRESETS:
            available = ', '.join(sorted(DEVICE_PRESETS))
            raise ValueError(f"Unknown device preset: {preset} (available: {available})")
        return cls.from_dict(DEVICE_PRESETS[preset], name=preset)

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def validate(self) -> List[str]:
        """
        Check the limits for internal consistency.

        Returns:
            Human-readable problems, empty if the capability looks sane
        """
        problems = []
        if not self.clock > 0:
            problems.append(f"clock must be positive, got {self.clock}")
        if self.min_ps < 1:
            problems.append(f"min_ps must be at least 1, got {self.min_ps}")

        for low, high in self._RANGES:
            low_value = getattr(self, low)
            high_value = getattr(self, high)
            if low_value < 0:
                problems.append(f"{low} must not be negative, got {low_value}")
            if low_value > high_value:
                problems.append(f"{low} ({low_value}) is greater than {high} ({high_value})")

        if self.min_prop_seg > self.min_tseg1:
            problems.append(
                f"min_prop_seg ({self.min_prop_seg}) exceeds min_tseg1 ({self.min_tseg1})"
            )
        return problems


@dataclass(frozen=True)
class SolveRequest:
    """Target bit rate (bit/s) and sample point (percent of the bit period)."""
    desired_baud: float
    desired_sample_point: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SolveRequest":
        try:
            baud = float(data['baud_rate'])
            sample_point = float(data['sample_point'])
        except KeyError as e:
            raise ValueError(f"Missing request field: {e.args[0]}") from e
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid request value: {e}") from e

        if not math.isfinite(baud) or baud <= 0:
            raise ValueError(f"baud_rate must be a positive number, got {data['baud_rate']}")
        if not 0.0 < sample_point < 100.0:
            raise ValueError(f"sample_point must be between 0 and 100, got {data['sample_point']}")
        return cls(desired_baud=baud, desired_sample_point=sample_point)


@dataclass
class TimingSolution:
    """
    One nominal bit timing configuration.

    Produced both for every feasible candidate during the search and for the
    final answer. Segment lengths are in time quanta; the register encoding
    (often value - 1) is left to the caller.
    """
    # Achieved rates
    baud_rate: float                 # Achieved bit rate (bit/s)
    baud_error: float                # |achieved - desired| (bit/s)
    sample_point: float              # Achieved sample point (percent)
    sample_point_error: float        # |achieved - desired| (percentage points)
    oscillator_tolerance: float      # Max relative clock deviation (fraction, not percent)

    # Register-level settings
    prescaler: int
    prop_seg: int
    phase_seg1: int
    phase_seg2: int
    max_sjw: int
    time_quanta: int = 0             # Total TQ per bit, including SYNC_SEG

    @property
    def tseg1(self) -> int:
        return self.prop_seg + self.phase_seg1

    @property
    def tseg2(self) -> int:
        return self.phase_seg2

    @property
    def time_quantum_ns(self) -> float:
        """Length of one time quantum in nanoseconds."""
        return 1e9 / (self.baud_rate * self.time_quanta)

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        """Serialize to JSON."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> "TimingSolution":
        """Deserialize from JSON."""
        data = json.loads(json_str)
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def summary(self) -> str:
        """One-line description for logs and the CLI."""
        return (
            f"{self.baud_rate:.1f} bit/s (err {self.baud_error:.3f}), "
            f"sample {self.sample_point:.2f}% (err {self.sample_point_error:.2f}), "
            f"prescaler {self.prescaler}, {self.time_quanta} TQ: "
            f"prop {self.prop_seg} ps1 {self.phase_seg1} ps2 {self.phase_seg2} "
            f"sjw {self.max_sjw}, osc tol {self.oscillator_tolerance * 100:.3f}%"
        )
