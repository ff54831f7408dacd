"""Data types for echem_cv."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
import polars as pl
import pint

# Initialize unit registry
ureg = pint.UnitRegistry()


class ScanDirection(str, Enum):
    """Direction of a monotonic half-cycle."""

    FORWARD = "forward"  # increasing potential, oxidation peaks point up
    REVERSE = "reverse"  # decreasing potential, reduction peaks point down

    @property
    def peak_kind(self) -> "PeakKind":
        return PeakKind.OXIDATION if self is ScanDirection.FORWARD else PeakKind.REDUCTION


class PeakKind(str, Enum):
    OXIDATION = "oxidation"
    REDUCTION = "reduction"


@dataclass(frozen=True)
class Sample:
    """A single potential/current measurement.

    Optional fields are None when the instrument did not record them.
    """

    potential: float  # Measured working electrode potential (V)
    current: float  # Current (A)
    time: float | None = None  # Elapsed time (s), enables charge in Coulombs
    applied_potential: float | None = None  # Programmed potential (V), enables iR drop
    cycle: int | None = None  # Instrument scan/cycle number

    @property
    def has_time(self) -> bool:
        return self.time is not None

    @property
    def has_applied_potential(self) -> bool:
        return self.applied_potential is not None

    def with_current(self, current: float) -> "Sample":
        """Return a copy carrying a different current value."""
        return replace(self, current=float(current))


@dataclass
class EchemDataset:
    """Represents a single electrochemistry measurement file.

    All data is stored in SI units with standardized column names:
    - time_s: seconds
    - potential_V: volts (measured)
    - applied_potential_V: volts (programmed)
    - current_A: amperes
    - charge_plus_C, charge_minus_C: coulombs (instrument-reported)
    - cycle: integer index
    """

    # Identity
    filename: str  # Original filename

    # Data (always SI units, encoded in column names)
    df: pl.DataFrame  # The measurement data
    columns: list[str]  # Column names (e.g., current_A, potential_V)

    # Metadata
    technique: str | None = None  # CV, LSV, ...
    label: str | None = None  # User-editable label
    timestamp: datetime | None = None  # Measurement timestamp
    cycles: list[int] = field(default_factory=list)

    # Provenance
    source_format: str | None = None  # 'gamry' or 'text'
    original_filename: str | None = None  # Before any rename

    # Parser-derived and user-defined fields (scan_rate_V_s, instrument_charge, ...)
    user_metadata: dict = field(default_factory=dict)


def convert_units(value: float, source_unit: str, target_unit: str) -> float:
    """Convert a value from source unit to target unit using pint.

    Args:
        value: The numeric value to convert
        source_unit: Unit string (e.g., "milliampere")
        target_unit: Target unit string (e.g., "ampere")

    Returns:
        Converted value
    """
    if not source_unit or not target_unit or source_unit == target_unit:
        return value
    return (value * ureg(source_unit)).to(target_unit).magnitude


# Standard column definitions with SI units
STANDARD_COLUMNS = {
    "time_s": {"unit": "second", "description": "Elapsed time"},
    "potential_V": {"unit": "volt", "description": "Working electrode potential"},
    "applied_potential_V": {"unit": "volt", "description": "Applied (programmed) potential"},
    "current_A": {"unit": "ampere", "description": "Current"},
    "charge_plus_C": {"unit": "coulomb", "description": "Instrument anodic charge"},
    "charge_minus_C": {"unit": "coulomb", "description": "Instrument cathodic charge"},
    "cycle": {"unit": None, "description": "Cycle index (dimensionless)"},
}

# Column mappings: source_column -> (standard_name, source_unit, target_unit)
GAMRY_COLUMN_MAP = {
    "T": ("time_s", "second", "second"),
    "Time": ("time_s", "second", "second"),
    "Vf": ("potential_V", "volt", "volt"),
    "V": ("potential_V", "volt", "volt"),
    "E": ("potential_V", "volt", "volt"),
    "Sig": ("applied_potential_V", "volt", "volt"),
    "Im": ("current_A", "ampere", "ampere"),
    "I": ("current_A", "ampere", "ampere"),
    "Cycle": ("cycle", None, None),
}

# Unit suffixes seen in text export headers, e.g. "Current (µA)" or "<I>/mA"
HEADER_UNITS = {
    "s": "second",
    "ms": "millisecond",
    "min": "minute",
    "v": "volt",
    "mv": "millivolt",
    "a": "ampere",
    "ma": "milliampere",
    "µa": "microampere",
    "ua": "microampere",
    "na": "nanoampere",
    "c": "coulomb",
    "mc": "millicoulomb",
    "µc": "microcoulomb",
    "uc": "microcoulomb",
}

