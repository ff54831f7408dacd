"""Conversion of datasets into samples and splitting into CV cycles.

Each cycle is split at its potential extrema into a forward (increasing
potential) and a reverse (decreasing potential) scan sequence. The
instrument's scan/cycle column is used when present; otherwise switching
points are detected from sustained reversals of the potential sweep.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np
import polars as pl

from .types import EchemDataset, Sample

logger = logging.getLogger(__name__)

# Fraction of the total potential range a half-cycle must span
MIN_SWING_FRACTION = 0.1
MIN_SEGMENT_POINTS = 5


@dataclass(frozen=True)
class CycleData:
    forward: tuple[Sample, ...] = ()
    reverse: tuple[Sample, ...] = ()


@dataclass(frozen=True)
class CycleResult:
    """One detected cycle."""
    label: str  # e.g. "Scan 6" or "Cycle 3"
    data: CycleData
    switching_potentials: tuple[float, float]  # (anodic vertex, cathodic vertex) in V


@dataclass
class SplitResult:
    cycles: list[CycleResult] = field(default_factory=list)
    selected_index: Optional[int] = None  # Default cycle, the last one
    warnings: list[str] = field(default_factory=list)

    @property
    def selected(self) -> Optional[CycleResult]:
        if self.selected_index is None:
            return None
        return self.cycles[self.selected_index]


def _optional_column(df: pl.DataFrame, name: str) -> list:
    if name not in df.columns:
        return [None] * df.height
    return df[name].to_list()


def _clean(value) -> Optional[float]:
    if value is None:
        return None
    value = float(value)
    return None if math.isnan(value) else value


def samples_from_dataset(dataset: EchemDataset, cycle: int | None = None) -> tuple[Sample, ...]:
    """Convert a dataset into Sample records.

    Rows with a missing or non-finite potential or current are dropped.

    Args:
        dataset: Parsed dataset with potential_V and current_A columns
        cycle: Only keep rows of this cycle number

    Returns:
        Tuple of Samples in acquisition order

    Raises:
        ValueError: If the potential or current column is missing
    """
    df = dataset.df
    missing = [c for c in ("potential_V", "current_A") if c not in df.columns]
    if missing:
        raise ValueError(f"Dataset {dataset.filename} is missing columns: {', '.join(missing)}")

    df = df.with_columns(
        pl.col("potential_V").cast(pl.Float64),
        pl.col("current_A").cast(pl.Float64),
    ).filter(
        pl.col("potential_V").is_finite() & pl.col("current_A").is_finite()
    )
    if cycle is not None and "cycle" in df.columns:
        df = df.filter(pl.col("cycle") == cycle)

    times = _optional_column(df, "time_s")
    applied = _optional_column(df, "applied_potential_V")
    cycles = _optional_column(df, "cycle")

    samples = []
    for potential, current, t, ap, c in zip(
        df["potential_V"].to_list(), df["current_A"].to_list(), times, applied, cycles
    ):
        samples.append(Sample(
            potential=potential,
            current=current,
            time=_clean(t),
            applied_potential=_clean(ap),
            cycle=int(c) if c is not None else None,
        ))
    return tuple(samples)


def detect_scan_rate(time: Sequence[float], potential: Sequence[float]) -> Optional[float]:
    """Scan rate (V/s) as the median |dE/dt| over consecutive points.

    Steps with non-positive dt or zero dE are ignored; the median keeps
    switching-point artifacts from biasing the estimate.

    Returns:
        Scan rate in V/s, or None with fewer than 10 points, any missing
        time value, or fewer than 5 usable steps
    """
    if len(time) < 10 or len(time) != len(potential):
        return None
    if any(t is None for t in time):
        return None

    t = np.asarray(time, dtype=float)
    e = np.asarray(potential, dtype=float)
    if not np.all(np.isfinite(t)):
        return None

    dt = np.diff(t)
    de = np.abs(np.diff(e))
    usable = (dt > 0) & (de > 0)
    if int(usable.sum()) < 5:
        return None
    return float(np.median(de[usable] / dt[usable]))


def split_at_extrema(samples: Sequence[Sample]) -> tuple[CycleData, tuple[float, float]]:
    """Split one cycle into forward and reverse scans at its potential extrema.

    Handles 2-segment (forward, reverse) and 3-segment (forward, reverse,
    return) sweeps; the return leg is joined onto the leg it continues.
    """
    samples = tuple(samples)
    if not samples:
        return CycleData(), (0.0, 0.0)

    potential = np.array([s.potential for s in samples], dtype=float)
    max_idx, min_idx = int(np.argmax(potential)), int(np.argmin(potential))
    lo, hi = min(max_idx, min_idx), max(max_idx, min_idx)

    between = samples[lo:hi + 1]
    has_outer = lo > 0 or hi < len(samples) - 1
    # Tail from hi onward wrapped onto the head up to lo, without repeating samples[0]
    outer = samples[hi:] + samples[1:lo + 1] if has_outer else ()

    goes_up = len(between) >= 2 and between[-1].potential > between[0].potential
    if goes_up:
        data = CycleData(forward=between, reverse=outer)
    else:
        data = CycleData(forward=outer, reverse=between)
    return data, (float(potential[max_idx]), float(potential[min_idx]))


def find_switching_points(potential: Sequence[float], min_swing: float) -> list[int]:
    """Indices of sustained reversals of the potential sweep.

    A reversal is confirmed once the sweep retreats from its running
    extremum by more than half of min_swing; it is recorded only when the
    extremum lies more than min_swing from the previous switching point.
    """
    potential = np.asarray(potential, dtype=float)
    if len(potential) < 2:
        return []

    switches = []
    anchor = potential[0]
    ext_idx, ext_val = 0, potential[0]
    direction = 0

    for i in range(1, len(potential)):
        value = potential[i]
        if direction == 0:
            if abs(value - anchor) > min_swing * 0.5:
                direction = 1 if value > anchor else -1
                ext_idx, ext_val = i, value
            continue

        if direction * (value - ext_val) > 0:
            ext_idx, ext_val = i, value
        elif direction * (ext_val - value) > min_swing * 0.5:
            if abs(ext_val - anchor) > min_swing:
                switches.append(ext_idx)
                anchor = ext_val
            window = potential[ext_idx:i + 1]
            offset = int(np.argmin(window)) if direction == 1 else int(np.argmax(window))
            ext_idx = ext_idx + offset
            ext_val = potential[ext_idx]
            direction = -direction

    return switches


def _single_cycle(samples, warnings, warning=None) -> SplitResult:
    data, vertices = split_at_extrema(samples)
    if warning:
        warnings.append(warning)
    return SplitResult(
        cycles=[CycleResult(label="Cycle 1", data=data, switching_potentials=vertices)],
        selected_index=0,
        warnings=warnings,
    )


def split_by_scan_column(samples: Sequence[Sample], warnings: list[str]) -> SplitResult:
    """One cycle per instrument scan number, in ascending order."""
    groups: dict[int, list[Sample]] = {}
    for s in samples:
        groups.setdefault(s.cycle if s.cycle is not None else 1, []).append(s)

    warnings.append("Cycle split using instrument scan column")
    cycles = []
    for number in sorted(groups):
        data, vertices = split_at_extrema(groups[number])
        cycles.append(CycleResult(label=f"Scan {number}", data=data, switching_potentials=vertices))

    return SplitResult(cycles=cycles, selected_index=len(cycles) - 1, warnings=warnings)


def split_by_switching_points(samples: Sequence[Sample], warnings: list[str]) -> SplitResult:
    """Pair consecutive half-cycles between detected switching points into cycles."""
    samples = tuple(samples)
    if len(samples) < 20:
        return _single_cycle(samples, warnings, "Dataset too small for multi-cycle detection")

    potential = np.array([s.potential for s in samples], dtype=float)
    min_swing = float(potential.max() - potential.min()) * MIN_SWING_FRACTION
    switches = find_switching_points(potential, min_swing)

    if not switches:
        return _single_cycle(
            samples, warnings, "No switching points detected, treating all data as one cycle"
        )

    boundaries = [0, *switches, len(samples) - 1]
    cycles = []
    for seg in range(0, len(boundaries) - 2, 2):
        start, mid, end = boundaries[seg], boundaries[seg + 1], boundaries[seg + 2]
        seg_a = samples[start:mid + 1]
        seg_b = samples[mid:end + 1]
        if len(seg_a) < MIN_SEGMENT_POINTS or len(seg_b) < MIN_SEGMENT_POINTS:
            continue

        a_goes_up = seg_a[-1].potential > seg_a[0].potential
        forward, reverse = (seg_a, seg_b) if a_goes_up else (seg_b, seg_a)
        vertices = (
            max(forward[0].potential, forward[-1].potential),
            min(reverse[0].potential, reverse[-1].potential),
        )
        cycles.append(CycleResult(
            label=f"Cycle {len(cycles) + 1}",
            data=CycleData(forward=forward, reverse=reverse),
            switching_potentials=vertices,
        ))

    if not cycles:
        return _single_cycle(
            samples, warnings, "Could not build complete cycles from switching points"
        )

    logger.debug("Detected %d switching points, %d cycles", len(switches), len(cycles))
    return SplitResult(cycles=cycles, selected_index=len(cycles) - 1, warnings=warnings)


def split_cycles(samples: Sequence[Sample]) -> SplitResult:
    """Split CV samples into cycles, each with forward and reverse scans.

    Uses the instrument scan column when any sample carries a cycle number,
    otherwise heuristic switching-point detection. All cycles are returned;
    the last one is selected by default.
    """
    samples = tuple(samples)
    warnings = []

    if not samples:
        return SplitResult(warnings=["No data points to split"])
    if len(samples) < 10:
        warnings.append("Dataset is very small, cycle detection may be unreliable")

    if any(s.cycle is not None for s in samples):
        return split_by_scan_column(samples, warnings)
    return split_by_switching_points(samples, warnings)
