"""Peak detection on the baseline-corrected CV signal.

Forward scans look for oxidation peaks (positive excursions above the
baseline); reverse scans look for reduction peaks (negative excursions).

Pipeline:
    1. corrected = smoothed - baseline
    2. interior local extrema of the right sign
    3. prominence of each candidate
    4. drop candidates below threshold * max candidate magnitude
    5. merge candidates closer than max(5, 2% of n) indices
    6. boundaries where the corrected signal returns to zero
    7. parabolic sub-sample apex interpolation
    8. charge over the boundaries (Simpson, trapezoidal fallback)
    9. sort by potential
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ..processing.integration import IntegrationResult, simpsons, trapezoidal
from ..types import PeakKind, Sample, ScanDirection, ureg

DEFAULT_PROMINENCE_THRESHOLD = 0.05

CHARGE_UNITS = {
    "C": "coulomb",
    "V*A": "volt * ampere",
}


@dataclass(frozen=True)
class PeakCandidate:
    index: int
    magnitude: float  # |corrected| at the apex
    prominence: float = 0.0


@dataclass(frozen=True)
class PeakRecord:
    """A detected oxidation or reduction peak."""
    index: int  # Apex index in the scan
    potential: float  # Interpolated apex potential (V)
    current: float  # Smoothed current at the apex (A)
    raw_current: float  # Unsmoothed current at the apex (A)
    height: float  # Baseline-corrected height, absolute (A)
    prominence: float  # In the units of height
    area: float  # Absolute integrated peak area, see charge_unit
    area_error: Optional[float]  # Richardson estimate, None for Simpson
    charge_unit: str  # 'C' when time is available (Q = integral I dt), else 'V*A'
    start_index: int
    end_index: int
    start_potential: float
    end_potential: float
    kind: PeakKind

    def charge(self):
        """Integrated area as a pint quantity."""
        return self.area * ureg(CHARGE_UNITS[self.charge_unit])

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "index": self.index,
            "potential": float(self.potential),
            "current": float(self.current),
            "raw_current": float(self.raw_current),
            "height": float(self.height),
            "prominence": float(self.prominence),
            "area": float(self.area),
            "area_error": float(self.area_error) if self.area_error is not None else None,
            "charge_unit": self.charge_unit,
            "start_index": self.start_index,
            "end_index": self.end_index,
            "start_potential": float(self.start_potential),
            "end_potential": float(self.end_potential),
            "kind": self.kind.value,
        }


def baseline_corrected(smoothed: Sequence[Sample], baseline: Sequence[Sample]) -> np.ndarray:
    """Smoothed current minus baseline current, point by point."""
    if len(smoothed) != len(baseline):
        raise ValueError(
            f"Baseline length ({len(baseline)}) does not match data length ({len(smoothed)})"
        )
    return np.array([s.current - b.current for s, b in zip(smoothed, baseline)], dtype=float)


def find_candidates(corrected: np.ndarray, direction: ScanDirection | str) -> list[PeakCandidate]:
    """Interior strict local maxima above zero (forward) or minima below zero (reverse)."""
    corrected = np.asarray(corrected, dtype=float)
    if len(corrected) < 3:
        return []
    left, center, right = corrected[:-2], corrected[1:-1], corrected[2:]
    if ScanDirection(direction) is ScanDirection.FORWARD:
        mask = (center > left) & (center > right) & (center > 0)
    else:
        mask = (center < left) & (center < right) & (center < 0)
    return [
        PeakCandidate(index=int(i) + 1, magnitude=abs(float(corrected[i + 1])))
        for i in np.flatnonzero(mask)
    ]


def compute_prominence(corrected: np.ndarray, peak_index: int, direction: ScanDirection | str) -> float:
    """Height of the apex above the higher of its two bounding valleys.

    Each side is walked outward until a point beyond the apex (higher for
    forward, lower for reverse) or the edge is reached, tracking the most
    extreme valley value on the way.
    """
    is_max = ScanDirection(direction) is ScanDirection.FORWARD
    peak = corrected[peak_index]

    def walk(indices) -> float:
        valley = peak
        for i in indices:
            value = corrected[i]
            if is_max:
                valley = min(valley, value)
                if value > peak:
                    break
            else:
                valley = max(valley, value)
                if value < peak:
                    break
        return valley

    left = walk(range(peak_index - 1, -1, -1))
    right = walk(range(peak_index + 1, len(corrected)))

    if is_max:
        return float(peak - max(left, right))
    return float(min(left, right) - peak)


def merge_peaks(candidates: Sequence[PeakCandidate], min_separation: int) -> list[PeakCandidate]:
    """Merge candidates closer than min_separation indices.

    Candidates are visited in order of decreasing prominence (stable, so
    ties keep their input order); each kept apex absorbs every remaining
    candidate within min_separation of it.
    """
    ordered = sorted(candidates, key=lambda c: c.prominence, reverse=True)
    if len(ordered) <= 1:
        return ordered

    merged = []
    used = set()
    for peak in ordered:
        if peak.index in used:
            continue
        best = peak
        for other in ordered:
            if other.index == peak.index or other.index in used:
                continue
            if abs(other.index - peak.index) < min_separation:
                used.add(other.index)
                if other.prominence > best.prominence:
                    used.add(best.index)
                    best = other
        merged.append(best)
        used.add(best.index)
    return merged


def min_separation_for(n: int) -> int:
    return max(5, int(n * 0.02))


def find_peak_boundaries(
    corrected: np.ndarray, peak_index: int, direction: ScanDirection | str
) -> tuple[int, int]:
    """Walk outward until the corrected signal returns to the baseline.

    Returns the first index on each side where the sign flips (the value
    reaches zero or beyond), or the data edge.
    """
    is_max = ScanDirection(direction) is ScanDirection.FORWARD

    def returned(value: float) -> bool:
        return value <= 0 if is_max else value >= 0

    start = peak_index
    for i in range(peak_index - 1, -1, -1):
        start = i
        if returned(corrected[i]):
            break

    end = peak_index
    for i in range(peak_index + 1, len(corrected)):
        end = i
        if returned(corrected[i]):
            break

    return start, end


def interpolate_peak_potential(
    potential: Sequence[float], corrected: np.ndarray, peak_index: int
) -> float:
    """Sub-sample apex potential from a parabola through the apex and its neighbours.

    The fractional index offset is (y_l - y_r) / (2 (2 y_c - y_l - y_r));
    the potential is linearly interpolated toward the neighbour on that
    side. Falls back to the discrete apex at the edges or for a degenerate
    (flat) parabola.
    """
    if peak_index <= 0 or peak_index >= len(corrected) - 1:
        return float(potential[peak_index])

    y_l, y_c, y_r = corrected[peak_index - 1], corrected[peak_index], corrected[peak_index + 1]
    denom = 2 * (2 * y_c - y_l - y_r)
    if abs(denom) < 1e-30:
        return float(potential[peak_index])

    offset = (y_l - y_r) / denom
    e_l, e_c, e_r = potential[peak_index - 1], potential[peak_index], potential[peak_index + 1]
    if offset >= 0:
        return float(e_c + offset * (e_r - e_c))
    return float(e_c + offset * (e_c - e_l))


def integrate_peak_area(
    smoothed: Sequence[Sample],
    corrected: np.ndarray,
    start_index: int,
    end_index: int,
    use_time: bool,
) -> IntegrationResult:
    """Integrate the corrected current between the boundaries.

    The x-axis is time when use_time is set, potential otherwise. Simpson's
    rule is used for an odd point count of at least 3, trapezoidal otherwise.
    """
    window = smoothed[start_index:end_index + 1]
    y = corrected[start_index:end_index + 1]
    if len(window) < 2:
        return IntegrationResult(area=0.0)

    x = [s.time if use_time else s.potential for s in window]
    if len(window) >= 3 and len(window) % 2 == 1:
        return simpsons(x, y)
    return trapezoidal(x, y)


def find_peaks(
    smoothed: Sequence[Sample],
    baseline: Sequence[Sample],
    direction: ScanDirection | str,
    prominence_threshold: float = DEFAULT_PROMINENCE_THRESHOLD,
    raw: Optional[Sequence[Sample]] = None,
) -> list[PeakRecord]:
    """Find all significant peaks of one scan direction.

    Args:
        smoothed: Smoothed scan samples
        baseline: Baseline samples aligned with smoothed
        direction: 'forward' (oxidation) or 'reverse' (reduction)
        prominence_threshold: Minimum prominence as a fraction of the
            largest candidate magnitude
        raw: Unsmoothed samples for raw_current (defaults to smoothed)

    Returns:
        PeakRecords sorted by potential, ascending for oxidation and
        descending for reduction
    """
    direction = ScanDirection(direction)
    corrected = baseline_corrected(smoothed, baseline)
    n = len(corrected)
    if n < 5:
        return []
    if raw is None or len(raw) != n:
        raw = smoothed

    candidates = find_candidates(corrected, direction)
    if not candidates:
        return []

    min_prominence = max(c.magnitude for c in candidates) * prominence_threshold
    significant = [
        PeakCandidate(c.index, c.magnitude, compute_prominence(corrected, c.index, direction))
        for c in candidates
    ]
    significant = [c for c in significant if c.prominence >= min_prominence]
    merged = merge_peaks(significant, min_separation_for(n))

    use_time = all(s.has_time for s in smoothed)
    charge_unit = "C" if use_time else "V*A"
    potential = [s.potential for s in smoothed]

    peaks = []
    for candidate in merged:
        start, end = find_peak_boundaries(corrected, candidate.index, direction)
        integral = integrate_peak_area(smoothed, corrected, start, end, use_time)
        peaks.append(PeakRecord(
            index=candidate.index,
            potential=interpolate_peak_potential(potential, corrected, candidate.index),
            current=smoothed[candidate.index].current,
            raw_current=raw[candidate.index].current,
            height=abs(float(corrected[candidate.index])),
            prominence=candidate.prominence,
            area=abs(integral.area),
            area_error=integral.error,
            charge_unit=charge_unit,
            start_index=start,
            end_index=end,
            start_potential=smoothed[start].potential,
            end_potential=smoothed[end].potential,
            kind=direction.peak_kind,
        ))

    peaks.sort(key=lambda p: p.potential, reverse=direction is ScanDirection.REVERSE)
    return peaks
