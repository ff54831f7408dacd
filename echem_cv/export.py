"""Export functions for CV analysis results."""

import io
import json
import zipfile
from datetime import datetime
from typing import Optional, Sequence

import polars as pl

from .analysis.cv import CVPairParameters, ScanAnalysisResult
from .analysis.peaks import PeakRecord
from .config import AnalysisConfig

SCHEMA_VERSION = "1.0.0"
FORMAT_NAME = "echem-cv-export"

PEAK_SCHEMA = {
    "index": pl.Int64,
    "potential": pl.Float64,
    "current": pl.Float64,
    "raw_current": pl.Float64,
    "height": pl.Float64,
    "prominence": pl.Float64,
    "area": pl.Float64,
    "area_error": pl.Float64,
    "charge_unit": pl.Utf8,
    "start_index": pl.Int64,
    "end_index": pl.Int64,
    "start_potential": pl.Float64,
    "end_potential": pl.Float64,
    "kind": pl.Utf8,
}


def peaks_to_frame(peaks: Sequence[PeakRecord]) -> pl.DataFrame:
    """One row per peak, columns as in PeakRecord.to_dict()."""
    return pl.DataFrame([p.to_dict() for p in peaks], schema=PEAK_SCHEMA)


def scan_result_to_frame(result: ScanAnalysisResult) -> pl.DataFrame:
    """Per-point table of a scan analysis (raw, smoothed, slope, baseline, corrected)."""
    columns = {
        "potential_V": [s.potential for s in result.smoothed],
        "current_raw_A": [s.current for s in result.raw],
        "current_smoothed_A": [s.current for s in result.smoothed],
        "derivative_A_per_V": result.derivative.tolist(),
        "baseline_A": [s.current for s in result.baseline],
        "corrected_A": result.corrected.tolist(),
    }
    if result.raw and all(s.has_time for s in result.raw):
        columns = {"time_s": [s.time for s in result.raw], **columns}
    return pl.DataFrame(columns, schema={name: pl.Float64 for name in columns})


def csv_export(
    results: Sequence[ScanAnalysisResult],
    pair: Optional[CVPairParameters] = None,
    config: Optional[AnalysisConfig] = None,
    label: str | None = None,
) -> bytes:
    """Export scan analyses to zip file with CSV format (for Excel/other software).

    Args:
        results: Scan analyses to export, typically the forward and reverse scans
        pair: Optional paired peak parameters (for metadata.json)
        config: Configuration the results were computed with (for metadata.json)
        label: Optional dataset label

    Returns:
        Zip file contents as bytes
    """
    buffer = io.BytesIO()

    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        metadata = {
            "schema_version": SCHEMA_VERSION,
            "format": FORMAT_NAME,
            "exported_at": datetime.now().isoformat(),
            "label": label,
            "config": config.to_dict() if config else None,
            "pair": pair.to_dict() if pair else None,
            "scans": [],
        }

        all_peaks = []
        used_names = set()
        for result in results:
            # data/forward.csv, data/reverse.csv, data/forward_2.csv, ...
            name = result.direction.value
            suffix = 2
            while name in used_names:
                name = f"{result.direction.value}_{suffix}"
                suffix += 1
            used_names.add(name)

            csv_name = f"data/{name}.csv"
            zf.writestr(csv_name, scan_result_to_frame(result).write_csv())

            peaks = peaks_to_frame(result.peaks).with_columns(pl.lit(name).alias("scan"))
            all_peaks.append(peaks)

            metadata["scans"].append({
                "name": name,
                "direction": result.direction.value,
                "csv_path": csv_name,
                "n_points": len(result.raw),
                "baseline_method": result.baseline_method,
                "n_peaks": len(result.peaks),
                "derivative_statistics": result.derivative_statistics.to_dict(),
                "warnings": list(result.warnings),
            })

        if all_peaks:
            zf.writestr("peaks.csv", pl.concat(all_peaks).write_csv())

        zf.writestr("metadata.json", json.dumps(metadata, indent=2))

    return buffer.getvalue()
