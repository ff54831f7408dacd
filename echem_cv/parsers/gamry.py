"""Gamry .DTA file parser."""

import logging
import os
import re
from datetime import datetime

import polars as pl

from ..scans import detect_scan_rate
from ..types import EchemDataset, GAMRY_COLUMN_MAP, convert_units

logger = logging.getLogger(__name__)

# Technique detection from filename
TECHNIQUE_PATTERNS = {
    "lsv": "LSV",
    "cv": "CV",
}

# Technique detection from header TAG field
TAG_TO_TECHNIQUE = {
    "CV": "CV",
    "LSV": "LSV",
}

# Header value types whose value sits in the third field
TYPED_FIELDS = {"QUANT", "IQUANT", "POTEN", "LABEL", "SELECTOR", "TOGGLE", "ONEPARAM"}


def detect_technique_from_filename(filename: str) -> str | None:
    """Detect technique from Gamry filename."""
    lower = filename.lower()
    for pattern, technique in TECHNIQUE_PATTERNS.items():
        if pattern in lower:
            return technique
    return None


def extract_label_from_filename(filename: str) -> str:
    """Extract a clean label from Gamry filename."""
    base = filename.replace(".DTA", "").replace(".dta", "")
    base = re.sub(r"^\d+_", "", base)
    return base


def read_header(lines: list[str]) -> dict[str, str]:
    """Key/value pairs of the header block preceding the first curve.

    Typed entries ("SCANRATE\\tQUANT\\t100\\tScan Rate (mV/s)") store their
    value, not their type.
    """
    metadata = {}
    for line in lines:
        stripped = line.strip()
        if re.match(r"\w*CURVE\d*\s+TABLE", stripped):
            break
        if "\t" not in line:
            continue
        parts = [p.strip() for p in line.split("\t")]
        key = parts[0]
        if not key or key.startswith("#") or len(parts) < 2:
            continue
        value = parts[2] if parts[1] in TYPED_FIELDS and len(parts) >= 3 else parts[1]
        if value:
            metadata[key] = value
    return metadata


def header_timestamp(metadata: dict[str, str]) -> datetime | None:
    """Measurement timestamp from the DATE and TIME header entries."""
    date, time = metadata.get("DATE"), metadata.get("TIME")
    if not date or not time:
        return None
    for fmt in ("%m/%d/%Y %H:%M:%S", "%d.%m.%Y %H:%M:%S", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(f"{date} {time}", fmt)
        except ValueError:
            continue
    return None


def header_scan_rate(metadata: dict[str, str]) -> float | None:
    """Programmed scan rate in V/s (the header stores mV/s)."""
    value = metadata.get("SCANRATE")
    if value is None:
        return None
    try:
        return convert_units(float(value), "millivolt / second", "volt / second")
    except ValueError:
        return None


def find_curve_lines(lines: list[str]) -> list[tuple[int, int | None]]:
    """Find all data CURVE markers and their optional numbers.

    OCV and impedance curves (OCVCURVE, ZCURVE) are skipped.
    """
    curves = []
    for i, line in enumerate(lines):
        match = re.match(r"(\w*CURVE)(\d*)\s+TABLE", line.strip())
        if match and match.group(1) == "CURVE":
            num = int(match.group(2)) if match.group(2) else None
            curves.append((i, num))
    return curves


def standardize_dataframe(df: pl.DataFrame) -> pl.DataFrame:
    """Convert Gamry DataFrame to standard column names and SI units.

    Columns without a standard counterpart are dropped.
    """
    new_columns = []
    processed_standards = set()

    for col in df.columns:
        if col not in GAMRY_COLUMN_MAP:
            continue
        standard_name, source_unit, target_unit = GAMRY_COLUMN_MAP[col]

        # Skip if we already have this standard column
        if standard_name in processed_standards:
            continue
        processed_standards.add(standard_name)

        if source_unit and target_unit and source_unit != target_unit:
            factor = convert_units(1.0, source_unit, target_unit)
            new_columns.append((pl.col(col) * factor).alias(standard_name))
        elif standard_name == "cycle":
            new_columns.append(pl.col(col).cast(pl.Int64).alias(standard_name))
        else:
            new_columns.append(pl.col(col).alias(standard_name))

    return df.select(new_columns)


def read_gamry_curve_at_line(
    lines: list[str], start_line: int, curve_num: int | None, end_line: int | None = None
) -> pl.DataFrame:
    """Read curve data starting at a specific line."""
    header_line = start_line + 1
    data_start_line = start_line + 3  # After CURVE, headers, units

    if end_line is None:
        end_line = len(lines)
    if header_line >= len(lines):
        raise ValueError(f"Curve at line {start_line} has no header")

    column_names = [c.strip() for c in lines[header_line].strip().split("\t") if c.strip()]

    data_rows = []
    for line in lines[data_start_line:end_line]:
        stripped = line.strip()
        if not stripped:
            continue
        if re.match(r"\w*CURVE\d*\s+TABLE", stripped):
            break
        parts = stripped.split("\t")
        row = []
        for val in parts[: len(column_names)]:
            try:
                row.append(float(val.strip()))
            except ValueError:
                row.append(None)
        if len(row) == len(column_names):
            data_rows.append(row)

    if not data_rows:
        raise ValueError(f"No data rows found at line {start_line}")

    df = pl.DataFrame(data_rows, schema=column_names, orient="row")

    # Add cycle column if not present
    if "Cycle" not in df.columns:
        df = df.with_columns(pl.lit(curve_num if curve_num is not None else 0).alias("Cycle"))

    return df


def parse_gamry_lines(lines: list[str], filename: str) -> EchemDataset:
    """Parse the lines of a Gamry .DTA file.

    Args:
        lines: File contents split into lines
        filename: Original filename

    Returns:
        EchemDataset with standardized column names and SI units

    Raises:
        ValueError: If the file has no CURVE tables or no data rows
    """
    metadata = read_header(lines)

    curve_lines = find_curve_lines(lines)
    if not curve_lines:
        raise ValueError(f"No CURVE markers found in {filename}")

    # Read all curves
    all_dfs = []
    for i, (line_idx, curve_num) in enumerate(curve_lines):
        end_line = curve_lines[i + 1][0] if i + 1 < len(curve_lines) else None
        try:
            df = read_gamry_curve_at_line(lines, line_idx, curve_num, end_line)
            all_dfs.append(df)
        except ValueError as e:
            logger.debug("Skipping curve in %s: %s", filename, e)
            continue

    if not all_dfs:
        raise ValueError(f"No data found in {filename}")

    df = standardize_dataframe(pl.concat(all_dfs, how="diagonal"))

    tag = metadata.get("TAG", "").upper()
    technique = TAG_TO_TECHNIQUE.get(tag, tag or None) or detect_technique_from_filename(filename)

    # Detect cycles
    cycles = []
    if "cycle" in df.columns:
        cycles = sorted(df["cycle"].unique().to_list())

    scan_rate = header_scan_rate(metadata)
    if scan_rate is None and "time_s" in df.columns and "potential_V" in df.columns:
        scan_rate = detect_scan_rate(df["time_s"].to_list(), df["potential_V"].to_list())

    return EchemDataset(
        filename=filename,
        df=df,
        columns=list(df.columns),
        technique=technique,
        label=extract_label_from_filename(filename),
        timestamp=header_timestamp(metadata),
        cycles=cycles,
        source_format="gamry",
        original_filename=filename,
        user_metadata={"scan_rate_V_s": scan_rate, "header": metadata},
    )


def read_gamry_file(file_path: str, filename: str | None = None) -> EchemDataset:
    """Read a Gamry .DTA file and return an EchemDataset.

    Args:
        file_path: Path to .dta file
        filename: Original filename (defaults to basename of file_path)

    Returns:
        EchemDataset with standardized column names and SI units
    """
    if filename is None:
        filename = os.path.basename(file_path)

    with open(file_path, "r", errors="ignore") as f:
        lines = f.readlines()
    return parse_gamry_lines(lines, filename)


def read_gamry_bytes(content: bytes, filename: str) -> EchemDataset:
    """Read a Gamry .DTA file from bytes.

    Args:
        content: File contents as bytes
        filename: Original filename

    Returns:
        EchemDataset with standardized column names and SI units
    """
    return parse_gamry_lines(content.decode("utf-8", errors="ignore").splitlines(), filename)
