"""Potentiostat text export parser (.txt, .tsv, .csv).

Delimited exports with a single header row, e.g.

    Index  Time (s)  Potential applied (V)  WE(1).Potential (V)  WE(1).Current (A)  Scan  Q+  Q-

Columns are identified by name and converted to SI units from the unit
given in the header ("Current (mA)", "<I>/uA", ...).
"""

import logging
import math
import os
import re

import pint
import polars as pl

from ..scans import detect_scan_rate
from ..types import HEADER_UNITS, STANDARD_COLUMNS, EchemDataset, convert_units

logger = logging.getLogger(__name__)

# standard column -> target SI unit
COLUMN_TARGET_UNITS = {
    name: column["unit"] for name, column in STANDARD_COLUMNS.items() if column["unit"]
}

UNIT_PATTERN = re.compile(r"(?:\(([^()]+)\)|/\s*([^/\s()]+))\s*$")


def detect_delimiter(header: str) -> str:
    """Tab if present in the header line, otherwise comma, otherwise semicolon."""
    if "\t" in header:
        return "\t"
    if "," in header:
        return ","
    return ";"


def header_unit(column: str) -> str | None:
    """Pint unit name from a trailing "(unit)" or "/unit" in a column header."""
    match = UNIT_PATTERN.search(column.strip())
    if not match:
        return None
    unit = (match.group(1) or match.group(2)).strip().lower()
    return HEADER_UNITS.get(unit)


def base_name(column: str) -> str:
    """Lowercase column name without its unit suffix."""
    return UNIT_PATTERN.sub("", column.strip()).strip().lower()


def identify_columns(columns: list[str]) -> dict[str, int]:
    """Map standard column names to header indices.

    The working electrode potential and current are preferred over any
    other potential/current column.
    """
    names = [c.lower() for c in columns]
    bases = [base_name(c) for c in columns]

    def first(*predicates) -> int | None:
        for predicate in predicates:
            for i, (name, base) in enumerate(zip(names, bases)):
                if predicate(name, base):
                    return i
        return None

    found = {
        "potential_V": first(
            lambda n, b: "potential" in n and "applied" not in n,
            lambda n, b: b in ("e", "ewe", "vf", "<ewe>"),
        ),
        "current_A": first(
            lambda n, b: "current" in n and "we" in n,
            lambda n, b: "current" in n,
            lambda n, b: b in ("i", "im", "<i>"),
        ),
        "time_s": first(lambda n, b: b in ("time", "t")),
        "applied_potential_V": first(
            lambda n, b: "potential" in n and "applied" in n,
            lambda n, b: b == "sig",
        ),
        "cycle": first(lambda n, b: b in ("scan", "cycle", "cycle number")),
        "charge_plus_C": first(lambda n, b: b == "q+"),
        "charge_minus_C": first(lambda n, b: b == "q-"),
    }
    return {name: index for name, index in found.items() if index is not None}


def conversion_factor(column: str, standard_name: str) -> float:
    """Factor converting a header's unit to the standard column's SI unit.

    Columns without a recognized unit are assumed to already be in SI.

    Raises:
        ValueError: If the header unit has the wrong dimension
    """
    target = COLUMN_TARGET_UNITS.get(standard_name)
    source = header_unit(column)
    if not target or not source:
        return 1.0
    try:
        return convert_units(1.0, source, target)
    except pint.DimensionalityError as e:
        raise ValueError(f"Column '{column}' has unit {source}, expected {target}") from e


def _parse_float(value: str) -> float | None:
    try:
        number = float(value.strip())
    except ValueError:
        return None
    return None if math.isnan(number) else number


def instrument_charge(df: pl.DataFrame) -> dict | None:
    """Instrument-reported Q+/Q- from the last row, or None if not recorded."""
    if df.height == 0 or "charge_plus_C" not in df.columns or "charge_minus_C" not in df.columns:
        return None
    q_plus, q_minus = df["charge_plus_C"][-1], df["charge_minus_C"][-1]
    if q_plus is None or q_minus is None:
        return None
    return {"q_plus_C": float(q_plus), "q_minus_C": float(q_minus)}


def parse_text(content: str, filename: str) -> EchemDataset:
    """Parse a delimited text export.

    Args:
        content: Decoded file contents
        filename: Original filename

    Returns:
        EchemDataset with standardized column names and SI units. Parser
        warnings, the detected scan rate and the instrument charge are
        stored in user_metadata.

    Raises:
        ValueError: If the file is empty, lacks a potential or current
            column, or contains no valid data rows
    """
    lines = [line for line in content.splitlines() if line.strip()]
    if not lines:
        raise ValueError(f"File is empty: {filename}")

    delimiter = detect_delimiter(lines[0])
    columns = [c.strip() for c in lines[0].split(delimiter)]
    indices = identify_columns(columns)

    if "potential_V" not in indices:
        raise ValueError(f"Could not find potential column in header of {filename}")
    if "current_A" not in indices:
        raise ValueError(f"Could not find current column in header of {filename}")

    factors = {name: conversion_factor(columns[i], name) for name, i in indices.items()}
    data = {name: [] for name in indices}
    required = max(indices["potential_V"], indices["current_A"])
    skipped = 0

    for line in lines[1:]:
        values = line.strip().split(delimiter)
        if len(values) <= required:
            skipped += 1
            continue
        potential = _parse_float(values[indices["potential_V"]])
        current = _parse_float(values[indices["current_A"]])
        if potential is None or current is None:
            skipped += 1
            continue

        for name, i in indices.items():
            value = _parse_float(values[i]) if i < len(values) else None
            if name == "cycle":
                data[name].append(int(value) if value is not None else None)
            else:
                data[name].append(value * factors[name] if value is not None else None)

    if not data["potential_V"]:
        raise ValueError(f"No valid data points found in {filename}")

    schema = {name: pl.Int64 if name == "cycle" else pl.Float64 for name in data}
    df = pl.DataFrame(data, schema=schema)

    warnings = []
    if skipped:
        warnings.append(f"Skipped {skipped} invalid or incomplete lines")
    if df["potential_V"].max() == df["potential_V"].min():
        warnings.append("All potential values are identical")
    if df["current_A"].max() == df["current_A"].min():
        warnings.append("All current values are identical")

    scan_rate = None
    if "time_s" in df.columns:
        scan_rate = detect_scan_rate(df["time_s"].to_list(), df["potential_V"].to_list())
    if scan_rate is not None:
        warnings.append(f"Auto-detected scan rate: {scan_rate * 1000:.1f} mV/s")
    elif "time_s" not in df.columns:
        warnings.append("No time column found, charge values will be in V*A (not Coulombs)")

    cycles = []
    if "cycle" in df.columns:
        cycles = sorted(c for c in df["cycle"].unique().to_list() if c is not None)
        warnings.append(f"Found scan column with {len(cycles)} cycle(s)")
    if "applied_potential_V" in df.columns:
        warnings.append("Found applied potential column, iR drop estimation available")

    for warning in warnings:
        logger.info("%s: %s", filename, warning)

    return EchemDataset(
        filename=filename,
        df=df,
        columns=list(df.columns),
        technique="CV",
        label=os.path.splitext(filename)[0],
        timestamp=None,
        cycles=cycles,
        source_format="text",
        original_filename=filename,
        user_metadata={
            "scan_rate_V_s": scan_rate,
            "instrument_charge": instrument_charge(df),
            "parse_warnings": warnings,
        },
    )


def read_text_file(file_path: str, filename: str | None = None) -> EchemDataset:
    """Read a text export from disk.

    Args:
        file_path: Path to .txt/.tsv/.csv file
        filename: Original filename (defaults to basename of file_path)

    Returns:
        EchemDataset with standardized column names and SI units
    """
    if filename is None:
        filename = os.path.basename(file_path)
    with open(file_path, "r", errors="ignore") as f:
        return parse_text(f.read(), filename)


def read_text_bytes(content: bytes, filename: str) -> EchemDataset:
    """Read a text export from bytes."""
    return parse_text(content.decode("utf-8", errors="ignore"), filename)
