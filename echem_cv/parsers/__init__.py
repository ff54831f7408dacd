"""Parsers for electrochemistry file formats."""

from ..types import EchemDataset
from .gamry import read_gamry_file, read_gamry_bytes
from .text import read_text_file, read_text_bytes

TEXT_EXTENSIONS = (".txt", ".tsv", ".csv")


def load_file(file_path: str) -> EchemDataset:
    """Load an electrochemistry file, auto-detecting format by extension.

    Supported formats:
    - .dta: Gamry
    - .txt, .tsv, .csv: delimited potentiostat text export

    Args:
        file_path: Path to the file

    Returns:
        EchemDataset with standardized column names and SI units

    Raises:
        ValueError: If file format is not supported
    """
    lower_path = file_path.lower()

    if lower_path.endswith(".dta"):
        return read_gamry_file(file_path)
    elif lower_path.endswith(TEXT_EXTENSIONS):
        return read_text_file(file_path)
    else:
        raise ValueError(f"Unsupported file format: {file_path}")


def load_file_bytes(content: bytes, filename: str) -> EchemDataset:
    """Load an electrochemistry file from bytes, auto-detecting format.

    Args:
        content: File contents as bytes
        filename: Original filename (used for format detection and metadata)

    Returns:
        EchemDataset with standardized column names and SI units

    Raises:
        ValueError: If file format is not supported
    """
    lower_name = filename.lower()

    if lower_name.endswith(".dta"):
        return read_gamry_bytes(content, filename)
    elif lower_name.endswith(TEXT_EXTENSIONS):
        return read_text_bytes(content, filename)
    else:
        raise ValueError(f"Unsupported file format: {filename}")


__all__ = [
    "load_file",
    "load_file_bytes",
    "read_gamry_file",
    "read_gamry_bytes",
    "read_text_file",
    "read_text_bytes",
]
