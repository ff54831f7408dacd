"""Analysis configuration for CV scans."""

from dataclasses import asdict, dataclass, fields

from .processing.kernels import SUPPORTED_WINDOWS

BASELINE_METHODS = ("rubberband", "linear", "asls")


@dataclass(frozen=True)
class AnalysisConfig:
    """Tunable parameters for one analysis run.

    Immutable: build a new object (e.g. with ``dataclasses.replace``) to
    change a setting, then re-run the analysis.
    """

    smoothing_enabled: bool = True
    smoothing_window: int = 9  # Savitzky-Golay window, must be in SUPPORTED_WINDOWS
    baseline_method: str = "rubberband"  # 'rubberband', 'linear' or 'asls'

    # ASLS baseline
    asls_lambda: float = 1e6  # Smoothness penalty (typical 1e4-1e8)
    asls_p: float = 0.01  # Asymmetry weight, 0 < p < 1 (typical 0.001-0.1)
    asls_max_iterations: int = 20
    asls_tolerance: float = 1e-6

    # Rubberband baseline
    rubberband_iterations: int = 40
    rubberband_window_size: int = 80

    # Linear baseline
    linear_anchor_fraction: float = 0.1  # Fraction of each scan end used as anchors

    # Peak detection
    peak_prominence_threshold: float = 0.05  # Fraction of max candidate magnitude

    scan_rate: float | None = None  # V/s, auto-detected by the parsers when possible

    def __post_init__(self):
        if self.smoothing_window not in SUPPORTED_WINDOWS:
            raise ValueError(
                f"Unsupported smoothing window {self.smoothing_window}, "
                f"expected one of {list(SUPPORTED_WINDOWS)}"
            )
        if not 0 < self.asls_p < 1:
            raise ValueError(f"asls_p must be in (0, 1), got {self.asls_p}")
        if self.asls_lambda <= 0:
            raise ValueError(f"asls_lambda must be positive, got {self.asls_lambda}")
        if self.asls_max_iterations < 1:
            raise ValueError("asls_max_iterations must be at least 1")
        if self.asls_tolerance < 0:
            raise ValueError("asls_tolerance must be non-negative")
        if self.rubberband_iterations < 0:
            raise ValueError("rubberband_iterations must be non-negative")
        if self.rubberband_window_size < 1:
            raise ValueError("rubberband_window_size must be at least 1")
        for name in ("linear_anchor_fraction", "peak_prominence_threshold"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.scan_rate is not None and self.scan_rate <= 0:
            raise ValueError(f"scan_rate must be positive, got {self.scan_rate}")

    def to_dict(self) -> dict:
        """Convert to a plain JSON-serializable dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisConfig":
        """Build a config from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


DEFAULT_CONFIG = AnalysisConfig()
