"""Device calibration coefficients applied to canonical points.

  Magnitude (low-F):   Z *= MAG1_A + MAG1_B * ln(f)     for f <  crossover
  Magnitude (high-F):  Z *= MAG2_A + MAG2_B * ln(f)     for f >= crossover
  Phase:               phi += PHASE_A + PHASE_B * f + PHASE_C * ln(f) + PHASE_D / f

A magnitude band without both of its coefficients is left uncorrected.
Missing phase terms count as zero.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import numpy as np

from eis_dashboard.config import settings
from eis_dashboard.errors import InvalidValue
from eis_dashboard.models.measurement import MeasurementPoint

COEFFICIENT_NAMES = (
    "MAG1_A", "MAG1_B",
    "MAG2_A", "MAG2_B",
    "PHASE_A", "PHASE_B", "PHASE_C", "PHASE_D",
)


def _band_factor(
    coefficients: Mapping[str, float], prefix: str, log_f: np.ndarray
) -> np.ndarray | None:
    a = coefficients.get(f"{prefix}_A")
    b = coefficients.get(f"{prefix}_B")
    if a is None or b is None:
        return None
    return a + b * log_f


def wrap_phase(degrees: np.ndarray) -> np.ndarray:
    """Wrap into [-180, 180]. Exact +180 stays +180."""
    wrapped = (degrees + 180.0) % 360.0 - 180.0
    return np.where((wrapped == -180.0) & (degrees > 0), 180.0, wrapped)


def apply_calibration(
    points: Sequence[MeasurementPoint],
    coefficients: Mapping[str, float] | None,
    crossover_hz: float | None = None,
) -> list[MeasurementPoint]:
    """Return corrected copies of ``points``; the inputs are not modified."""
    if not points or not coefficients:
        return list(points)

    unknown = set(coefficients) - set(COEFFICIENT_NAMES)
    if unknown:
        raise InvalidValue("calibration", sorted(unknown), reason=f"unknown coefficients {sorted(unknown)}")

    crossover = settings.eis_calibration_crossover_hz if crossover_hz is None else crossover_hz
    freq = np.array([p.frequency for p in points], dtype=np.float64)
    mag = np.array([p.magnitude for p in points], dtype=np.float64)
    phase = np.array([p.phase_degrees for p in points], dtype=np.float64)
    log_f = np.log(freq)

    low = freq < crossover
    low_factor = _band_factor(coefficients, "MAG1", log_f)
    high_factor = _band_factor(coefficients, "MAG2", log_f)
    if low_factor is not None:
        mag = np.where(low, mag * low_factor, mag)
    if high_factor is not None:
        mag = np.where(~low, mag * high_factor, mag)

    phase = phase + (
        coefficients.get("PHASE_A", 0.0)
        + coefficients.get("PHASE_B", 0.0) * freq
        + coefficients.get("PHASE_C", 0.0) * log_f
        + coefficients.get("PHASE_D", 0.0) / freq
    )
    phase = wrap_phase(phase)

    negative = np.flatnonzero(mag < 0)
    if negative.size:
        i = int(negative[0])
        raise InvalidValue(
            "magnitude",
            float(mag[i]),
            reason=f"calibration produced a negative magnitude at {freq[i]:g} Hz",
        )

    return [
        p.model_copy(update={"magnitude": float(m), "phase_degrees": float(ph)})
        for p, m, ph in zip(points, mag, phase)
    ]


def describe_calibration(coefficients: Mapping[str, float]) -> dict[str, str]:
    """Human-readable formulas with the current coefficients filled in."""

    def f(name: str, precision: int = 6) -> str:
        value = coefficients.get(name)
        return f"{value:.{precision}f}" if value is not None else "?.??"

    return {
        "magnitude_low": f"Z *= {f('MAG1_A')} + {f('MAG1_B', 7)} * ln(f)",
        "magnitude_high": f"Z *= {f('MAG2_A')} + {f('MAG2_B', 7)} * ln(f)",
        "phase": (
            f"phi += {f('PHASE_A', 3)} + ({f('PHASE_B')} * f)"
            f" + ({f('PHASE_C')} * ln(f)) + ({f('PHASE_D')} / f)"
        ),
    }
