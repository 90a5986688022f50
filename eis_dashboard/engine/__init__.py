"""EIS analysis engine: normalization, calibration, spatial maps and sessions."""

from eis_dashboard.engine.calibration import apply_calibration
from eis_dashboard.engine.normalizer import normalize, read_csv
from eis_dashboard.engine.session import AnalysisSession, SessionRegistry, SessionState
from eis_dashboard.engine.spatial import aggregate

__all__ = [
    "apply_calibration",
    "normalize",
    "read_csv",
    "AnalysisSession",
    "SessionRegistry",
    "SessionState",
    "aggregate",
]
