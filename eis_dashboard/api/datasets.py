"""POST /api/datasets: normalize uploaded rows and open a session for them."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from eis_dashboard.api.errors import to_http
from eis_dashboard.dependencies import get_session_registry
from eis_dashboard.engine.calibration import apply_calibration
from eis_dashboard.engine.normalizer import available_frequencies, normalize, read_csv
from eis_dashboard.engine.session import SessionRegistry
from eis_dashboard.errors import ParseError
from eis_dashboard.models.requests import DatasetRequest
from eis_dashboard.models.responses import DatasetResponse

router = APIRouter()


@router.post("/datasets", response_model=DatasetResponse)
async def load_dataset(
    req: DatasetRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> DatasetResponse:
    rows = req.rows if req.rows is not None else read_csv(req.csv or "")
    try:
        points = normalize(rows, req.kind)
        points = apply_calibration(points, req.calibration)
    except ParseError as e:
        # The previous dataset in this slot stays loaded
        raise to_http(e) from e

    slot = req.slot or req.kind
    session = registry.open(slot, points, req.kind, calibration=req.calibration)
    return DatasetResponse(
        session_id=session.id,
        slot=slot,
        kind=req.kind,
        points=list(session.points),
        frequencies=available_frequencies(session.points),
    )
