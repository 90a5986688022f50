"""POST /api/calibration/describe: render calibration formulas."""

from __future__ import annotations

from fastapi import APIRouter

from eis_dashboard.engine.calibration import describe_calibration
from eis_dashboard.models.requests import CalibrationRequest
from eis_dashboard.models.responses import CalibrationResponse

router = APIRouter()


@router.post("/calibration/describe", response_model=CalibrationResponse)
async def describe(req: CalibrationRequest) -> CalibrationResponse:
    return CalibrationResponse(formulas=describe_calibration(req.coefficients))
