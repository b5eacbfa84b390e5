"""
Payroll Router

Handles HTTP endpoints for payroll operations.
All business logic is delegated to the payroll service layer.
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import List, Optional

from payroll_engine.core.schemas import ApiResponse
from payroll_engine.database import get_db
from payroll_engine.schemas.payroll import (
    ConflictResult,
    GenerationRequest,
    GenerationResult,
    PayrollBatchDetails,
    PayrollBatchListing,
    PayrollStatistics,
    PreviewResult,
    StatusTransitionRequest,
    StatutoryRequest,
    StatutorySummary,
)
from payroll_engine.services import payroll_service


router = APIRouter(
    prefix="/payroll",
    tags=["payroll"],
)


@router.post(
    "/generate",
    response_model=GenerationResult,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "A payroll already exists for the period"}}
)
def generate_payroll(request: GenerationRequest, db: Session = Depends(get_db)):
    """
    Generate the payroll batch for a month.

    Returns 409 with the existing batch when the period was already generated.
    """
    result = payroll_service.generate_payroll(db, request.month, request.year, request)
    if isinstance(result, ConflictResult):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=ApiResponse.fail(
                result.message,
                code="PAYROLL_PERIOD_CONFLICT",
                details=result.model_dump(mode="json")
            ).to_dict()
        )
    return result


@router.post("/preview", response_model=PreviewResult)
def preview_payroll(request: GenerationRequest, db: Session = Depends(get_db)):
    """Show the expected outcome of a generation without persisting it."""
    return payroll_service.preview_payroll(db, request.month, request.year, request)


@router.post("/statutory", response_model=StatutorySummary)
def calculate_statutory(request: StatutoryRequest):
    """Statutory deductions for a single taxable income."""
    return payroll_service.calculate_statutory(request.income)


@router.get("/statistics/{year}", response_model=PayrollStatistics)
def get_payroll_statistics(year: int, db: Session = Depends(get_db)):
    return payroll_service.get_payroll_statistics(db, year)


@router.get("", response_model=List[PayrollBatchListing])
def list_payrolls(
    year: Optional[int] = None,
    month: Optional[int] = Query(default=None, ge=1, le=12),
    status: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db)
):
    return payroll_service.list_payrolls(db, year=year, month=month, status=status, limit=limit, offset=offset)


@router.get("/{batch_id}", response_model=PayrollBatchDetails)
def get_payroll_details(batch_id: str, db: Session = Depends(get_db)):
    return payroll_service.get_payroll_details(db, batch_id)


@router.patch("/{batch_id}/status", response_model=PayrollBatchDetails)
def update_payroll_status(
    batch_id: str,
    request: StatusTransitionRequest,
    db: Session = Depends(get_db)
):
    """
    Move a batch through its lifecycle.

    draft -> finalized -> approved -> paid, with cancellation and step-back
    transitions. Invalid moves return 409.
    """
    return payroll_service.transition_payroll_status(
        db, batch_id, request.status, request.actor, notes=request.notes
    )
