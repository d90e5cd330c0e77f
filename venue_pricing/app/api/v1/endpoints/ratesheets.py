"""
Ratesheet API Endpoints.

CRUD and approval workflow for ratesheets.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from venue_pricing.app.db.session import get_db
from venue_pricing.app.models.enums import ApprovalStatus, EntityLevel, RatesheetType
from venue_pricing.app.schemas.ratesheet import (
    ApproveRequest,
    RatesheetCreate,
    RatesheetListResponse,
    RatesheetResponse,
    RatesheetUpdate,
    RejectRequest,
    SubmitRequest,
)
from venue_pricing.app.services import ratesheet_workflow

router = APIRouter(prefix="/ratesheets", tags=["Ratesheets"])


@router.post("", response_model=RatesheetResponse, status_code=status.HTTP_201_CREATED)
async def create_ratesheet(
    data: RatesheetCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Create a ratesheet.

    New ratesheets start as DRAFT and only price bookings once approved.
    """
    ratesheet = await ratesheet_workflow.create_ratesheet(db, data)
    return RatesheetResponse.from_model(ratesheet)


@router.get("", response_model=RatesheetListResponse)
async def list_ratesheets(
    level: Optional[EntityLevel] = Query(None, description="Filter by appliesTo level"),
    entity_id: Optional[int] = Query(None, alias="entityId", description="Filter by appliesTo entity"),
    approval_status: Optional[ApprovalStatus] = Query(None, alias="approvalStatus"),
    ratesheet_type: Optional[RatesheetType] = Query(None, alias="type"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, alias="pageSize", description="Items per page"),
    db: AsyncSession = Depends(get_db)
):
    ratesheets, total = await ratesheet_workflow.list_ratesheets(
        db,
        level=level,
        entity_id=entity_id,
        status=approval_status,
        ratesheet_type=ratesheet_type,
        page=page,
        page_size=page_size,
    )
    return RatesheetListResponse(
        ratesheets=[RatesheetResponse.from_model(r) for r in ratesheets],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{ratesheet_id}", response_model=RatesheetResponse)
async def get_ratesheet(
    ratesheet_id: int,
    db: AsyncSession = Depends(get_db)
):
    ratesheet = await ratesheet_workflow.get_ratesheet(db, ratesheet_id)
    return RatesheetResponse.from_model(ratesheet)


@router.patch("/{ratesheet_id}", response_model=RatesheetResponse)
async def update_ratesheet(
    ratesheet_id: int,
    data: RatesheetUpdate,
    db: AsyncSession = Depends(get_db)
):
    """
    Update a ratesheet.

    Only DRAFT ratesheets can change their rules. Approved and rejected
    ratesheets can only be activated or deactivated, and approved surge
    ratesheets not at all.
    """
    ratesheet = await ratesheet_workflow.update_ratesheet(db, ratesheet_id, data)
    return RatesheetResponse.from_model(ratesheet)


@router.post("/{ratesheet_id}/submit", response_model=RatesheetResponse)
async def submit_ratesheet(
    ratesheet_id: int,
    data: Optional[SubmitRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    ratesheet = await ratesheet_workflow.submit(db, ratesheet_id, data.submitted_by if data else None)
    return RatesheetResponse.from_model(ratesheet)


@router.post("/{ratesheet_id}/approve", response_model=RatesheetResponse)
async def approve_ratesheet(
    ratesheet_id: int,
    data: ApproveRequest,
    db: AsyncSession = Depends(get_db)
):
    ratesheet = await ratesheet_workflow.approve(db, ratesheet_id, data.approved_by)
    return RatesheetResponse.from_model(ratesheet)


@router.post("/{ratesheet_id}/reject", response_model=RatesheetResponse)
async def reject_ratesheet(
    ratesheet_id: int,
    data: RejectRequest,
    db: AsyncSession = Depends(get_db)
):
    ratesheet = await ratesheet_workflow.reject(db, ratesheet_id, data.reason, data.rejected_by)
    return RatesheetResponse.from_model(ratesheet)
