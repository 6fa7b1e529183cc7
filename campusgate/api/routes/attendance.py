"""
Attendance endpoints: gate scanning, organizer overrides and the audit trail.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campusgate.db.session import get_db
from campusgate.schemas.attendance import (
    AuditEntryResponse,
    OverrideRequest,
    OverrideResponse,
    ScanRequest,
    ScanResponse,
)
from campusgate.services import attendance_service

router = APIRouter(prefix="/events/{event_id}/attendance", tags=["Attendance"])


@router.post("/scan", response_model=ScanResponse)
async def scan_endpoint(
    event_id: int,
    scan: ScanRequest,
    db: AsyncSession = Depends(get_db),
):
    """Mark a ticket holder present. Scanning twice reports `already_marked`."""
    result = await attendance_service.mark_by_scan(db, event_id, scan.token)
    return ScanResponse.model_validate(result, from_attributes=True)


@router.post("/override", response_model=OverrideResponse)
async def override_endpoint(
    event_id: int,
    override: OverrideRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await attendance_service.override_by_organizer(
        db,
        event_id,
        override.organizer_id,
        override.participation_id,
        override.present,
        override.reason,
    )
    return OverrideResponse.model_validate(result, from_attributes=True)


@router.get("/audit", response_model=list[AuditEntryResponse])
async def audit_endpoint(
    event_id: int,
    organizer_id: int = Query(...),
    participation_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await attendance_service.list_audit_entries(db, event_id, organizer_id, participation_id)
