"""Spaces router - FastAPI endpoints for common spaces and reservations"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    ReservationCreate,
    ReservationDecision,
    ReservationResponse,
    SpaceCreate,
    SpaceResponse,
    SpaceUpdate,
)
from .service import SpaceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/condominiums/{condominium_id}", tags=["Spaces"])


def get_space_service(db: Session = Depends(get_db)) -> SpaceService:
    """Dependency injection for SpaceService"""
    return SpaceService(db)


# ============================================================================
# SPACES
# ============================================================================


@router.get("/spaces", response_model=list[SpaceResponse])
async def list_spaces(
    condominium_id: int,
    include_inactive: bool = Query(False, description="Managers only"),
    current_user: User = Depends(get_current_user),
    service: SpaceService = Depends(get_space_service),
):
    return service.list_spaces(condominium_id, current_user, include_inactive)


@router.post("/spaces", response_model=SpaceResponse, status_code=201)
async def create_space(
    condominium_id: int,
    data: SpaceCreate,
    current_user: User = Depends(get_current_user),
    service: SpaceService = Depends(get_space_service),
):
    return service.create_space(condominium_id, data, current_user)


@router.get("/spaces/{space_id}", response_model=SpaceResponse)
async def get_space(
    condominium_id: int,
    space_id: int,
    current_user: User = Depends(get_current_user),
    service: SpaceService = Depends(get_space_service),
):
    return service.get_space(condominium_id, space_id, current_user)


@router.patch("/spaces/{space_id}", response_model=SpaceResponse)
async def update_space(
    condominium_id: int,
    space_id: int,
    data: SpaceUpdate,
    current_user: User = Depends(get_current_user),
    service: SpaceService = Depends(get_space_service),
):
    return service.update_space(condominium_id, space_id, data, current_user)


@router.delete("/spaces/{space_id}", status_code=204)
async def delete_space(
    condominium_id: int,
    space_id: int,
    current_user: User = Depends(get_current_user),
    service: SpaceService = Depends(get_space_service),
):
    service.deactivate_space(condominium_id, space_id, current_user)


# ============================================================================
# RESERVATIONS
# ============================================================================


@router.get("/reservations", response_model=list[ReservationResponse])
async def list_reservations(
    condominium_id: int,
    status: Optional[str] = Query(None),
    space_id: Optional[int] = Query(None),
    start_from: Optional[datetime] = Query(None, description="Reservations starting at or after"),
    end_to: Optional[datetime] = Query(None, description="Reservations ending at or before"),
    current_user: User = Depends(get_current_user),
    service: SpaceService = Depends(get_space_service),
):
    return service.list_reservations(condominium_id, current_user, status, space_id, start_from, end_to)


@router.post("/reservations", response_model=ReservationResponse, status_code=201)
async def create_reservation(
    condominium_id: int,
    data: ReservationCreate,
    current_user: User = Depends(get_current_user),
    service: SpaceService = Depends(get_space_service),
):
    return service.create_reservation(condominium_id, data, current_user)


@router.post("/reservations/{reservation_id}/approve", response_model=ReservationResponse)
async def approve_reservation(
    condominium_id: int,
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    service: SpaceService = Depends(get_space_service),
):
    return service.approve_reservation(condominium_id, reservation_id, current_user)


@router.post("/reservations/{reservation_id}/reject", response_model=ReservationResponse)
async def reject_reservation(
    condominium_id: int,
    reservation_id: int,
    data: Optional[ReservationDecision] = None,
    current_user: User = Depends(get_current_user),
    service: SpaceService = Depends(get_space_service),
):
    return service.reject_reservation(condominium_id, reservation_id, data, current_user)


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation(
    condominium_id: int,
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    service: SpaceService = Depends(get_space_service),
):
    return service.cancel_reservation(condominium_id, reservation_id, current_user)
