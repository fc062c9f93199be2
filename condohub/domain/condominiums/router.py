"""Condominium router - FastAPI endpoints for condominiums, fractions and members"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...services.invitation_service import InvitationService
from ...shared.access import require_manager
from .schemas import (
    CondominiumCreate,
    CondominiumResponse,
    CondominiumUpdate,
    FractionCreate,
    FractionListResponse,
    FractionResponse,
    FractionUpdate,
    InvitationCreate,
    InvitationResponse,
    MemberResponse,
)
from .service import CondominiumService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/condominiums", tags=["Condominiums"])


def get_condominium_service(db: Session = Depends(get_db)) -> CondominiumService:
    """Dependency injection for CondominiumService"""
    return CondominiumService(db)


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=list[CondominiumResponse])
async def list_condominiums(
    current_user: User = Depends(get_current_user),
    service: CondominiumService = Depends(get_condominium_service),
):
    """Condominiums the current user owns or belongs to"""
    return service.list_condominiums(current_user)


@router.post("", response_model=CondominiumResponse)
async def create_condominium(
    data: CondominiumCreate,
    current_user: User = Depends(get_current_user),
    service: CondominiumService = Depends(get_condominium_service),
):
    return service.create_condominium(data, current_user)


@router.get("/{condominium_id}", response_model=CondominiumResponse)
async def get_condominium(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    service: CondominiumService = Depends(get_condominium_service),
):
    return service.get_condominium(condominium_id, current_user)


@router.put("/{condominium_id}", response_model=CondominiumResponse)
async def update_condominium(
    condominium_id: int,
    data: CondominiumUpdate,
    current_user: User = Depends(get_current_user),
    service: CondominiumService = Depends(get_condominium_service),
):
    return service.update_condominium(condominium_id, data, current_user)


@router.delete("/{condominium_id}")
async def delete_condominium(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    service: CondominiumService = Depends(get_condominium_service),
):
    """Delete a condominium and all of its data"""
    service.delete_condominium(condominium_id, current_user)
    return {"message": "Condominium deleted"}


# ============================================================================
# FRACTIONS
# ============================================================================


@router.get("/{condominium_id}/fractions", response_model=FractionListResponse)
async def list_fractions(
    condominium_id: int,
    include_archived: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: CondominiumService = Depends(get_condominium_service),
):
    return service.list_fractions(condominium_id, current_user, include_archived)


@router.post("/{condominium_id}/fractions", response_model=FractionResponse)
async def create_fraction(
    condominium_id: int,
    data: FractionCreate,
    current_user: User = Depends(get_current_user),
    service: CondominiumService = Depends(get_condominium_service),
):
    return service.create_fraction(condominium_id, data, current_user)


@router.put("/{condominium_id}/fractions/{fraction_id}", response_model=FractionResponse)
async def update_fraction(
    condominium_id: int,
    fraction_id: int,
    data: FractionUpdate,
    current_user: User = Depends(get_current_user),
    service: CondominiumService = Depends(get_condominium_service),
):
    return service.update_fraction(condominium_id, fraction_id, data, current_user)


@router.post("/{condominium_id}/fractions/{fraction_id}/archive", response_model=FractionResponse)
async def archive_fraction(
    condominium_id: int,
    fraction_id: int,
    current_user: User = Depends(get_current_user),
    service: CondominiumService = Depends(get_condominium_service),
):
    return service.archive_fraction(condominium_id, fraction_id, current_user)


@router.get("/{condominium_id}/fractions/{fraction_id}/members", response_model=list[MemberResponse])
async def list_fraction_members(
    condominium_id: int,
    fraction_id: int,
    current_user: User = Depends(get_current_user),
    service: CondominiumService = Depends(get_condominium_service),
):
    """Owners and residents of a fraction"""
    return service.list_members(condominium_id, current_user, fraction_id)


# ============================================================================
# MEMBERS AND INVITATIONS
# ============================================================================


@router.get("/{condominium_id}/members", response_model=list[MemberResponse])
async def list_members(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    service: CondominiumService = Depends(get_condominium_service),
):
    return service.list_members(condominium_id, current_user)


@router.post("/{condominium_id}/invitations")
async def create_invitation(
    condominium_id: int,
    data: InvitationCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Invite a user by email; existing accounts are linked immediately"""
    require_manager(db, current_user, condominium_id)
    result = InvitationService(db).invite(condominium_id, data.email, data.name, data.fraction_id, data.role)
    if result["linked"]:
        return {"linked": True, "user_id": result["user_id"]}
    return {
        "linked": False,
        "invitation": InvitationResponse.model_validate(result["invitation"]),
        "token": result["token"],
    }


@router.get("/{condominium_id}/invitations", response_model=list[InvitationResponse])
async def list_invitations(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_manager(db, current_user, condominium_id)
    return InvitationService(db).list_pending(condominium_id)


@router.delete("/{condominium_id}/invitations/{invitation_id}")
async def revoke_invitation(
    condominium_id: int,
    invitation_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_manager(db, current_user, condominium_id)
    InvitationService(db).revoke(condominium_id, invitation_id)
    return {"message": "Invitation revoked"}
