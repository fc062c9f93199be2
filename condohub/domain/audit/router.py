"""Audit router - read access to a condominium's audit trail"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...models_audit import AuditDocument, AuditFinancial
from ...shared.access import require_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/condominiums/{condominium_id}/audit", tags=["Audit"])


class AuditEntryResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    action: str
    description: Optional[str] = None
    ip_address: Optional[str] = None
    operation: Optional[str] = None
    old_data: Optional[Any] = None
    new_data: Optional[Any] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FinancialAuditResponse(AuditEntryResponse):
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    amount: Optional[Decimal] = None
    old_amount: Optional[Decimal] = None
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    changes: Optional[Any] = None


class DocumentAuditResponse(AuditEntryResponse):
    document_id: Optional[int] = None
    document_type: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    folder: Optional[str] = None


def _filtered(query, model, action, start_date, end_date, limit, offset):
    if action:
        query = query.filter(model.action == action)
    if start_date:
        query = query.filter(model.created_at >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        query = query.filter(model.created_at < datetime.combine(end_date + timedelta(days=1), datetime.min.time()))
    return query.order_by(model.created_at.desc(), model.id.desc()).offset(offset).limit(limit).all()


@router.get("/financial", response_model=list[FinancialAuditResponse])
async def list_financial_audit(
    condominium_id: int,
    entity_type: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Financial audit entries of the condominium, newest first"""
    require_manager(db, current_user, condominium_id)
    query = db.query(AuditFinancial).filter(AuditFinancial.condominium_id == condominium_id)
    if entity_type:
        query = query.filter(AuditFinancial.entity_type == entity_type)
    return _filtered(query, AuditFinancial, action, start_date, end_date, limit, offset)


@router.get("/documents", response_model=list[DocumentAuditResponse])
async def list_document_audit(
    condominium_id: int,
    action: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_manager(db, current_user, condominium_id)
    query = db.query(AuditDocument).filter(AuditDocument.condominium_id == condominium_id)
    return _filtered(query, AuditDocument, action, start_date, end_date, limit, offset)
