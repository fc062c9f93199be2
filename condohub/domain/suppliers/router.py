"""Supplier router - FastAPI endpoints for suppliers and contracts"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    ContractCreate,
    ContractResponse,
    ContractUpdate,
    ExpiringContractResponse,
    SupplierCreate,
    SupplierResponse,
    SupplierUpdate,
)
from .service import SupplierService

router = APIRouter(prefix="/condominiums/{condominium_id}", tags=["Suppliers"])


def get_supplier_service(db: Session = Depends(get_db)) -> SupplierService:
    """Dependency injection for SupplierService"""
    return SupplierService(db)


# ============================================================================
# SUPPLIERS
# ============================================================================


@router.get("/suppliers", response_model=list[SupplierResponse])
async def list_suppliers(
    condominium_id: int,
    area: Optional[str] = Query(None),
    include_inactive: bool = Query(False, description="Managers only"),
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.list_suppliers(condominium_id, current_user, area, include_inactive)


@router.post("/suppliers", response_model=SupplierResponse, status_code=201)
async def create_supplier(
    condominium_id: int,
    data: SupplierCreate,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.create_supplier(condominium_id, data, current_user)


@router.get("/suppliers/{supplier_id}", response_model=SupplierResponse)
async def get_supplier(
    condominium_id: int,
    supplier_id: int,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.get_supplier(condominium_id, supplier_id, current_user)


@router.patch("/suppliers/{supplier_id}", response_model=SupplierResponse)
async def update_supplier(
    condominium_id: int,
    supplier_id: int,
    data: SupplierUpdate,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.update_supplier(condominium_id, supplier_id, data, current_user)


@router.delete("/suppliers/{supplier_id}", status_code=204)
async def delete_supplier(
    condominium_id: int,
    supplier_id: int,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    service.deactivate_supplier(condominium_id, supplier_id, current_user)


# ============================================================================
# CONTRACTS
# ============================================================================


@router.get("/contracts", response_model=list[ContractResponse])
async def list_contracts(
    condominium_id: int,
    status: Optional[str] = Query(None),
    supplier_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.list_contracts(condominium_id, current_user, status, supplier_id)


@router.get("/contracts/expiring", response_model=list[ExpiringContractResponse])
async def expiring_contracts(
    condominium_id: int,
    days: Optional[int] = Query(None, ge=0, le=365, description="Defaults to each contract's alert window"),
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.expiring_contracts(condominium_id, current_user, days)


@router.post("/contracts", response_model=ContractResponse, status_code=201)
async def create_contract(
    condominium_id: int,
    data: ContractCreate,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.create_contract(condominium_id, data, current_user)


@router.patch("/contracts/{contract_id}", response_model=ContractResponse)
async def update_contract(
    condominium_id: int,
    contract_id: int,
    data: ContractUpdate,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.update_contract(condominium_id, contract_id, data, current_user)


@router.delete("/contracts/{contract_id}", status_code=204)
async def delete_contract(
    condominium_id: int,
    contract_id: int,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    service.delete_contract(condominium_id, contract_id, current_user)
