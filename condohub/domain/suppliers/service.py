"""Supplier service - Business logic for suppliers and their contracts"""

import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User
from ...models_finance import Contract, Supplier
from ...shared.access import can_manage, require_access, require_manager
from .repository import SupplierRepository
from .schemas import ContractCreate, ContractResponse, ContractUpdate, SupplierCreate, SupplierUpdate

logger = logging.getLogger(__name__)


class SupplierService:
    """Service layer for supplier and contract business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SupplierRepository()

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def list_suppliers(
        self, condominium_id: int, user: User, area: Optional[str] = None, include_inactive: bool = False
    ) -> list[Supplier]:
        condominium = require_access(self.db, user, condominium_id)
        include_inactive = include_inactive and can_manage(self.db, user, condominium)
        return self.repo.list_suppliers(self.db, condominium_id, area, include_inactive)

    def get_supplier(self, condominium_id: int, supplier_id: int, user: User) -> Supplier:
        require_access(self.db, user, condominium_id)
        supplier = self.repo.get_supplier(self.db, condominium_id, supplier_id)
        if not supplier:
            raise HTTPException(status_code=404, detail="Supplier not found")
        return supplier

    def create_supplier(self, condominium_id: int, data: SupplierCreate, user: User) -> Supplier:
        require_manager(self.db, user, condominium_id)
        supplier = Supplier(condominium_id=condominium_id, **data.model_dump())
        self.db.add(supplier)
        self.db.commit()
        self.db.refresh(supplier)
        logger.info(f"🧰 Supplier '{supplier.name}' added to condominium {condominium_id}")
        return supplier

    def update_supplier(self, condominium_id: int, supplier_id: int, data: SupplierUpdate, user: User) -> Supplier:
        require_manager(self.db, user, condominium_id)
        supplier = self.repo.get_supplier(self.db, condominium_id, supplier_id)
        if not supplier:
            raise HTTPException(status_code=404, detail="Supplier not found")
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(supplier, field, value)
        self.db.commit()
        self.db.refresh(supplier)
        return supplier

    def deactivate_supplier(self, condominium_id: int, supplier_id: int, user: User) -> None:
        require_manager(self.db, user, condominium_id)
        supplier = self.repo.get_supplier(self.db, condominium_id, supplier_id)
        if not supplier:
            raise HTTPException(status_code=404, detail="Supplier not found")
        if self.repo.count_contracts(self.db, supplier.id):
            raise HTTPException(status_code=400, detail="Supplier has contracts - remove them first")
        supplier.is_active = False
        self.db.commit()
        logger.info(f"🗑️ Supplier {supplier_id} deactivated in condominium {condominium_id}")

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    def _check_supplier(self, condominium_id: int, supplier_id: Optional[int]) -> None:
        if supplier_id is None:
            return
        supplier = self.repo.get_supplier(self.db, condominium_id, supplier_id)
        if not supplier or not supplier.is_active:
            raise HTTPException(status_code=404, detail="Supplier not found")

    def list_contracts(
        self, condominium_id: int, user: User, status: Optional[str] = None, supplier_id: Optional[int] = None
    ) -> list[Contract]:
        require_access(self.db, user, condominium_id)
        return self.repo.list_contracts(self.db, condominium_id, status, supplier_id)

    def create_contract(self, condominium_id: int, data: ContractCreate, user: User) -> Contract:
        require_manager(self.db, user, condominium_id)
        self._check_supplier(condominium_id, data.supplier_id)
        if data.end_date and data.end_date < data.start_date:
            raise HTTPException(status_code=400, detail="End date cannot be before start date")
        contract = Contract(condominium_id=condominium_id, status="active", **data.model_dump())
        self.db.add(contract)
        self.db.commit()
        self.db.refresh(contract)
        logger.info(f"📑 Contract {contract.id} created in condominium {condominium_id}")
        return contract

    def update_contract(self, condominium_id: int, contract_id: int, data: ContractUpdate, user: User) -> Contract:
        require_manager(self.db, user, condominium_id)
        contract = self.repo.get_contract(self.db, condominium_id, contract_id)
        if not contract:
            raise HTTPException(status_code=404, detail="Contract not found")
        changes = data.model_dump(exclude_unset=True)
        if "supplier_id" in changes:
            self._check_supplier(condominium_id, changes["supplier_id"])
        start_date = changes.get("start_date", contract.start_date)
        end_date = changes.get("end_date", contract.end_date)
        if end_date and end_date < start_date:
            raise HTTPException(status_code=400, detail="End date cannot be before start date")
        for field, value in changes.items():
            setattr(contract, field, value)
        self.db.commit()
        self.db.refresh(contract)
        return contract

    def delete_contract(self, condominium_id: int, contract_id: int, user: User) -> None:
        require_manager(self.db, user, condominium_id)
        contract = self.repo.get_contract(self.db, condominium_id, contract_id)
        if not contract:
            raise HTTPException(status_code=404, detail="Contract not found")
        self.db.delete(contract)
        self.db.commit()
        logger.info(f"🗑️ Contract {contract_id} deleted from condominium {condominium_id}")

    def expiring_contracts(
        self, condominium_id: int, user: User, days: Optional[int] = None, today: Optional[date] = None
    ) -> list[dict]:
        """
        Active contracts ending soon.

        With days, the window is the same for every contract; otherwise each
        contract's own renewal_alert_days applies.
        """
        require_manager(self.db, user, condominium_id)
        today = today or date.today()
        expiring = []
        for contract in self.repo.list_active_ending_from(self.db, condominium_id, today):
            window = days if days is not None else contract.renewal_alert_days
            if contract.end_date > today + timedelta(days=window):
                continue
            row = ContractResponse.model_validate(contract).model_dump()
            row["days_until_expiry"] = (contract.end_date - today).days
            expiring.append(row)
        return expiring
