"""Supplier repository - Data access layer for suppliers and contracts"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models_finance import Contract, Supplier


class SupplierRepository:
    """Repository for supplier and contract data access"""

    @staticmethod
    def get_supplier(db: Session, condominium_id: int, supplier_id: int) -> Optional[Supplier]:
        return (
            db.query(Supplier)
            .filter(Supplier.id == supplier_id, Supplier.condominium_id == condominium_id)
            .first()
        )

    @staticmethod
    def list_suppliers(
        db: Session, condominium_id: int, area: Optional[str] = None, include_inactive: bool = False
    ) -> list[Supplier]:
        query = db.query(Supplier).filter(Supplier.condominium_id == condominium_id)
        if area:
            query = query.filter(Supplier.area == area)
        if not include_inactive:
            query = query.filter(Supplier.is_active.is_(True))
        return query.order_by(Supplier.name.asc(), Supplier.id.asc()).all()

    @staticmethod
    def count_contracts(db: Session, supplier_id: int) -> int:
        return db.query(Contract).filter(Contract.supplier_id == supplier_id).count()

    @staticmethod
    def get_contract(db: Session, condominium_id: int, contract_id: int) -> Optional[Contract]:
        return (
            db.query(Contract)
            .filter(Contract.id == contract_id, Contract.condominium_id == condominium_id)
            .first()
        )

    @staticmethod
    def list_contracts(
        db: Session, condominium_id: int, status: Optional[str] = None, supplier_id: Optional[int] = None
    ) -> list[Contract]:
        """Soonest end date first; open-ended contracts last"""
        query = db.query(Contract).filter(Contract.condominium_id == condominium_id)
        if status:
            query = query.filter(Contract.status == status)
        if supplier_id:
            query = query.filter(Contract.supplier_id == supplier_id)
        return query.order_by(Contract.end_date.is_(None), Contract.end_date.asc(), Contract.id.asc()).all()

    @staticmethod
    def list_active_ending_from(db: Session, condominium_id: int, today: date) -> list[Contract]:
        return (
            db.query(Contract)
            .filter(
                Contract.condominium_id == condominium_id,
                Contract.status == "active",
                Contract.end_date.isnot(None),
                Contract.end_date >= today,
            )
            .order_by(Contract.end_date.asc(), Contract.id.asc())
            .all()
        )
