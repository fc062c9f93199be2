"""Fee repository - Data access layer for fees, payments and receipts"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_finance import Fee, FeePayment, FeePaymentHistory, Receipt


class FeeRepository:
    """Repository for fee data access"""

    @staticmethod
    def list_fees(
        db: Session,
        condominium_id: int,
        year: Optional[int] = None,
        status: Optional[str] = None,
        fraction_ids: Optional[list[int]] = None,
    ) -> list[Fee]:
        query = db.query(Fee).filter(Fee.condominium_id == condominium_id)
        if year:
            query = query.filter(Fee.period_year == year)
        if status:
            query = query.filter(Fee.status == status)
        if fraction_ids is not None:
            query = query.filter(Fee.fraction_id.in_(fraction_ids))
        return query.order_by(Fee.period_year, Fee.period_month, Fee.period_index, Fee.fraction_id, Fee.id).all()

    @staticmethod
    def get_fee(db: Session, condominium_id: int, fee_id: int) -> Optional[Fee]:
        return db.query(Fee).filter(Fee.id == fee_id, Fee.condominium_id == condominium_id).first()

    @staticmethod
    def list_payments(db: Session, fee_id: int) -> list[FeePayment]:
        return db.query(FeePayment).filter(FeePayment.fee_id == fee_id).order_by(FeePayment.id).all()

    @staticmethod
    def list_history(db: Session, fee_id: int) -> list[FeePaymentHistory]:
        return (
            db.query(FeePaymentHistory)
            .filter(FeePaymentHistory.fee_id == fee_id)
            .order_by(FeePaymentHistory.id)
            .all()
        )

    @staticmethod
    def list_receipts(db: Session, condominium_id: int, fraction_id: Optional[int] = None) -> list[Receipt]:
        query = db.query(Receipt).filter(Receipt.condominium_id == condominium_id)
        if fraction_id is not None:
            query = query.filter(Receipt.fraction_id == fraction_id)
        return query.order_by(Receipt.generated_at.desc(), Receipt.id.desc()).all()
