import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..models_finance import Fee, FeePayment, Receipt

logger = logging.getLogger(__name__)


def receipt_number(condominium_id: int, year: int, sequence: int) -> str:
    return f"REC-{condominium_id}-{year}-{sequence:03d}"


class ReceiptService:
    """Numbered receipts for fully paid fees (no rendered file)"""

    def __init__(self, db: Session):
        self.db = db

    def next_sequence(self, condominium_id: int, year: int) -> int:
        prefix = f"REC-{condominium_id}-{year}-"
        numbers = (
            self.db.query(Receipt.receipt_number)
            .filter(Receipt.receipt_number.like(f"{prefix}%"))
            .all()
        )
        highest = 0
        for (number,) in numbers:
            try:
                highest = max(highest, int(number[len(prefix):]))
            except ValueError:
                continue
        return highest + 1

    def issue_for_fee(
        self, fee: Fee, payment: Optional[FeePayment] = None, generated_by: Optional[int] = None
    ) -> Receipt:
        existing = (
            self.db.query(Receipt)
            .filter(Receipt.fee_id == fee.id, Receipt.receipt_type == "final")
            .first()
        )
        if existing:
            return existing

        now = datetime.utcnow()
        receipt = Receipt(
            fee_id=fee.id,
            fee_payment_id=payment.id if payment else None,
            condominium_id=fee.condominium_id,
            fraction_id=fee.fraction_id,
            receipt_number=receipt_number(fee.condominium_id, now.year, self.next_sequence(fee.condominium_id, now.year)),
            receipt_type="final",
            amount=fee.amount,
            generated_at=now,
            generated_by=generated_by,
        )
        self.db.add(receipt)
        self.db.flush()
        logger.info(f"🧾 Receipt {receipt.receipt_number} issued for fee {fee.id}")
        return receipt

    def list_for_fraction(self, fraction_id: int) -> list[Receipt]:
        return (
            self.db.query(Receipt)
            .filter(Receipt.fraction_id == fraction_id)
            .order_by(Receipt.generated_at.desc(), Receipt.id.desc())
            .all()
        )
