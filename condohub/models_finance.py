from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class BankAccount(Base):
    __tablename__ = "bank_accounts"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    account_type = Column(String(20), default="current", nullable=False)  # current, savings, cash
    bank_name = Column(String(255), nullable=True)
    iban = Column(String(50), nullable=True)
    swift = Column(String(20), nullable=True)
    initial_balance = Column(Numeric(12, 2), default=0, nullable=False)
    current_balance = Column(Numeric(12, 2), default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class FinancialTransaction(Base):
    __tablename__ = "financial_transactions"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=False, index=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=True)  # Income credited to a fraction
    transfer_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=True)
    transaction_type = Column(String(20), nullable=False)  # income, expense, transfer
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_date = Column(Date, nullable=False)
    description = Column(String(500), nullable=False)
    category = Column(String(100), nullable=True)
    reference = Column(String(255), nullable=True)
    income_entry_type = Column(String(50), nullable=True)  # quota, reservation, other
    related_type = Column(String(50), nullable=True)
    related_id = Column(Integer, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Budget(Base):
    __tablename__ = "budgets"
    __table_args__ = (
        UniqueConstraint("condominium_id", "year", name="uq_budget_year"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    year = Column(Integer, nullable=False)
    status = Column(String(20), default="draft", nullable=False)  # draft, approved, active, closed
    total_amount = Column(Numeric(12, 2), default=0, nullable=False)
    notes = Column(Text, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    annual_fees_generated = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    items = relationship("BudgetItem", back_populates="budget", order_by="BudgetItem.id")


class BudgetItem(Base):
    __tablename__ = "budget_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    budget_id = Column(Integer, ForeignKey("budgets.id"), nullable=False, index=True)
    item_type = Column(String(20), nullable=False)  # revenue, expense
    category = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)

    budget = relationship("Budget", back_populates="items")


class Supplier(Base):
    __tablename__ = "suppliers"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    nif = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    area = Column(String(100), nullable=True)  # cleaning, elevators, insurance...
    website = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Contract(Base):
    __tablename__ = "contracts"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)
    contract_number = Column(String(100), nullable=True)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=True)
    amount_type = Column(String(20), default="monthly", nullable=True)  # monthly, annual, one_time
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    renewal_alert_days = Column(Integer, default=30, nullable=False)
    auto_renew = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), default="active", nullable=False)  # active, expired, terminated
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Expense(Base):
    __tablename__ = "expenses"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    category = Column(String(100), nullable=True)
    expense_date = Column(Date, nullable=False)
    payment_method = Column(String(50), nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, paid
    created_at = Column(DateTime, server_default=func.now())


class Revenue(Base):
    __tablename__ = "revenues"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=True)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    category = Column(String(100), nullable=True)
    revenue_date = Column(Date, nullable=False)
    payment_method = Column(String(50), nullable=True)
    reference = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Fee(Base):
    __tablename__ = "fees"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=False, index=True)
    period_type = Column(String(20), default="monthly", nullable=False)
    period_year = Column(Integer, nullable=False)
    period_month = Column(Integer, nullable=True)  # Last month covered by the period
    period_index = Column(Integer, nullable=True)  # 1..N within the year for non-monthly periods
    fee_type = Column(String(20), default="regular", nullable=False)  # regular, extra
    amount = Column(Numeric(12, 2), nullable=False)
    base_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, paid, overdue, canceled
    due_date = Column(Date, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    is_historical = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    fraction = relationship("Fraction")
    payments = relationship("FeePayment", back_populates="fee", order_by="FeePayment.id")


class FeePayment(Base):
    __tablename__ = "fee_payments"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    fee_id = Column(Integer, ForeignKey("fees.id"), nullable=False, index=True)
    financial_transaction_id = Column(Integer, ForeignKey("financial_transactions.id"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(20), nullable=False)  # multibanco, mbway, transfer, cash, card, sepa
    reference = Column(String(255), nullable=True)
    payment_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    fee = relationship("Fee", back_populates="payments")


class FeePaymentHistory(Base):
    __tablename__ = "fee_payment_history"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    fee_id = Column(Integer, ForeignKey("fees.id"), nullable=False, index=True)
    fee_payment_id = Column(Integer, ForeignKey("fee_payments.id"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(50), nullable=False)  # payment_added, payment_deleted, status_changed
    amount = Column(Numeric(12, 2), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class FractionAccount(Base):
    """Running credit balance of a fraction; credits are applied to fees by liquidation"""

    __tablename__ = "fraction_accounts"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=False, unique=True)
    balance = Column(Numeric(12, 2), default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    movements = relationship(
        "FractionAccountMovement", back_populates="account", order_by="FractionAccountMovement.id"
    )


class FractionAccountMovement(Base):
    __tablename__ = "fraction_account_movements"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    fraction_account_id = Column(Integer, ForeignKey("fraction_accounts.id"), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # credit, debit
    amount = Column(Numeric(12, 2), nullable=False)
    # quota_payment, space_reservation, other, quota_application, historical_credit
    source_type = Column(String(30), nullable=False)
    source_reference_id = Column(Integer, nullable=True)
    source_financial_transaction_id = Column(
        Integer, ForeignKey("financial_transactions.id"), nullable=True
    )
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    account = relationship("FractionAccount", back_populates="movements")


class Receipt(Base):
    __tablename__ = "receipts"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    fee_id = Column(Integer, ForeignKey("fees.id"), nullable=False, index=True)
    fee_payment_id = Column(Integer, ForeignKey("fee_payments.id"), nullable=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=False)
    receipt_number = Column(String(50), unique=True, nullable=False)  # REC-{condo}-{year}-{seq}
    receipt_type = Column(String(20), default="final", nullable=False)  # partial, final
    amount = Column(Numeric(12, 2), nullable=False)
    file_path = Column(String(500), nullable=True)
    file_name = Column(String(255), nullable=True)
    file_size = Column(Integer, default=0, nullable=False)
    generated_at = Column(DateTime, nullable=False)
    generated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class CondominiumFeePeriod(Base):
    """Period type chosen for a condominium's fees in a given year"""

    __tablename__ = "condominium_fee_periods"
    __table_args__ = (
        UniqueConstraint("condominium_id", "year", name="uq_fee_period_year"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    year = Column(Integer, nullable=False)
    period_type = Column(String(20), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
