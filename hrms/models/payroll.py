from sqlalchemy import (
    Column, Integer, String, Numeric, Date, DateTime, ForeignKey, Index, JSON, Text, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from hrms.database import Base
import enum


class PayrollRunStatus(str, enum.Enum):
    PROCESSING = "processing"
    PROCESSED = "processed"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class PayslipStatus(str, enum.Enum):
    GENERATED = "generated"
    PAID = "paid"


_ACTIVE_RUN = text("status != 'cancelled'")


class PayrollRun(Base):
    __tablename__ = "payroll_runs"
    __table_args__ = (
        # At most one live run per company and period
        Index(
            "uq_payroll_run_period",
            "company_id", "period_start", "period_end",
            unique=True,
            sqlite_where=_ACTIVE_RUN,
            postgresql_where=_ACTIVE_RUN,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True, nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    pay_date = Column(Date, nullable=False)
    status = Column(String, default=PayrollRunStatus.PROCESSING.value, nullable=False)

    total_gross = Column(Numeric(16, 2), default=0, nullable=False)
    total_deductions = Column(Numeric(16, 2), default=0, nullable=False)
    total_net = Column(Numeric(16, 2), default=0, nullable=False)
    total_employer_cost = Column(Numeric(16, 2), default=0, nullable=False)
    employee_count = Column(Integer, default=0, nullable=False)

    notes = Column(Text, nullable=True)
    warnings = Column(JSON, nullable=True)

    processed_by = Column(Integer, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    payslips = relationship(
        "Payslip",
        back_populates="payroll_run",
        cascade="all, delete-orphan",
        order_by="Payslip.employee_name",
    )


class Payslip(Base):
    __tablename__ = "payslips"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True, nullable=False)
    payroll_run_id = Column(Integer, ForeignKey("payroll_runs.id"), index=True, nullable=False)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    salary_profile_id = Column(Integer, ForeignKey("employee_salary_profiles.id"), nullable=False)

    # Snapshot taken at generation time; later profile edits do not touch it
    employee_name = Column(String, nullable=False)
    employee_email = Column(String, nullable=True)
    department_name = Column(String, nullable=True)
    designation = Column(String, nullable=True)
    bank_name = Column(String, nullable=True)
    bank_account_number = Column(String, nullable=True)
    ifsc_code = Column(String, nullable=True)
    pan_number = Column(String, nullable=True)
    pf_number = Column(String, nullable=True)
    esi_number = Column(String, nullable=True)
    uan_number = Column(String, nullable=True)

    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)

    gross_earnings = Column(Numeric(14, 2), nullable=False)
    total_deductions = Column(Numeric(14, 2), nullable=False)
    net_pay = Column(Numeric(14, 2), nullable=False)
    employer_pf = Column(Numeric(14, 2), default=0, nullable=False)
    employer_esi = Column(Numeric(14, 2), default=0, nullable=False)
    employer_cost = Column(Numeric(14, 2), default=0, nullable=False)
    taxable_income = Column(Numeric(16, 2), default=0, nullable=False)
    tds_amount = Column(Numeric(14, 2), default=0, nullable=False)
    status = Column(String, default=PayslipStatus.GENERATED.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    payroll_run = relationship("PayrollRun", back_populates="payslips")
    items = relationship(
        "PayslipLineItem",
        back_populates="payslip",
        cascade="all, delete-orphan",
        order_by="PayslipLineItem.sort_order",
    )


class PayslipLineItem(Base):
    __tablename__ = "payslip_line_items"

    id = Column(Integer, primary_key=True, index=True)
    payslip_id = Column(Integer, ForeignKey("payslips.id"), index=True, nullable=False)
    component_name = Column(String, nullable=False)
    component_code = Column(String, nullable=False)
    type = Column(String, nullable=False)  # earning | deduction
    amount = Column(Numeric(14, 2), nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    payslip = relationship("Payslip", back_populates="items")
