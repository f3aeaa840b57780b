from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from hrms.database import Base


class PayrollSettings(Base):
    __tablename__ = "payroll_settings"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), unique=True, index=True, nullable=False)

    pay_cycle = Column(String, default="monthly", nullable=False)
    pay_day = Column(Integer, default=1, nullable=False)

    # Provident Fund
    pf_enabled = Column(Boolean, default=True, nullable=False)
    pf_employee_rate = Column(Numeric(5, 2), default=12, nullable=False)
    pf_employer_rate = Column(Numeric(5, 2), default=12, nullable=False)
    pf_limit = Column(Numeric(14, 2), default=15000, nullable=False)

    # Employee State Insurance
    esi_enabled = Column(Boolean, default=True, nullable=False)
    esi_employee_rate = Column(Numeric(5, 2), default=0.75, nullable=False)
    esi_employer_rate = Column(Numeric(5, 2), default=3.25, nullable=False)
    esi_limit = Column(Numeric(14, 2), default=21000, nullable=False)

    # Tax deducted at source
    tds_enabled = Column(Boolean, default=True, nullable=False)
    tax_regime = Column(String, default="new", nullable=False)
    tds_rebate_limit = Column(Numeric(14, 2), default=700000, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
