from sqlalchemy import Column, Integer, Numeric, Boolean, ForeignKey
from hrms.database import Base


class LeavePolicy(Base):
    __tablename__ = "leave_policies"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), unique=True, index=True, nullable=False)
    min_days_advance_planned = Column(Integer, default=2, nullable=False)
    probation_months = Column(Integer, default=3, nullable=False)
    leave_credit_start_month = Column(Integer, default=4, nullable=False)
    allow_negative_balance = Column(Boolean, default=False, nullable=False)
    allow_advance_leave = Column(Boolean, default=False, nullable=False)
    emergency_default_unpaid = Column(Boolean, default=True, nullable=False)
    unplanned_default_unpaid = Column(Boolean, default=True, nullable=False)
    hr_approval_days_threshold = Column(Numeric(6, 2), nullable=True)  # NULL = only non-planned escalate
