from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey, UniqueConstraint
from hrms.database import Base


class LeaveType(Base):
    """
    A leave category. Allocation is either annual (``days_per_year``) or a
    monthly quota (``is_monthly_quota`` + ``monthly_limit``), never both.
    """
    __tablename__ = "leave_types"
    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_leave_type_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    days_per_year = Column(Numeric(6, 2), nullable=True)
    is_monthly_quota = Column(Boolean, default=False, nullable=False)
    monthly_limit = Column(Numeric(6, 2), nullable=True)
    is_paid = Column(Boolean, default=True, nullable=False)
    is_carry_forward = Column(Boolean, default=False, nullable=False)
    max_carry_forward_days = Column(Numeric(6, 2), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
