from decimal import Decimal
from sqlalchemy import Column, Integer, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from hrms.database import Base


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_leave_balance"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True, nullable=False)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), index=True, nullable=False)
    year = Column(Integer, nullable=False)
    total_days = Column(Numeric(6, 2), default=0, nullable=False)
    used_days = Column(Numeric(6, 2), default=0, nullable=False)
    carry_forward_days = Column(Numeric(6, 2), default=0, nullable=False)

    leave_type = relationship("LeaveType")

    @property
    def remaining_days(self) -> Decimal:
        return Decimal(self.total_days or 0) - Decimal(self.used_days or 0)
