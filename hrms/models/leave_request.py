from sqlalchemy import Column, Integer, String, Date, Numeric, Boolean, ForeignKey, DateTime, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from hrms.database import Base
import enum


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestType(str, enum.Enum):
    PLANNED = "planned"
    UNPLANNED = "unplanned"
    EMERGENCY = "emergency"


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True, nullable=False)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), index=True, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(Numeric(6, 2), nullable=False)
    reason = Column(Text, nullable=True)

    request_type = Column(String, nullable=False)
    is_paid = Column(Boolean, nullable=False)
    auto_unpaid_reason = Column(String, nullable=True)
    requires_hr_approval = Column(Boolean, default=False, nullable=False)

    # Tri-state: NULL = not yet decided
    manager_approved = Column(Boolean, nullable=True)
    manager_id = Column(Integer, nullable=True)
    manager_decided_at = Column(DateTime(timezone=True), nullable=True)
    manager_comment = Column(Text, nullable=True)
    hr_approved = Column(Boolean, nullable=True)
    hr_id = Column(Integer, nullable=True)
    hr_decided_at = Column(DateTime(timezone=True), nullable=True)
    hr_comment = Column(Text, nullable=True)

    status = Column(String, default=LeaveStatus.PENDING.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    leave_type = relationship("LeaveType")
    employee = relationship("Employee")
