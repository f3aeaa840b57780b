from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from hrms.database import Base
import enum


class EmployeeCategory(str, enum.Enum):
    TRAINEE = "trainee"
    INTERN = "intern"
    PROBATION = "probation"
    CONFIRMED = "confirmed"


class EmployeeStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True, nullable=False)
    full_name = Column(String, nullable=False)
    email = Column(String, index=True, nullable=False)
    department_name = Column(String, nullable=True)
    designation = Column(String, nullable=True)
    category = Column(String, default=EmployeeCategory.CONFIRMED.value, nullable=False)
    date_of_joining = Column(Date, nullable=True)
    status = Column(String, default=EmployeeStatus.ACTIVE.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
