from decimal import Decimal
from sqlalchemy import Column, Integer, String, Numeric, Boolean, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from hrms.database import Base


class EmployeeSalaryProfile(Base):
    __tablename__ = "employee_salary_profiles"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True, nullable=False)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    effective_from = Column(Date, nullable=False)

    # Bank account and PAN are Fernet-encrypted at rest
    bank_name = Column(String, nullable=True)
    bank_account_number = Column(String, nullable=True)
    ifsc_code = Column(String, nullable=True)
    pan_number = Column(String, nullable=True)
    pf_number = Column(String, nullable=True)
    esi_number = Column(String, nullable=True)
    uan_number = Column(String, nullable=True)

    active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    employee = relationship("Employee")
    values = relationship(
        "EmployeeSalaryComponent",
        back_populates="profile",
        cascade="all, delete-orphan",
        order_by="EmployeeSalaryComponent.id",
    )

    @property
    def component_values(self) -> dict:
        return {v.component_code: Decimal(v.amount) for v in self.values}


class EmployeeSalaryComponent(Base):
    __tablename__ = "employee_salary_components"

    id = Column(Integer, primary_key=True, index=True)
    profile_id = Column(Integer, ForeignKey("employee_salary_profiles.id"), index=True, nullable=False)
    component_code = Column(String, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)

    profile = relationship("EmployeeSalaryProfile", back_populates="values")
