from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey, UniqueConstraint
from hrms.database import Base
import enum

# Pseudo-component code usable as a percentage base for deductions
GROSS_CODE = "GROSS"


class ComponentKind(str, enum.Enum):
    EARNING = "earning"
    DEDUCTION = "deduction"


class CalculationType(str, enum.Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class SalaryComponent(Base):
    __tablename__ = "salary_components"
    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_salary_component_code"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    code = Column(String, nullable=False)
    kind = Column(String, nullable=False)  # Store enum value as string
    calc = Column(String, default=CalculationType.FIXED.value, nullable=False)
    percentage_of = Column(String, nullable=True)
    percentage_value = Column(Numeric(7, 3), nullable=True)
    taxable = Column(Boolean, default=True, nullable=False)
    pf_applicable = Column(Boolean, default=False, nullable=False)
    esi_applicable = Column(Boolean, default=False, nullable=False)
    system_defined = Column(Boolean, default=False, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
