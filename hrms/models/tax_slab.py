from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey
from hrms.database import Base


class TaxSlab(Base):
    __tablename__ = "tax_slabs"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True, nullable=False)
    financial_year = Column(String, index=True, nullable=False)  # e.g. "2025-26"
    regime = Column(String, default="new", nullable=False)
    min_income = Column(Numeric(14, 2), nullable=False)
    max_income = Column(Numeric(14, 2), nullable=True)  # NULL = no upper bound
    rate = Column(Numeric(5, 2), nullable=False)
    active = Column(Boolean, default=True, nullable=False)
