from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import Optional


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    currency: str = "INR"
    seed_defaults: bool = True


class CompanyResponse(BaseModel):
    id: int
    name: str
    slug: str
    currency: str
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EmployeeCreate(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: str
    department_name: Optional[str] = None
    designation: Optional[str] = None
    category: str = "confirmed"
    date_of_joining: Optional[date] = None


class EmployeeUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    department_name: Optional[str] = None
    designation: Optional[str] = None
    category: Optional[str] = None
    date_of_joining: Optional[date] = None
    status: Optional[str] = None


class EmployeeResponse(BaseModel):
    id: int
    company_id: int
    full_name: str
    email: str
    department_name: Optional[str] = None
    designation: Optional[str] = None
    category: str
    date_of_joining: Optional[date] = None
    status: str

    model_config = ConfigDict(from_attributes=True)
