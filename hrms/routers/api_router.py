from fastapi import APIRouter
from hrms.routers import companies, employees, payroll, leave

# Centralized API router hub: main.py only imports this one.
api_router = APIRouter()

api_router.include_router(companies.router, tags=["Companies"])
api_router.include_router(employees.router, tags=["Employees"])
api_router.include_router(payroll.router, tags=["Payroll"])
api_router.include_router(leave.router, tags=["Leave"])
