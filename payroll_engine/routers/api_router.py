from fastapi import APIRouter
from payroll_engine.routers import payroll

# Routers are aggregated here; main.py only imports this hub.
api_router = APIRouter()

api_router.include_router(payroll.router, tags=["Payroll"])
