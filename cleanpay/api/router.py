from fastapi import APIRouter

from cleanpay.api.payroll import callable_router
from cleanpay.api.periods import periods_router

api_router = APIRouter()
api_router.include_router(callable_router)
api_router.include_router(periods_router)
