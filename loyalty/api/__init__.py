"""
API router initialization and setup.
"""
from fastapi import APIRouter
from .endpoints import users, orders, balance

api_router = APIRouter()

api_router.include_router(
    users.router,
    tags=["users"]
)

api_router.include_router(
    orders.router,
    tags=["orders"]
)

api_router.include_router(
    balance.router,
    tags=["balance"]
)
