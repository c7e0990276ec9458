"""
Main API v1 router
"""
from fastapi import APIRouter

from app.api.v1.endpoints import auth, signup, profile, products

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(signup.router)
api_router.include_router(auth.router)
api_router.include_router(profile.router)
api_router.include_router(products.router)
