"""API routers for PetCare."""

from petcare.routers.auth import router as auth_router
from petcare.routers.pets import router as pets_router

__all__ = [
    "auth_router",
    "pets_router",
]
