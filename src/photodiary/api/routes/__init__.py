from fastapi import APIRouter

from photodiary.api.routes import health, images

api_router = APIRouter()
api_router.include_router(images.router)
api_router.include_router(health.router)

__all__ = ["api_router"]
