"""
Staff endpoints for reviewing submitted applications.
"""

from fastapi import APIRouter
from .review import router as review_router

router = APIRouter()

router.include_router(review_router)
