"""
Applicant application endpoints:
- endpoints: drafts, reads, submit, withdraw, receipt
- sections: section writes and document uploads
"""

from fastapi import APIRouter
from .endpoints import router as endpoints_router
from .sections import router as sections_router

router = APIRouter()

router.include_router(endpoints_router)
router.include_router(sections_router)
