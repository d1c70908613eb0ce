"""
API v1 routes.
"""

from fastapi import APIRouter

from checkride.api.v1 import answers, sessions

router = APIRouter()

router.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])
router.include_router(answers.router, prefix="/answers", tags=["Answers"])
