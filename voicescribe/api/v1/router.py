"""Main API router aggregator."""

from fastapi import APIRouter

from voicescribe.api.v1 import auth, transcriptions

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(transcriptions.router, prefix="/transcription", tags=["transcription"])
