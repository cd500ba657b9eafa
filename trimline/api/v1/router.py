from fastapi import APIRouter

from trimline.api.v1.endpoints import word_count_revision

api_router = APIRouter()

api_router.include_router(
    word_count_revision.router,
    prefix="/word-count-revision",
    tags=["word-count-revision"],
)
