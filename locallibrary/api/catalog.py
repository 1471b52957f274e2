from fastapi import APIRouter
from locallibrary.api.endpoints import authors, bookinstances, books, genres

api_router = APIRouter()

api_router.include_router(books.router)
api_router.include_router(authors.router)
api_router.include_router(genres.router)
api_router.include_router(bookinstances.router)
