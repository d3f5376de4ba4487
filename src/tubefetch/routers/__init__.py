from fastapi import APIRouter

from tubefetch.routers.analyze import router as analyze_router
from tubefetch.routers.downloads import router as downloads_router
from tubefetch.routers.events import router as events_router

api_router = APIRouter(prefix="/api")
api_router.include_router(analyze_router)
api_router.include_router(downloads_router)
api_router.include_router(events_router)
