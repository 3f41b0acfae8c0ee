from fastapi import APIRouter

from gemini_net.api.probe.routes import router as probe_router

router = APIRouter()
router.include_router(probe_router)
