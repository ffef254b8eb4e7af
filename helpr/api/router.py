"""Central router that includes all sub-routers."""

from fastapi import APIRouter

from helpr.api.services import router as services_router
from helpr.api.bids import router as bids_router
from helpr.api.estimates import router as estimates_router
from helpr.api.websocket import router as websocket_router

api_router = APIRouter()
api_router.include_router(services_router)
api_router.include_router(bids_router)
api_router.include_router(estimates_router)
api_router.include_router(websocket_router)
