from fastapi import APIRouter

from relay.api import ice

router = APIRouter()

router.include_router(ice.router)
