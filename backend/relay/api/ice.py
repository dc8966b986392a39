from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from relay.services.exceptions import IceServiceError
from relay.services.ice_service import IceService, get_ice_service

router = APIRouter(tags=["ice"])


@router.get("/ice")
async def get_ice_servers(ice_service: IceService = Depends(get_ice_service)):
    """Return the provider's iceServers list for the WebRTC peer connection."""
    try:
        return await ice_service.fetch_ice_servers()
    except IceServiceError as e:
        return JSONResponse(status_code=500, content={"error": str(e)})
