from fastapi import APIRouter, Depends, Form
from fastapi.responses import JSONResponse

from ..auth import get_current_user
from ..channels import authorize_subscription
from ..core import Services, get_services

router = APIRouter()


@router.post('/auth')
async def pusher_auth(
    socket_id: str = Form(...),
    channel_name: str = Form(...),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Private channel handshake for the realtime client; the signed blob is returned as-is"""
    blob = await authorize_subscription(
        services.notifier,
        current_user['id'],
        current_user['username'],
        channel_name,
        socket_id,
    )
    return JSONResponse(content=blob)
