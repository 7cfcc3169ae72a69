"""Spotify connection: connect (OAuth via loopback listener), status, devices, logout."""
from fastapi import APIRouter, Depends

from cadence.api.state import AppState, get_state, http_error
from cadence.config import is_spotify_configured
from cadence.core.errors import CadenceError, NotConfigured

router = APIRouter()


@router.get("/status")
async def get_status(state: AppState = Depends(get_state)):
    """Connection status and the connected user's profile."""
    controller = state.controller
    user = controller.user
    category = controller.last_category
    return {
        "status": controller.status.value,
        "configured": is_spotify_configured(),
        "logged_in": controller.sessions.is_authenticated,
        "auth_in_progress": controller.auth.in_progress,
        "user": user.to_dict() if user else None,
        "last_volume": controller.last_volume,
        "last_category": category.value if category else None,
    }


@router.post("/connect", status_code=202)
async def connect(state: AppState = Depends(get_state)):
    """Start the OAuth flow: opens the Spotify login page and waits for the callback."""
    if not is_spotify_configured():
        raise http_error(NotConfigured())
    started = state.start_connect()
    return {"ok": True, "started": started, "status": state.controller.status.value}


@router.post("/logout")
async def logout(state: AppState = Depends(get_state)):
    """Disconnect: stop polling, forget tokens."""
    await state.controller.disconnect()
    return {"ok": True}


@router.get("/devices")
async def get_devices(state: AppState = Depends(get_state)):
    try:
        devices = await state.controller.get_devices()
    except CadenceError as e:
        raise http_error(e)
    return [
        {
            "id": d.id,
            "name": d.name,
            "type": d.type,
            "is_active": d.is_active,
            "is_restricted": d.is_restricted,
            "volume_percent": d.volume_percent,
        }
        for d in devices
    ]
