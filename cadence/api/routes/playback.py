"""Playback controls and current state."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from cadence.api.state import AppState, get_state, http_error
from cadence.core.errors import CadenceError
from cadence.models.track import Track

router = APIRouter()


def track_to_dict(t: Optional[Track]) -> Optional[dict]:
    if t is None:
        return None
    return {
        "id": t.id,
        "name": t.name,
        "artist": t.artist,
        "album": t.album,
        "duration_ms": t.duration_ms,
        "uri": t.uri,
        "image_url": t.image_url,
    }


def playback_to_dict(state: AppState) -> dict:
    context = state.controller.context
    snap = context.snapshot()
    source = context.source
    return {
        "is_playing": snap.is_playing,
        "progress_ms": snap.progress_ms,
        "duration_ms": snap.duration_ms,
        "volume_percent": snap.volume_percent,
        "track": track_to_dict(snap.track),
        "source": (
            {"kind": source.collection.kind.value, "name": source.collection.name, "index": source.index}
            if source
            else None
        ),
    }


@router.get("")
async def get_playback(state: AppState = Depends(get_state)):
    """Last known playback state (kept current by the poller)."""
    return playback_to_dict(state)


@router.post("/toggle")
async def toggle(state: AppState = Depends(get_state)):
    try:
        await state.controller.toggle_playback()
    except CadenceError as e:
        raise http_error(e)
    return playback_to_dict(state)


@router.post("/next")
async def next_track(state: AppState = Depends(get_state)):
    try:
        await state.controller.next_track()
    except CadenceError as e:
        raise http_error(e)
    return playback_to_dict(state)


@router.post("/previous")
async def previous_track(state: AppState = Depends(get_state)):
    try:
        await state.controller.previous_track()
    except CadenceError as e:
        raise http_error(e)
    return playback_to_dict(state)


class SeekBody(BaseModel):
    percent: float = Field(ge=0, le=100)


@router.post("/seek")
async def seek(body: SeekBody, state: AppState = Depends(get_state)):
    try:
        await state.controller.seek_to_position(body.percent)
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CadenceError as e:
        raise http_error(e)
    return playback_to_dict(state)


class VolumeBody(BaseModel):
    percent: int = Field(ge=0, le=100)


@router.post("/volume")
async def set_volume(body: VolumeBody, state: AppState = Depends(get_state)):
    try:
        await state.controller.set_volume(body.percent)
    except CadenceError as e:
        raise http_error(e)
    return playback_to_dict(state)
