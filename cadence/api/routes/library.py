"""Library browsing: current view, categories, playlists, and playing from the open list."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from cadence.api.routes.playback import playback_to_dict, track_to_dict
from cadence.api.state import AppState, get_state, http_error
from cadence.core.errors import CadenceError
from cadence.models.navigation import (
    BrowsingView,
    CategoryView,
    LibraryView,
    PlaylistSongsView,
    PlaylistsView,
)
from cadence.models.track import Collection, CollectionKind

router = APIRouter()


def _view_to_dict(view: BrowsingView) -> dict:
    out = {"name": view.name}
    if isinstance(view, CategoryView):
        out["kind"] = view.kind.value
    elif isinstance(view, PlaylistSongsView):
        out["playlist_id"] = view.playlist_id
    return out


def _collection_to_dict(c: Collection, with_tracks: bool = True) -> dict:
    out = {
        "kind": c.kind.value,
        "name": c.name,
        "playlist_id": c.playlist_id,
        "image_url": c.image_url,
        "owner": c.owner,
        "track_count": len(c),
    }
    if with_tracks:
        out["tracks"] = [track_to_dict(t) for t in c.tracks]
    return out


def _browse_to_dict(state: AppState) -> dict:
    context = state.controller.context
    visible = context.visible_collection()
    return {
        "view": _view_to_dict(context.view),
        "counts": context.library.counts(),
        "playlists": [_collection_to_dict(p, with_tracks=False) for p in context.library.playlists],
        "collection": _collection_to_dict(visible) if visible else None,
    }


class ViewBody(BaseModel):
    name: str
    kind: Optional[CollectionKind] = None
    playlist_id: Optional[str] = None


def _view_from_body(body: ViewBody) -> BrowsingView:
    if body.name == "library":
        return LibraryView()
    if body.name == "playlists":
        return PlaylistsView()
    if body.name == "category" and body.kind is not None:
        return CategoryView(body.kind)
    if body.name == "playlist-songs" and body.playlist_id:
        return PlaylistSongsView(body.playlist_id)
    raise HTTPException(status_code=400, detail=f"Invalid view: {body.name}")


@router.get("")
async def browse(state: AppState = Depends(get_state)):
    """Current view, library counts, and the open track list (if any)."""
    return _browse_to_dict(state)


@router.post("/refresh")
async def refresh(state: AppState = Depends(get_state)):
    try:
        await state.controller.refresh_library()
    except CadenceError as e:
        raise http_error(e)
    return _browse_to_dict(state)


@router.post("/view")
async def navigate(body: ViewBody, state: AppState = Depends(get_state)):
    try:
        state.controller.navigate(_view_from_body(body))
    except KeyError:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return _browse_to_dict(state)


@router.post("/category/{kind}")
async def select_category(kind: CollectionKind, state: AppState = Depends(get_state)):
    state.controller.select_category(kind)
    return _browse_to_dict(state)


@router.post("/playlists/{playlist_id}")
async def select_playlist(playlist_id: str, state: AppState = Depends(get_state)):
    try:
        state.controller.select_playlist(playlist_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return _browse_to_dict(state)


@router.post("/back")
async def go_back(state: AppState = Depends(get_state)):
    state.controller.go_back()
    return _browse_to_dict(state)


@router.post("/leave")
async def leave(state: AppState = Depends(get_state)):
    """User left the music feature; browsing resets to the library."""
    state.controller.leave()
    return _browse_to_dict(state)


@router.post("/play/{index}")
async def play_track_at_index(index: int, state: AppState = Depends(get_state)):
    """Play track `index` of the open list; that list becomes the next/previous source."""
    try:
        await state.controller.play_track_at_index(index)
    except IndexError:
        raise HTTPException(status_code=404, detail="Track not found or invalid index")
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CadenceError as e:
        raise http_error(e)
    return playback_to_dict(state)
