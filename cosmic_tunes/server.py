"""
Cosmic Tunes HTTP API
=====================

Spotify sign-in, top-artist lookup, group rooms, and server-rendered galaxy
snapshots.

Endpoints:
- GET  /login            -> redirect to Spotify authorization
- GET  /callback         -> finish authorization, store token for this browser
- GET  /api/me/top       -> signed-in user's top artists
- POST /group/create     -> {code}
- GET  /group/get        -> {code, members}
- POST /group/publish    -> {ok, size}
- GET  /galaxy.png       -> PNG snapshot (group room or signed-in user)

Usage:
    uvicorn cosmic_tunes.server:app --reload
"""

import io
import logging
import os
import random
import secrets
from collections.abc import Callable
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import BaseModel
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from .artists import fetch_top_artists
from .auth import (
    SESSION_COOKIE,
    STATE_COOKIE,
    AccessTokenProvider,
    SessionCacheHandler,
    SessionTokenStore,
    SpotipyTokenProvider,
)
from .config import DEFAULT_TIME_RANGE, MEMBER_ARTIST_CAP, TIME_RANGES
from .errors import NotAuthenticatedError, RefreshFailedError, RoomCapacityError, UpstreamError
from .graph import ArtistRecord
from .rooms import Member, MemoryKeyValueStore, RoomStore, create_room, merge_artists, normalize_code
from .spotify_client import create_auth_manager, create_token_client
from .visualization import initialize_visualization

logger = logging.getLogger(__name__)

SESSION_MAX_AGE = 60 * 60 * 24 * 30
STATE_MAX_AGE = 600
MAX_SNAPSHOT_FRAMES = 600

AuthFactory = Callable[[str, str], SpotifyOAuth]
Catalog = Callable[[str, str], list[ArtistRecord]]


class PublishRequest(BaseModel):
    """Request body for publishing a member snapshot."""
    code: str = ""
    member: dict[str, Any] | None = None


def default_auth_factory(session_id: str, redirect_uri: str, store: SessionTokenStore) -> SpotifyOAuth:
    return create_auth_manager(
        cache_handler=SessionCacheHandler(store, session_id),
        redirect_uri=redirect_uri,
        open_browser=False,
    )


def default_catalog(access_token: str, time_range: str) -> list[ArtistRecord]:
    return fetch_top_artists(create_token_client(access_token), time_range)


def base_url(request: Request) -> str:
    """Public origin, honoring proxy forwarding headers."""
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme
    host = request.headers.get("x-forwarded-host") or request.headers.get("host") or "localhost:8000"
    return f"{proto}://{host}"


def cookie_secure() -> bool:
    return os.getenv("COOKIE_SECURE", "").lower() == "true"


def create_app(
    rooms: RoomStore | None = None,
    tokens: SessionTokenStore | None = None,
    auth_factory: AuthFactory | None = None,
    catalog: Catalog | None = None,
    rng: random.Random | None = None,
) -> FastAPI:
    app = FastAPI(
        title="Cosmic Tunes API",
        version="0.1.0",
        description="Top-artist galaxies, solo or merged across a group room",
    )
    app.state.rooms = rooms or RoomStore(MemoryKeyValueStore())
    app.state.tokens = tokens or SessionTokenStore()
    app.state.rng = rng
    app.state.catalog = catalog or default_catalog
    app.state.auth_factory = auth_factory or (
        lambda session_id, redirect_uri: default_auth_factory(session_id, redirect_uri, app.state.tokens)
    )

    def redirect_uri(request: Request) -> str:
        return os.getenv("SPOTIPY_REDIRECT_URI") or f"{base_url(request)}/callback"

    def token_provider(request: Request) -> AccessTokenProvider:
        session_id = request.cookies.get(SESSION_COOKIE)
        if not session_id or app.state.tokens.get(session_id) is None:
            raise NotAuthenticatedError()
        return SpotipyTokenProvider(app.state.auth_factory(session_id, redirect_uri(request)))

    def current_user_artists(request: Request, time_range: str) -> list[ArtistRecord]:
        access_token = token_provider(request).get_access_token()
        return app.state.catalog(access_token, time_range)

    @app.exception_handler(NotAuthenticatedError)
    @app.exception_handler(RefreshFailedError)
    async def not_authenticated(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=401, content={"error": "not_authenticated"})

    @app.exception_handler(UpstreamError)
    async def upstream_failed(request: Request, exc: UpstreamError) -> JSONResponse:
        logger.warning("Spotify request failed (%s): %s", exc.status, exc)
        return JSONResponse(status_code=exc.status, content={"error": "upstream_error", "status": exc.status})

    @app.get("/login")
    def login(request: Request) -> RedirectResponse:
        """Start the authorization-code flow for this browser."""
        session_id = request.cookies.get(SESSION_COOKIE) or SessionTokenStore.new_session_id()
        state = secrets.token_urlsafe(24)
        auth_manager = app.state.auth_factory(session_id, redirect_uri(request))
        response = RedirectResponse(auth_manager.get_authorize_url(state=state), status_code=302)
        secure = cookie_secure()
        response.set_cookie(SESSION_COOKIE, session_id, max_age=SESSION_MAX_AGE, httponly=True, secure=secure, samesite="lax")
        response.set_cookie(STATE_COOKIE, state, max_age=STATE_MAX_AGE, httponly=True, secure=secure, samesite="lax")
        return response

    @app.get("/callback")
    def callback(request: Request, code: str = "", state: str = "") -> RedirectResponse:
        """Exchange the authorization code; the token lands in this session's cache."""
        if not code or not state:
            raise HTTPException(status_code=400, detail="Missing code/state")
        if request.cookies.get(STATE_COOKIE) != state:
            raise HTTPException(status_code=400, detail="State mismatch")
        session_id = request.cookies.get(SESSION_COOKIE)
        if not session_id:
            raise HTTPException(status_code=400, detail="Missing session")

        auth_manager = app.state.auth_factory(session_id, redirect_uri(request))
        try:
            auth_manager.get_access_token(code, as_dict=False, check_cache=False)
        except SpotifyOauthError as exc:
            logger.error("Token exchange failed: %s", exc)
            raise HTTPException(status_code=400, detail="Token exchange failed") from exc

        response = RedirectResponse("/galaxy.png", status_code=302)
        response.delete_cookie(STATE_COOKIE)
        return response

    @app.get("/api/me/top")
    def top_artists(request: Request, time_range: str = Query(DEFAULT_TIME_RANGE, alias="range")) -> dict[str, Any]:
        if time_range not in TIME_RANGES:
            raise HTTPException(status_code=400, detail=f"Unknown range: {time_range}")
        artists = current_user_artists(request, time_range)
        return {"items": [artist.to_dict() for artist in artists]}

    @app.post("/group/create")
    def create_group() -> Any:
        try:
            code = create_room(app.state.rooms, app.state.rng)
        except RoomCapacityError:
            return JSONResponse(status_code=503, content={"error": "unable_to_allocate_code"})
        logger.info("Created room %s", code)
        return {"code": code}

    @app.get("/group/get")
    def get_group(code: str = "", touch: bool = False) -> dict[str, Any]:
        code = normalize_code(code)
        if not code:
            raise HTTPException(status_code=400, detail="bad_request")
        members = app.state.rooms.read_members(code, touch=touch)
        return {"code": code, "members": [member.to_dict() for member in members]}

    @app.post("/group/publish")
    def publish_group(payload: PublishRequest) -> dict[str, Any]:
        code = normalize_code(payload.code)
        member = Member.from_dict(payload.member)
        if not code or member is None:
            raise HTTPException(status_code=400, detail="bad_request")
        member.top_artists = member.top_artists[:MEMBER_ARTIST_CAP]
        members = app.state.rooms.upsert_member(code, member)
        return {"ok": True, "size": len(members)}

    @app.get("/galaxy.png")
    def galaxy_snapshot(
        request: Request,
        code: str = "",
        frames: int = Query(180, ge=0, le=MAX_SNAPSHOT_FRAMES),
        width: int = Query(1280, ge=64, le=3840),
        height: int = Query(800, ge=64, le=2160),
    ) -> Response:
        """Simulate a fresh galaxy for ``frames`` frames and return the last one."""
        code = normalize_code(code)
        if code:
            artists = merge_artists(app.state.rooms.read_members(code))
        else:
            try:
                artists = current_user_artists(request, DEFAULT_TIME_RANGE)
            except UpstreamError as exc:
                logger.warning("Rendering empty galaxy after Spotify error (%s)", exc.status)
                artists = []

        view = initialize_visualization(artists, width=width, height=height, rng=app.state.rng)
        try:
            view.run(frames)
            buffer = io.BytesIO()
            view.capture_frame().save(buffer, format="PNG")
        finally:
            view.dispose()
        return Response(content=buffer.getvalue(), media_type="image/png")

    return app


app = create_app()
