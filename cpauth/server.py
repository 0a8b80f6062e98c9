"""FastAPI-powered Chaum-Pedersen authentication service."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from .auth import AuthServer
from .config import Settings, configure_logging
from .errors import (
    AlreadyRegistered,
    AuthenticationFailed,
    InsufficientEntropy,
    InvalidCommitment,
    UnknownUser,
)
from .store import CredentialStore, SessionStore

logger = logging.getLogger(__name__)


class RegisterRequest(BaseModel):
    user_id: str = Field(min_length=1)
    y1: str
    y2: str


class RegisterResponse(BaseModel):
    user_id: str
    registered: bool


class LoginStartRequest(BaseModel):
    user_id: str
    r1: str
    r2: str


class LoginStartResponse(BaseModel):
    auth_id: str
    c: str


class LoginFinishRequest(BaseModel):
    auth_id: str
    s: str


class LoginFinishResponse(BaseModel):
    session_token: str


class ParamsResponse(BaseModel):
    name: str
    p: str
    q: str
    g: str
    h: str


def _parse_hex(value: str, field: str) -> int:
    try:
        return int(value, 16)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"{field} must be hex encoded") from exc


def build_auth_server(settings: Settings) -> AuthServer:
    params = settings.group_parameters()
    sessions = SessionStore(
        params,
        CredentialStore(settings.store_path),
        ttl=settings.attempt_ttl,
    )
    return AuthServer(sessions)


async def _sweep_forever(sessions: SessionStore, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            sessions.sweep_expired()
        except Exception:
            logger.exception("Expiry sweep failed")


def create_app(settings: Optional[Settings] = None, auth_server: Optional[AuthServer] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    auth_server = auth_server or build_auth_server(settings)
    logger.info("Serving with group %s", auth_server.params.name)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper = asyncio.create_task(_sweep_forever(auth_server.sessions, settings.sweep_interval))
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper

    app = FastAPI(
        title="cpauth",
        description="Password authentication with Chaum-Pedersen zero-knowledge proofs",
        lifespan=lifespan,
    )
    app.state.auth_server = auth_server

    def _server(request: Request) -> AuthServer:
        return request.app.state.auth_server

    @app.get("/params", response_model=ParamsResponse)
    async def params(request: Request) -> ParamsResponse:
        return ParamsResponse(**_server(request).params.to_dict())

    @app.post("/register", response_model=RegisterResponse)
    async def register(request: Request, body: RegisterRequest) -> RegisterResponse:
        y1 = _parse_hex(body.y1, "y1")
        y2 = _parse_hex(body.y2, "y2")
        try:
            _server(request).register(body.user_id, y1, y2)
        except AlreadyRegistered as exc:
            raise HTTPException(status_code=409, detail="User already registered") from exc
        except InvalidCommitment as exc:
            raise HTTPException(status_code=400, detail="Invalid commitment") from exc
        return RegisterResponse(user_id=body.user_id, registered=True)

    @app.post("/login/start", response_model=LoginStartResponse)
    async def login_start(request: Request, body: LoginStartRequest) -> LoginStartResponse:
        r1 = _parse_hex(body.r1, "r1")
        r2 = _parse_hex(body.r2, "r2")
        try:
            challenge = _server(request).create_authentication_challenge(body.user_id, r1, r2)
        except UnknownUser as exc:
            raise HTTPException(status_code=404, detail="Unknown user") from exc
        except InsufficientEntropy as exc:
            logger.error("Could not draw a challenge: %s", exc)
            raise HTTPException(status_code=503, detail="Temporarily unavailable") from exc
        return LoginStartResponse(auth_id=challenge.auth_id, c=hex(challenge.c))

    @app.post("/login/finish", response_model=LoginFinishResponse)
    async def login_finish(request: Request, body: LoginFinishRequest) -> LoginFinishResponse:
        try:
            s: object = int(body.s, 16)
        except ValueError:
            # An unparseable response is a failed proof and still consumes the attempt.
            s = None
        try:
            token = _server(request).verify_authentication(body.auth_id, s)
        except AuthenticationFailed as exc:
            raise HTTPException(status_code=401, detail="Authentication failed") from exc
        return LoginFinishResponse(session_token=token)

    return app


__all__ = ["build_auth_server", "create_app"]
