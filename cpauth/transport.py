"""HTTP client transport speaking to :mod:`cpauth.server`."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from .auth import Challenge
from .errors import (
    AlreadyRegistered,
    AuthenticationFailed,
    AuthError,
    InsufficientEntropy,
    InvalidCommitment,
    UnknownUser,
)
from .group import GroupParameters

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class HttpTransport:
    """Implements the client transport over the service's JSON endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _post(self, path: str, payload: Dict[str, str]) -> httpx.Response:
        response = self._client.post(path, json=payload)
        logger.debug("POST %s -> %d", path, response.status_code)
        return response

    def fetch_params(self) -> GroupParameters:
        response = self._client.get("/params")
        response.raise_for_status()
        data = response.json()
        return GroupParameters(
            p=int(data["p"], 16),
            q=int(data["q"], 16),
            g=int(data["g"], 16),
            h=int(data["h"], 16),
            name=data["name"],
        )

    def register(self, user_id: str, y1: int, y2: int) -> None:
        response = self._post("/register", {"user_id": user_id, "y1": hex(y1), "y2": hex(y2)})
        if response.status_code == 409:
            raise AlreadyRegistered(f"User '{user_id}' already registered")
        if response.status_code == 400:
            raise InvalidCommitment(response.json().get("detail", "Invalid commitment"))
        _raise_for_status(response)

    def create_authentication_challenge(self, user_id: str, r1: int, r2: int) -> Challenge:
        response = self._post("/login/start", {"user_id": user_id, "r1": hex(r1), "r2": hex(r2)})
        if response.status_code == 404:
            raise UnknownUser(user_id)
        _raise_for_status(response)
        data = response.json()
        return Challenge(auth_id=data["auth_id"], c=int(data["c"], 16))

    def verify_authentication(self, auth_id: str, s: object) -> str:
        encoded = hex(s) if isinstance(s, int) else str(s)
        response = self._post("/login/finish", {"auth_id": auth_id, "s": encoded})
        if response.status_code == 401:
            raise AuthenticationFailed("Authentication failed")
        _raise_for_status(response)
        return response.json()["session_token"]


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code == 503:
        raise InsufficientEntropy("Server could not draw secure randomness")
    if response.is_error:
        raise AuthError(f"Unexpected response {response.status_code}: {response.text}")


__all__ = ["HttpTransport"]
