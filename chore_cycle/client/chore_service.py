"""Async REST client for the chore API.

Pure request/response: nothing is cached, and responses are never used to
update local chore state.
"""
import logging
from typing import Any, Dict, List, Optional, Type

import httpx

from chore_cycle.client.session import Session
from chore_cycle.config import settings
from chore_cycle.errors import (
    AlreadyMemberError,
    AuthError,
    ChoreError,
    DuplicateMemberError,
    NotFoundError,
    OwnerCannotLeaveError,
    PermissionDeniedError,
    TransportError,
    ValidationError,
)
from chore_cycle.models.chore import Chore
from chore_cycle.models.user import TokenResponse, UserResponse

logger = logging.getLogger(__name__)

ErrorMap = Dict[int, Type[ChoreError]]

DEFAULT_ERRORS: ErrorMap = {
    400: ValidationError,
    403: PermissionDeniedError,
    404: NotFoundError,
    422: ValidationError,
}


def error_message(response: httpx.Response) -> str:
    """Readable message from a FastAPI error body."""
    try:
        body = response.json()
    except ValueError:
        body = None

    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, list):
        return ", ".join(
            "{}: {}".format(".".join(str(part) for part in err.get("loc", [])), err.get("msg"))
            for err in detail
            if isinstance(err, dict)
        )
    if detail:
        return str(detail)

    if response.status_code == 422:
        return "Please check your input and try again"
    if response.status_code == 401:
        return "Invalid credentials"
    if response.status_code == 400:
        return "Bad request - please check your input"
    return f"Request failed with status {response.status_code}"


class ChoreService:
    def __init__(
        self,
        session: Session,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_url,
            timeout=timeout if timeout is not None else settings.http_timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ChoreService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        authenticated: bool = True,
        errors: Optional[ErrorMap] = None,
    ) -> Any:
        headers = {}
        if authenticated:
            if not self.session.token:
                raise AuthError("Not logged in", status_code=401)
            headers["Authorization"] = f"Bearer {self.session.token}"

        try:
            response = await self._client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransportError(f"{method} {path} timed out") from exc
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.is_success:
            return response.json() if response.content else None

        message = error_message(response)
        logger.warning("API error %s on %s %s: %s", response.status_code, method, path, message)

        if response.status_code == 401:
            # A rejected token is useless; drop it so the UI returns to login.
            if authenticated:
                self.session.clear()
            raise AuthError(message, status_code=401)

        error_cls = {**DEFAULT_ERRORS, **(errors or {})}.get(response.status_code, ChoreError)
        raise error_cls(message, status_code=response.status_code)

    # Auth

    async def register(self, email: str, full_name: str, password: str) -> TokenResponse:
        data = await self._request(
            "POST", "/auth/register",
            json={"email": email, "full_name": full_name, "password": password},
            authenticated=False,
        )
        return TokenResponse.model_validate(data)

    async def login(self, email: str, password: str) -> TokenResponse:
        data = await self._request(
            "POST", "/auth/login",
            json={"email": email, "password": password},
            authenticated=False,
        )
        return TokenResponse.model_validate(data)

    async def get_current_user(self) -> UserResponse:
        return UserResponse.model_validate(await self._request("GET", "/auth/me"))

    # Chores

    async def get_all_chores(self) -> List[Chore]:
        data = await self._request("GET", "/chores/")
        return [Chore.model_validate(item) for item in data or []]

    async def get_chore(self, chore_id: str) -> Chore:
        return Chore.model_validate(await self._request("GET", f"/chores/{chore_id}"))

    async def create_chore(self, name: str) -> Chore:
        return Chore.model_validate(await self._request("POST", "/chores/", json={"name": name}))

    async def delete_chore(self, chore_id: str) -> None:
        await self._request("DELETE", f"/chores/{chore_id}")

    async def join_chore(self, chore_id: str) -> Chore:
        data = await self._request(
            "POST", "/auth/join-chore",
            json={"chore_id": chore_id},
            errors={400: AlreadyMemberError},
        )
        return Chore.model_validate(data)

    async def leave_chore(self, chore_id: str) -> None:
        await self._request("POST", f"/chores/{chore_id}/leave", errors={400: OwnerCannotLeaveError})

    async def add_person_to_chore(self, chore_id: str, email: str) -> Chore:
        data = await self._request(
            "POST", f"/chores/{chore_id}/people",
            json={"email": email},
            errors={400: DuplicateMemberError},
        )
        return Chore.model_validate(data)

    async def remove_person_from_chore(self, chore_id: str, person_id: str) -> Chore:
        return Chore.model_validate(await self._request("DELETE", f"/chores/{chore_id}/people/{person_id}"))

    async def advance_queue(self, chore_id: str) -> Chore:
        return Chore.model_validate(await self._request("POST", f"/chores/{chore_id}/advance"))
