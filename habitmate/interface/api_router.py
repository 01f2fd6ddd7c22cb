"""HTTP interface exposing the data orchestrator as a JSON API."""

import logging
import mimetypes
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Query, Response, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from habitmate.core import photo_storage
from habitmate.core.config import constants, settings
from habitmate.core.errors import HabitmateError, StorageError
from habitmate.models.service_models import MutationResult
from habitmate.services.orchestrator import DataOrchestrator
from habitmate.services.session_service import Session, SessionService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])
storage_router = APIRouter(prefix="/storage/v1/object/public", tags=["storage"])


@dataclass
class UserClient:
    """One signed-in user's session and the orchestrator following it."""

    sessions: SessionService
    orchestrator: DataOrchestrator


class ClientRegistry:
    """Signed-in clients keyed by their current access token."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clients: dict[str, UserClient] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._clients)

    def _new_client(self) -> UserClient:
        if self._clock is None:
            sessions = SessionService()
            return UserClient(sessions=sessions, orchestrator=DataOrchestrator(sessions))
        sessions = SessionService(clock=self._clock)
        return UserClient(sessions=sessions, orchestrator=DataOrchestrator(sessions, clock=self._clock))

    def _evict(self, access_token: str) -> None:
        client = self._clients.pop(access_token, None)
        if client is not None:
            client.orchestrator.close()
            logger.info("Evicted expired session", extra={"user_id": client.orchestrator.state.user_id})

    def evict_expired(self) -> int:
        """Drop every client whose session has expired and return how many were dropped."""
        expired = [token for token, client in self._clients.items() if client.sessions.get_session(token) is None]
        for token in expired:
            self._evict(token)
        return len(expired)

    async def sign_in(self, *, user_id: str, email: str) -> Session:
        self.evict_expired()
        client = self._new_client()
        session = await client.sessions.sign_in(user_id=user_id, email=email)
        self._clients[session.access_token] = client
        return session

    def get(self, access_token: str) -> UserClient | None:
        client = self._clients.get(access_token)
        if client is None:
            return None
        if client.sessions.get_session(access_token) is None:
            self._evict(access_token)
            return None
        return client

    async def refresh(self, *, access_token: str, refresh_token: str) -> Session:
        client = self._clients.get(access_token)
        if client is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        session = await client.sessions.refresh(refresh_token)
        del self._clients[access_token]
        self._clients[session.access_token] = client
        return session

    async def sign_out(self, access_token: str) -> None:
        client = self._clients.pop(access_token, None)
        if client is None:
            return
        await client.sessions.sign_out()
        client.orchestrator.close()

    async def clear(self) -> None:
        for token in list(self._clients):
            await self.sign_out(token)


registry = ClientRegistry()


def _bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return authorization[7:].strip()


async def require_token(authorization: Annotated[str | None, Header()] = None) -> str:
    """Extract the bearer token from the Authorization header."""
    return _bearer_token(authorization)


async def require_client(token: Annotated[str, Depends(require_token)]) -> UserClient:
    """Resolve the bearer token to a live signed-in client."""
    client = registry.get(token)
    if client is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return client


ClientDep = Annotated[UserClient, Depends(require_client)]


def _respond(result: MutationResult) -> JSONResponse:
    status_code = constants.HTTP_OK if result.ok else constants.HTTP_BAD_REQUEST
    return JSONResponse(
        content={"error": result.error, "data": jsonable_encoder(result.data)},
        status_code=status_code,
    )


def _session_payload(session: Session) -> dict[str, Any]:
    return jsonable_encoder(session)


# Request bodies


class SignInBody(BaseModel):
    user_id: str = Field(..., description="Verified auth user ID")
    email: str = Field(..., description="Verified email address")


class RefreshBody(BaseModel):
    refresh_token: str


class TaskBody(BaseModel):
    title: str
    description: str | None = None


class FriendRequestBody(BaseModel):
    user_id: str = Field(..., description="Profile ID to send the request to")


class PartnerTaskBody(BaseModel):
    invitee_id: str
    title: str
    description: str | None = None


# Auth


@router.post("/auth/sign-in")
async def sign_in(body: SignInBody) -> JSONResponse:
    """Start a session for a user verified by the auth provider and load their state."""
    try:
        session = await registry.sign_in(user_id=body.user_id, email=body.email)
    except HabitmateError as e:
        return JSONResponse(content={"error": str(e)}, status_code=constants.HTTP_BAD_REQUEST)
    return JSONResponse(content=_session_payload(session), status_code=constants.HTTP_OK)


@router.post("/auth/refresh")
async def refresh_session(body: RefreshBody, token: Annotated[str, Depends(require_token)]) -> JSONResponse:
    try:
        session = await registry.refresh(access_token=token, refresh_token=body.refresh_token)
    except HabitmateError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e
    return JSONResponse(content=_session_payload(session), status_code=constants.HTTP_OK)


@router.post("/auth/sign-out")
async def sign_out(token: Annotated[str, Depends(require_token)]) -> JSONResponse:
    await registry.sign_out(token)
    return JSONResponse(content={"error": None}, status_code=constants.HTTP_OK)


# State


@router.get("/state")
async def get_state(client: ClientDep) -> JSONResponse:
    """Return the latest snapshot, loading it first if needed."""
    state = await client.orchestrator.load()
    return JSONResponse(content=state.model_dump(mode="json"), status_code=constants.HTTP_OK)


@router.post("/refresh")
async def refresh_state(client: ClientDep) -> JSONResponse:
    """Reload everything and return the new snapshot."""
    state = await client.orchestrator.load(force=True)
    status_code = constants.HTTP_OK if state.error is None else constants.HTTP_SERVER_ERROR
    return JSONResponse(content=state.model_dump(mode="json"), status_code=status_code)


# Profile and users


@router.put("/profile")
async def update_profile(updates: dict[str, Any], client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.update_profile(updates))


@router.get("/users/search")
async def search_users(client: ClientDep, q: Annotated[str, Query(max_length=100)] = "") -> JSONResponse:
    return _respond(await client.orchestrator.search_users(q))


# Tasks


@router.post("/tasks")
async def create_task(body: TaskBody, client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.create_task(body.title, body.description))


@router.patch("/tasks/{task_id}")
async def update_task(task_id: str, body: TaskBody, client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.update_task(task_id, body.title, body.description))


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.delete_task(task_id))


@router.post("/tasks/{task_id}/complete")
async def complete_task(
    task_id: str,
    client: ClientDep,
    photo: Annotated[UploadFile, File()],
    caption: Annotated[str | None, Form()] = None,
) -> JSONResponse:
    """Complete a task for today with its proof photo (multipart form)."""
    content = await photo.read()
    return _respond(await client.orchestrator.complete_task(task_id, content, caption, photo.filename))


@router.delete("/tasks/{task_id}/completions/{completion_id}")
async def uncomplete_task(task_id: str, completion_id: str, client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.uncomplete_task(task_id, completion_id))


# Friendships


@router.get("/friendships/{other_id}")
async def get_friendship_status(other_id: str, client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.get_friendship_status(other_id))


@router.post("/friendships")
async def send_friend_request(body: FriendRequestBody, client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.send_friend_request(body.user_id))


@router.post("/friendships/{requester_id}/accept")
async def accept_friend_request(requester_id: str, client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.accept_friend_request(requester_id))


@router.delete("/friendships/{other_id}")
async def unfriend_or_cancel(other_id: str, client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.unfriend_or_cancel(other_id))


# Partner tasks


@router.post("/partner-tasks")
async def create_partner_task(body: PartnerTaskBody, client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.create_partner_task(body.invitee_id, body.title, body.description))


@router.post("/partner-tasks/{partner_task_id}/accept")
async def accept_partner_task(partner_task_id: str, client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.accept_partner_task(partner_task_id))


@router.post("/partner-tasks/{partner_task_id}/decline")
async def decline_partner_task(partner_task_id: str, client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.decline_partner_task(partner_task_id))


@router.delete("/partner-tasks/{partner_task_id}")
async def delete_partner_task(partner_task_id: str, client: ClientDep) -> JSONResponse:
    return _respond(await client.orchestrator.delete_partner_task(partner_task_id))


@router.post("/partner-tasks/{partner_task_id}/toggle")
async def toggle_partner_task_completion(
    partner_task_id: str,
    client: ClientDep,
    photo: Annotated[UploadFile | None, File()] = None,
) -> JSONResponse:
    """Complete today's partner task with a photo, or undo today's completion."""
    content = await photo.read() if photo else None
    filename = photo.filename if photo else None
    return _respond(await client.orchestrator.toggle_partner_task_completion(partner_task_id, content, filename))


@router.get("/partner-tasks/{partner_task_id}/status")
async def get_partner_completion_status(
    partner_task_id: str, client: ClientDep, day: Annotated[date | None, Query()] = None
) -> JSONResponse:
    return _respond(await client.orchestrator.get_partner_completion_status(partner_task_id, day))


# Photos


@storage_router.get("/{bucket}/{path:path}")
async def get_photo(bucket: str, path: str) -> Response:
    """Serve a stored proof photo."""
    if bucket != settings.photo_bucket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bucket not found")
    try:
        content = await photo_storage.read(path)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Object not found") from e

    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Cache-Control": f"max-age={constants.PHOTO_CACHE_CONTROL_SECONDS}"},
    )
