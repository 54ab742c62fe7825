"""
Message-style transport over a single websocket connection.

Each request is a JSON object with a ``type`` (the call name) and a uuid4
``id``. Replies arrive as ``{"id": ..., "reply": <json text or object>}`` in
any order; one receive loop resolves the matching pending future. Signing and
sending happen under one lock so nonces reach the node in increasing order.
"""
from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from weaveclient.core.exceptions import TransportError
from weaveclient.core.models import to_json
from weaveclient.security.session import Session
from weaveclient.security.signer import MessageRequestSigner

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]


def _default_connect(url: str) -> Awaitable[Any]:
    return websockets.connect(url)


class WsTransport:
    def __init__(
        self,
        api_url: str,
        connect: Optional[Connector] = None,
        signer: Optional[MessageRequestSigner] = None,
    ):
        self.api_url = api_url
        self._connect = connect or _default_connect
        self._signer = signer or MessageRequestSigner()
        self._ws = None
        self._receiver: Optional[asyncio.Task] = None
        self._pending: Dict[str, asyncio.Future] = {}
        self._send_lock = asyncio.Lock()
        self._closed_reason: Optional[str] = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def connect(self) -> None:
        if self._ws is not None:
            return
        try:
            self._ws = await self._connect(self.api_url)
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"could not connect to {self.api_url}: {exc}") from exc
        self._closed_reason = None
        self._receiver = asyncio.create_task(self._receive_loop())
        logger.info("websocket connected to %s", self.api_url)

    async def _receive_loop(self) -> None:
        reason = "connection closed"
        try:
            async for raw in self._ws:
                self._dispatch(raw)
        except ConnectionClosed as exc:
            reason = f"connection closed: {exc}"
        finally:
            self._closed_reason = reason
            self._fail_pending(TransportError(reason))

    def _dispatch(self, raw: Any) -> None:
        try:
            message = json.loads(raw)
            request_id = str(message["id"])
        except (ValueError, TypeError, KeyError):
            logger.warning("dropping websocket message without a usable id")
            return

        future = self._pending.pop(request_id, None)
        if future is None:
            logger.warning("no pending request for reply id %s", request_id)
            return
        if future.done():
            return

        reply = message.get("reply")
        try:
            if isinstance(reply, (str, bytes)):
                reply = json.loads(reply)
        except ValueError:
            reply = {"data": reply}
        if not isinstance(reply, dict):
            reply = {"data": reply}
        future.set_result(reply)

    def _fail_pending(self, error: Exception) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(error)

    async def call(
        self,
        name: str,
        payload: Optional[Mapping[str, Any]] = None,
        session: Optional[Session] = None,
    ) -> Dict[str, Any]:
        if self._ws is None:
            await self.connect()
        if self._closed_reason is not None:
            raise TransportError(self._closed_reason)

        message: Dict[str, Any] = dict(payload or {})
        request_id = str(uuid.uuid4())
        future = asyncio.get_running_loop().create_future()

        async with self._send_lock:
            if session is not None:
                self._signer.sign_message(session, message)
            message["type"] = name
            message["id"] = request_id
            self._pending[request_id] = future
            try:
                await self._ws.send(to_json(message))
            except ConnectionClosed as exc:
                self._pending.pop(request_id, None)
                raise TransportError(f"{name} call failed: {exc}") from exc

        try:
            return await future
        finally:
            # a cancelled caller must not leave its entry behind
            self._pending.pop(request_id, None)

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
        if self._receiver is not None:
            try:
                await self._receiver
            except asyncio.CancelledError:
                pass
        self._fail_pending(TransportError("transport closed"))
        self._ws = None
        self._receiver = None
