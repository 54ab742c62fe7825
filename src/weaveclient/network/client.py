"""
Async client for a weave node.

Usage:
    config = ClientConfig.from_env()
    async with WeaveClient(config) as client:
        session = await client.login("weavedemo", config.client_public_key, "shared")
        rows = await client.read(session, "shared", "directory")

``init()`` (run automatically by ``async with``) fetches the node public key
and agrees the shared secret once. Every call that takes a session is signed;
writes also carry an integrity wrapper when the session asks for it. Results
are the parsed JSON replies. Nothing here retries.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union

from weaveclient.core.config import TRANSPORT_WS, ClientConfig
from weaveclient.core.exceptions import AuthenticationError, HandshakeError, TransportError
from weaveclient.core.models import FILTER_NONE, DataLayout, Records, WriteOptions, to_json
from weaveclient.security.context import ApiContext
from weaveclient.security.handshake import build_login_request, session_from_login_response
from weaveclient.security.integrity import sign_records
from weaveclient.security.session import Session
from .http import HttpTransport
from .ws import WsTransport

logger = logging.getLogger(__name__)

Options = Union[Mapping[str, Any], WriteOptions, None]


def _options_json(options: Options) -> str:
    if options is None:
        return to_json({})
    if isinstance(options, WriteOptions):
        return to_json(options.to_dict())
    return to_json(dict(options))


def _filter_json(filter: Optional[Mapping[str, Any]]) -> str:
    return to_json(dict(FILTER_NONE if filter is None else filter))


def make_transport(config: ClientConfig):
    if config.transport == TRANSPORT_WS:
        return WsTransport(config.api_url)
    return HttpTransport(config.api_url, timeout=config.timeout)


class WeaveClient:
    def __init__(self, config: ClientConfig, transport=None, context: Optional[ApiContext] = None):
        self.config = config
        self.context = context or ApiContext.from_config(config)
        self.transport = transport or make_transport(config)

    async def __aenter__(self) -> "WeaveClient":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False

    async def init(self) -> None:
        """Fetch the node key and agree the shared secret (idempotent)."""
        if self.context.has_shared_secret:
            return
        try:
            await self.transport.connect()
            response = await self.public_key()
        except TransportError as exc:
            raise HandshakeError(f"could not fetch the node public key: {exc}") from exc
        self.context.set_server_public_key(response)
        self.context.compute_shared_secret()

    async def close(self) -> None:
        await self.transport.close()

    # ------------------------------------------------------------------
    # Unauthenticated calls
    # ------------------------------------------------------------------

    async def public_key(self) -> Dict[str, Any]:
        return await self.transport.call("public_key")

    async def ping(self) -> Dict[str, Any]:
        return await self.transport.call("ping")

    async def version(self) -> Dict[str, Any]:
        return await self.transport.call("version")

    async def sig_key(self) -> Dict[str, Any]:
        return await self.transport.call("sig_key")

    async def login(self, organization: str, account: str, scopes: str) -> Session:
        """Run the login handshake. Every failure is a HandshakeError."""
        if not self.context.has_shared_secret:
            await self.init()
        payload, _ = build_login_request(self.context, organization, account, scopes)
        try:
            response = await self.transport.call("login", payload)
        except (TransportError, AuthenticationError) as exc:
            raise HandshakeError(f"login call failed: {exc}") from exc
        return session_from_login_response(self.context, response)

    # ------------------------------------------------------------------
    # Authenticated calls
    # ------------------------------------------------------------------

    def _scoped(self, session: Session, scope: str, table: str) -> Dict[str, Any]:
        return {
            "organization": session.organization,
            "account": session.account,
            "scope": scope,
            "table": table,
        }

    async def status(self, session: Session) -> Dict[str, Any]:
        return await self.transport.call(
            "status", {"organization": session.organization, "account": session.account}, session
        )

    async def logout(self, session: Session) -> Dict[str, Any]:
        return await self.transport.call(
            "logout", {"organization": session.organization, "account": session.account}, session
        )

    async def create_table(self, session: Session, scope: str, table: str, options: Options = None) -> Dict[str, Any]:
        request = self._scoped(session, scope, table)
        request["options"] = _options_json(options)
        return await self.transport.call("create", request, session)

    async def drop_table(self, session: Session, scope: str, table: str, options: Options = None) -> Dict[str, Any]:
        request = self._scoped(session, scope, table)
        request["options"] = _options_json(options)
        return await self.transport.call("drop", request, session)

    async def get_table_definition(self, session: Session, scope: str, table: str) -> Dict[str, Any]:
        return await self.transport.call("get_table_definition", {"scope": scope, "table": table}, session)

    async def layout_for(self, session: Session, scope: str, table: str) -> DataLayout:
        """Return the cached layout for scope:table, fetching it on first use."""
        layout = session.get_layout(scope, table)
        if layout is None:
            response = await self.get_table_definition(session, scope, table)
            try:
                layout = DataLayout.from_response(response)
            except ValueError as exc:
                raise TransportError(f"unreadable table definition for {scope}:{table}: {exc}") from exc
            session.cache_layout(scope, table, layout)
            logger.debug("cached layout for %s:%s (%d columns)", scope, table, len(layout.types))
        return layout

    async def read(
        self,
        session: Session,
        scope: str,
        table: str,
        filter: Optional[Mapping[str, Any]] = None,
        options: Options = None,
    ) -> Dict[str, Any]:
        request = self._scoped(session, scope, table)
        request["filter"] = _filter_json(filter)
        request["options"] = _options_json(options)
        return await self.transport.call("read", request, session)

    async def write(
        self,
        session: Session,
        scope: str,
        records: Records,
        options: Options = None,
    ) -> Dict[str, Any]:
        if session.integrity_checks:
            layout = await self.layout_for(session, scope, records.table)
            sign_records(
                records,
                layout,
                self.context.seed_hex,
                self.context.keys.encoded_public,
                self.context.signing_keys,
            )
        request = self._scoped(session, scope, records.table)
        request["options"] = _options_json(WriteOptions() if options is None else options)
        request["records"] = to_json(records.to_dict())
        return await self.transport.call("write", request, session)

    async def delete(
        self,
        session: Session,
        scope: str,
        table: str,
        filter: Optional[Mapping[str, Any]] = None,
        options: Options = None,
    ) -> Dict[str, Any]:
        request = self._scoped(session, scope, table)
        request["filter"] = _filter_json(filter)
        request["options"] = _options_json(options)
        return await self.transport.call("delete", request, session)

    async def hashes(
        self,
        session: Session,
        scope: str,
        table: str,
        filter: Optional[Mapping[str, Any]] = None,
        options: Options = None,
    ) -> Dict[str, Any]:
        request = self._scoped(session, scope, table)
        request["filter"] = _filter_json(filter)
        request["options"] = _options_json(options)
        return await self.transport.call("hashes", request, session)
