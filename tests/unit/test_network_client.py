"""End-to-end tests for WeaveClient against the simulated node."""

from __future__ import annotations

import dataclasses
import json

import httpx
import pytest

from weaveclient.core.exceptions import HandshakeError, TransportError
from weaveclient.core.models import FILTER_NONE, DataLayout, IntegrityWrapper, Records, WriteOptions
from weaveclient.network.client import WeaveClient, make_transport
from weaveclient.network.http import HttpTransport
from weaveclient.network.ws import WsTransport
from weaveclient.security.integrity import verify_integrity

from conftest import SEED_HEX, FakeWebSocket, connector_for, node_http_handler, node_ws_responder


def _http_client(config, handler) -> WeaveClient:
    transport = HttpTransport(
        config.api_url, client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    return WeaveClient(config, transport=transport)


def _requests_named(node, name):
    return [body for n, body, _ in node.requests if n == name]


# ==============================================================================
# Transport selection
# ==============================================================================

def test_make_transport_follows_config(config):
    assert isinstance(make_transport(config), HttpTransport)
    transport = make_transport(dataclasses.replace(config, transport="ws"))
    assert isinstance(transport, WsTransport)
    assert transport.api_url == "ws://node.test:18080"


# ==============================================================================
# Handshake
# ==============================================================================

@pytest.mark.asyncio
async def test_init_agrees_shared_secret_once(config, node):
    client = _http_client(config, node_http_handler(node))
    await client.init()
    await client.init()
    await client.close()

    assert client.context.has_shared_secret
    assert client.context.shared_secret == node.shared_secret(config.client_public_key)
    assert len(_requests_named(node, "public_key")) == 1


@pytest.mark.asyncio
async def test_login_over_http(config, node):
    async with _http_client(config, node_http_handler(node)) as client:
        session = await client.login("acme", config.client_public_key, "shared")

    assert session.secret == node.session_secret
    assert session.api_key == node.api_key
    (payload,) = node.login_payloads
    assert payload["x-sig-key"] == client.context.signing_keys.encoded_public


@pytest.mark.asyncio
async def test_login_runs_init_when_needed(config, node):
    client = _http_client(config, node_http_handler(node))
    session = await client.login("acme", config.client_public_key, "shared")
    await client.close()
    assert session.organization == "acme"


@pytest.mark.asyncio
async def test_init_failure_is_a_handshake_error(config):
    client = _http_client(config, lambda request: httpx.Response(503, text="down"))
    with pytest.raises(HandshakeError, match="node public key"):
        await client.init()
    await client.close()


@pytest.mark.asyncio
async def test_rejected_login_is_a_handshake_error(config, node):
    # a node on another seed cannot open the commitment and answers with an error
    node.seed_hex = "00" * 16
    async with _http_client(config, node_http_handler(node)) as client:
        with pytest.raises(HandshakeError):
            await client.login("acme", config.client_public_key, "shared")


@pytest.mark.asyncio
async def test_login_http_error_is_a_handshake_error(config, node):
    handler = node_http_handler(node)

    def failing_login(request):
        if request.url.path.endswith("/login"):
            return httpx.Response(403, text="Forbidden")
        return handler(request)

    async with _http_client(config, failing_login) as client:
        with pytest.raises(HandshakeError, match="login call failed"):
            await client.login("acme", config.client_public_key, "shared")


# ==============================================================================
# Authenticated calls
# ==============================================================================

@pytest.mark.asyncio
async def test_calls_after_login_are_signed(config, node):
    async with _http_client(config, node_http_handler(node)) as client:
        session = await client.login("acme", config.client_public_key, "shared")
        assert await client.status(session) == {"res": "ok", "data": "status"}
        await client.create_table(session, "shared", "t1")
        await client.read(session, "shared", "t1")
        await client.delete(session, "shared", "t1", filter={"op": None})
        await client.hashes(session, "shared", "t1")
        await client.drop_table(session, "shared", "t1", options={"force": True})
        await client.logout(session)

    assert node.last_nonce == 7
    assert session.nonce == 7


@pytest.mark.asyncio
async def test_read_request_shape(config, node):
    async with _http_client(config, node_http_handler(node)) as client:
        session = await client.login("acme", config.client_public_key, "shared")
        await client.read(session, "shared", "t1")

    (body,) = _requests_named(node, "read")
    assert body["organization"] == "acme"
    assert body["scope"] == "shared"
    assert body["table"] == "t1"
    assert json.loads(body["filter"]) == FILTER_NONE
    assert json.loads(body["options"]) == {}


@pytest.mark.asyncio
async def test_write_without_integrity(config, node):
    async with _http_client(config, node_http_handler(node)) as client:
        session = await client.login("acme", config.client_public_key, "shared")
        await client.write(session, "shared", Records("t1", [[1, "a", 2]]))

    assert _requests_named(node, "get_table_definition") == []
    (body,) = _requests_named(node, "write")
    assert json.loads(body["records"]) == {"table": "t1", "items": [[1, "a", 2]], "integrity": None}
    assert json.loads(body["options"]) == WriteOptions().to_dict()


@pytest.mark.asyncio
async def test_write_with_integrity_fetches_layout_once(config, node):
    node.integrity_checks = True
    async with _http_client(config, node_http_handler(node)) as client:
        session = await client.login("acme", config.client_public_key, "shared")
        assert session.integrity_checks

        await client.write(session, "shared", Records("t1", [["1", "alice", "1700000000000"]]))
        await client.write(session, "shared", Records("t1", [["2", "bob"]]))

        signing_public = client.context.signing_keys.public_key
        encoded_public = client.context.keys.encoded_public

    assert len(_requests_named(node, "get_table_definition")) == 1
    assert session.get_layout("shared", "t1") == DataLayout(["LONG", "STRING", "TIMESTAMP"])

    first, second = (json.loads(body["records"]) for body in _requests_named(node, "write"))
    assert first["items"] == [[1, "alice", 1700000000000]]
    assert second["items"] == [[2, "bob", None]]

    (wrapper,) = first["integrity"]
    assert wrapper["intervalStart"] == "0"
    assert wrapper["signature"]["pubKey"] == encoded_public
    assert verify_integrity(
        Records("t1", first["items"]),
        IntegrityWrapper(wrapper["intervalStart"], wrapper["signature"]),
        session.get_layout("shared", "t1"),
        SEED_HEX,
        signing_public,
    )


@pytest.mark.asyncio
async def test_unreadable_table_definition_is_a_transport_error(config, node):
    node.integrity_checks = True
    handler = node_http_handler(node)

    def broken_definition(request):
        response = handler(request)
        if request.url.path.endswith("/get_table_definition"):
            return httpx.Response(200, json={"data": {"nope": 1}})
        return response

    async with _http_client(config, broken_definition) as client:
        session = await client.login("acme", config.client_public_key, "shared")
        with pytest.raises(TransportError, match="table definition"):
            await client.write(session, "shared", Records("t1", [[1]]))
    assert not session.has_layout("shared", "t1")


# ==============================================================================
# Websocket transport
# ==============================================================================

@pytest.mark.asyncio
async def test_login_and_write_over_websocket(config, node):
    node.integrity_checks = True
    ws = FakeWebSocket(node_ws_responder(node))
    client = WeaveClient(config, transport=WsTransport("ws://node.test:18080", connect=connector_for(ws)))

    async with client:
        session = await client.login("acme", config.client_public_key, "shared")
        reply = await client.write(session, "shared", Records("t1", [[1, "a", 2]]))

    assert session.secret == node.session_secret
    assert reply == {"res": "ok", "data": "write"}
    assert [m["type"] for m in ws.sent] == ["public_key", "login", "get_table_definition", "write"]
    assert node.last_nonce == 2
    assert ws.closed
