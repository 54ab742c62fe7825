"""
Path-style transport over HTTP(S) using httpx.AsyncClient.

Calls map to ``<api_url>/v1/<name>``; ``version`` lives at ``<api_url>/version``.
Unauthenticated calls (public_key, ping, sig_key, version) are GETs and
``login`` is an unauthenticated POST. Authenticated calls are POSTs whose
JSON body is signed and sent byte-for-byte as signed, with the auth values in
the ``x-api-key``/``x-nonce``/``x-sig`` headers.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from weaveclient.core.exceptions import AuthenticationError, TransportError
from weaveclient.core.models import to_json
from weaveclient.security.session import Session
from weaveclient.security.signer import HttpRequestSigner

logger = logging.getLogger(__name__)

API_VERSION = "v1"
GET_CALLS = frozenset({"public_key", "ping", "sig_key", "version"})
UNVERSIONED_CALLS = frozenset({"version"})
AUTH_REJECTED = (401, 403)


def parse_body(text: str) -> Dict[str, Any]:
    # Non-JSON bodies are wrapped so callers always get a mapping.
    try:
        body = json.loads(text)
    except ValueError:
        return {"data": text}
    return body if isinstance(body, dict) else {"data": body}


class HttpTransport:
    def __init__(
        self,
        api_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        signer: Optional[HttpRequestSigner] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._signer = signer or HttpRequestSigner()

    def url_for(self, name: str) -> str:
        if name in UNVERSIONED_CALLS:
            return f"{self.api_url}/{name}"
        return f"{self.api_url}/{API_VERSION}/{name}"

    async def connect(self) -> None:
        # nothing to open; connections are made per request by httpx
        return None

    async def call(
        self,
        name: str,
        payload: Optional[Mapping[str, Any]] = None,
        session: Optional[Session] = None,
    ) -> Dict[str, Any]:
        url = self.url_for(name)
        try:
            if session is None and name in GET_CALLS:
                response = await self._client.get(url)
            else:
                body = to_json(dict(payload or {}))
                headers = {"content-type": "application/json"}
                if session is not None:
                    headers.update(self._signer.headers(session, url, body))
                response = await self._client.post(url, content=body.encode("utf-8"), headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"{name} call failed: {exc}") from exc

        if response.status_code in AUTH_REJECTED:
            logger.warning("%s rejected by node (HTTP %d)", name, response.status_code)
            raise AuthenticationError(f"{name} rejected by node (HTTP {response.status_code}): {response.text}")
        if response.status_code >= 400:
            raise TransportError(f"{name} failed with HTTP {response.status_code}: {response.text}")
        return parse_body(response.text)

    async def close(self) -> None:
        await self._client.aclose()
