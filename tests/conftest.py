"""
Shared fixtures for the test suite.
"""
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

import httpx
import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from pokedex_lookup.catalog import CatalogClient  # noqa: E402
from pokedex_lookup.config import CatalogConfig  # noqa: E402


@pytest.fixture
def mock_catalog():
    """Build a :class:`CatalogClient` whose HTTP layer answers from ``routes``.

    ``routes`` maps URL paths (``/api/v2/pokemon/25``) to ``(status, body)``;
    unknown paths answer 404. Requested URLs are collected in ``client.requested``.
    """

    opened: List[httpx.AsyncClient] = []

    def factory(routes: Dict[str, Tuple[int, Any]], *, rng=None, max_id: int = 1010) -> CatalogClient:
        requested: List[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            status, body = routes.get(request.url.path, (404, {"detail": "Not found."}))
            if isinstance(body, (bytes, str)):
                return httpx.Response(status, content=body)
            return httpx.Response(status, json=body)

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        opened.append(http_client)
        client = CatalogClient(CatalogConfig(max_id=max_id), http_client=http_client, rng=rng)
        client.requested = requested  # type: ignore[attr-defined]
        return client

    yield factory

    for http_client in opened:
        asyncio.run(http_client.aclose())
