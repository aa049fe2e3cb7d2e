"""Repository service client.

This module handles:
- Building AQL (artifact query language) queries
- Searching repository items by property or folder
- Writing properties onto repository items

Requests go through an httpx client whose connection pool is sized by the
caller; the push workflow itself issues requests sequentially.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from imagepush.errors import RepositoryError
from imagepush.types import ResolvedLayer

logger = logging.getLogger(__name__)

AQL_ENDPOINT = "/api/search/aql"
STORAGE_ENDPOINT = "/api/storage"

# Fields returned for every item
AQL_INCLUDE = ("repo", "path", "name", "property")

# Timeout for API requests (seconds)
REQUEST_TIMEOUT = 60.0


def build_aql_query(criteria: Mapping[str, Any]) -> str:
    """Build an AQL items query.

    Results are sorted by path and name so identical repository state
    always yields identical output.

    Args:
        criteria: AQL criteria object (``items.find`` argument).

    Returns:
        AQL query text.
    """
    include = ",".join(json.dumps(f) for f in AQL_INCLUDE)
    return (
        f"items.find({json.dumps(criteria, sort_keys=True)})"
        f".include({include})"
        '.sort({"$asc":["path","name"]})'
    )


def parse_aql_results(payload: Mapping[str, Any]) -> list[ResolvedLayer]:
    """Convert an AQL response body into resolved layers.

    Multi-valued properties keep their last value.
    """
    layers: list[ResolvedLayer] = []
    for item in payload.get("results", []):
        properties: dict[str, str] = {}
        for prop in item.get("properties", []) or []:
            key = prop.get("key")
            if key:
                properties[key] = prop.get("value", "")
        layers.append(
            ResolvedLayer(
                repo=item.get("repo", ""),
                path=item.get("path", ""),
                name=item.get("name", ""),
                properties=properties,
            )
        )
    return layers


def encode_properties(properties: Mapping[str, str]) -> str:
    """Encode properties for the storage API (``k1=v1;k2=v2``).

    Separator characters inside keys and values are backslash-escaped.
    """

    def escape(text: str) -> str:
        for ch in ("\\", ",", "|", "=", ";"):
            text = text.replace(ch, f"\\{ch}")
        return text

    return ";".join(f"{escape(k)}={escape(v)}" for k, v in properties.items())


class RepositoryClient:
    """Client for the repository search and storage APIs.

    Args:
        base_url: Repository base URL (e.g. ``https://host/artifactory``).
        user: Optional user for basic auth.
        token: Optional password or access token.
        timeout: Request timeout in seconds.
        threads: Maximum parallel connections.
        client: Preconfigured httpx client (for tests).
    """

    def __init__(
        self,
        base_url: str,
        user: str | None = None,
        token: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        threads: int = 3,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        if client is None:
            headers: dict[str, str] = {}
            auth: httpx.BasicAuth | None = None
            if user and token:
                auth = httpx.BasicAuth(user, token)
            elif token:
                headers["Authorization"] = f"Bearer {token}"
            client = httpx.Client(
                auth=auth,
                headers=headers,
                timeout=timeout,
                limits=httpx.Limits(max_connections=threads),
            )
        self._client = client

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> RepositoryClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RepositoryError(
                f"{method} {url} failed with status {e.response.status_code}: "
                f"{e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise RepositoryError(f"{method} {url} failed: {e}") from e
        return response

    def search(self, criteria: Mapping[str, Any]) -> list[ResolvedLayer]:
        """Run an AQL items query.

        Raises:
            RepositoryError: If the request fails or returns invalid JSON.
        """
        query = build_aql_query(criteria)
        logger.debug("AQL: %s", query)
        response = self._request(
            "POST",
            f"{self.base_url}{AQL_ENDPOINT}",
            content=query,
            headers={"Content-Type": "text/plain"},
        )
        try:
            payload = response.json()
        except ValueError as e:
            raise RepositoryError(f"Invalid AQL response: {e}") from e
        layers = parse_aql_results(payload)
        logger.debug("AQL returned %d items", len(layers))
        return layers

    def find_by_property(
        self,
        repo: str,
        key: str,
        value: str,
        path_pattern: str | None = None,
    ) -> list[ResolvedLayer]:
        """Find items in a repository carrying a property value.

        Args:
            repo: Repository key.
            key: Property name.
            value: Property value to match.
            path_pattern: Optional AQL ``$match`` pattern for the item path.
        """
        criteria: dict[str, Any] = {"repo": repo, f"@{key}": value}
        if path_pattern:
            criteria["path"] = {"$match": path_pattern}
        return self.search(criteria)

    def list_folder(self, repo: str, path: str) -> list[ResolvedLayer]:
        """List the files directly inside a repository folder."""
        return self.search({"repo": repo, "path": path, "type": "file"})

    def set_properties(
        self,
        layer: ResolvedLayer,
        properties: Mapping[str, str],
    ) -> None:
        """Write properties onto a repository item.

        Raises:
            RepositoryError: If the request fails.
        """
        url = f"{self.base_url}{STORAGE_ENDPOINT}/{layer.full_path}"
        self._request(
            "PUT",
            url,
            params={"properties": encode_properties(properties), "recursive": "0"},
        )
        logger.debug("Set %d properties on %s", len(properties), layer.full_path)


__all__ = [
    "AQL_ENDPOINT",
    "STORAGE_ENDPOINT",
    "RepositoryClient",
    "build_aql_query",
    "encode_properties",
    "parse_aql_results",
]
