"""
Microsoft Graph client for SharePoint site, list and item resolution.

Each method performs exactly one outbound call and raises on the first
failure; callers compose them into dependent chains (site, then list, then
item). Remote error bodies are carried unmodified in ``GraphAPIError.details``
so the HTTP layer can mirror them to its caller.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from .errors import GraphAPIError, ListNotFoundError, NotFoundError
from .models import ListItem
from .utils import field_equals_clause, response_details

logger = logging.getLogger(__name__)


class GraphClient:
    """
    Thin async wrapper around the Graph v1.0 REST endpoints used by the gateway.

    Attributes:
        base_url: Graph API root, e.g. ``https://graph.microsoft.com/v1.0``
        timeout: Upper bound in seconds for every outbound call
    """

    def __init__(
        self,
        base_url: str = "https://graph.microsoft.com/v1.0",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _get(self, token: str, url: str) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.error(f"Graph request failed before a response was received: {exc}")
            raise GraphAPIError(f"Graph request failed: {exc}") from exc

        if response.status_code == 404:
            raise NotFoundError("Graph resource not found", response_details(response), remote_status=404)
        if response.status_code >= 400:
            raise GraphAPIError(
                f"Graph request failed with HTTP {response.status_code}",
                response_details(response),
                remote_status=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise GraphAPIError("Graph response was not valid JSON", response.text) from exc

    async def resolve_site(self, token: str, host: str, path: str) -> str:
        """Return the Graph id of the site at ``<host>:/sites/<path>``."""
        data = await self._get(token, f"{self.base_url}/sites/{host}:/sites/{path}")
        return data["id"]

    async def list_lists(self, token: str, site_id: str) -> List[Dict[str, Any]]:
        """Return every list under a site, in the order the API reports them."""
        data = await self._get(token, f"{self.base_url}/sites/{site_id}/lists")
        return data.get("value", [])

    async def resolve_list(self, token: str, site_id: str, list_name: str) -> str:
        """
        Find a list id by exact, case-sensitive display name.

        When several lists share the name the first one in response order is
        used; that order is not guaranteed to be stable across calls.

        Raises:
            ListNotFoundError: If no list under the site has that display name
        """
        for entry in await self.list_lists(token, site_id):
            if entry.get("displayName") == list_name:
                return entry["id"]
        raise ListNotFoundError(list_name)

    async def get_item_by_id(self, token: str, site_id: str, list_id: str, item_id: str) -> ListItem:
        """Fetch one item with its field bag expanded, exactly as Graph returns it."""
        url = f"{self.base_url}/sites/{site_id}/lists/{list_id}/items/{quote(str(item_id), safe='')}?expand=fields"
        return await self._get(token, url)

    async def query_items_by_field(
        self,
        token: str,
        site_id: str,
        list_id: str,
        field_name: str,
        value: Any,
    ) -> List[ListItem]:
        """
        Fetch the items of a list whose field equals ``value``.

        The field name is encoded to its internal SharePoint form, the value
        is quoted as an OData literal and the whole clause is percent-encoded.

        Returns:
            Matching items in API order; empty when nothing matches
        """
        clause = field_equals_clause(field_name, value)
        url = f"{self.base_url}/sites/{site_id}/lists/{list_id}/items?$expand=fields&$filter={quote(clause, safe='')}"
        data = await self._get(token, url)
        return data.get("value", [])
