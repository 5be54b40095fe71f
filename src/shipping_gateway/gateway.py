"""
Request pipelines for the shipping gateway.

This module composes the collaborators into the pipelines served over HTTP:
- Item lookup: token, site, primary list, item
- List enumeration: token, site, lists
- Related records: token, site, both lists, item, lookup field, filtered query
- Submission: render HTML and PDF, resolve recipient, deliver email

Every pipeline runs end to end for a single request. Steps that depend on
each other are awaited strictly in order and the first failure aborts the
rest of the chain. Nothing is kept between requests except the optional
token cache.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import List, Optional

import httpx

from .auth import CredentialProvider, TokenCache
from .configuration import GatewaySettings
from .errors import GraphAPIError, MissingFieldError
from .graph_client import GraphClient
from .mailer import DeliveryDispatcher
from .models import ListItem, ListSummary, ShippingSubmission
from .renderer import DocumentRenderer

logger = logging.getLogger(__name__)


class Gateway:
    """
    Central coordinator for the read and submit pipelines.

    Attributes:
        settings: Validated gateway configuration
        credentials: Token provider for the Graph API
        graph: Site, list and item resolver
        renderer: HTML and PDF document renderer
        dispatcher: Email delivery
    """

    def __init__(
        self,
        settings: GatewaySettings,
        credentials: CredentialProvider,
        graph: GraphClient,
        renderer: DocumentRenderer,
        dispatcher: DeliveryDispatcher,
    ) -> None:
        self.settings = settings
        self.credentials = credentials
        self.graph = graph
        self.renderer = renderer
        self.dispatcher = dispatcher

    @classmethod
    def from_settings(
        cls,
        settings: GatewaySettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "Gateway":
        """
        Wire the default collaborators from configuration.

        Args:
            settings: Gateway configuration
            transport: Optional httpx transport shared by the token and Graph
                clients (used to fake the remote services in tests)
        """
        cache = TokenCache() if settings.graph.token_cache else None
        return cls(
            settings=settings,
            credentials=CredentialProvider(settings.graph, cache=cache, transport=transport),
            graph=GraphClient(settings.graph.base_url, timeout=settings.graph.timeout_seconds, transport=transport),
            renderer=DocumentRenderer(settings.renderer),
            dispatcher=DeliveryDispatcher(settings.mail),
        )

    @contextmanager
    def _discard_rejected_token(self):
        # A 401 from Graph means the token was revoked; drop it from the cache
        try:
            yield
        except GraphAPIError as exc:
            if exc.remote_status == 401:
                self.credentials.discard_token()
            raise

    async def _resolve_site(self, token: str) -> str:
        site = self.settings.site
        return await self.graph.resolve_site(token, site.host, site.path)

    async def _resolve_lists(self, token: str, site_id: str, *names: str) -> List[str]:
        """Resolve several lists concurrently; on the first failure the rest are cancelled."""
        tasks = [asyncio.create_task(self.graph.resolve_list(token, site_id, name)) for name in names]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def fetch_item(self, item_id: str) -> ListItem:
        """
        Fetch an item of the primary list, field bag included.

        Args:
            item_id: Item identifier within the primary list

        Returns:
            The item exactly as the list store returned it
        """
        token = await self.credentials.acquire_token()
        with self._discard_rejected_token():
            site_id = await self._resolve_site(token)
            list_id = await self.graph.resolve_list(token, site_id, self.settings.lists.primary)
            item = await self.graph.get_item_by_id(token, site_id, list_id, item_id)
        logger.info(f"Fetched item {item_id} from list '{self.settings.lists.primary}'")
        return item

    async def list_lists(self) -> List[ListSummary]:
        """Enumerate the lists of the configured site in API order."""
        token = await self.credentials.acquire_token()
        with self._discard_rejected_token():
            site_id = await self._resolve_site(token)
            lists = await self.graph.list_lists(token, site_id)
        return [ListSummary(displayName=entry.get("displayName"), id=entry["id"]) for entry in lists]

    async def fetch_related_items(self, item_id: str) -> List[ListItem]:
        """
        Fetch the secondary-list items that reference a primary item.

        The primary item's lookup field (``Customer`` by default) is matched
        against the secondary list's foreign-key field (``Customer-ID``).

        Args:
            item_id: Item identifier within the primary list

        Returns:
            Matching secondary items, possibly empty

        Raises:
            MissingFieldError: If the primary item's lookup value is absent or empty
        """
        lists = self.settings.lists
        token = await self.credentials.acquire_token()
        with self._discard_rejected_token():
            site_id = await self._resolve_site(token)
            primary_id, secondary_id = await self._resolve_lists(token, site_id, lists.primary, lists.secondary)

            item = await self.graph.get_item_by_id(token, site_id, primary_id, item_id)
            lookup_value = (item.get("fields") or {}).get(lists.lookup_field)
            if not lookup_value:
                raise MissingFieldError(lists.lookup_field)

            related = await self.graph.query_items_by_field(
                token, site_id, secondary_id, lists.foreign_key_field, lookup_value
            )
        logger.info(f"Found {len(related)} item(s) in '{lists.secondary}' related to item {item_id}")
        return related

    async def submit_shipping(self, submission: ShippingSubmission) -> str:
        """
        Render a submission and email it with the PDF attached.

        Args:
            submission: The shipping-instruction form payload

        Returns:
            The address the email was sent to
        """
        document = await self.renderer.render(submission)
        recipient = self.dispatcher.resolve_recipient(submission)
        await self.dispatcher.deliver(recipient, document.html, document.pdf)
        return recipient
