"""
Pytest configuration and fixtures for Shipping Gateway tests.
"""

import os
import re

import httpx
import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
os.environ["TENANT_ID"] = "tenant-123"
os.environ["CLIENT_ID"] = "client-abc"
os.environ["CLIENT_SECRET"] = "secret-xyz"
os.environ["SHAREPOINT_SITE_HOST"] = "contoso.sharepoint.com"
os.environ["SHAREPOINT_SITE_PATH"] = "operations"
os.environ["SHAREPOINT_LIST_NAME"] = "Bookings"
os.environ["SHAREPOINT_LIST_NAME2"] = "Clients"
os.environ["SMTP_USER"] = "desk@shipping.test"
os.environ["SMTP_PASS"] = "app-password"
os.environ["FALLBACK_RECIPIENT"] = "fallback@shipping.test"
os.environ.pop("GRAPH_TOKEN_CACHE", None)
os.environ.pop("MAIL_TRANSPORT", None)
os.environ.pop("PORT", None)
os.environ.pop("SHIPPING_GATEWAY_CONFIG", None)

from shipping_gateway.configuration import make_settings
from shipping_gateway.gateway import Gateway
from shipping_gateway.main import app, get_gateway

STUB_TOKEN = "stub-token"
SITE_ID = "contoso.sharepoint.com,site-guid,web-guid"
_FILTER_PATTERN = re.compile(r"^fields/(\w+) eq '(.*)'$")


class GraphStub:
    """
    In-memory stand-in for the identity endpoint and the Graph list API.

    Served through ``httpx.MockTransport``; every request is recorded.
    """

    def __init__(self):
        self.requests = []
        self.token_status = 200
        self.graph_status = None
        self.lists = [
            {"displayName": "Bookings", "id": "list-bookings"},
            {"displayName": "Clients", "id": "list-clients"},
            {"displayName": "Archive", "id": "list-archive"},
        ]
        self.items = {
            "list-bookings": {
                "7": {"id": "7", "fields": {"Title": "BK-7", "Customer": "C-100"}},
                "8": {"id": "8", "fields": {"Title": "BK-8"}},
            },
        }
        self.clients = [
            {"id": "1", "fields": {"Title": "Acme Corp", "Customer_x002d_ID": "C-100"}},
            {"id": "2", "fields": {"Title": "Globex", "Customer_x002d_ID": "C-200"}},
            {"id": "3", "fields": {"Title": "Acme Logistics", "Customer_x002d_ID": "C-100"}},
        ]

    @property
    def graph_requests(self):
        return [r for r in self.requests if r.url.host == "graph.microsoft.com"]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/oauth2/v2.0/token"):
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client", "error_description": "Bad secret"})
            return httpx.Response(200, json={"access_token": STUB_TOKEN, "token_type": "Bearer", "expires_in": 3599})

        if request.headers.get("Authorization") != f"Bearer {STUB_TOKEN}":
            return httpx.Response(401, json={"error": {"code": "InvalidAuthenticationToken"}})
        if self.graph_status is not None:
            return httpx.Response(self.graph_status, json={"error": {"code": "InvalidAuthenticationToken"}})

        if path == "/v1.0/sites/contoso.sharepoint.com:/sites/operations":
            return httpx.Response(200, json={"id": SITE_ID, "displayName": "Operations"})
        if path.startswith("/v1.0/sites/contoso.sharepoint.com:/sites/"):
            return httpx.Response(404, json={"error": {"code": "itemNotFound", "message": "Requested site could not be found"}})

        if path == f"/v1.0/sites/{SITE_ID}/lists":
            return httpx.Response(200, json={"value": self.lists})

        match = re.fullmatch(rf"/v1.0/sites/{re.escape(SITE_ID)}/lists/([^/]+)/items/([^/]+)", path)
        if match:
            item = self.items.get(match.group(1), {}).get(match.group(2))
            if item is None:
                return httpx.Response(404, json={"error": {"code": "itemNotFound", "message": "The resource could not be found."}})
            return httpx.Response(200, json=item)

        if path == f"/v1.0/sites/{SITE_ID}/lists/list-clients/items":
            clause = _FILTER_PATTERN.match(request.url.params.get("$filter", ""))
            if clause is None:
                return httpx.Response(400, json={"error": {"code": "invalidRequest"}})
            field_name, value = clause.group(1), clause.group(2).replace("''", "'")
            matched = [c for c in self.clients if c["fields"].get(field_name) == value]
            return httpx.Response(200, json={"value": matched})

        return httpx.Response(404, json={"error": {"code": "notFound", "path": path}})


@pytest.fixture
def graph_stub():
    return GraphStub()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def gateway(settings, graph_stub):
    """A gateway wired to the stubbed remote services."""
    return Gateway.from_settings(settings, transport=httpx.MockTransport(graph_stub.handle))


@pytest.fixture
def client(gateway):
    """Create a test client for the FastAPI app using the stubbed gateway."""
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sample_submission():
    """A complete shipping-instruction payload as the form posts it."""
    return {
        "user": {"name": "Dana Ortiz", "email": "dana@forwarder.test"},
        "carrierReference": "MAEU-556120",
        "billingParty": {
            "name": "Acme Corp",
            "address1": "1 Dock Road",
            "address2": "Unit 4",
            "city": "Rotterdam",
            "country": "NL",
            "postcode": "3011",
            "email": "ops@acme.test",
            "phone": "+31 10 000 0000",
        },
        "shipper": {"name": "Steelworks BV", "city": "Utrecht", "country": "NL"},
        "consignee": {"name": "Harbor Imports", "city": "Lagos", "country": "NG"},
        "shipmentValue": 1500,
        "notes": "Handle with care",
        "containers": [
            {"containerNumber": "CNT1", "description": "Steel", "quantity": 2, "value": 500, "hsCode": "7208", "weight": 1200},
            {"containerNumber": "CNT2", "description": "Copper", "quantity": 1, "value": 1000, "hsCode": "7403", "weight": 900},
        ],
    }
