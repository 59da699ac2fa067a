import json
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from config import Settings, get_settings
from server import app, get_http_client

INVENIO_BASE = "https://invenio.test"

CAN_BLAU_UUID = "3f1e2d4c-1111-4a2b-9c3d-123456789abc"
CASA_SAL_UUID = "9a8b7c6d-2222-4e3f-8a1b-abcdefabcdef"

RAW_VILLAS = [
    {
        "bp_name": "Can Blau",
        "bp_uuid": CAN_BLAU_UUID,
        "destination": "Ibiza",
        "city": "Santa Eulària des Riu",
        "areaname": "Cala Llonga",
        "profile_picture": "https://img.test/can-blau/cover.jpg",
        "photos": [
            "https://img.test/can-blau/1.jpg",
            "https://img.test/can-blau/2.jpg",
            "https://img.test/can-blau/3.jpg",
        ],
        "thumb_images": ["https://img.test/can-blau/thumb_1.jpg"],
        "villa_images": ["https://img.test/can-blau/1.jpg"],
        "bedrooms": 4,
        "bathrooms": 3,
        "guests": 8,
        "built_size": "320",
        "plot_size": "2500",
        "annual_price": "€120,000",
        "summer_price": "€70,000",
        "winter_price": "",
        "description": "Whitewashed finca above the bay.",
        "bp_profile": "Sunsets over Cala Llonga",
        "features": ["Private pool", "Smart TV", "Sea views", "Eco tax included"],
        "gps": "38.9506, 1.5334",
        "pt_last_updated_on": "2025-06-01",
    },
    {
        "bp_name": "Villa Ès Vedrà",
        "bp_id": 77,
        "destination": "Ibiza",
        "city": "Sant Josep",
        "photos": ["//cdn.test/vedra.jpg"],
        "bedrooms": 3,
        "bathrooms": 2,
        "summer_price": "€48,000",
        "winter_price": "€24,000",
    },
    {
        "bp_name": "Hidden",
        "bp_uuid": "00000000-0000-0000-0000-000000000000",
        "destination": "Ibiza",
        "photos": ["/relative/only.jpg"],
    },
    {
        "bp_name": "Casa Sal",
        "bp_uuid": CASA_SAL_UUID,
        "destination": "Formentera",
        "city": "Sant Francesc",
        "profile_picture": "https://img.test/casa-sal.jpg",
        "annual_price": "€36,000",
        "bedrooms": 2,
    },
]

CAN_BLAU_SLUG = f"can-blau-{CAN_BLAU_UUID}"


class FakeUpstream:
    """Answers the Invenio villa list and refuses every image request."""

    def __init__(self, villas=None, status_code=200, body=None):
        self.villas = RAW_VILLAS if villas is None else villas
        self.status_code = status_code
        self.body = body
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "invenio.test":
            if self.body is not None:
                return httpx.Response(self.status_code, text=self.body)
            return httpx.Response(self.status_code, json=[{"result": self.villas, "total_count": len(self.villas)}])
        return httpx.Response(404, text="no such image")

    @property
    def list_requests(self):
        return [r for r in self.requests if r.url.host == "invenio.test"]

    def form_of(self, request: httpx.Request) -> dict:
        form = parse_qs(request.content.decode())
        return json.loads(form["param"][0])


@pytest.fixture
def settings():
    return Settings(
        invenio_api_base=INVENIO_BASE,
        invenio_api_key="test-key",
        invenio_bp_uuid="partner-uuid",
        contact_email="hello@move2ibiza.com",
        whatsapp_number="34671349592",
    )


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def client(settings, upstream):
    async def fake_http_client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
            yield http

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_http_client] = fake_http_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
