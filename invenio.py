"""Client for the Invenio partner API, the single source of villa data."""
import copy
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from config import Settings
from mock_data import VILLAS_DATA

logger = logging.getLogger(__name__)

SEASONS = ("all", "annual", "summer", "winter")
RAW_LIMIT = 2000
PROBE_BODY_LIMIT = 800


class InvenioError(Exception):
    """Error surfaced to API callers as {"ok": false, "error": ...}."""

    def __init__(self, status_code: int, error: str, upstream_raw: Optional[str] = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.upstream_raw = upstream_raw

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"ok": False, "error": self.error}
        if self.upstream_raw is not None:
            payload["upstreamRaw"] = self.upstream_raw
        return payload


def normalize_season(value: Optional[str]) -> str:
    season = (value or "all").strip().lower()
    if season not in SEASONS:
        raise InvenioError(400, "Invalid season")
    return season


def season_form(season: str) -> Dict[str, str]:
    return {"param": json.dumps([{"season_filter": season}])}


def auth_headers(settings: Settings) -> Dict[str, str]:
    return {"api-key": settings.invenio_api_key, "bp_uuid": settings.invenio_bp_uuid}


def extract_villas(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, list) and data and isinstance(data[0], dict):
        return data[0].get("result") or []
    return []


async def fetch_villas(settings: Settings, client: httpx.AsyncClient, season: str = "all") -> List[Dict[str, Any]]:
    if settings.use_sample_villas:
        return copy.deepcopy(VILLAS_DATA)
    if not settings.invenio_configured:
        raise InvenioError(500, "Missing API configuration")

    try:
        resp = await client.post(
            settings.villa_list_url,
            headers=auth_headers(settings),
            data=season_form(season),
            timeout=settings.invenio_timeout,
        )
    except httpx.HTTPError as e:
        logger.error("Invenio request failed: %s", e)
        raise InvenioError(502, f"Upstream request failed: {e}")

    text = resp.text
    if not resp.is_success:
        logger.error("Invenio returned %s", resp.status_code)
        raise InvenioError(502, f"Upstream {resp.status_code}", upstream_raw=text[:RAW_LIMIT])

    try:
        data = json.loads(text)
    except ValueError:
        logger.error("Invenio returned invalid JSON")
        raise InvenioError(502, "Upstream returned invalid JSON", upstream_raw=text[:RAW_LIMIT])

    villas = extract_villas(data)
    logger.info("Fetched %d villas from Invenio (season=%s)", len(villas), season)
    return villas


def probe_variants(settings: Settings) -> List[Dict[str, Any]]:
    """Header/body combinations tried when diagnosing upstream auth."""
    key, partner = settings.invenio_api_key, settings.invenio_bp_uuid
    form = season_form("all")
    form_type = {"Content-Type": "application/x-www-form-urlencoded"}
    return [
        {
            "name": "form:param=... (api-key/bp_uuid)",
            "headers": {"api-key": key, "bp_uuid": partner, "Accept": "application/json", **form_type},
            "data": form,
        },
        {
            "name": "json:{param:[...]} (api-key/bp_uuid)",
            "headers": {"api-key": key, "bp_uuid": partner, "Accept": "application/json"},
            "json": {"param": [{"season_filter": "all"}]},
        },
        {
            "name": "form + API-KEY/BP_UUID (upper-case)",
            "headers": {"API-KEY": key, "BP_UUID": partner, **form_type},
            "data": form,
        },
        {
            "name": "form (api-key/bp-uuid)",
            "headers": {"api-key": key, "bp-uuid": partner, **form_type},
            "data": form,
        },
        {
            "name": "form (x-api-key/bp_uuid)",
            "headers": {"x-api-key": key, "bp_uuid": partner, **form_type},
            "data": form,
        },
        {
            "name": "form (x-api-key/bp-uuid)",
            "headers": {"x-api-key": key, "bp-uuid": partner, **form_type},
            "data": form,
        },
    ]


async def probe(settings: Settings, client: httpx.AsyncClient) -> List[Dict[str, Any]]:
    results = []
    for variant in probe_variants(settings):
        try:
            resp = await client.post(
                settings.villa_list_url,
                headers=variant["headers"],
                data=variant.get("data"),
                json=variant.get("json"),
                timeout=settings.invenio_timeout,
            )
            results.append({
                "variant": variant["name"],
                "ok": resp.is_success,
                "status": resp.status_code,
                "body": resp.text[:PROBE_BODY_LIMIT],
            })
        except httpx.HTTPError as e:
            logger.warning("Probe variant %s failed: %s", variant["name"], e)
            results.append({"variant": variant["name"], "error": str(e) or e.__class__.__name__})
    return results
