import asyncio
import json

import httpx
import pytest

import invenio
from config import Settings
from conftest import INVENIO_BASE, RAW_VILLAS, FakeUpstream
from mock_data import VILLAS_DATA


def run_fetch(settings, upstream, season="all"):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
            return await invenio.fetch_villas(settings, http, season)
    return asyncio.run(run())


def test_fetch_posts_form_encoded_season(settings):
    upstream = FakeUpstream()
    villas = run_fetch(settings, upstream, "summer")

    assert villas == RAW_VILLAS
    (request,) = upstream.list_requests
    assert str(request.url) == f"{INVENIO_BASE}/plapi/getdata/api_villa_list_lr"
    assert request.method == "POST"
    assert request.headers["api-key"] == "test-key"
    assert request.headers["bp_uuid"] == "partner-uuid"
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    assert upstream.form_of(request) == [{"season_filter": "summer"}]


@pytest.mark.parametrize("body", ["[]", "[{}]", '[{"result": null}]', "{}"])
def test_fetch_tolerates_empty_shapes(settings, body):
    assert run_fetch(settings, FakeUpstream(body=body)) == []


def test_fetch_reports_upstream_status(settings):
    with pytest.raises(invenio.InvenioError) as exc:
        run_fetch(settings, FakeUpstream(status_code=503, body="x" * 3000))
    assert exc.value.status_code == 502
    assert exc.value.error == "Upstream 503"
    assert len(exc.value.upstream_raw) == 2000


def test_fetch_rejects_invalid_json(settings):
    with pytest.raises(invenio.InvenioError) as exc:
        run_fetch(settings, FakeUpstream(body="<html>oops</html>"))
    assert exc.value.status_code == 502


def test_fetch_requires_configuration():
    with pytest.raises(invenio.InvenioError) as exc:
        run_fetch(Settings(invenio_api_base=INVENIO_BASE), FakeUpstream())
    assert exc.value.status_code == 500
    assert exc.value.to_payload() == {"ok": False, "error": "Missing API configuration"}


def test_sample_villas_skip_the_network():
    upstream = FakeUpstream()
    villas = run_fetch(Settings(use_sample_villas=True), upstream)
    assert len(villas) == len(VILLAS_DATA)
    assert upstream.requests == []


def test_normalize_season():
    assert invenio.normalize_season(None) == "all"
    assert invenio.normalize_season(" Winter ") == "winter"
    with pytest.raises(invenio.InvenioError) as exc:
        invenio.normalize_season("spring")
    assert exc.value.status_code == 400


def test_probe_continues_after_a_failing_variant(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        if "x-api-key" in request.headers:
            raise httpx.ConnectError("refused", request=request)
        if request.headers.get("content-type") == "application/json":
            assert json.loads(request.content) == {"param": [{"season_filter": "all"}]}
        return httpx.Response(200, text="ok")

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await invenio.probe(settings, http)

    results = asyncio.run(run())
    assert [r["variant"] for r in results] == [v["name"] for v in invenio.probe_variants(settings)]
    assert results[0] == {"variant": "form:param=... (api-key/bp_uuid)", "ok": True, "status": 200, "body": "ok"}
    assert "error" in results[4] and "error" in results[5]
