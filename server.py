from fastapi import FastAPI, APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
import json
import logging
from typing import Optional

import httpx

import brochure
import invenio
import pricing
import villas
from config import Settings, get_settings, settings
from enquiries import Enquiry, EnquiryCreate, mailto_url, whatsapp_url
from in_memory_db import InMemoryDB
from invenio import InvenioError

client = None
if not settings.use_in_memory_db and settings.mongo_url:
    client = AsyncIOMotorClient(settings.mongo_url)
    db = client[settings.db_name]
    ENQUIRY_STORE = "mongodb"
else:
    db = InMemoryDB()
    ENQUIRY_STORE = "in-memory"

VILLA_SOURCE = "sample" if settings.use_sample_villas else "invenio"

# Flat query keys compute-monthly accepts as a price bag
PRICE_KEYS = ("winter", "summer", "annual", "yearly")
BAG_KEYS = ("price", "pricing", "meta", "rent")

app = FastAPI(title="Move2Ibiza API")
api_router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)


http_client: Optional[httpx.AsyncClient] = None


@app.on_event("startup")
async def open_http_client():
    global http_client
    http_client = httpx.AsyncClient()


async def get_http_client() -> httpx.AsyncClient:
    return http_client


@app.exception_handler(InvenioError)
async def invenio_error_handler(request: Request, exc: InvenioError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.get("/")
async def root():
    return {"message": "Move2Ibiza API is running!", "villas": VILLA_SOURCE, "enquiries": ENQUIRY_STORE}


# Villa endpoints
@api_router.get("/invenio/villas")
async def list_villas(
    season: Optional[str] = None,
    dest: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    season = invenio.normalize_season(season)
    try:
        records = await invenio.fetch_villas(settings, http, season)
        cards = villas.list_cards(records, dest or "")
    except InvenioError:
        raise
    except Exception as e:
        logger.exception("Villa list failed")
        raise InvenioError(500, str(e) or "Unknown error")
    return {"ok": True, "season": season, "count": len(cards), "villas": cards}


@api_router.get("/invenio/villa")
async def get_villa(
    slug: Optional[str] = None,
    season: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    season = invenio.normalize_season(season)
    slug = (slug or "").strip()
    if not slug:
        raise InvenioError(400, "Missing slug")
    try:
        records = await invenio.fetch_villas(settings, http, season)
        match = villas.find_by_slug(records, slug)
        if not match:
            raise InvenioError(404, "Villa not found")
        detail = villas.to_detail(match, slug)
    except InvenioError:
        raise
    except Exception as e:
        logger.exception("Villa detail failed for %s", slug)
        raise InvenioError(500, str(e) or "Unknown error")
    return {"ok": True, "season": season, "villa": detail}


@api_router.get("/invenio/debug")
async def invenio_debug(settings: Settings = Depends(get_settings)):
    return {
        "base": settings.invenio_api_base,
        "apiKeySet": bool(settings.invenio_api_key),
        "bpUuidSet": bool(settings.invenio_bp_uuid),
    }


@api_router.get("/invenio/probe")
async def invenio_probe(
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    if not settings.invenio_configured:
        return JSONResponse(status_code=500, content={
            "error": "Missing envs",
            "base": settings.invenio_api_base,
            "APIKEY": bool(settings.invenio_api_key),
            "UUID": bool(settings.invenio_bp_uuid),
        })
    results = await invenio.probe(settings, http)
    return {"base": settings.invenio_api_base, "results": results}


# Brochures
def _pdf_response(content: bytes, filename: str, **headers) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"', **headers},
    )


@api_router.get("/brochure/{bp_uuid}")
async def brochure_by_uuid(
    bp_uuid: str,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    bp_uuid = bp_uuid.strip()
    if not bp_uuid:
        return PlainTextResponse("Missing bpUuid", status_code=400)
    try:
        records = await invenio.fetch_villas(settings, http)
    except InvenioError as e:
        logger.error("Brochure lookup failed for %s: %s", bp_uuid, e.error)
        return PlainTextResponse("Failed to load villa", status_code=502)

    villa = villas.find_by_uuid(records, bp_uuid)
    if not villa:
        return PlainTextResponse("Villa not found", status_code=404)

    content = await brochure.build_brochure(villa, http, settings)
    return _pdf_response(content, brochure.brochure_filename(str(villa.get("bp_name") or "villa")))


@api_router.get("/invenio/brochure")
async def brochure_by_slug(
    slug: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    slug = (slug or "").strip()
    if not slug:
        raise InvenioError(400, "Missing slug")
    try:
        records = await invenio.fetch_villas(settings, http)
    except InvenioError as e:
        raise InvenioError(502, f"Villa API {e.status_code}")

    villa = villas.find_by_slug(records, slug)
    if not villa:
        raise InvenioError(404, "Villa not found")

    content = await brochure.build_brochure(villa, http, settings)
    filename = brochure.slug_brochure_filename(str(villa.get("bp_name") or slug))
    return _pdf_response(
        content,
        filename,
        **{"Cache-Control": "public, max-age=3600", "X-Brochure-Version": brochure.BROCHURE_VERSION},
    )


# Pricing and search
def _price_payload_from_query(params: dict) -> dict:
    payload = dict(params)
    if not any(key in payload for key in BAG_KEYS):
        bag = {key: payload.pop(key) for key in PRICE_KEYS if key in payload}
        if bag:
            payload["price"] = bag
    return payload


@api_router.api_route("/compute-monthly", methods=["GET", "POST"])
async def compute_monthly(request: Request):
    if request.method == "POST":
        try:
            payload = json.loads(await request.body() or b"{}")
        except ValueError:
            return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
        if not isinstance(payload, dict):
            return JSONResponse(status_code=400, content={"error": "Body must be a JSON object"})
    else:
        payload = _price_payload_from_query(dict(request.query_params))

    try:
        monthly = pricing.monthly_from_villa(payload)
        avail = pricing.json_safe(pricing.availability(payload))
    except (TypeError, ValueError, AttributeError) as e:
        return JSONResponse(status_code=400, content={"error": str(e) or "Bad Request"})
    return {"monthly": monthly, "availability": avail}


@api_router.get("/search")
async def search(
    budget: Optional[str] = None,
    location: Optional[str] = None,
    season: Optional[str] = None,
    dest: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    season = invenio.normalize_season(season)
    records = await invenio.fetch_villas(settings, http, season)
    cards = villas.list_cards(records, dest or "")
    result = pricing.search_villas(cards, pricing.parse_budget(budget), location or "")
    return {"ok": True, "season": season, "count": len(result["villas"]), **result}


# Contact
@api_router.post("/enquiries")
async def create_enquiry(data: EnquiryCreate, settings: Settings = Depends(get_settings)):
    enquiry = Enquiry(**data.model_dump())
    enquiry_dict = enquiry.model_dump()
    enquiry_dict["created_at"] = enquiry_dict["created_at"].isoformat()
    await db.enquiries.insert_one(enquiry_dict)
    logger.info("Enquiry %s stored for %s", enquiry.id, data.villa_slug or "general")
    return {
        "ok": True,
        "id": enquiry.id,
        "mailto_url": mailto_url(settings, data),
        "whatsapp_url": whatsapp_url(settings, data.villa_title, data.page_url),
    }


@api_router.get("/contact/links")
async def contact_links(
    villa: Optional[str] = None,
    url: Optional[str] = None,
    settings: Settings = Depends(get_settings),
):
    return {
        "whatsapp_url": whatsapp_url(settings, villa, url),
        "mailto": f"mailto:{settings.contact_email}",
    }


app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger.info("Villa source: %s, enquiry store: %s", VILLA_SOURCE, ENQUIRY_STORE)


@app.on_event("shutdown")
async def shutdown_clients():
    if http_client is not None:
        await http_client.aclose()
    if client:
        client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
