import math
import re
import unicodedata
from typing import Any, Dict, Iterable, List, Optional

ABSOLUTE_URL = re.compile(r'^(https?:)?//', re.IGNORECASE)
THUMB_URL = re.compile(r'(thumb|thmb)', re.IGNORECASE)


def is_absolute_url(url: Any) -> bool:
    return isinstance(url, str) and bool(url) and bool(ABSOLUTE_URL.match(url))


def is_thumb_url(url: Any) -> bool:
    return isinstance(url, str) and bool(THUMB_URL.search(url))


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def first_image(villa: Dict[str, Any]) -> str:
    if is_absolute_url(villa.get("profile_picture")):
        return villa["profile_picture"]
    for bucket in ("photos", "thumb_images"):
        for url in _as_list(villa.get(bucket)):
            if is_absolute_url(url):
                return url
    return ""


def gather_images(villa: Dict[str, Any]) -> List[str]:
    """All absolute image URLs, de-duplicated, full-size before thumbnails."""
    candidates = [
        *_as_list(villa.get("villa_images")),
        *_as_list(villa.get("photos")),
        villa.get("profile_picture") or "",
        *_as_list(villa.get("thumb_images")),
    ]
    seen = {}
    for url in candidates:
        if is_absolute_url(url) and url not in seen:
            seen[url] = True
    # sorted() is stable, so first-seen order holds within each group
    return sorted(seen, key=is_thumb_url)


def slugify(text: str) -> str:
    text = unicodedata.normalize("NFD", text.lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r'[^a-z0-9]+', '-', text)
    return text.strip('-')


def _title(villa: Dict[str, Any]) -> str:
    name = villa.get("bp_name")
    return name.strip() if isinstance(name, str) else ""


def make_slug(villa: Dict[str, Any]) -> str:
    ident = villa.get("bp_uuid") or villa.get("bp_id") or ""
    return slugify(f"{_title(villa) or 'villa'}-{ident}")


def bp_uuid_from_slug(slug: str) -> str:
    return "-".join(slug.split("-")[-5:])


def parse_gps(gps: Any) -> Optional[Dict[str, float]]:
    if not isinstance(gps, str) or "," not in gps:
        return None
    parts = [p.strip() for p in gps.split(",")]
    try:
        lat, lng = float(parts[0]), float(parts[1])
    except (ValueError, IndexError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    return {"lat": lat, "lng": lng}


def _prices(villa: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "annual": villa.get("annual_price"),
        "summer": villa.get("summer_price"),
        "winter": villa.get("winter_price"),
    }


def to_card(villa: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    title = _title(villa)
    cover = first_image(villa)
    if not title or not cover:
        return None
    return {
        "title": title,
        "destination": villa.get("destination"),
        "city": villa.get("city"),
        "cover": cover,
        "slug": make_slug(villa),
        "meta": {
            "bedrooms": villa.get("bedrooms"),
            "bathrooms": villa.get("bathrooms"),
            "guests": villa.get("guests"),
            "prices": _prices(villa),
            "updated": villa.get("pt_last_updated_on"),
        },
    }


def matches_destination(villa: Dict[str, Any], dest: str) -> bool:
    place = villa.get("destination") or villa.get("city") or ""
    return dest in str(place).lower()


def list_cards(villas: Iterable[Dict[str, Any]], dest: str = "") -> List[Dict[str, Any]]:
    dest = (dest or "").strip().lower()
    if dest:
        villas = [v for v in villas if matches_destination(v, dest)]
    cards = (to_card(v) for v in villas)
    return [card for card in cards if card is not None]


def find_by_slug(villas: Iterable[Dict[str, Any]], slug: str) -> Optional[Dict[str, Any]]:
    return next((v for v in villas if make_slug(v) == slug), None)


def find_by_uuid(villas: Iterable[Dict[str, Any]], bp_uuid: str) -> Optional[Dict[str, Any]]:
    return next((v for v in villas if v.get("bp_uuid") == bp_uuid), None)


def to_detail(villa: Dict[str, Any], slug: str) -> Dict[str, Any]:
    images = gather_images(villa)
    features = villa.get("features")
    return {
        "title": villa.get("bp_name"),
        "destination": villa.get("destination"),
        "city": villa.get("city"),
        "cover": images[0] if images else "",
        "images": images,
        "slug": slug,
        "meta": {
            "bedrooms": villa.get("bedrooms"),
            "bathrooms": villa.get("bathrooms"),
            "guests": villa.get("guests"),
            "builtSize": villa.get("built_size"),
            "plotSize": villa.get("plot_size"),
            "prices": _prices(villa),
            "updated": villa.get("pt_last_updated_on"),
        },
        "description": villa.get("description") or villa.get("bp_profile") or "",
        "coords": parse_gps(villa.get("gps")),
        "amenities": features if isinstance(features, list) else [],
        "raw": villa,
        "brochureUrl": f"/api/brochure/{bp_uuid_from_slug(slug)}",
    }
