from conftest import CAN_BLAU_SLUG, CAN_BLAU_UUID, RAW_VILLAS
from villas import (
    bp_uuid_from_slug,
    find_by_slug,
    find_by_uuid,
    first_image,
    gather_images,
    is_absolute_url,
    list_cards,
    make_slug,
    parse_gps,
    slugify,
    to_card,
    to_detail,
)


def test_absolute_urls_include_protocol_relative():
    assert is_absolute_url("https://a.test/x.jpg")
    assert is_absolute_url("HTTP://a.test/x.jpg")
    assert is_absolute_url("//cdn.test/x.jpg")
    assert not is_absolute_url("/x.jpg")
    assert not is_absolute_url("")
    assert not is_absolute_url(None)


def test_slugify_strips_accents_and_punctuation():
    assert slugify("Villa Ès Vedrà - 77") == "villa-es-vedra-77"
    assert slugify("  --Can  Blau!! ") == "can-blau"


def test_make_slug_prefers_uuid_then_id():
    assert make_slug(RAW_VILLAS[0]) == CAN_BLAU_SLUG
    assert make_slug(RAW_VILLAS[1]) == "villa-es-vedra-77"
    assert make_slug({"bp_name": "   "}) == "villa"


def test_bp_uuid_from_slug_takes_last_five_segments():
    assert bp_uuid_from_slug(CAN_BLAU_SLUG) == CAN_BLAU_UUID


def test_first_image_order():
    villa = {
        "profile_picture": "/relative.jpg",
        "photos": ["/nope.jpg", "https://img.test/photo.jpg"],
        "thumb_images": ["https://img.test/thumb.jpg"],
    }
    assert first_image(villa) == "https://img.test/photo.jpg"
    assert first_image({"thumb_images": ["https://img.test/thumb.jpg"]}) == "https://img.test/thumb.jpg"
    assert first_image({}) == ""


def test_gather_images_dedupes_and_puts_thumbs_last():
    villa = {
        "villa_images": ["https://img.test/thumb_a.jpg", "https://img.test/a.jpg"],
        "photos": ["https://img.test/a.jpg", "https://img.test/b.jpg", "not-a-url"],
        "profile_picture": "https://img.test/c.jpg",
        "thumb_images": ["https://img.test/thmb_d.jpg"],
    }
    assert gather_images(villa) == [
        "https://img.test/a.jpg",
        "https://img.test/b.jpg",
        "https://img.test/c.jpg",
        "https://img.test/thumb_a.jpg",
        "https://img.test/thmb_d.jpg",
    ]


def test_parse_gps():
    assert parse_gps("38.95, 1.53") == {"lat": 38.95, "lng": 1.53}
    assert parse_gps("38.95") is None
    assert parse_gps("north,east") is None
    assert parse_gps(None) is None


def test_card_requires_title_and_cover():
    assert to_card({"bp_name": "No cover"}) is None
    assert to_card({"profile_picture": "https://img.test/x.jpg"}) is None

    card = to_card(RAW_VILLAS[0])
    assert card["title"] == "Can Blau"
    assert card["cover"] == "https://img.test/can-blau/cover.jpg"
    assert card["slug"] == CAN_BLAU_SLUG
    assert card["meta"]["prices"] == {"annual": "€120,000", "summer": "€70,000", "winter": ""}
    assert card["meta"]["updated"] == "2025-06-01"


def test_list_cards_filters_destination_and_drops_incomplete():
    cards = list_cards(RAW_VILLAS)
    assert [c["title"] for c in cards] == ["Can Blau", "Villa Ès Vedrà", "Casa Sal"]

    assert [c["title"] for c in list_cards(RAW_VILLAS, "  FORMENTERA ")] == ["Casa Sal"]
    assert list_cards(RAW_VILLAS, "mallorca") == []


def test_find_helpers():
    assert find_by_slug(RAW_VILLAS, CAN_BLAU_SLUG) is RAW_VILLAS[0]
    assert find_by_slug(RAW_VILLAS, "missing") is None
    assert find_by_uuid(RAW_VILLAS, CAN_BLAU_UUID) is RAW_VILLAS[0]


def test_detail_view():
    detail = to_detail(RAW_VILLAS[0], CAN_BLAU_SLUG)
    assert detail["cover"] == "https://img.test/can-blau/1.jpg"
    assert detail["images"][-1] == "https://img.test/can-blau/thumb_1.jpg"
    assert detail["coords"] == {"lat": 38.9506, "lng": 1.5334}
    assert detail["meta"]["builtSize"] == "320"
    assert detail["amenities"] == RAW_VILLAS[0]["features"]
    assert detail["raw"] is RAW_VILLAS[0]
    assert detail["brochureUrl"] == f"/api/brochure/{CAN_BLAU_UUID}"


def test_detail_description_falls_back_to_profile():
    detail = to_detail({"bp_name": "X", "bp_profile": "Tagline", "features": "pool"}, "x")
    assert detail["description"] == "Tagline"
    assert detail["amenities"] == []
    assert detail["cover"] == ""
