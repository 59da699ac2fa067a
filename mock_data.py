import uuid
from datetime import datetime, timezone, timedelta
from typing import List, Dict, Any


# Invenio-shaped villa records, served when USE_SAMPLE_VILLAS=true.
SAMPLE_NAMESPACE = uuid.UUID("6f1c2a52-8a43-4d7e-9a57-0c6d3c1e9b10")

AREA_DATA = [
    {"destination": "Ibiza", "city": "Santa Eulària des Riu", "areaname": "Cala Llonga", "gps": "38.9506,1.5334"},
    {"destination": "Ibiza", "city": "Sant Josep de sa Talaia", "areaname": "Cala Tarida", "gps": "38.9387,1.2357"},
    {"destination": "Ibiza", "city": "Sant Antoni de Portmany", "areaname": "Cala Gració", "gps": "38.9921,1.2959"},
    {"destination": "Ibiza", "city": "Sant Joan de Labritja", "areaname": "Portinatx", "gps": "39.1109,1.5188"},
    {"destination": "Ibiza", "city": "Eivissa", "areaname": "Talamanca", "gps": "38.9175,1.4524"},
]

VILLA_NAMES = [
    "Can Blau", "Villa Sa Punta", "Casa Olivera", "Villa Es Vedrà", "Can Llum",
    "Villa Tramuntana", "Casa Pinar", "Villa Cala Bassa",
]

PHOTOS = [
    "https://images.unsplash.com/photo-1505693416388-ac5ce068fe85?w=1600",
    "https://images.unsplash.com/photo-1470246973918-29a93221c455?w=1600",
    "https://images.unsplash.com/photo-1502672260266-1c1ef2d93688?w=1600",
    "https://images.unsplash.com/photo-1507089947368-19c1da9775ae?w=1600",
    "https://images.unsplash.com/photo-1501045661006-fcebe0257c3f?w=1600",
    "https://images.unsplash.com/photo-1512917774080-9991f1c4c750?w=1600",
    "https://images.unsplash.com/photo-1613490493576-7fde63acd811?w=1600",
    "https://images.unsplash.com/photo-1600596542815-ffad4c1539a9?w=1600",
]

FEATURES = [
    "Private pool", "Sea views", "Air conditioning", "Wi-Fi", "Outdoor dining area",
    "Barbecue", "Smart TV", "Staff quarters", "Eco tax included", "Garden",
    "Parking", "Sunloungers", "Dishwasher", "Washing machine",
]


def _eur(amount: int) -> str:
    return f"€{amount:,}"


def _villa_photos(idx: int) -> List[str]:
    count = 3 + idx % 6
    return [PHOTOS[(idx + offset) % len(PHOTOS)] for offset in range(count)]


def generate_sample_villas() -> List[Dict[str, Any]]:
    now = datetime.now(timezone.utc)
    villas: List[Dict[str, Any]] = []

    for idx, name in enumerate(VILLA_NAMES):
        area = AREA_DATA[idx % len(AREA_DATA)]
        bedrooms = 2 + idx % 5
        photos = _villa_photos(idx)
        annual = 60000 + idx * 15000
        villa = {
            "bp_name": name,
            "bp_id": 1000 + idx,
            "bp_uuid": str(uuid.uuid5(SAMPLE_NAMESPACE, name)),
            "destination": area["destination"],
            "city": area["city"],
            "areaname": area["areaname"],
            "profile_picture": photos[0],
            "photos": photos,
            "thumb_images": [f"{url}&thumb=1" for url in photos[:2]],
            "villa_images": photos[:2],
            "pt_last_updated_on": (now - timedelta(days=idx * 3)).date().isoformat(),
            "bedrooms": bedrooms,
            "bathrooms": max(1, bedrooms - idx % 2),
            "guests": bedrooms * 2,
            "built_size": str(180 + idx * 40),
            "plot_size": str(1200 + idx * 500),
            "annual_price": _eur(annual),
            # Not every villa lets every season.
            "summer_price": _eur(annual // 2) if idx % 3 != 2 else "",
            "winter_price": _eur(annual // 4) if idx % 2 == 0 else "",
            "description": (
                f"{name} is a {bedrooms}-bedroom retreat in {area['areaname']}, "
                f"set in a quiet corner of {area['city']} with space for long-term living."
            ),
            "bp_profile": f"Long-term living in {area['areaname']}",
            "features": FEATURES[idx % 4: idx % 4 + 8],
            "gps": area["gps"],
        }
        villas.append(villa)

    return villas


VILLAS_DATA = generate_sample_villas()
