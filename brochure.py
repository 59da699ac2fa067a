"""Villa brochure PDF.

The cover is painted straight onto the first page's canvas. Everything after
it (overview, features with pricing, the photo gallery and, when coordinates
and a Mapbox token are available, a map page) is a platypus story laid out by
``SimpleDocTemplate``.

Remote images are fetched one after another before layout starts. A photo or
map that fails to download or decode is logged and left out; it never fails
the brochure. Decoding and layout run in a worker thread.
"""
import io
import logging
import math
import re
from itertools import zip_longest
from typing import Any, Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

import httpx
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas
from reportlab.platypus import (
    Flowable,
    KeepTogether,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)
from starlette.concurrency import run_in_threadpool

from config import Settings
from pricing import availability, format_eur, monthly_from_villa

logger = logging.getLogger(__name__)

PAGE_W, PAGE_H = A4
MARGIN = 50
CONTENT_W = PAGE_W - 2 * MARGIN
FOOTER_H = 30

GOLD = colors.HexColor("#D4AF37")
BRAND = colors.HexColor("#1B3A4B")
INK = colors.HexColor("#333333")
MUTED = colors.HexColor("#666666")
HAIR = colors.HexColor("#E5E7EB")

GALLERY_PER_PAGE = 6
TILE_W, TILE_H = 240, 160
TILE_GUTTER = 15
ROW_PITCH = 180
# first column carries the gutter, so tiles land at x=50 and x=305
GALLERY_COLS = [TILE_W + TILE_GUTTER, TILE_W]

MAP_ZOOM = 11
MAP_SIZE = "1200x900"
MAP_PAD = 8

DEFAULT_OVERVIEW = "A refined Ibiza retreat offering privacy and luxury."
BROCHURE_VERSION = "v13"

FEATURE_DENYLIST = (
    "eco tax",
    "hire car recommended",
    "security guard",
    "staff",
    "chef",
    "butler",
    "suitable for",
    "special features",
    "dj equipment",
    "sunloungers",
    "neighbours",
    "tv - satellite",
    "smart tv",
)

SECTION_STYLE = ParagraphStyle(
    "Section", fontName="Helvetica-Bold", fontSize=28, leading=34, textColor=colors.black,
)
OVERVIEW_STYLE = ParagraphStyle(
    "Overview",
    fontName="Helvetica",
    fontSize=12,
    leading=20,
    alignment=TA_JUSTIFY,
    textColor=INK,
)
SPECS_STYLE = ParagraphStyle(
    "Specs", fontName="Helvetica", fontSize=11, leading=14, alignment=TA_CENTER,
    textColor=MUTED, spaceBefore=14,
)
FEATURE_STYLE = ParagraphStyle("Feature", fontName="Helvetica", fontSize=11, leading=14, textColor=INK)
PRICING_STYLE = ParagraphStyle(
    "Pricing", fontName="Helvetica-Bold", fontSize=16, leading=20, spaceBefore=24, spaceAfter=10,
)
LOCATION_STYLE = ParagraphStyle(
    "Location", fontName="Helvetica-Bold", fontSize=12, leading=16,
    textColor=colors.HexColor("#111111"), spaceAfter=6,
)
NOTE_STYLE = ParagraphStyle(
    "Note", fontName="Helvetica", fontSize=11, leading=14, textColor=colors.HexColor("#555555"),
)
MAP_MISSING_STYLE = ParagraphStyle("MapMissing", parent=NOTE_STYLE, fontSize=12, leading=16, spaceBefore=20)


def clean_text(text: Any) -> str:
    return (str(text or "")
            .replace("Ð", "")
            .replace("\r\n", "\n")
            .replace("\r", "\n")
            .strip())


def filter_features(features: Any) -> List[str]:
    if not isinstance(features, list):
        return []
    cleaned = [clean_text(f) for f in features if isinstance(f, str)]
    return [
        f for f in cleaned
        if f and not any(bad in f.lower() for bad in FEATURE_DENYLIST)
    ]


def split_columns(items: List[str]) -> Tuple[List[str], List[str]]:
    half = math.ceil(len(items) / 2)
    return items[:half], items[half:]


def photos_of(villa: Dict[str, Any]) -> List[str]:
    photos = villa.get("photos")
    return [p for p in photos if isinstance(p, str) and p] if isinstance(photos, list) else []


def gallery_pages(photos: List[str]) -> List[List[str]]:
    gallery = photos[2:]
    return [gallery[i:i + GALLERY_PER_PAGE] for i in range(0, len(gallery), GALLERY_PER_PAGE)]


def gallery_grid(group: List[str]) -> List[List[Optional[str]]]:
    """Rows of two photo urls; an odd last row is padded with None."""
    return [list(pair) for pair in zip_longest(group[::2], group[1::2])]


def cover_specs(villa: Dict[str, Any]) -> str:
    parts = []
    if villa.get("bedrooms"):
        parts.append(f"{villa['bedrooms']} Bedrooms")
    if villa.get("bathrooms"):
        parts.append(f"{villa['bathrooms']} Bathrooms")
    return "   •   ".join(parts)


def overview_specs(villa: Dict[str, Any]) -> str:
    parts = [
        villa.get("bedrooms") and f"{villa['bedrooms']} Bedrooms",
        villa.get("bathrooms") and f"{villa['bathrooms']} Bathrooms",
        villa.get("built_size") and f"{villa['built_size']} m² Built",
        villa.get("plot_size") and f"{villa['plot_size']} m² Plot",
    ]
    return "  •  ".join(p for p in parts if p)


def _to_coord(value: Any) -> Optional[float]:
    try:
        num = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def _coord_pair(lat_raw: Any, lon_raw: Any) -> Optional[Tuple[float, float]]:
    lat, lon = _to_coord(lat_raw), _to_coord(lon_raw)
    # a zero coordinate means the partner never geocoded the villa
    if not lat or not lon:
        return None
    return lat, lon


def resolve_coords(villa: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    gps = villa.get("gps")
    if isinstance(gps, str) and "," in gps:
        pair = _coord_pair(*gps.split(",")[:2])
        if pair:
            return pair
    if villa.get("bp_lat") and villa.get("bp_lng"):
        return _coord_pair(villa["bp_lat"], villa["bp_lng"])
    return None


def mapbox_url(lat: float, lon: float, token: str) -> str:
    return (
        "https://api.mapbox.com/styles/v1/mapbox/light-v11/static/"
        f"pin-l+f5a623({lon},{lat})/"
        f"{lon},{lat},{MAP_ZOOM},0/{MAP_SIZE}?access_token={token}"
    )


def location_line(villa: Dict[str, Any]) -> str:
    parts = [villa.get("destination"), villa.get("city"), villa.get("areaname")]
    return "   •   ".join(str(p) for p in parts if p)


def price_lines(villa: Dict[str, Any]) -> List[Tuple[str, str]]:
    """Label/value rows for the pricing block, empty when no tier is let."""
    prices = {
        "annual": villa.get("annual_price"),
        "summer": villa.get("summer_price"),
        "winter": villa.get("winter_price"),
    }
    bag = {"price": prices}
    avail = availability(bag)
    rows = []
    for tier in ("annual", "summer", "winter"):
        if avail[f"has{tier.title()}"]:
            rows.append((tier.title(), format_eur(avail[tier])))
    monthly = monthly_from_villa(bag)
    if monthly is not None:
        rows.append(("From", f"{format_eur(monthly)} / month"))
    return rows


def plan_pages(villa: Dict[str, Any], has_map: bool) -> List[str]:
    pages = ["cover", "overview", "features"]
    pages += ["gallery"] * len(gallery_pages(photos_of(villa)))
    if has_map:
        pages.append("map")
    return pages


def brochure_filename(name: str) -> str:
    return f"{re.sub(r'[^a-zA-Z0-9]', '_', name)}_brochure.pdf"


def slug_brochure_filename(title: str) -> str:
    safe = re.sub(r'[^a-z0-9]+', '-', title, flags=re.IGNORECASE)
    safe = re.sub(r'-+', '-', safe).strip('-').lower()
    return f"brochure-{safe}.pdf"


class NumberedCanvas(canvas.Canvas):
    """Defers page footers until the total page count is known."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            if self._pageNumber > 1:
                self._draw_footer(total)
            super().showPage()
        super().save()

    def _draw_footer(self, total: int):
        self.saveState()
        self.setFont("Helvetica", 9)
        self.setFillColor(MUTED)
        self.drawCentredString(PAGE_W / 2, 20, f"Page {self._pageNumber} of {total}")
        self.restoreState()


class Picture(Flowable):
    """An already-decoded image stretched to a fixed box."""

    def __init__(self, reader: ImageReader, width: float, height: float):
        super().__init__()
        self.reader = reader
        self.width = width
        self.height = height

    def wrap(self, availWidth, availHeight):
        return self.width, self.height

    def draw(self):
        self.canv.drawImage(self.reader, 0, 0, self.width, self.height,
                            preserveAspectRatio=False, mask="auto")


def _paragraph(text: str, style: ParagraphStyle) -> Paragraph:
    return Paragraph(escape(text).replace("\n", "<br/>"), style)


def _section_title(text: str) -> List[Flowable]:
    title = Table([[Paragraph(escape(text.upper()), SECTION_STYLE)]], colWidths=[CONTENT_W], hAlign="LEFT")
    title.setStyle(TableStyle([
        ("LINEBELOW", (0, 0), (-1, -1), 1, GOLD),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ("TOPPADDING", (0, 0), (-1, -1), 0),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
    ]))
    return [title, Spacer(1, 20)]


def _draw_cover(pdf: canvas.Canvas, villa: Dict[str, Any], hero: Optional[ImageReader]):
    pdf.saveState()
    if hero is not None:
        pdf.drawImage(hero, 0, 0, PAGE_W, PAGE_H)
        pdf.setFillColor(colors.black)
        pdf.setFillAlpha(0.5)
        pdf.rect(0, 0, PAGE_W, PAGE_H, stroke=0, fill=1)
        pdf.setFillAlpha(1)
    else:
        # white lettering needs a dark ground
        pdf.setFillColor(BRAND)
        pdf.rect(0, 0, PAGE_W, PAGE_H, stroke=0, fill=1)

    name = clean_text(villa.get("bp_name")) or "Villa"
    title_lines = simpleSplit(name.upper(), "Helvetica-Bold", 52, PAGE_W - 60)
    pdf.setFillColor(colors.white)
    pdf.setFont("Helvetica-Bold", 52)
    for idx, line in enumerate(title_lines):
        pdf.drawCentredString(PAGE_W / 2, PAGE_H - 230 - 46 - idx * 56, line)
    shift = max(0, len(title_lines) - 1) * 56

    pdf.setStrokeColor(GOLD)
    pdf.setLineWidth(2)
    pdf.line(160, PAGE_H - 300 - shift, 435, PAGE_H - 300 - shift)

    specs = cover_specs(villa)
    if specs:
        pdf.setFont("Helvetica", 20)
        pdf.drawCentredString(PAGE_W / 2, PAGE_H - 320 - 18 - shift, specs)

    tagline = clean_text(villa.get("bp_profile"))
    if tagline:
        pdf.setFont("Helvetica-Oblique", 20)
        for idx, line in enumerate(simpleSplit(f'"{tagline}"', "Helvetica-Oblique", 20, 455)):
            pdf.drawCentredString(PAGE_W / 2, PAGE_H - 380 - 18 - shift - idx * 26, line)

    pdf.setLineWidth(1)
    pdf.line(50, PAGE_H - 720, 545, PAGE_H - 720)
    pdf.restoreState()


def _overview(villa: Dict[str, Any], second: Optional[ImageReader]) -> List[Flowable]:
    story = _section_title("Villa Overview")
    story.append(_paragraph(clean_text(villa.get("description") or DEFAULT_OVERVIEW), OVERVIEW_STYLE))
    specs = overview_specs(villa)
    if specs:
        story.append(_paragraph(specs, SPECS_STYLE))
    if second is not None:
        story += [Spacer(1, 28), Picture(second, CONTENT_W, 320)]
    return story


def _pricing_block(rows: List[Tuple[str, str]]) -> Flowable:
    table = Table([list(row) for row in rows], colWidths=[120, 120], hAlign="LEFT")
    table.setStyle(TableStyle([
        ("FONT", (0, 0), (-1, -1), "Helvetica", 11),
        ("TEXTCOLOR", (0, 0), (0, -1), MUTED),
        ("TEXTCOLOR", (1, 0), (1, -1), INK),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ("TOPPADDING", (0, 0), (-1, -1), 0),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
    ]))
    return KeepTogether([Paragraph("Pricing", PRICING_STYLE), table])


def _features(villa: Dict[str, Any]) -> List[Flowable]:
    story = _section_title("Features & Amenities")
    left, right = split_columns(filter_features(villa.get("features")))
    if left:
        rows = [
            [_paragraph(f"• {a}", FEATURE_STYLE), _paragraph(f"• {b}", FEATURE_STYLE) if b else ""]
            for a, b in zip_longest(left, right)
        ]
        columns = Table(rows, colWidths=[CONTENT_W / 2] * 2, hAlign="LEFT", splitByRow=1)
        columns.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("RIGHTPADDING", (0, 0), (-1, -1), 10),
            ("TOPPADDING", (0, 0), (-1, -1), 0),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ]))
        story.append(columns)

    rows = price_lines(villa)
    if rows:
        story.append(_pricing_block(rows))
    return story


def _gallery(group: List[str], images: Dict[str, Optional[ImageReader]]) -> List[Flowable]:
    cells = [
        [Picture(images[url], TILE_W, TILE_H) if url and images.get(url) is not None else ""
         for url in row]
        for row in gallery_grid(group)
    ]
    grid = Table(cells, colWidths=GALLERY_COLS, rowHeights=ROW_PITCH, hAlign="LEFT")
    grid.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ("TOPPADDING", (0, 0), (-1, -1), 0),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 0),
    ]))
    return _section_title("Gallery") + [Spacer(1, 10), grid]


def _map(villa: Dict[str, Any], map_image: Optional[ImageReader]) -> List[Flowable]:
    story = _section_title("Map & Location")
    loc = location_line(villa)
    if loc:
        story.append(_paragraph(loc, LOCATION_STYLE))
    story.append(Paragraph("Approximate villa location.", NOTE_STYLE))

    if map_image is None:
        story.append(Paragraph("Map preview could not be loaded.", MAP_MISSING_STYLE))
        return story

    card = Table([[Picture(map_image, CONTENT_W - 2 * MAP_PAD, 370)]], colWidths=[CONTENT_W], hAlign="LEFT")
    card.setStyle(TableStyle([
        ("BOX", (0, 0), (-1, -1), 0.5, HAIR),
        ("LEFTPADDING", (0, 0), (-1, -1), MAP_PAD),
        ("RIGHTPADDING", (0, 0), (-1, -1), MAP_PAD),
        ("TOPPADDING", (0, 0), (-1, -1), MAP_PAD),
        ("BOTTOMPADDING", (0, 0), (-1, -1), MAP_PAD),
    ]))
    story += [Spacer(1, 16), card]
    return story


def render_brochure(villa: Dict[str, Any], images: Dict[str, Optional[ImageReader]],
                    has_map: bool = False, map_image: Optional[ImageReader] = None) -> bytes:
    """Lay the brochure out from already-decoded images (url -> reader, None if missing)."""
    photos = photos_of(villa)
    hero = images.get(photos[0]) if photos else None
    second = images.get(photos[1]) if len(photos) > 1 else None

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN + FOOTER_H,
        title=f"{clean_text(villa.get('bp_name')) or 'Villa'} brochure",
        author="Move2Ibiza",
    )

    # the cover page carries no flowables
    story: List[Flowable] = [PageBreak()]
    galleries = iter(gallery_pages(photos))
    for kind in plan_pages(villa, has_map)[1:]:
        if kind != "overview":
            story.append(PageBreak())
        if kind == "overview":
            story += _overview(villa, second)
        elif kind == "features":
            story += _features(villa)
        elif kind == "gallery":
            story += _gallery(next(galleries), images)
        elif kind == "map":
            story += _map(villa, map_image)

    doc.build(
        story,
        onFirstPage=lambda pdf, _doc: _draw_cover(pdf, villa, hero),
        canvasmaker=NumberedCanvas,
    )
    return buf.getvalue()


def load_image(data: Optional[bytes]) -> Optional[ImageReader]:
    if data is None:
        return None
    try:
        reader = ImageReader(io.BytesIO(data))
        reader.getSize()
    except Exception as e:
        logger.warning("Skipping undecodable image: %s", e)
        return None
    return reader


def render_downloads(villa: Dict[str, Any], downloads: Dict[str, Optional[bytes]],
                     has_map: bool = False, map_data: Optional[bytes] = None) -> bytes:
    images = {url: load_image(data) for url, data in downloads.items()}
    loaded = sum(1 for reader in images.values() if reader is not None)
    logger.info("Rendering brochure for %s (%d/%d images)", villa.get("bp_uuid"), loaded, len(images))
    return render_brochure(villa, images, has_map=has_map, map_image=load_image(map_data))


async def fetch_image(client: httpx.AsyncClient, url: str, timeout: float) -> Optional[bytes]:
    try:
        resp = await client.get(url, timeout=timeout, follow_redirects=True)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("Skipping brochure image %s: %s", url, e)
        return None
    return resp.content


async def build_brochure(villa: Dict[str, Any], client: httpx.AsyncClient, settings: Settings) -> bytes:
    photos = photos_of(villa)
    wanted = photos[:2] + [url for group in gallery_pages(photos) for url in group]

    downloads: Dict[str, Optional[bytes]] = {}
    for url in wanted:
        if url not in downloads:
            downloads[url] = await fetch_image(client, url, settings.image_timeout)

    coords = resolve_coords(villa)
    has_map = bool(coords and settings.mapbox_access_token)
    map_data = None
    if has_map:
        lat, lon = coords
        map_data = await fetch_image(client, mapbox_url(lat, lon, settings.mapbox_access_token),
                                     settings.map_timeout)
        if map_data is None:
            logger.warning("Map preview unavailable for %s", villa.get("bp_uuid"))

    return await run_in_threadpool(render_downloads, villa, downloads, has_map, map_data)
