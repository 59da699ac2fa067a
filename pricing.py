"""Monthly price derivation and the budget/location search used by the home page."""
import math
import re
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any, Dict, List, Optional

NON_NUMERIC = re.compile(r'[^\d.]')

# Seasonal tiers cover six months, annual covers twelve.
TIER_MONTHS = {"winter": 6, "summer": 6, "annual": 12}


def to_num(value: Any) -> float:
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return math.nan
    if isinstance(value, str):
        cleaned = NON_NUMERIC.sub('', value)
        if not cleaned:
            return 0.0
        try:
            return float(cleaned)
        except ValueError:
            return math.nan
    return math.nan


def format_eur(amount: float) -> str:
    value = Decimal(str(amount))
    with localcontext() as ctx:
        # quantize needs room for every integer digit
        ctx.prec = max(ctx.prec, value.adjusted() + 2)
        rounded = int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))
    sign = "-" if rounded < 0 else ""
    return f"{sign}€{abs(rounded):,}"


def pick_price_bag(villa: Any) -> Dict[str, Any]:
    if not isinstance(villa, dict):
        return {}
    meta = villa.get("meta")
    meta_prices = meta.get("prices") if isinstance(meta, dict) else None
    for bag in (villa.get("price"), villa.get("pricing"), meta_prices, villa.get("rent")):
        if bag:
            return bag if isinstance(bag, dict) else {}
    return {}


def _first_present(*values: Any) -> Any:
    return next((v for v in values if v is not None), None)


def _positive(n: float) -> bool:
    return math.isfinite(n) and n > 0


def availability(villa: Any) -> Dict[str, Any]:
    bag = pick_price_bag(villa)
    source = villa if isinstance(villa, dict) else {}
    winter = to_num(bag.get("winter"))
    summer = to_num(bag.get("summer"))
    annual = to_num(_first_present(
        bag.get("annual"), bag.get("yearly"), source.get("priceAnnual"), source.get("yearly"),
    ))
    return {
        "hasWinter": _positive(winter),
        "hasSummer": _positive(summer),
        "hasAnnual": _positive(annual),
        "winter": winter,
        "summer": summer,
        "annual": annual,
    }


def monthly_from_villa(villa: Any) -> Optional[float]:
    avail = availability(villa)
    monthlies = [
        avail[tier] / months
        for tier, months in TIER_MONTHS.items()
        if _positive(avail[tier])
    ]
    return min(monthlies) if monthlies else None


def json_safe(avail: Dict[str, Any]) -> Dict[str, Any]:
    """NaN is not valid JSON; report missing tiers as null."""
    return {
        key: (None if isinstance(value, float) and not math.isfinite(value) else value)
        for key, value in avail.items()
    }


def parse_budget(raw: Any) -> Optional[float]:
    if raw is None:
        return None
    cleaned = NON_NUMERIC.sub('', str(raw))
    try:
        budget = float(cleaned) if cleaned else 0.0
    except ValueError:
        return None
    return budget if _positive(budget) else None


def villa_location(villa: Dict[str, Any]) -> str:
    place = villa.get("location") or villa.get("city") or villa.get("destination") or ""
    return str(place).strip()


def within_budget(villa: Dict[str, Any], budget: Optional[float]) -> bool:
    if not budget:
        return True
    monthly = monthly_from_villa(villa)
    return monthly is not None and monthly <= budget


def search_villas(cards: List[Dict[str, Any]], budget: Optional[float] = None, location: str = "") -> Dict[str, Any]:
    pool = [card for card in cards if within_budget(card, budget)]
    locations = sorted({loc for loc in (villa_location(c) for c in pool) if loc})

    location = (location or "").strip()
    if location not in locations:
        location = ""

    results = []
    for card in pool:
        if location and villa_location(card) != location:
            continue
        monthly = monthly_from_villa(card)
        results.append({
            **card,
            "monthly": monthly,
            "monthlyDisplay": format_eur(monthly) if monthly is not None else None,
        })

    return {"villas": results, "locations": locations, "location": location, "budget": budget}
