from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from chatbot.core.models import CountryRecord


UNKNOWN = "Unknown"

_ONE_DECIMAL = Decimal("0.1")
_WHOLE = Decimal("1")


def _one_decimal(value: Decimal) -> str:
    return str(value.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


def format_population(population: int) -> str:
    """Compact population string: 999, 1.5K, 2.3M, 1.2B."""
    if population < 1_000:
        return str(population)
    value = Decimal(population)
    if population < 1_000_000:
        return f"{_one_decimal(value / 1_000)}K"
    if population < 1_000_000_000:
        return f"{_one_decimal(value / 1_000_000)}M"
    return f"{_one_decimal(value / 1_000_000_000)}B"


def format_area(area: float) -> str:
    if not math.isfinite(area) or area <= 0:
        return UNKNOWN
    whole = int(Decimal(str(area)).quantize(_WHOLE, rounding=ROUND_HALF_UP))
    return f"{whole:,} km²"


def _is_known(value) -> bool:
    return bool(value) and value != UNKNOWN


def format_country_report(record: "CountryRecord", detailed: bool) -> str:
    """Render the multi-line "all information" answer for one country.

    Capital is always shown. Region, population, area, languages and
    currencies are only shown in detailed mode; national animal and flower
    whenever they are known; national bird only in detailed mode.
    """
    lines: List[str] = [f"Information about {record.common_name}:", ""]
    lines.append(f"🏛️ Capital: {record.capital}")

    if detailed:
        if record.region:
            region = record.region
            if record.subregion:
                region = f"{region} ({record.subregion})"
            lines.append(f"🌍 Region: {region}")
        if record.population > 0:
            lines.append(f"👥 Population: {record.formatted_population}")
        if record.area > 0:
            lines.append(f"📏 Area: {record.formatted_area}")
        if record.languages:
            lines.append(f"🗣️ Languages: {', '.join(record.languages)}")
        if record.currencies:
            lines.append(f"💰 Currencies: {', '.join(record.currencies)}")

    if _is_known(record.national_animal):
        lines.append(f"🐾 National Animal: {record.national_animal}")
    if _is_known(record.national_flower):
        lines.append(f"🌸 National Flower: {record.national_flower}")
    if detailed and _is_known(record.national_bird):
        lines.append(f"🦜 National Bird: {record.national_bird}")

    return "\n".join(lines)
