"""Sanitizing and normalizing values read off documents"""

import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Set

# Currency markers the extractor leaves in amount strings
_AMOUNT_NOISE = re.compile(r"(THB|USD|EUR|บาท|[฿$€£¥,\s_])", re.IGNORECASE)

# Legal-entity tokens that carry no identity ("Co., Ltd.", "บริษัท ... จำกัด")
LEGAL_SUFFIX_TOKENS = frozenset(
    {
        "co",
        "company",
        "ltd",
        "limited",
        "inc",
        "incorporated",
        "corp",
        "corporation",
        "llc",
        "plc",
        "pcl",
        "public",
        "บริษัท",
        "จำกัด",
        "มหาชน",
        "บจก",
        "หจก",
        "ห้างหุ้นส่วนจำกัด",
    }
)

# Anything that is not a word character or Thai script separates tokens
_NAME_SEPARATORS = re.compile(r"[^\w\u0E00-\u0E7F]+|_+")

_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ][\d:.]+(?:Z|[+-]\d{2}:?\d{2})?)?$")
_DMY_DATE = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})$")

# Buddhist era years are Gregorian + 543
BUDDHIST_ERA_OFFSET = 543


def parse_amount(value: Any) -> Optional[float]:
    """
    Parse a money amount from the extractor.

    Strips currency symbols/codes and thousands separators. Anything that
    still does not parse (or is not finite) is treated as absent: None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _AMOUNT_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None

    return number if math.isfinite(number) else None


def parse_date(value: Any) -> Optional[date]:
    """Parse ISO or dd/mm/yyyy dates; Buddhist-era years are converted"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
    else:
        match = _DMY_DATE.match(text)
        if not match:
            return None
        day, month, year = (int(g) for g in match.groups())

    # BE leap days (29/02/2567) are only valid after conversion
    if year > 2400:
        year -= BUDDHIST_ERA_OFFSET
    try:
        return date(year, month, day)
    except ValueError:
        return None


def digits_only(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"\D", "", str(value))


def name_tokens(name: Optional[str]) -> Set[str]:
    """Lower-case, drop punctuation and legal suffixes, drop 1-char tokens"""
    if not name:
        return set()
    tokens = _NAME_SEPARATORS.sub(" ", name.lower()).split()
    return {t for t in tokens if t not in LEGAL_SUFFIX_TOKENS and len(t) > 1}


def name_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Jaccard similarity of normalized name tokens (0.0 if either is empty)"""
    tokens_a = name_tokens(a)
    tokens_b = name_tokens(b)
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def text_key(value: Any) -> Optional[str]:
    """Equivalence key for free text: trimmed, case-insensitive"""
    if value is None:
        return None
    text = str(value).strip()
    return text.casefold() if text else None
