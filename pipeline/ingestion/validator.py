"""
Validator for raw city pollution records.

Decides whether a raw upstream record is a plausible city and normalizes it:
- Name is a real-looking place name (not a number, placeholder, region,
  bare geographic feature ...)
- Pollution value is numeric and within physical bounds
- Country is checked against the ISO-3166 alpha-2 list when it looks like a code

Country validity is advisory unless ENFORCE_COUNTRY_VALIDATION is set.
"""

import logging
import math
import os
import re
import string
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple, Union

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

ENFORCE_COUNTRY_VALIDATION = os.environ.get("ENFORCE_COUNTRY_VALIDATION", "false").lower() in ("1", "true", "yes")

NAME_MAX_LENGTH = 100
COUNTRY_MIN_LENGTH = 2
COUNTRY_MAX_LENGTH = 100

# Physical bounds for the pollution index (inclusive)
POLLUTION_MIN = 0.0
POLLUTION_MAX = 1000.0

PLACEHOLDER_TOKENS = {"test", "sample", "dummy", "fake", "n/a", "null", "undefined"}
ADMINISTRATIVE_SUFFIXES = ("region", "province", "state", "county", "district")

# Words that show up in monitoring-station names but rarely in a bare city name
SUSPICIOUS_WORDS = (
    "ocean", "sea", "river", "lake", "mountain", "desert", "forest",
    "airport", "station", "port", "base", "facility",
    "region", "area", "zone", "sector", "district",
)

VALID_COUNTRY_CODES = frozenset("""
    AD AE AF AG AI AL AM AO AQ AR AS AT AU AW AX AZ BA BB BD BE BF BG BH BI
    BJ BL BM BN BO BQ BR BS BT BV BW BY BZ CA CC CD CF CG CH CI CK CL CM CN
    CO CR CU CV CW CX CY CZ DE DJ DK DM DO DZ EC EE EG EH ER ES ET FI FJ FK
    FM FO FR GA GB GD GE GF GG GH GI GL GM GN GP GQ GR GS GT GU GW GY HK HM
    HN HR HT HU ID IE IL IM IN IO IQ IR IS IT JE JM JO JP KE KG KH KI KM KN
    KP KR KW KY KZ LA LB LC LI LK LR LS LT LU LV LY MA MC MD ME MF MG MH MK
    ML MM MN MO MP MQ MR MS MT MU MV MW MX MY MZ NA NC NE NF NG NI NL NO NP
    NR NU NZ OM PA PE PF PG PH PK PL PM PN PR PS PT PW PY QA RE RO RS RU RW
    SA SB SC SD SE SG SH SI SJ SK SL SM SN SO SR SS ST SV SX SY SZ TC TD TF
    TG TH TJ TK TL TM TN TO TR TT TV TW TZ UA UG UM US UY UZ VA VC VE VG VI
    VN VU WF WS YE YT ZA ZM ZW
""".split())

_LETTER_RE = re.compile(r"[A-Za-z]")
_DIGIT_RE = re.compile(r"[0-9]")
_COUNTRY_CODE_RE = re.compile(r"^[A-Z]{2}$")
_PUNCTUATION = frozenset(string.punctuation)


# ── Rejection patterns ────────────────────────────────────────────────────────
# Evaluated in order against the trimmed value; the first match names the reason.

def _all_digits(value: str) -> bool:
    return bool(re.fullmatch(r"[0-9]+", value))


def _no_letters(value: str) -> bool:
    return _LETTER_RE.search(value) is None


def _whitespace_only(value: str) -> bool:
    return value.strip() == ""


def _placeholder_token(value: str) -> bool:
    return value.lower() in PLACEHOLDER_TOKENS


def _punctuation_only(value: str) -> bool:
    return bool(value) and all(ch in _PUNCTUATION for ch in value)


def _administrative_suffix(value: str) -> bool:
    return value.lower().endswith(ADMINISTRATIVE_SUFFIXES)


REJECTION_PATTERNS: List[Tuple[str, Callable[[str], bool]]] = [
    ("all_digits", _all_digits),
    ("no_letters", _no_letters),
    ("whitespace_only", _whitespace_only),
    ("placeholder_token", _placeholder_token),
    ("punctuation_only", _punctuation_only),
    ("administrative_suffix", _administrative_suffix),
]


def match_rejection_pattern(value: str) -> Optional[str]:
    """Return the name of the first rejection pattern `value` matches, or None."""
    for name, predicate in REJECTION_PATTERNS:
        if predicate(value):
            return name
    return None


# ── Data model ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NormalizedCity:
    """A raw record that passed every check, in canonical field form."""
    name: str
    country: str
    pollution: float


@dataclass(frozen=True)
class Rejected:
    """Why a raw record was dropped."""
    reason: str

    def __str__(self) -> str:
        return f"Rejected: {self.reason}"


ClassificationResult = Union[NormalizedCity, Rejected]


# ── Field predicates ──────────────────────────────────────────────────────────

def city_name_rejection(name: Any) -> Optional[str]:
    """
    Check a candidate city name.

    Returns:
        None if the name is acceptable, otherwise a short reason string.
    """
    if not isinstance(name, str):
        return "name_not_string"

    trimmed = name.strip()
    if not 1 <= len(trimmed) <= NAME_MAX_LENGTH:
        return "name_length"

    pattern = match_rejection_pattern(trimmed)
    if pattern:
        return pattern

    # A single bare token like "Airport" or "Riverside" is a feature, not a city;
    # compound names like "Port Louis" are kept.
    lower = trimmed.lower()
    if len(trimmed.split()) == 1 and any(word in lower for word in SUSPICIOUS_WORDS):
        return "suspicious_word"

    letters = len(_LETTER_RE.findall(trimmed))
    digits = len(_DIGIT_RE.findall(trimmed))
    if letters == 0:
        return "no_letters"
    if digits > letters:
        return "mostly_digits"

    return None


def is_valid_city_name(name: Any) -> bool:
    return city_name_rejection(name) is None


def is_valid_country(country: Any) -> bool:
    """Validate a country name or ISO-3166 alpha-2 code."""
    if not isinstance(country, str):
        return False

    trimmed = country.strip()
    if not COUNTRY_MIN_LENGTH <= len(trimmed) <= COUNTRY_MAX_LENGTH:
        return False

    if match_rejection_pattern(trimmed):
        return False

    if len(trimmed) == 2 and _COUNTRY_CODE_RE.match(trimmed):
        return trimmed in VALID_COUNTRY_CODES

    return _LETTER_RE.search(trimmed) is not None


def parse_pollution(value: Any) -> Optional[float]:
    """Coerce a pollution value to float, returning None if it is not a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def is_valid_pollution_value(value: Any) -> bool:
    parsed = parse_pollution(value)
    if parsed is None:
        return False
    return POLLUTION_MIN <= parsed <= POLLUTION_MAX


# ── Record-level gate ─────────────────────────────────────────────────────────

def normalize_city(record: dict) -> NormalizedCity:
    """Trim name and country and parse pollution. No other transformation."""
    country = record.get("country")
    return NormalizedCity(
        name=str(record["name"]).strip(),
        country=str(country).strip() if country is not None else "",
        pollution=parse_pollution(record["pollution"]),
    )


def classify(record: Any, enforce_country: Optional[bool] = None) -> ClassificationResult:
    """
    Classify a single raw record.

    Args:
        record: Raw upstream record (expected to be a dict).
        enforce_country: Reject records whose country fails validation.
                         Defaults to ENFORCE_COUNTRY_VALIDATION.

    Returns:
        NormalizedCity if the record is accepted, otherwise Rejected.
    """
    if enforce_country is None:
        enforce_country = ENFORCE_COUNTRY_VALIDATION

    if not isinstance(record, dict):
        return Rejected("not_a_record")

    name = record.get("name")
    pollution = record.get("pollution")
    if not name:
        return Rejected("missing_name")
    if pollution is None:
        return Rejected("missing_pollution")

    reason = city_name_rejection(name)
    if reason:
        return Rejected(reason)

    if not is_valid_pollution_value(pollution):
        return Rejected("pollution_out_of_range")

    if enforce_country and not is_valid_country(record.get("country")):
        return Rejected("invalid_country")

    return normalize_city(record)


def filter_valid_cities(raw_records: Any, enforce_country: Optional[bool] = None) -> List[NormalizedCity]:
    """
    Classify a batch of raw records, keeping survivors in input order.

    Args:
        raw_records: List of raw upstream records.
        enforce_country: See classify().

    Returns:
        List of NormalizedCity in their original relative order.
    """
    if not isinstance(raw_records, list):
        logger.warning("Invalid input: expected list, got %s", type(raw_records).__name__)
        return []

    valid: List[NormalizedCity] = []
    filtered = 0
    for record in raw_records:
        result = classify(record, enforce_country=enforce_country)
        if isinstance(result, Rejected):
            filtered += 1
            logger.debug("Filtered out invalid entry (%s): %r", result.reason, record)
            continue
        valid.append(result)

    logger.info("Filtered out %d invalid entries, kept %d valid cities", filtered, len(valid))
    return valid
