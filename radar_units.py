import math
import re
import unicodedata
from decimal import Decimal, ROUND_HALF_UP

# ============================================================
# Constants
# ============================================================

KMH_PER_MPH = 1.60934
MPH_PER_MS = 2.23694
YARDS_PER_METER = 1.09361
FEET_PER_YARD = 3.0

DRIVER_TOKENS = ("driver", "1w", "w1", "bois 1", "1 bois", "wood 1", "1 wood")

# Placeholder cells produced by radar exports for "no reading"
EMPTY_MARKERS = ("", "-", "—", "â€”")

_DIRECTIONAL_RE = re.compile(r"^(-?\d+(?:[.,]\d+)?)([LR])$", re.IGNORECASE)
_NON_NUMERIC_RE = re.compile(r"[^\d.-]")


# ============================================================
# Tokens
# ============================================================

def normalize_token(value):
    """Lowercase, strip accents, collapse everything non-alphanumeric to spaces."""
    text = unicodedata.normalize("NFD", str(value or "").lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return re.sub(r"[^a-z0-9]+", " ", text).strip()


def normalize_unit(unit):
    if unit is None:
        return None
    cleaned = str(unit).strip().lower()
    return cleaned or None


def is_driver_club(club) -> bool:
    if not club:
        return False
    normalized = normalize_token(club)
    return any(token in normalized for token in DRIVER_TOKENS)


def is_finite_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


# ============================================================
# Unit conversion
# ============================================================

def to_mph(value, unit=None):
    """Convert a speed to mph. Unknown or missing units are assumed to be mph."""
    if not is_finite_number(value):
        return None
    normalized = normalize_unit(unit)
    if not normalized or "mph" in normalized:
        return value
    if "km" in normalized:
        return value / KMH_PER_MPH
    if "m/s" in normalized or "mps" in normalized:
        return value * MPH_PER_MS
    return value


def to_yards(value, unit=None):
    """Convert a distance to yards. Unknown or missing units are assumed to be yards."""
    if not is_finite_number(value):
        return None
    normalized = normalize_unit(unit)
    if not normalized or "yd" in normalized or "yard" in normalized:
        return value
    if normalized in ("ft", "feet", "foot") or "ft" in normalized:
        return value / FEET_PER_YARD
    if "m" in normalized:
        return value * YARDS_PER_METER
    return value


# ============================================================
# Formatting
# ============================================================

def to_fixed(value, digits=1) -> str:
    """
    Fixed-point text of a float, rounding half away from zero on the exact
    binary value. Output does not depend on the host locale.
    """
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def round_half_up(value) -> int:
    return int(math.floor(value + 0.5))


def number_text(text) -> str:
    """'72.0' -> '72', '5.20' -> '5.2', '-0.0' -> '0'."""
    number = float(text)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def format_tick_value(value, unit=None) -> str:
    if not is_finite_number(value):
        return "-"
    rounded = to_fixed(value, 0 if abs(value) >= 100 else 1)
    if rounded.endswith(".0"):
        rounded = rounded[:-2]
    return f"{rounded} {unit}" if unit else rounded


def format_insight_value(value, unit=None, digits=1):
    if not is_finite_number(value):
        return None
    rounded = number_text(to_fixed(value, digits))
    return f"{rounded} {unit}" if unit else rounded


def format_highlight_value(value, digits=1):
    if not is_finite_number(value):
        return None
    return number_text(to_fixed(value, digits))


def format_signed(value, digits=1) -> str:
    sign = "+" if value >= 0 else ""
    return f"{sign}{to_fixed(value, digits)}"


def format_delta(value, unit) -> str:
    return f"{format_signed(value, 1)} {unit}"


# ============================================================
# Raw cell parsing
# ============================================================

def _parse_directional(text):
    match = _DIRECTIONAL_RE.match(text)
    if not match:
        return None
    number = float(match.group(1).replace(",", "."))
    return -number if match.group(2).upper() == "L" else number


def parse_value(raw):
    """
    Parse one raw export cell.

    - numbers pass through when finite (NaN / inf become None)
    - "12.4L" / "12.4R" become -12.4 / 12.4 (left is negative)
    - "1,45" and "152 m" are read as numbers
    - placeholders ("-", empty) become None
    - any other text is returned trimmed, untouched
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return raw if math.isfinite(raw) else None
    if not isinstance(raw, str):
        return raw

    text = raw.strip()
    if text in EMPTY_MARKERS:
        return None

    directional = _parse_directional(text)
    if directional is not None:
        return directional

    cleaned = _NON_NUMERIC_RE.sub("", text.replace(",", "."))
    if cleaned and cleaned not in ("-", ".", "-."):
        try:
            number = float(cleaned)
        except ValueError:
            return text
        if math.isfinite(number):
            return number
    return text
