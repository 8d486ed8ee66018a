import logging
import re

from radar_units import (
    format_delta,
    format_signed,
    is_driver_club,
    is_finite_number,
    round_half_up,
    to_mph,
    to_yards,
)

logger = logging.getLogger(__name__)

# ============================================================
# PGA Tour averages
# ============================================================

# club, club_speed_mph, attack_angle_deg, ball_speed_mph, smash_factor,
# launch_angle_deg, spin_rate_rpm, max_height_yds, land_angle_deg, carry_yds
PGA_BENCHMARK_TABLE = [
    ("Driver", 113, -1.3, 167, 1.48, 10.9, 2686, 32, 38, 275),
    ("3 Iron",  98, -3.1, 142, 1.45, 10.4, 4630, 27, 46, 212),
    ("4 Iron",  96, -3.4, 137, 1.43, 11.0, 4836, 28, 48, 203),
    ("5 Iron",  94, -3.7, 132, 1.41, 12.1, 5361, 31, 49, 194),
    ("6 Iron",  92, -4.1, 127, 1.38, 14.1, 6231, 30, 50, 183),
    ("7 Iron",  90, -4.3, 120, 1.33, 16.3, 7097, 32, 50, 172),
    ("8 Iron",  87, -4.5, 115, 1.32, 18.1, 7998, 31, 50, 160),
    ("9 Iron",  85, -4.7, 109, 1.28, 20.4, 8647, 30, 51, 148),
    ("PW",      83, -5.0, 102, 1.23, 24.2, 9304, 29, 52, 136),
]

BENCHMARK_FIELDS = (
    "club",
    "club_speed_mph",
    "attack_angle_deg",
    "ball_speed_mph",
    "smash_factor",
    "launch_angle_deg",
    "spin_rate_rpm",
    "max_height_yds",
    "land_angle_deg",
    "carry_yds",
)

PGA_BENCHMARKS = [dict(zip(BENCHMARK_FIELDS, row)) for row in PGA_BENCHMARK_TABLE]

_WOOD_ONE_RE = re.compile(r"(bois|wood)\s*1|1\s*(bois|wood)")
_IRON_RE = re.compile(r"([3-9])\s?iron")


# ============================================================
# Lookup
# ============================================================

def _normalize_club_name(value):
    return re.sub(r"[^a-z0-9]+", " ", (value or "").lower()).strip()


def _by_name(club):
    for entry in PGA_BENCHMARKS:
        if entry["club"] == club:
            return entry
    return None


def find_pga_benchmark(club):
    """
    Match a free-text club name ("Driver", "Bois 1", "7 iron", "PW") to a
    PGA benchmark row. Returns None when the club is unknown.
    """
    normalized = _normalize_club_name(club)
    if not normalized:
        return None

    for entry in PGA_BENCHMARKS:
        if _normalize_club_name(entry["club"]) in normalized:
            return entry

    if is_driver_club(normalized) or _WOOD_ONE_RE.search(normalized):
        return _by_name("Driver")
    if "pw" in normalized or "pitch" in normalized:
        return _by_name("PW")

    match = _IRON_RE.search(normalized)
    if match:
        return _by_name(f"{match.group(1)} Iron")

    logger.debug("No PGA benchmark for club %r", club)
    return None


def benchmark_club_hint(answers, meta_club):
    """The questionnaire club answer wins unless it is "mixte"; otherwise the session club."""
    answer = (answers or {}).get("club")
    if isinstance(answer, str) and answer.strip() and answer.lower() != "mixte":
        return answer
    return meta_club


# ============================================================
# Deltas & comparisons
# ============================================================

def _stat_mean(global_stats, key):
    value = ((global_stats or {}).get(key) or {}).get("mean")
    return value if is_finite_number(value) else None


def pga_deltas(global_stats, units, benchmark):
    """
    Signed session-minus-PGA deltas in benchmark units (mph, yards, rpm, deg).

    Speeds and distances are converted from the session units first. Metrics
    without a session mean are left out.
    """
    if not benchmark:
        return {}
    units = units or {}

    session = {
        "club_speed": to_mph(_stat_mean(global_stats, "club_speed"), units.get("club_speed")),
        "ball_speed": to_mph(_stat_mean(global_stats, "ball_speed"), units.get("ball_speed")),
        "smash": _stat_mean(global_stats, "smash"),
        "carry": to_yards(_stat_mean(global_stats, "carry"), units.get("carry")),
        "spin": _stat_mean(global_stats, "spin_rpm"),
        "launch": _stat_mean(global_stats, "launch_v"),
        "height": to_yards(_stat_mean(global_stats, "height"), units.get("height")),
        "descent": _stat_mean(global_stats, "descent_v"),
    }
    reference = {
        "club_speed": benchmark["club_speed_mph"],
        "ball_speed": benchmark["ball_speed_mph"],
        "smash": benchmark["smash_factor"],
        "carry": benchmark["carry_yds"],
        "spin": benchmark["spin_rate_rpm"],
        "launch": benchmark["launch_angle_deg"],
        "height": benchmark["max_height_yds"],
        "descent": benchmark["land_angle_deg"],
    }

    return {
        key: value - reference[key]
        for key, value in session.items()
        if value is not None
    }


def pga_comparisons(deltas, benchmark):
    """French one-liners per session chart key ("PGA Driver: carry -12.0 yds")."""
    if not benchmark or not deltas:
        return {}
    prefix = f"PGA {benchmark['club']}"
    comparisons = {}

    speed_diffs = []
    if "club_speed" in deltas:
        speed_diffs.append(("vitesse club", deltas["club_speed"], "mph"))
    if "ball_speed" in deltas:
        speed_diffs.append(("vitesse balle", deltas["ball_speed"], "mph"))
    if "smash" in deltas:
        speed_diffs.append(("smash", deltas["smash"], ""))
    if speed_diffs:
        top = sorted(speed_diffs, key=lambda entry: -abs(entry[1]))[:2]
        parts = [
            f"{label} {format_delta(delta, unit)}" if unit else f"{label} {format_signed(delta, 2)}"
            for label, delta, unit in top
        ]
        comparisons["speeds"] = f"{prefix}: {', '.join(parts)}"

    if "carry" in deltas:
        comparisons["carryTotal"] = f"{prefix}: carry {format_delta(deltas['carry'], 'yds')}"
        comparisons["dispersion"] = comparisons["carryTotal"]

    if "spin" in deltas:
        delta = deltas["spin"]
        sign = "+" if delta >= 0 else ""
        comparisons["spinCarry"] = f"{prefix}: spin {sign}{round_half_up(delta)} rpm"

    if "launch" in deltas:
        comparisons["launch"] = f"{prefix}: launch {format_signed(deltas['launch'], 1)} deg"
    if "height" in deltas:
        comparisons["height"] = f"{prefix}: hauteur {format_delta(deltas['height'], 'yds')}"
    if "descent" in deltas:
        comparisons["descent"] = (
            f"{prefix}: angle atterrissage {format_signed(deltas['descent'], 1)} deg"
        )
    if "smash" in deltas:
        comparisons["smash"] = f"{prefix}: smash {format_signed(deltas['smash'], 2)}"

    return comparisons
