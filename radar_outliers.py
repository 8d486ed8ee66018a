import logging
import math

from radar_stats import percentile
from radar_units import is_finite_number, number_text, round_half_up

logger = logging.getLogger(__name__)

# ============================================================
# Constants
# ============================================================

OUTLIER_METHOD = "iqr"
IQR_FENCE = 1.5
HIGHLIGHT_LIMIT = 3

WORST_SHARE = 0.1
TOP_STRIKE_SHARE = 0.2


# ============================================================
# Flag ranking
# ============================================================

def _parse_shot_index(key):
    try:
        value = float(key)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return int(value) if value.is_integer() else value


def rank_outlier_shots(flags):
    """
    Rank shot indices by number of outlier flags, most flagged first.

    Ties keep ascending shot order. Keys that are not positive numbers are
    ignored; a flag value that is not a list counts once.
    """
    ranked = []
    for key, reasons in (flags or {}).items():
        shot_index = _parse_shot_index(key)
        if shot_index is None:
            continue
        count = len(reasons) if isinstance(reasons, (list, tuple)) else 1
        ranked.append((count, shot_index))

    ranked.sort(key=lambda entry: (-entry[0], entry[1]))
    return [shot_index for _, shot_index in ranked]


def outlier_shot_set(flags, limit=HIGHLIGHT_LIMIT):
    """Top flagged shots as a set, used to highlight points on every chart."""
    return frozenset(rank_outlier_shots(flags)[:limit])


# ============================================================
# IQR flagging
# ============================================================

def _entries(shots, key):
    return [
        (shot, shot.get(key))
        for shot in shots
        if is_finite_number(shot.get(key))
    ]


def _valid_index(shot):
    shot_index = shot.get("shot_index")
    if is_finite_number(shot_index) and shot_index > 0:
        return shot_index
    return None


def _take_largest(entries, share):
    if not entries:
        return []
    ordered = sorted(entries, key=lambda entry: -entry[1])
    count = max(1, round_half_up(len(entries) * share))
    return [shot_index for shot_index, _ in ordered[:count]]


def compute_outliers(shots, metric_keys):
    """
    Flag shots outside the Tukey fences (Q1 - 1.5 IQR, Q3 + 1.5 IQR) per metric.

    Also lists the worst 10 % of shots by distance-from-target and radial
    miss, and the best 20 % by strike score.
    """
    flags = {}
    by_metric = {}

    for key in metric_keys:
        entries = _entries(shots, key)
        values = [value for _, value in entries]
        q1 = percentile(values, 0.25)
        q3 = percentile(values, 0.75)
        if q1 is None or q3 is None:
            continue
        iqr = q3 - q1
        lower = q1 - IQR_FENCE * iqr
        upper = q3 + IQR_FENCE * iqr

        flagged = []
        for shot, value in entries:
            if lower <= value <= upper:
                continue
            shot_index = _valid_index(shot)
            if shot_index is None:
                continue
            flagged.append(shot_index)
            flags.setdefault(number_text(shot_index), []).append(key)
        by_metric[key] = flagged
        if flagged:
            logger.debug("Outliers on %s: %s", key, flagged)

    def indexed(key, use_abs):
        return [
            (_valid_index(shot) or 0, abs(value) if use_abs else value)
            for shot, value in _entries(shots, key)
        ]

    return {
        "method": OUTLIER_METHOD,
        "byMetric": by_metric,
        "flags": flags,
        "worst10_distance": _take_largest(indexed("distance_from_target", True), WORST_SHARE),
        "worst10_dispersion": _take_largest(indexed("radial_miss", True), WORST_SHARE),
        "top20_strikes": _take_largest(indexed("strike_score", False), TOP_STRIKE_SHARE),
    }
