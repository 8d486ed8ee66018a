import logging
import re

import pandas as pd

from radar_charts import build_charts_data
from radar_columns import build_column_map, column_unit
from radar_config import build_radar_config
from radar_insights import base_insights, payload_insight
from radar_outliers import IQR_FENCE, compute_outliers
from radar_stats import (
    correlation_matrix,
    fit_linear_model,
    mean,
    median,
    percentile,
    std,
    summary_stats,
)
from radar_units import is_finite_number, number_text, parse_value, to_fixed

logger = logging.getLogger(__name__)

ANALYTICS_VERSION = "radar-analytics-v1"

# ============================================================
# Field tables
# ============================================================

# Canonical numeric fields read from each shot row
SHOT_FIELDS = [
    "carry",
    "total",
    "roll",
    "lateral",
    "curve",
    "club_speed",
    "ball_speed",
    "spin_rpm",
    "spin_axis",
    "spin_loft",
    "smash",
    "launch_v",
    "launch_h",
    "descent_v",
    "height",
    "time",
    "path",
    "ftp",
    "ftt",
    "dloft",
    "aoa",
    "low_point",
    "swing_plane_v",
    "swing_plane_h",
    "impact_lat",
    "impact_vert",
]

STAT_KEYS = [
    "carry",
    "total",
    "roll",
    "lateral",
    "curve",
    "club_speed",
    "ball_speed",
    "spin_rpm",
    "smash",
    "launch_v",
    "launch_h",
    "descent_v",
    "height",
    "time",
    "path",
    "ftp",
    "aoa",
    "low_point",
    "spin_axis",
    "spin_loft",
    "impact_lat",
    "impact_vert",
]

CORRELATION_KEYS = [
    "carry",
    "total",
    "roll",
    "lateral",
    "club_speed",
    "ball_speed",
    "spin_rpm",
    "smash",
    "launch_v",
    "launch_h",
    "path",
    "ftp",
    "aoa",
    "spin_axis",
    "impact_lat",
    "impact_vert",
]

OUTLIER_KEYS = ["carry", "lateral", "smash", "ball_speed"]

# model name, target, features
MODEL_TABLE = [
    ("regressionDistance", "carry", ["ball_speed", "launch_v", "spin_rpm"]),
    ("regressionLateral", "lateral", ["launch_h", "ftp", "spin_axis", "impact_lat"]),
]

# segment key, derived field
SEGMENT_TABLE = [
    ("byShotType", "shot_type"),
    ("byLeftRight", "left_right"),
    ("bySmashBin", "smash_bin"),
    ("byImpactZone", "impact_zone"),
    ("byAbsFtpQuantile", "abs_ftp_bin"),
    ("byLaunchVBin", "launch_v_bin"),
    ("byPeriodTertile", "period_tertile"),
]

MIN_TARGET_CARRIES = 6
CARRY_OUTLIER_SHARE = 0.1

_SUMMARY_ROW_RE = re.compile(r"avg|dev")
_INDEX_DIGITS_RE = re.compile(r"[^\d-]")


# ============================================================
# Shot normalisation
# ============================================================

def parse_shot_index(raw):
    """
    Positive shot index of a raw row, or None.

    Export summary rows ("Avg", "Dev") and rows without a usable index are
    rejected; string indices keep their digits only ("#12" -> 12).
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return raw if is_finite_number(raw) and raw > 0 else None
    text = str(raw if raw is not None else "").strip().lower()
    if _SUMMARY_ROW_RE.search(text):
        return None
    digits = _INDEX_DIGITS_RE.sub("", text)
    try:
        value = int(digits)
    except ValueError:
        return None
    return value if value > 0 else None


def session_rows(shots):
    """Raw shot rows with a positive index, summary rows dropped."""
    return [shot for shot in shots if parse_shot_index(shot.get("shot_index")) is not None]


def normalize_shots(shots, column_map):
    normalized = []
    dropped = 0
    type_column = column_map.get("shot_type")

    for shot in shots:
        shot_index = parse_shot_index(shot.get("shot_index"))
        if shot_index is None:
            dropped += 1
            continue
        row = {"shot_index": shot_index}

        if isinstance(shot.get("shot_type"), str):
            row["shot_type"] = shot["shot_type"]
        elif type_column is not None:
            raw_type = shot.get(type_column.get("key"))
            if isinstance(raw_type, str) and raw_type.strip():
                row["shot_type"] = raw_type.strip()

        for field in SHOT_FIELDS:
            column = column_map.get(field)
            if column is None:
                continue
            value = parse_value(shot.get(column.get("key")))
            if is_finite_number(value):
                row[field] = value

        normalized.append(row)

    if dropped:
        logger.debug("Dropped %d summary or unindexed rows", dropped)
    return normalized


# ============================================================
# Derived fields
# ============================================================

def _field_values(shots, key, transform=None):
    values = [shot.get(key) for shot in shots if is_finite_number(shot.get(key))]
    if transform is not None:
        values = [transform(v) for v in values]
    return values


def carry_target(carries):
    """Mean carry, or the median when more than 10 % of carries are IQR outliers."""
    if not carries:
        return None
    outlier_ratio = 0.0
    if len(carries) >= MIN_TARGET_CARRIES:
        q1 = percentile(carries, 0.25)
        q3 = percentile(carries, 0.75)
        iqr = q3 - q1
        lower = q1 - IQR_FENCE * iqr
        upper = q3 + IQR_FENCE * iqr
        outliers = [v for v in carries if v < lower or v > upper]
        outlier_ratio = len(outliers) / len(carries)
    if outlier_ratio > CARRY_OUTLIER_SHARE:
        return median(carries)
    return mean(carries)


def quantile_thresholds(values, quantiles):
    """Split points taken at floor((n - 1) * q) of the sorted values."""
    if not values:
        return 0, 0
    ordered = sorted(values)
    last = len(ordered) - 1
    return ordered[int(last * quantiles[0])], ordered[int(last * quantiles[1])]


def assign_bin(value, thresholds):
    if not is_finite_number(value):
        return None
    if value <= thresholds[0]:
        return "low"
    if value <= thresholds[1]:
        return "mid"
    return "high"


def impact_zone(impact_lat, impact_vert, box):
    if not is_finite_number(impact_lat) or not is_finite_number(impact_vert):
        return None
    if abs(impact_lat) <= box["lat"]:
        lat_zone = "center"
    else:
        lat_zone = "toe" if impact_lat > 0 else "heel"
    if abs(impact_vert) <= box["vert"]:
        vert_zone = "center"
    else:
        vert_zone = "high" if impact_vert > 0 else "low"
    return f"{lat_zone}-{vert_zone}"


def period_tertile(shot_index, shot_count):
    if shot_index <= shot_count / 3:
        return "start"
    if shot_index <= shot_count * 2 / 3:
        return "mid"
    return "end"


def _abs_or_none(value):
    return abs(value) if is_finite_number(value) else None


def derive_shots(shots, thresholds):
    carries = _field_values(shots, "carry")
    target = carry_target(carries)
    quantiles = thresholds["bins"]["quantiles"]
    box = thresholds["impactCenterBox"]

    smash_q = quantile_thresholds(_field_values(shots, "smash"), quantiles)
    ball_q = quantile_thresholds(_field_values(shots, "ball_speed"), quantiles)
    launch_q = quantile_thresholds(_field_values(shots, "launch_v"), quantiles)
    ftp_q = quantile_thresholds(_field_values(shots, "ftp", abs), quantiles)

    derived = []
    for shot in shots:
        carry = shot.get("carry")
        lateral = shot.get("lateral")
        from_target = carry - target if is_finite_number(carry) and target is not None else None
        radial = None
        if is_finite_number(lateral) and from_target is not None:
            radial = (lateral ** 2 + from_target ** 2) ** 0.5
        abs_ftp = _abs_or_none(shot.get("ftp"))
        if is_finite_number(lateral):
            left_right = "L" if lateral < 0 else "R"
        else:
            left_right = None
        strike = shot.get("smash") if is_finite_number(shot.get("smash")) else shot.get("ball_speed")

        row = dict(shot)
        row.update({
            "carry_target": target,
            "distance_from_target": from_target,
            "radial_miss": radial,
            "abs_lateral": _abs_or_none(lateral),
            "abs_ftp": abs_ftp,
            "abs_launch_h": _abs_or_none(shot.get("launch_h")),
            "abs_spin_axis": _abs_or_none(shot.get("spin_axis")),
            "left_right": left_right,
            "smash_bin": assign_bin(shot.get("smash"), smash_q),
            "ball_speed_bin": assign_bin(shot.get("ball_speed"), ball_q),
            "launch_v_bin": assign_bin(shot.get("launch_v"), launch_q),
            "abs_ftp_bin": assign_bin(abs_ftp, ftp_q),
            "period_tertile": period_tertile(shot["shot_index"], len(shots)),
            "impact_zone": impact_zone(shot.get("impact_lat"), shot.get("impact_vert"), box),
            "strike_score": strike if is_finite_number(strike) else None,
        })
        derived.append(row)
    return derived, target


def corridor_percent(values, threshold):
    """Share of |values| within the threshold, in percent with one decimal."""
    if not values:
        return None
    inside = [v for v in values if abs(v) <= threshold]
    return float(to_fixed(len(inside) / len(values) * 100, 1))


# ============================================================
# Segments
# ============================================================

def _group_values(group, key):
    if key not in group.columns:
        return []
    return [v for v in group[key].tolist() if is_finite_number(v)]


def segment_summary(bucket, group, lat_threshold, dist_threshold):
    carry = _group_values(group, "carry")
    total = _group_values(group, "total")
    lateral = _group_values(group, "lateral")
    from_target = _group_values(group, "distance_from_target")
    return {
        "key": bucket,
        "count": int(len(group)),
        "carry_mean": mean(carry),
        "carry_std": std(carry),
        "total_mean": mean(total),
        "total_std": std(total),
        "lateral_mean": mean(lateral),
        "lateral_std": std(lateral),
        "smash_mean": mean(_group_values(group, "smash")),
        "rpm_mean": mean(_group_values(group, "spin_rpm")),
        "launch_v_mean": mean(_group_values(group, "launch_v")),
        "ftp_mean": mean(_group_values(group, "ftp")),
        "path_mean": mean(_group_values(group, "path")),
        "withinLat10": corridor_percent(lateral, lat_threshold),
        "withinDist10": corridor_percent(from_target, dist_threshold),
    }


def build_segments(frame, lat_threshold=10, dist_threshold=10):
    """Per-bucket summaries for each segment field, buckets in first-seen order."""
    segments = {}
    for key, field in SEGMENT_TABLE:
        summaries = []
        if not frame.empty and field in frame.columns:
            labels = frame[field].where(
                frame[field].map(lambda v: isinstance(v, str) and bool(v.strip()))
            )
            for bucket, group in frame.groupby(labels, sort=False):
                summaries.append(segment_summary(bucket, group, lat_threshold, dist_threshold))
        segments[key] = {"key": key, "summaries": summaries}
    return segments


# ============================================================
# Summary
# ============================================================

def build_summary(global_stats, target):
    carry = global_stats.get("carry") or {}
    if not carry.get("count"):
        return None
    pieces = []
    if target:
        pieces.append(f"Carry moyen cible {to_fixed(target, 1)}.")
    if carry.get("mean") and carry.get("std"):
        consistency = float(to_fixed(carry["std"] / abs(carry["mean"]) * 100, 1))
        if consistency:
            pieces.append(f"Régularité carry (CV) {number_text(consistency)}%.")
    return " ".join(pieces)


# ============================================================
# Entry point
# ============================================================

def compute_analytics(columns, shots, config=None, metadata=None):
    """
    Full analytics snapshot for one radar session.

    Columns are mapped to canonical fields, summary rows are dropped and
    every cell is parsed before any statistic is computed. The result holds
    global stats, corridors, segments, outliers, correlations, regression
    models, every registered chart payload and the base insights.
    """
    thresholds = build_radar_config(config)["thresholds"]
    metadata = metadata or {}

    column_map = build_column_map(columns)
    units = {field: column_unit(column) for field, column in column_map.items()}

    normalized = normalize_shots(shots, column_map)
    derived, target = derive_shots(normalized, thresholds)

    units["radial_miss"] = units.get("carry")
    units["distance_from_target"] = units.get("carry")
    units["abs_lateral"] = units.get("lateral")

    lat_thresholds = thresholds["latCorridorMeters"]
    dist_thresholds = thresholds["distCorridorMeters"]
    lat_values = _field_values(derived, "lateral")
    dist_values = _field_values(derived, "distance_from_target")
    corridors = {
        "withinLat5": corridor_percent(lat_values, lat_thresholds[0]),
        "withinLat10": corridor_percent(lat_values, lat_thresholds[1]),
        "withinDist5": corridor_percent(dist_values, dist_thresholds[0]),
        "withinDist10": corridor_percent(dist_values, dist_thresholds[1]),
    }

    outliers = compute_outliers(derived, OUTLIER_KEYS)
    global_stats = {key: summary_stats(_field_values(derived, key)) for key in STAT_KEYS}

    frame = pd.DataFrame(derived)
    segments = build_segments(frame, lat_thresholds[1], dist_thresholds[1])
    correlations = correlation_matrix(frame, CORRELATION_KEYS)
    models = {
        name: fit_linear_model(derived, target_key, features, name=target_key)
        for name, target_key, features in MODEL_TABLE
    }

    charts_data = build_charts_data(
        derived, units, correlations=correlations, models=models, describe=payload_insight
    )

    missing = [key for key in STAT_KEYS if key not in units]
    if missing:
        logger.debug("Missing canonical columns: %s", missing)

    return {
        "version": ANALYTICS_VERSION,
        "meta": {
            "units": units,
            "club": metadata.get("club"),
            "ball": metadata.get("ball"),
            "shotCount": len(derived),
            "missingColumns": missing,
        },
        "derived": {
            "carryTarget": target,
            "corridors": corridors,
        },
        "globalStats": global_stats,
        "segments": segments,
        "outliers": outliers,
        "correlations": correlations,
        "models": models,
        "chartsData": charts_data,
        "summary": build_summary(global_stats, target),
        "insights": base_insights(global_stats, units, corridors, lat_thresholds[1]),
    }
