import logging

from radar_units import is_finite_number, normalize_token

logger = logging.getLogger(__name__)

# ============================================================
# Pattern tables
# ============================================================

# Session-chart metrics, patterns listed from most to least specific.
METRIC_PATTERNS = {
    "distance_lateral": ["distance_lateral", "lateral"],
    "distance_total": ["distance_total", "total"],
    "distance_carry": ["distance_carry", "carry"],
    "speed_club": ["speed_club", "club"],
    "speed_ball": ["speed_ball", "ball"],
    "spin_rate": ["spin_rpm", "rpm", "spin"],
    "smash": ["smash_factor", "smash", "factor"],
    "face_impact_lateral": [
        "face_impact_lateral",
        "face impact lateral",
        "impact lateral",
        "face lateral",
        "lateral impact",
        "impact x",
    ],
    "face_impact_vertical": [
        "face_impact_vertical",
        "face impact vertical",
        "impact vertical",
        "face vertical",
        "vertical impact",
        "impact y",
    ],
}

# Canonical analytics fields and the tokens that identify them in an export.
CANONICAL_ALIASES = {
    "shot_index": ["shot_index", "shot #", "shot", "shot number", "#"],
    "shot_type": ["shot_type", "shot type", "type"],
    "carry": ["distance_carry", "carry"],
    "total": ["distance_total", "total"],
    "roll": ["distance_roll", "roll"],
    "lateral": ["distance_lateral", "lateral", "side", "sideways"],
    "curve": ["distance_curve", "curve dist", "curve"],
    "club_speed": ["speed_club", "club speed", "club mph", "club"],
    "ball_speed": ["speed_ball", "ball speed", "ball mph", "ball"],
    "spin_rpm": ["spin_rpm", "rpm", "spin"],
    "spin_axis": ["spin_axis", "spin axis", "axis"],
    "spin_loft": ["spin_loft", "spin loft"],
    "smash": ["smash_factor", "smash", "factor"],
    "launch_v": ["ball_angle_vertical", "launch v", "launch vertical", "vertical"],
    "launch_h": ["ball_angle_horizontal", "launch h", "launch horizontal", "horizontal"],
    "descent_v": ["ball_angle_descent", "descent v", "descent"],
    "height": ["flight_height", "height"],
    "time": ["flight_time", "time"],
    "path": ["club_path", "path"],
    "ftp": ["club_face_to_path", "ftp", "face to path"],
    "ftt": ["club_face_to_target", "ftt", "face to target"],
    "dloft": ["club_dynamic_loft", "d loft", "dynamic loft"],
    "aoa": ["club_aoa", "aoa", "angle of attack"],
    "low_point": ["club_low_point", "low point"],
    "swing_plane_v": ["swing_plane_vertical", "swing plane vertical"],
    "swing_plane_h": ["swing_plane_horizontal", "swing plane horizontal"],
    "impact_lat": [
        "face_impact_lateral",
        "impact_face_lateral",
        "face impact lateral",
        "impact face lateral",
        "impact lateral",
        "impact x",
    ],
    "impact_vert": [
        "face_impact_vertical",
        "impact_face_vertical",
        "impact vertical",
        "impact y",
        "face impact vertical",
        "impact face vertical",
    ],
}


# ============================================================
# Resolution
# ============================================================

def find_column(columns, patterns):
    """
    Resolve one metric column from loosely named export columns.

    Pass 1: the first column whose normalized key *starts with* any pattern.
    Pass 2: the first column whose normalized label or group *contains* any
    pattern. Returns None when nothing matches.
    """
    normalized_patterns = [normalize_token(p) for p in patterns]
    normalized_patterns = [p for p in normalized_patterns if p]

    for column in columns:
        key = normalize_token(column.get("key"))
        if any(key.startswith(p) for p in normalized_patterns):
            return column

    for column in columns:
        label = normalize_token(column.get("label"))
        group = normalize_token(column.get("group"))
        if any(p in label or p in group for p in normalized_patterns):
            return column

    return None


def resolve_metrics(columns, patterns=None):
    """Resolve every session metric once; the mapping is reused for a whole render."""
    table = patterns or METRIC_PATTERNS
    resolved = {}
    for metric, metric_patterns in table.items():
        resolved[metric] = find_column(columns, metric_patterns)
        if resolved[metric] is None:
            logger.debug("No column resolved for metric %s", metric)
    return resolved


def _column_tokens(column):
    key = normalize_token(column.get("key"))
    group = normalize_token(column.get("group"))
    label = normalize_token(column.get("label"))
    return f"{key} {group} {label}".strip()


def build_column_map(columns):
    """Map canonical analytics fields to columns; each field takes the first column that mentions it."""
    column_map = {}
    for column in columns:
        tokens = _column_tokens(column)
        for canonical, aliases in CANONICAL_ALIASES.items():
            if canonical in column_map:
                continue
            if any(normalize_token(alias) in tokens for alias in aliases if normalize_token(alias)):
                column_map[canonical] = column
    return column_map


def column_key(column):
    return column.get("key") if column else None


def column_unit(column):
    return column.get("unit") if column else None


# ============================================================
# Series extraction
# ============================================================

def shot_index_of(shot):
    raw = shot.get("shot_index")
    if is_finite_number(raw):
        return raw
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if is_finite_number(value) else None


def numeric_series(shots, key):
    """Finite values of one metric in shot order, each with its shot index."""
    if not key:
        return []
    series = []
    for shot in shots:
        value = shot.get(key)
        if is_finite_number(value):
            series.append({"value": value, "shotIndex": shot_index_of(shot)})
    return series


def paired_points(shots, x_key, y_key):
    """Finite (x, y) pairs, carrying the shot index through for outlier lookups."""
    if not x_key or not y_key:
        return []
    points = []
    for shot in shots:
        x = shot.get(x_key)
        y = shot.get(y_key)
        if is_finite_number(x) and is_finite_number(y):
            points.append({"x": x, "y": y, "shotIndex": shot_index_of(shot)})
    return points
