import logging
import re

import numpy as np

from radar_columns import numeric_series, paired_points
from radar_stats import linear_regression, mean, median, std
from radar_units import is_driver_club, is_finite_number, number_text, round_half_up, to_fixed

logger = logging.getLogger(__name__)

# ============================================================
# Constants
# ============================================================

HIST_BIN_COUNT = 10
LINE_TENSION = 0.8

# A line series is "stable" when |last - first| stays under this share of its range
STABLE_TREND_SHARE = 0.15
STABLE_TREND_FLOOR = 0.01

TABLE_COLUMNS = ["Groupe", "Count", "Min", "Median", "Max"]
TABLE_NOTES = "Boxplot approximé (min/médiane/max)."
MATRIX_EMPTY_NOTES = "Données insuffisantes."
MODEL_EMPTY_NOTES = "Modèle indisponible."

# Clubhead face size in inches: (width, height)
CLUBHEAD_DIMENSIONS = {
    "driver": (5.0, 2.5),
    "iron": (3.35, 2.2),
}

HEATMAP_BINS_X = 40
HEATMAP_MIN_BINS_Y = 20
HEATMAP_KERNEL = np.array(
    [
        [1, 2, 1],
        [2, 4, 2],
        [1, 2, 1],
    ],
    dtype=float,
)
# Colour ramp saturates at this share of the smoothed peak
HEATMAP_SATURATION = 0.75
TRANSPARENT = "rgba(0,0,0,0)"


# ============================================================
# Scatter
# ============================================================

def build_scatter_payload(shots, x_key, y_key, title, x_label, y_label, x_unit=None, y_unit=None):
    """
    Finite (x, y) pairs with their shot index, plus mean lines and the
    least-squares overlay. None when no pair is usable.
    """
    points = paired_points(shots, x_key, y_key)
    if not points:
        return None
    xs = [p["x"] for p in points]
    ys = [p["y"] for p in points]
    return {
        "type": "scatter",
        "title": title,
        "xLabel": x_label,
        "yLabel": y_label,
        "xUnit": x_unit,
        "yUnit": y_unit,
        "points": points,
        "meanX": mean(xs),
        "meanY": mean(ys),
        "regression": linear_regression(xs, ys),
    }


def scatter_summary(points):
    xs = [p["x"] for p in points]
    ys = [p["y"] for p in points]
    return {
        "count": len(points),
        "meanX": mean(xs),
        "meanY": mean(ys),
        "stdX": std(xs),
        "stdY": std(ys),
        "xs": xs,
        "ys": ys,
    }


# ============================================================
# Line
# ============================================================

def build_line_payload(shots, series, title, x_label, y_label, y_unit=None):
    """
    One or more named series in shot order; `series` is a list of
    (label, key). Each series keeps its values aligned with shot indices.
    """
    built = []
    for label, key in series:
        entries = numeric_series(shots, key)
        built.append({
            "label": label,
            "values": [entry["value"] for entry in entries],
            "shotIndices": [entry["shotIndex"] for entry in entries],
        })
    if not any(item["values"] for item in built):
        return None
    return {
        "type": "line",
        "title": title,
        "xLabel": x_label,
        "yLabel": y_label,
        "yUnit": y_unit,
        "series": built,
    }


def line_trend(delta, value_range):
    if abs(delta) < max(value_range * STABLE_TREND_SHARE, STABLE_TREND_FLOOR):
        return "stable"
    return "en hausse" if delta > 0 else "en baisse"


def line_summary(values):
    """Range, first-to-last delta and trend of one series; None when empty."""
    if not values:
        return None
    low = min(values)
    high = max(values)
    delta = values[-1] - values[0]
    return {
        "count": len(values),
        "min": low,
        "max": high,
        "range": high - low,
        "delta": delta,
        "mean": mean(values),
        "trend": line_trend(delta, high - low),
    }


def _svg_number(value):
    return number_text(value)


def build_line_path(points, tension=LINE_TENSION):
    """
    SVG path through (x, y) points. Straight segments below 3 points, otherwise
    a Catmull-Rom style cubic through every point.
    """
    pts = [(p["x"], p["y"]) if isinstance(p, dict) else tuple(p) for p in points]
    if not pts:
        return ""

    if len(pts) < 3:
        return " ".join(
            f"{'M' if i == 0 else 'L'}{_svg_number(x)},{_svg_number(y)}"
            for i, (x, y) in enumerate(pts)
        )

    segments = [f"M{_svg_number(pts[0][0])},{_svg_number(pts[0][1])}"]
    for i in range(1, len(pts)):
        p0 = pts[i - 2] if i >= 2 else pts[i - 1]
        p1 = pts[i - 1]
        p2 = pts[i]
        p3 = pts[i + 1] if i + 1 < len(pts) else p2
        cp1x = p1[0] + ((p2[0] - p0[0]) / 6) * tension
        cp1y = p1[1] + ((p2[1] - p0[1]) / 6) * tension
        cp2x = p2[0] - ((p3[0] - p1[0]) / 6) * tension
        cp2y = p2[1] - ((p3[1] - p1[1]) / 6) * tension
        segments.append(
            f"C{_svg_number(cp1x)},{_svg_number(cp1y)} "
            f"{_svg_number(cp2x)},{_svg_number(cp2y)} "
            f"{_svg_number(p2[0])},{_svg_number(p2[1])}"
        )
    return " ".join(segments)


# ============================================================
# Histogram
# ============================================================

def bin_values(values, bins=HIST_BIN_COUNT):
    """Equal-width binning between min and max; a flat series spans a width of 1."""
    finite = [v for v in values if is_finite_number(v)]
    if not finite:
        return []
    low = min(finite)
    value_range = (max(finite) - low) or 1
    step = value_range / bins
    counts = [0] * bins
    for value in finite:
        idx = min(bins - 1, max(0, int(np.floor((value - low) / step))))
        counts[idx] += 1

    labelled = []
    for index, count in enumerate(counts):
        start = low + step * index
        end = start + step
        labelled.append({"label": f"{to_fixed(start, 1)}-{to_fixed(end, 1)}", "count": count})
    return labelled


def build_hist_payload(bins, title, x_label, y_label="Coups", x_unit=None):
    if not bins:
        return None
    return {
        "type": "hist",
        "title": title,
        "xLabel": x_label,
        "yLabel": y_label,
        "xUnit": x_unit,
        "bins": list(bins),
    }


def dominant_bin(bins):
    """First bin with the highest count and its share of all shots."""
    total = sum(b["count"] for b in bins or [])
    if not total:
        return None
    top = bins[0]
    for candidate in bins[1:]:
        if candidate["count"] > top["count"]:
            top = candidate
    ratio = top["count"] / total
    return {
        "label": top["label"],
        "count": top["count"],
        "ratio": ratio,
        "share": round_half_up(ratio * 100),
    }


# ============================================================
# Table
# ============================================================

def build_table_payload(shots, group_key, value_key, title):
    """Min / median / max of one metric per group, groups in first-seen order."""
    groups = {}
    for shot in shots:
        bucket = shot.get(group_key)
        value = shot.get(value_key)
        if bucket is None or not is_finite_number(value):
            continue
        groups.setdefault(str(bucket), []).append(value)

    if not groups:
        return None

    rows = []
    for key, values in groups.items():
        ordered = sorted(values)
        rows.append({
            "Groupe": key,
            "Count": len(ordered),
            "Min": float(to_fixed(ordered[0], 2)),
            "Median": float(to_fixed(median(ordered), 2)),
            "Max": float(to_fixed(ordered[-1], 2)),
        })

    return {
        "type": "table",
        "title": title,
        "columns": list(TABLE_COLUMNS),
        "rows": rows,
        "notes": TABLE_NOTES,
    }


# ============================================================
# Matrix & model
# ============================================================

def build_matrix_payload(correlations, title):
    variables = list((correlations or {}).get("variables") or [])
    matrix = [list(row) for row in (correlations or {}).get("matrix") or []]
    return {
        "type": "matrix",
        "title": title,
        "variables": variables,
        "matrix": matrix,
        "notes": None if variables else MATRIX_EMPTY_NOTES,
    }


def strongest_pair(variables, matrix):
    """Off-diagonal cell with the largest |r|, first found in row-major order."""
    if len(variables) < 2:
        return None
    best = None
    for i, row in enumerate(matrix):
        for j, value in enumerate(row):
            if i == j or not is_finite_number(value):
                continue
            if best is None or abs(value) > abs(best["value"]):
                best = {"row": variables[i], "col": variables[j], "value": value}
    return best


def build_model_payload(model, title, fallback_name):
    if model:
        return {"type": "model", "title": title, "model": model, "notes": None}
    return {
        "type": "model",
        "title": title,
        "model": {
            "name": fallback_name,
            "coefficients": {},
            "intercept": 0,
            "r2": 0,
            "n": 0,
            "features": [],
        },
        "notes": MODEL_EMPTY_NOTES,
    }


def dominant_coefficient(model):
    """(feature, coefficient) with the largest magnitude, or None without coefficients."""
    best = None
    for key, value in ((model or {}).get("coefficients") or {}).items():
        if best is None or abs(value) > abs(best[1]):
            best = (key, value)
    return best


# ============================================================
# Face impact heatmap
# ============================================================

def clubhead_dimensions(club):
    return CLUBHEAD_DIMENSIONS["driver" if is_driver_club(club) else "iron"]


def _hsla_number(value):
    return number_text(value)


def impact_color(value, scaled_max):
    """Green -> yellow -> red ramp; near-zero density is transparent."""
    t = min(1.0, max(0.0, value / scaled_max))
    if t <= 0.001:
        return TRANSPARENT
    boosted = min(1.0, t * 1.7)
    eased = boosted ** 1.1
    red_start = 0.65
    if eased < red_start:
        hue = 120 - 60 * (eased / red_start)
    else:
        hue = 60 - 60 * ((eased - red_start) / (1 - red_start))
    alpha = min(1.0, 0.25 + 0.85 * eased)
    lightness = 58 - 12 * eased
    return f"hsla({_hsla_number(hue)}, 95%, {_hsla_number(lightness)}%, {_hsla_number(alpha)})"


def _smooth(grid):
    """3x3 kernel pass; edge cells are normalised by the in-bounds weight only."""
    height, width = grid.shape
    padded = np.pad(grid, 1)
    inside = np.pad(np.ones_like(grid), 1)
    total = np.zeros_like(grid)
    weight = np.zeros_like(grid)
    for ky in range(3):
        for kx in range(3):
            k = HEATMAP_KERNEL[ky, kx]
            total += k * padded[ky:ky + height, kx:kx + width]
            weight += k * inside[ky:ky + height, kx:kx + width]
    return np.divide(total, weight, out=np.zeros_like(total), where=weight > 0)


def build_face_impact_heatmap(points, club=None):
    """
    Density grid of face impacts over the clubhead.

    40 columns by max(20, round(40 * h / w)) rows, impacts clamped onto the
    face, smoothed with a 3x3 kernel and mapped to HSLA colours.
    """
    face_width, face_height = clubhead_dimensions(club)
    ratio = face_height / face_width
    bins_x = HEATMAP_BINS_X
    bins_y = max(HEATMAP_MIN_BINS_Y, round_half_up(bins_x * ratio))
    x_min, x_max = -face_width / 2, face_width / 2
    y_min, y_max = -face_height / 2, face_height / 2

    counts = np.zeros((bins_y, bins_x), dtype=float)
    usable = [p for p in points or [] if is_finite_number(p.get("x")) and is_finite_number(p.get("y"))]
    if usable:
        xs = np.clip(np.array([p["x"] for p in usable], dtype=float), x_min, x_max)
        ys = np.clip(np.array([p["y"] for p in usable], dtype=float), y_min, y_max)
        ix = np.clip(np.floor((xs - x_min) / (x_max - x_min) * bins_x).astype(int), 0, bins_x - 1)
        iy = np.clip(np.floor((ys - y_min) / (y_max - y_min) * bins_y).astype(int), 0, bins_y - 1)
        np.add.at(counts, (iy, ix), 1)

    smoothed = _smooth(counts)
    max_value = max(1.0, float(smoothed.max()))
    scaled_max = max_value * HEATMAP_SATURATION
    colors = [[impact_color(float(v), scaled_max) for v in row] for row in smoothed]

    return {
        "club": "driver" if is_driver_club(club) else "iron",
        "faceWidth": face_width,
        "faceHeight": face_height,
        "binsX": bins_x,
        "binsY": bins_y,
        "counts": counts.astype(int).tolist(),
        "grid": smoothed.tolist(),
        "maxValue": max_value,
        "scaledMax": scaled_max,
        "colors": colors,
    }


def mean_normalized_impact(points, club=None):
    """Mean impact distance from the face centre, in half-face units."""
    usable = [p for p in points or [] if is_finite_number(p.get("x")) and is_finite_number(p.get("y"))]
    if not usable:
        return None
    face_width, face_height = clubhead_dimensions(club)
    half_w = face_width / 2
    half_h = face_height / 2
    xs = np.array([p["x"] for p in usable], dtype=float) / half_w
    ys = np.array([p["y"] for p in usable], dtype=float) / half_h
    return float(np.sqrt(xs ** 2 + ys ** 2).mean())


# ============================================================
# Chart registry
# ============================================================

CHART_GROUPS = [
    {"key": "dispersion", "label": "Dispersion & précision"},
    {"key": "distance", "label": "Distance & régularité"},
    {"key": "speed", "label": "Vitesse & efficacité"},
    {"key": "launch", "label": "Launch & Spin"},
    {"key": "direction", "label": "Face/Path & direction"},
    {"key": "aoa", "label": "AOA & dynamique"},
    {"key": "impact", "label": "Impact face"},
    {"key": "plane", "label": "Swing plane"},
    {"key": "analysis", "label": "Corrélations & modèles"},
]

# key, type, group, title, x_key, y_key, x_label, y_label
#   scatter: x_key / y_key are the plotted metrics
#   line:    y_key is the series metric
#   hist:    x_key is the binned metric
#   table:   x_key is the grouping field, y_key the summarised metric
#   matrix / model: fed from precomputed correlations and models
CHART_DEFINITION_TABLE = [
    ("dispersion_scatter", "scatter", "dispersion", "Dispersion (carry vs latéral)",
     "lateral", "carry", "Latéral", "Carry"),
    ("dispersion_radial_over_time", "line", "dispersion", "Dispersion radiale dans le temps",
     None, "radial_miss", "Coups", "Radial miss"),
    ("dispersion_by_shot_type_lateral", "table", "dispersion", "Dispersion latérale par type",
     "shot_type", "lateral", None, None),
    ("dispersion_by_shot_type_carry", "table", "dispersion", "Dispersion carry par type",
     "shot_type", "carry", None, None),
    ("curve_vs_lateral", "scatter", "dispersion", "Curve vs latéral",
     "curve", "lateral", "Curve", "Latéral"),
    ("hist_carry", "hist", "distance", "Histogramme carry", "carry", None, "Carry", "Coups"),
    ("hist_total", "hist", "distance", "Histogramme total", "total", None, "Total", "Coups"),
    ("hist_roll", "hist", "distance", "Histogramme roll", "roll", None, "Roll", "Coups"),
    ("carry_over_time", "line", "distance", "Carry dans le temps", None, "carry", "Coups", "Carry"),
    ("carry_vs_total", "scatter", "distance", "Carry vs total", "carry", "total", "Carry", "Total"),
    ("roll_vs_descent", "scatter", "distance", "Roll vs descent", "descent_v", "roll", "Descent V", "Roll"),
    ("club_vs_ball_speed", "scatter", "speed", "Club vs ball speed",
     "club_speed", "ball_speed", "Club", "Balle"),
    ("smash_hist", "hist", "speed", "Histogramme smash", "smash", None, "Smash", "Coups"),
    ("smash_over_time", "line", "speed", "Smash dans le temps", None, "smash", "Coups", "Smash"),
    ("ball_speed_vs_carry", "scatter", "speed", "Vitesse balle vs carry",
     "ball_speed", "carry", "Ball speed", "Carry"),
    ("spinloft_vs_smash", "scatter", "speed", "Spin loft vs smash", "spin_loft", "smash", "Spin loft", "Smash"),
    ("club_speed_vs_smash", "scatter", "speed", "Club speed vs smash",
     "club_speed", "smash", "Club speed", "Smash"),
    ("launchV_vs_rpm", "scatter", "launch", "Launch V vs RPM", "launch_v", "spin_rpm", "Launch V", "RPM"),
    ("height_vs_carry", "scatter", "launch", "Height vs carry", "height", "carry", "Height", "Carry"),
    ("height_vs_rpm", "scatter", "launch", "Height vs RPM", "height", "spin_rpm", "Height", "RPM"),
    ("descent_vs_rpm", "scatter", "launch", "Descent V vs RPM", "descent_v", "spin_rpm", "Descent V", "RPM"),
    ("spin_axis_vs_lateral", "scatter", "launch", "Spin axis vs latéral",
     "spin_axis", "lateral", "Spin axis", "Latéral"),
    ("path_vs_ftp", "scatter", "direction", "Path vs FTP", "path", "ftp", "Path", "FTP"),
    ("launchH_vs_ftp", "scatter", "direction", "Launch H vs FTP", "launch_h", "ftp", "Launch H", "FTP"),
    ("spin_axis_vs_ftp", "scatter", "direction", "Spin axis vs FTP", "spin_axis", "ftp", "Spin axis", "FTP"),
    ("aoa_vs_low_point", "scatter", "aoa", "AOA vs Low Point", "aoa", "low_point", "AOA", "Low Point"),
    ("aoa_vs_rpm", "scatter", "aoa", "AOA vs RPM", "aoa", "spin_rpm", "AOA", "RPM"),
    ("aoa_vs_carry", "scatter", "aoa", "AOA vs Carry", "aoa", "carry", "AOA", "Carry"),
    ("low_point_vs_smash", "scatter", "aoa", "Low point vs Smash", "low_point", "smash", "Low Point", "Smash"),
    ("dloft_vs_launchV", "scatter", "aoa", "Dynamic loft vs Launch V",
     "dloft", "launch_v", "Dynamic loft", "Launch V"),
    ("impact_map", "scatter", "impact", "Impact map",
     "impact_lat", "impact_vert", "Impact lateral", "Impact vertical"),
    ("impact_lat_vs_smash", "scatter", "impact", "Impact lat vs Smash",
     "impact_lat", "smash", "Impact lateral", "Smash"),
    ("impact_lat_vs_spin_axis", "scatter", "impact", "Impact lat vs Spin axis",
     "impact_lat", "spin_axis", "Impact lateral", "Spin axis"),
    ("impact_vert_vs_launchV", "scatter", "impact", "Impact vert vs Launch V",
     "impact_vert", "launch_v", "Impact vertical", "Launch V"),
    ("impact_vert_vs_rpm", "scatter", "impact", "Impact vert vs RPM",
     "impact_vert", "spin_rpm", "Impact vertical", "RPM"),
    ("swing_planeH_vs_path", "scatter", "plane", "Swing plane H vs Path",
     "swing_plane_h", "path", "Swing plane H", "Path"),
    ("swing_planeH_over_time", "line", "plane", "Swing plane H dans le temps",
     None, "swing_plane_h", "Coups", "Swing plane H"),
    ("swing_planeV_over_time", "line", "plane", "Swing plane V dans le temps",
     None, "swing_plane_v", "Coups", "Swing plane V"),
    ("swing_planeV_vs_height", "scatter", "plane", "Swing plane V vs Height",
     "swing_plane_v", "height", "Swing plane V", "Height"),
    ("corr_heatmap", "matrix", "analysis", "Matrice de corrélation", None, None, None, None),
    ("model_distance_coeffs", "model", "analysis", "Modèle distance",
     None, "regressionDistance", "Distance", None),
    ("model_lateral_coeffs", "model", "analysis", "Modèle latéral",
     None, "regressionLateral", "Latéral", None),
]


def auto_description(title):
    lower = title.lower()
    if "histogramme" in lower:
        rest = re.sub("histogramme", "", title, flags=re.IGNORECASE).strip()
        return f"Distribution des coups pour {rest}."
    if "dans le temps" in lower:
        rest = re.sub("dans le temps", "", title, flags=re.IGNORECASE).strip()
        return f"Évolution de {rest} sur la série."
    if "matrice" in lower:
        return "Relation entre variables (corrélations)."
    if "modèle" in lower:
        return "Impact des variables sur la métrique cible."
    if " vs " in lower:
        parts = [part.strip() for part in re.split("vs", title, flags=re.IGNORECASE)]
        if len(parts) == 2:
            return f"Relation entre {parts[0]} et {parts[1]}."
    return f"Analyse de {lower}."


def _required_keys(kind, x_key, y_key):
    if kind == "scatter" or kind == "table":
        return [x_key, y_key]
    if kind == "line":
        return [y_key]
    if kind == "hist":
        return [x_key]
    return []


def _definition(row):
    key, kind, group, title, x_key, y_key, x_label, y_label = row
    return {
        "key": key,
        "type": kind,
        "group": group,
        "title": title,
        "xKey": x_key,
        "yKey": y_key,
        "xLabel": x_label,
        "yLabel": y_label,
        "required": _required_keys(kind, x_key, y_key),
        "description": auto_description(title),
    }


CHART_DEFINITIONS = [_definition(row) for row in CHART_DEFINITION_TABLE]
CHART_KEYS = [definition["key"] for definition in CHART_DEFINITIONS]


def _build_definition(definition, shots, units, correlations, models):
    kind = definition["type"]
    x_key = definition["xKey"]
    y_key = definition["yKey"]
    title = definition["title"]

    if kind == "scatter":
        return build_scatter_payload(
            shots, x_key, y_key, title,
            definition["xLabel"], definition["yLabel"],
            x_unit=units.get(x_key), y_unit=units.get(y_key),
        )
    if kind == "line":
        y_unit = units.get(y_key)
        if y_key == "radial_miss" and y_unit is None:
            y_unit = units.get("carry")
        return build_line_payload(
            shots, [(definition["yLabel"], y_key)], title,
            definition["xLabel"], definition["yLabel"], y_unit=y_unit,
        )
    if kind == "hist":
        values = [entry["value"] for entry in numeric_series(shots, x_key)]
        return build_hist_payload(
            bin_values(values), title, definition["xLabel"],
            y_label=definition["yLabel"], x_unit=units.get(x_key),
        )
    if kind == "table":
        return build_table_payload(shots, x_key, y_key, title)
    if kind == "matrix":
        return build_matrix_payload(correlations, title)
    if kind == "model":
        return build_model_payload((models or {}).get(y_key), title, definition["xLabel"])
    return None


def payload_available(payload):
    if not payload:
        return False
    kind = payload["type"]
    if kind == "matrix":
        return len(payload["variables"]) > 0
    if kind == "model":
        return payload["model"]["n"] > 0
    if kind == "scatter":
        return len(payload["points"]) > 0
    if kind == "hist":
        return len(payload["bins"]) > 0
    if kind == "line":
        return any(item["values"] for item in payload["series"])
    if kind == "table":
        return len(payload["rows"]) > 0
    return True


def build_charts_data(shots, units, correlations=None, models=None, describe=None):
    """
    Build every registered chart from derived shots.

    A chart whose required fields have no mapped column is unavailable and
    carries no payload. `describe` fills in the payload insight when given.
    """
    units = units or {}
    charts_data = {}
    for definition in CHART_DEFINITIONS:
        missing = [key for key in definition["required"] if key not in units]
        if missing:
            logger.debug("Chart %s unavailable, missing %s", definition["key"], missing)
            charts_data[definition["key"]] = {"available": False, "payload": None}
            continue

        payload = _build_definition(definition, shots, units, correlations, models)
        if payload is not None and describe is not None and not payload.get("insight"):
            insight = describe(payload)
            if insight:
                payload["insight"] = insight

        charts_data[definition["key"]] = {
            "available": payload_available(payload),
            "payload": payload,
        }
    return charts_data
