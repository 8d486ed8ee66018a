import logging
import math

from radar_charts import (
    dominant_bin,
    dominant_coefficient,
    line_summary,
    mean_normalized_impact,
    scatter_summary,
    strongest_pair,
)
from radar_stats import correlation, correlation_direction, correlation_strength
from radar_units import (
    format_highlight_value,
    format_insight_value,
    format_tick_value,
    is_finite_number,
    normalize_token,
    number_text,
    round_half_up,
    to_fixed,
)

logger = logging.getLogger(__name__)

# ============================================================
# Thresholds (product policy, tunable)
# ============================================================

MIN_SCATTER_CORRELATION_POINTS = 6
MIN_SCATTER_HIGHLIGHT_POINTS = 3
MIN_LINE_POINTS = 2

SCATTER_TONE_BANDS = (0.5, 0.3)      # |r|
LINE_TONE_BANDS = (0.15, 0.3)        # range / |mean|
HIST_TONE_BANDS = (0.4, 0.25)        # dominant share
MATRIX_TONE_BANDS = (0.6, 0.4)       # strongest |r|
MODEL_TONE_BANDS = (0.5, 0.3)        # r2

WEAK_LINK_R = 0.2

DISPERSION_CORRIDOR_BANDS = (70, 50)   # % within 10 m, higher is better
DISPERSION_STD_BANDS = (5, 10)         # lateral std, lower is better

ROLL_RATIO_LOW = 0.05
ROLL_RATIO_HIGH = 0.12
ROLL_RATIO_BAD_LOW = 0.04
ROLL_RATIO_BAD_HIGH = 0.15
ROLL_ABS_LOW = 5
ROLL_ABS_HIGH = 15

SMASH_MEAN_BANDS = (1.45, 1.35)
SPIN_CARRY_R = 0.3
SMASH_CV_BANDS = (0.02, 0.05)
FACE_IMPACT_BANDS = (0.25, 0.4)

IMPACT_UNIT = '"'
INSIGHT_SEPARATOR = " - "

BASE_CHART_KEYS = ["dispersion", "carryTotal", "speeds", "spinCarry", "smash", "faceImpact"]

BASE_CHART_DESCRIPTIONS = {
    "dispersion": (
        "Montre la dispersion latérale par rapport au carry pour évaluer la précision. "
        "Plus le nuage est compact, plus la dispersion est faible."
    ),
    "carryTotal": (
        "Montre la différence entre le carry et la distance totale de la balle. "
        "L'écart reflète le roll après l'atterrissage."
    ),
    "speeds": (
        "Compare la vitesse de tête de club et la vitesse de balle. "
        "Le ratio (smash) indique l'efficacité de l'impact."
    ),
    "spinCarry": (
        "Met en relation le spin et le carry pour voir l'impact du spin sur la distance. "
        "Un spin trop haut ou trop bas peut réduire la performance."
    ),
    "smash": (
        "Montre l'évolution du smash factor au fil des coups. "
        "Une courbe stable indique une frappe régulière."
    ),
    "faceImpact": (
        "Carte des impacts sur la face du club avec une heatmap de densité. "
        "Le centre idéal est proche de l'intersection des axes."
    ),
}


# ============================================================
# Technique hints
# ============================================================

# (tokens, hint) checked in order against the normalised axis labels
TECHNIQUE_HINTS = [
    (("aoa",), "L'AOA influence la trajectoire et la qualité du contact."),
    (("low point",), "Le low point contrôle la profondeur d'impact."),
    (("spin axis",), "Le spin axis pilote la courbure de balle."),
    (("spin",), "Le spin dépend du loft dynamique et du contact."),
    (("path",), "Le chemin du club influence direction et courbure."),
    (("ftp", "face to path"), "Face/Path conditionne la courbure de balle."),
    (("face",), "La face à l'impact influence la direction de départ."),
    (("launch",), "Le launch dépend du loft dynamique et de l'angle d'attaque."),
    (("smash",), "Le smash reflète la qualité de centrage."),
    (("height",), "La hauteur est liée au launch et au spin."),
    (("swing plane",), "Le plan de swing influence direction et contact."),
    (("impact",), "Le centrage influe sur vitesse et direction."),
    (("curve",), "La courbure vient du face/path et du spin axis."),
    (("roll",), "Le roll dépend de l'angle d'atterrissage et du spin."),
]

TECHNIQUE_SUGGESTIONS = [
    (("aoa", "low point"), "Piste: travailler le point bas (ball position, poids en avant, compression)."),
    (("spin axis", "curve"), "Piste: stabiliser face/path (grip, alignement, plan de swing)."),
    (("spin",), "Piste: ajuster loft dynamique et centrage pour régler le spin."),
    (("launch",), "Piste: ajuster loft dynamique et angle d'attaque pour optimiser le launch."),
    (("smash",), "Piste: travailler le centrage et la vitesse à l'impact."),
    (("height",), "Piste: vérifier launch et spin pour contrôler la hauteur."),
    (("path", "ftp"), "Piste: travailler le chemin avec des repères d'alignement."),
    (("impact",), "Piste: exercices de centrage (tape, spray, gate drill)."),
    (("roll",), "Piste: ajuster angle d'atterrissage via launch/spin."),
]
DEFAULT_SUGGESTION = "Piste: stabiliser rythme et impact pour régulariser les résultats."

TECHNIQUE_ONLY = {
    "dispersion": "La précision dépend du contrôle face/chemin.",
    "carryTotal": "Le roll dépend de l'angle d'atterrissage et du spin.",
    "speeds": "Le smash reflète la qualité de centrage.",
    "spinCarry": "Le spin influence la portée et la trajectoire.",
    "smash": "La régularité du contact stabilise le smash.",
    "faceImpact": "Le centrage influence vitesse et direction.",
}


def _match_table(table, labels):
    normalized = normalize_token(" ".join(label or "" for label in labels))
    for tokens, text in table:
        if any(token in normalized for token in tokens):
            return text
    return None


def technique_hint(labels):
    return _match_table(TECHNIQUE_HINTS, labels)


def technique_suggestion(labels):
    return _match_table(TECHNIQUE_SUGGESTIONS, labels) or DEFAULT_SUGGESTION


def technique_only(key):
    return TECHNIQUE_ONLY.get(key)


def _with_hint(base, labels):
    hint = technique_hint(labels)
    suggestion = technique_suggestion(labels)
    return f"{base}{' ' + hint if hint else ''} {suggestion}"


def _tone(value, bands, higher_is_better=True):
    good, warn = bands
    if higher_is_better:
        if value >= good:
            return "good"
        if value >= warn:
            return "warn"
        return "bad"
    if value < good:
        return "good"
    if value < warn:
        return "warn"
    return "bad"


# ============================================================
# Payload statistics
# ============================================================

def _scatter_r(payload, min_points):
    points = payload.get("points") or []
    if len(points) < min_points:
        return None
    return correlation([p["x"] for p in points], [p["y"] for p in points])


def _first_series_summary(payload):
    series = payload.get("series") or []
    if not series:
        return None
    values = series[0].get("values") or []
    if len(values) < MIN_LINE_POINTS:
        return None
    return line_summary(values)


def _table_metric(columns):
    for needle in ("median", "mean", "max"):
        for column in columns:
            if needle in column.lower():
                return column
    return None


def _table_best_row(payload):
    metric = _table_metric(payload.get("columns") or [])
    if not metric:
        return None, None
    best = None
    for row in payload.get("rows") or []:
        value = row.get(metric)
        if not is_finite_number(value):
            continue
        if best is None or value > best[metric]:
            best = row
    return metric, best


def _row_label(row, fallback="Groupe"):
    for key in ("Groupe", "GROUP", "Group", "key"):
        if row.get(key) is not None:
            return str(row[key])
    return fallback


def _text_value(value):
    if is_finite_number(value):
        return number_text(value)
    return str(value)


# ============================================================
# Payload insight
# ============================================================

def _scatter_insight(payload):
    points = payload.get("points") or []
    if len(points) < MIN_SCATTER_CORRELATION_POINTS:
        return None
    summary = scatter_summary(points)
    r = correlation(summary["xs"], summary["ys"])
    relation = None
    if r is not None:
        relation = (
            f"Relation {correlation_strength(r)} {correlation_direction(r)} "
            f"(r={to_fixed(r, 2)})."
        )
    x_unit = payload.get("xUnit")
    y_unit = payload.get("yUnit")
    stats = INSIGHT_SEPARATOR.join([
        f"{payload['xLabel']} moy. {format_tick_value(summary['meanX'], x_unit)}",
        f"ET {format_tick_value(summary['stdX'], x_unit)}",
        f"{payload['yLabel']} moy. {format_tick_value(summary['meanY'], y_unit)}",
        f"ET {format_tick_value(summary['stdY'], y_unit)}",
    ])
    return " ".join(part for part in (relation, stats) if part)


def _line_insight(payload):
    summary = _first_series_summary(payload)
    if summary is None:
        return None
    unit = payload.get("yUnit")
    return (
        f"Amplitude {format_tick_value(summary['range'], unit)}"
        f"{INSIGHT_SEPARATOR}Tendance {summary['trend']} "
        f"(Delta {format_tick_value(summary['delta'], unit)})."
    )


def _hist_insight(payload):
    top = dominant_bin(payload.get("bins"))
    if top is None:
        return None
    unit = payload.get("xUnit")
    return f"Zone dominante {top['label']}{' ' + unit if unit else ''} ({top['share']}% des coups)."


def _table_insight(payload):
    metric, best = _table_best_row(payload)
    if best is None:
        return None
    return f"{_row_label(best)}: {metric} {_text_value(best[metric])}."


def _matrix_insight(payload):
    pair = strongest_pair(payload.get("variables") or [], payload.get("matrix") or [])
    if pair is None:
        return None
    return f"Corrélation la plus forte: {pair['row']} vs {pair['col']} (r={to_fixed(pair['value'], 2)})."


def _model_insight(payload):
    model = payload.get("model") or {}
    if not model.get("n"):
        return None
    r2 = to_fixed(model.get("r2", 0), 2)
    top = dominant_coefficient(model)
    if top is None:
        return f"R2 {r2}."
    return f"R2 {r2} - facteur dominant: {top[0]} ({to_fixed(top[1], 2)})."


# ============================================================
# Payload commentary
# ============================================================

def _scatter_commentary(payload):
    r = _scatter_r(payload, MIN_SCATTER_CORRELATION_POINTS)
    if r is None:
        return None
    x_label = payload["xLabel"]
    y_label = payload["yLabel"]
    if abs(r) < WEAK_LINK_R:
        relation = f"Lien faible entre {x_label} et {y_label}."
    else:
        direction = "augmente" if r > 0 else "diminue"
        relation = (
            f"Tendance {correlation_strength(r)}: quand {x_label} augmente, "
            f"{y_label} {direction}."
        )
    return _with_hint(relation, [x_label, y_label])


def _line_commentary(payload):
    summary = _first_series_summary(payload)
    if summary is None:
        return None
    return _with_hint(f"Tendance {summary['trend']} sur la série.", [payload.get("yLabel")])


def _hist_commentary(payload):
    top = dominant_bin(payload.get("bins"))
    if top is None:
        return None
    base = f"Zone la plus fréquente: {top['label']} ({top['share']}% des coups)."
    return _with_hint(base, [payload.get("xLabel")])


def _table_commentary(payload):
    return None


def _matrix_commentary(payload):
    return (
        "Les corrélations fortes indiquent les variables qui influencent le résultat. "
        f"{technique_suggestion(payload.get('variables') or [])}"
    )


def _model_commentary(payload):
    name = (payload.get("model") or {}).get("name", "")
    return (
        "Le modèle met en avant les facteurs techniques qui pèsent sur la métrique cible. "
        f"{technique_suggestion([name])}"
    )


# ============================================================
# Payload tone
# ============================================================

def _scatter_tone(payload):
    r = _scatter_r(payload, MIN_SCATTER_CORRELATION_POINTS)
    if r is None:
        return "warn"
    return _tone(abs(r), SCATTER_TONE_BANDS)


def _line_tone(payload):
    summary = _first_series_summary(payload)
    if summary is None:
        return "warn"
    avg = summary["mean"]
    spread = summary["range"] / abs(avg) if avg else summary["range"]
    return _tone(spread, LINE_TONE_BANDS, higher_is_better=False)


def _hist_tone(payload):
    top = dominant_bin(payload.get("bins"))
    if top is None:
        return "warn"
    return _tone(top["ratio"], HIST_TONE_BANDS)


def _table_tone(payload):
    return "warn"


def _matrix_tone(payload):
    pair = strongest_pair(payload.get("variables") or [], payload.get("matrix") or [])
    if pair is None:
        return "warn"
    return _tone(abs(pair["value"]), MATRIX_TONE_BANDS)


def _model_tone(payload):
    return _tone((payload.get("model") or {}).get("r2") or 0, MODEL_TONE_BANDS)


# ============================================================
# Payload highlights
# ============================================================

def _scatter_highlights(payload):
    points = payload.get("points") or []
    if len(points) < MIN_SCATTER_HIGHLIGHT_POINTS:
        return []
    summary = scatter_summary(points)
    items = []
    r = correlation(summary["xs"], summary["ys"])
    if r is not None:
        items.append({"value": to_fixed(r, 2), "label": "r"})
    if summary["meanY"] is not None:
        y_unit = payload.get("yUnit")
        label = f"{payload['yLabel']} {y_unit}" if y_unit else payload["yLabel"]
        items.append({"value": format_highlight_value(summary["meanY"], 1), "label": label})
    return items


def _line_highlights(payload):
    summary = _first_series_summary(payload)
    if summary is None:
        return []
    return [
        {"value": format_highlight_value(summary["delta"], 1), "label": "Delta"},
        {"value": format_highlight_value(summary["range"], 1), "label": "Amplitude"},
    ]


def _hist_highlights(payload):
    top = dominant_bin(payload.get("bins"))
    if top is None:
        return []
    return [
        {"value": f"{top['share']}%", "label": "Top zone"},
        {"value": top["label"], "label": payload.get("xLabel")},
    ]


def _table_highlights(payload):
    return []


def _matrix_highlights(payload):
    pair = strongest_pair(payload.get("variables") or [], payload.get("matrix") or [])
    if pair is None:
        return []
    return [
        {"value": to_fixed(pair["value"], 2), "label": "r max"},
        {"value": f"{pair['row']} / {pair['col']}", "label": "Paire"},
    ]


def _model_highlights(payload):
    model = payload.get("model") or {}
    return [
        {"value": to_fixed(model.get("r2") or 0, 2), "label": "R2"},
        {"value": str(model.get("n", 0)), "label": "N"},
    ]


# ============================================================
# Dispatch
# ============================================================

_INSIGHT = {
    "scatter": _scatter_insight,
    "line": _line_insight,
    "hist": _hist_insight,
    "table": _table_insight,
    "matrix": _matrix_insight,
    "model": _model_insight,
}
_COMMENTARY = {
    "scatter": _scatter_commentary,
    "line": _line_commentary,
    "hist": _hist_commentary,
    "table": _table_commentary,
    "matrix": _matrix_commentary,
    "model": _model_commentary,
}
_TONE = {
    "scatter": _scatter_tone,
    "line": _line_tone,
    "hist": _hist_tone,
    "table": _table_tone,
    "matrix": _matrix_tone,
    "model": _model_tone,
}
_HIGHLIGHTS = {
    "scatter": _scatter_highlights,
    "line": _line_highlights,
    "hist": _hist_highlights,
    "table": _table_highlights,
    "matrix": _matrix_highlights,
    "model": _model_highlights,
}


def payload_insight(payload):
    """Numbers-first summary of a chart payload, or None when data is insufficient."""
    handler = _INSIGHT.get((payload or {}).get("type"))
    return handler(payload) if handler else None


def payload_commentary(payload):
    """Coaching sentence with a technique hint and a practice suggestion."""
    handler = _COMMENTARY.get((payload or {}).get("type"))
    return handler(payload) if handler else None


def payload_tone(payload):
    handler = _TONE.get((payload or {}).get("type"))
    return handler(payload) if handler else "warn"


def payload_highlights(payload):
    handler = _HIGHLIGHTS.get((payload or {}).get("type"))
    return handler(payload) if handler else []


# ============================================================
# Session charts
# ============================================================

DISPERSION_COMMENTS = {
    "serrée": "Dispersion serrée: face et chemin sont bien contrôlés, bon alignement et centrage.",
    "modérée": (
        "Dispersion modérée: la face ou le chemin varie, "
        "travailler l'alignement et la stabilité d'impact."
    ),
    "large": (
        "Dispersion large: variations de face/chemin importantes, "
        "priorité au centrage et au plan de swing."
    ),
}
LABEL_TONES = {"serrée": "good", "modérée": "warn", "large": "bad"}

ROLL_COMMENTS = {
    "low": "Peu de roll: angle d'atterrissage plus raide et/ou spin plus élevé.",
    "high": "Roll important: angle d'atterrissage plus plat ou spin plus bas.",
    "mid": "Roll modéré: conditions de lancement équilibrées.",
}

SPEED_COMMENTS = {
    "good": "Contact très efficace: centrage et vitesse de tête de club bien convertis.",
    "warn": "Contact correct: marge de progression sur le centrage et la vitesse à l'impact.",
    "bad": "Contact à travailler: centrage et qualité de compression insuffisants.",
}

SPIN_CARRY_COMMENTS = {
    "negative": "Plus de spin réduit le carry: vérifier loft dynamique/angle d'attaque.",
    "positive": "Plus de spin augmente le carry: attention au rendement si le spin devient excessif.",
    "weak": "Lien faible spin/carry: la distance est surtout liée à la vitesse.",
}

SMASH_LABELS = {"good": "très régulier", "warn": "plutôt régulier", "bad": "variable"}
SMASH_COMMENTS = {
    "good": "Smash très régulier: contact constant et bon contrôle de la face.",
    "warn": "Smash plutôt régulier: stabiliser encore le centrage.",
    "bad": "Smash variable: contact incohérent, travailler centrage et tempo.",
}

FACE_IMPACT_COMMENTS = {
    "good": "Impacts centrés: bon contrôle de la face et de la profondeur de swing.",
    "warn": "Impacts plutôt centrés: léger décalage toe/heel à corriger.",
    "bad": "Impacts décentrés: priorité au centrage pour stabiliser la vitesse et la direction.",
}


def dispersion_label(within_lat10=None, lat_std=None):
    """serrée / modérée / large from the 10 m corridor, else from lateral std."""
    if is_finite_number(within_lat10):
        if within_lat10 >= DISPERSION_CORRIDOR_BANDS[0]:
            return "serrée"
        if within_lat10 >= DISPERSION_CORRIDOR_BANDS[1]:
            return "modérée"
        return "large"
    if is_finite_number(lat_std):
        if lat_std <= DISPERSION_STD_BANDS[0]:
            return "serrée"
        if lat_std <= DISPERSION_STD_BANDS[1]:
            return "modérée"
        return "large"
    return None


def dispersion_commentary(within_lat10=None, lat_std=None):
    label = dispersion_label(within_lat10, lat_std)
    return DISPERSION_COMMENTS.get(label) if label else None


def dispersion_tone(within_lat10=None, lat_std=None):
    label = dispersion_label(within_lat10, lat_std)
    return LABEL_TONES.get(label, "warn")


def roll_mean(carry_mean, total_mean):
    if not is_finite_number(carry_mean) or not is_finite_number(total_mean):
        return None
    return total_mean - carry_mean


def roll_ratio(carry_mean, total_mean):
    roll = roll_mean(carry_mean, total_mean)
    if roll is None or not carry_mean:
        return None
    return roll / carry_mean


def carry_total_commentary(carry_mean, total_mean):
    roll = roll_mean(carry_mean, total_mean)
    if roll is None:
        return None
    ratio = roll_ratio(carry_mean, total_mean)
    if ratio is not None and ratio < ROLL_RATIO_LOW:
        return ROLL_COMMENTS["low"]
    if ratio is not None and ratio > ROLL_RATIO_HIGH:
        return ROLL_COMMENTS["high"]
    if roll < ROLL_ABS_LOW:
        return ROLL_COMMENTS["low"]
    if roll > ROLL_ABS_HIGH:
        return ROLL_COMMENTS["high"]
    return ROLL_COMMENTS["mid"]


def carry_total_tone(carry_mean, total_mean):
    ratio = roll_ratio(carry_mean, total_mean)
    if ratio is None:
        return "warn"
    if ROLL_RATIO_LOW <= ratio <= ROLL_RATIO_HIGH:
        return "good"
    if ratio < ROLL_RATIO_BAD_LOW or ratio > ROLL_RATIO_BAD_HIGH:
        return "bad"
    return "warn"


def speeds_tone(smash_mean):
    if not is_finite_number(smash_mean):
        return "warn"
    return _tone(smash_mean, SMASH_MEAN_BANDS)


def speeds_commentary(smash_mean):
    if not is_finite_number(smash_mean):
        return None
    return SPEED_COMMENTS[speeds_tone(smash_mean)]


def spin_carry_correlation(points):
    """r(spin, carry) once at least 6 shots carry both readings."""
    if len(points or []) < MIN_SCATTER_CORRELATION_POINTS:
        return None
    return correlation([p["x"] for p in points], [p["y"] for p in points])


def spin_carry_commentary(r):
    if r is None:
        return None
    if r <= -SPIN_CARRY_R:
        return SPIN_CARRY_COMMENTS["negative"]
    if r >= SPIN_CARRY_R:
        return SPIN_CARRY_COMMENTS["positive"]
    return SPIN_CARRY_COMMENTS["weak"]


def spin_carry_tone(r):
    if r is None:
        return "warn"
    return _tone(abs(r), SCATTER_TONE_BANDS)


def smash_consistency(smash_mean, smash_std, stored_cv=None):
    """Smash CV as a ratio; falls back to the stored percentage CV."""
    if smash_mean and smash_std:
        return smash_std / smash_mean
    if is_finite_number(stored_cv):
        return stored_cv / 100.0
    return None


def smash_tone(smash_cv):
    if not is_finite_number(smash_cv):
        return "warn"
    return _tone(smash_cv, SMASH_CV_BANDS, higher_is_better=False)


def smash_consistency_label(smash_cv):
    if not is_finite_number(smash_cv):
        return None
    return SMASH_LABELS[smash_tone(smash_cv)]


def smash_commentary(smash_cv):
    if not is_finite_number(smash_cv):
        return None
    return SMASH_COMMENTS[smash_tone(smash_cv)]


def face_impact_tone(mean_norm):
    if not is_finite_number(mean_norm):
        return "warn"
    return _tone(mean_norm, FACE_IMPACT_BANDS, higher_is_better=False)


def face_impact_commentary(mean_norm):
    if not is_finite_number(mean_norm):
        return None
    return FACE_IMPACT_COMMENTS[face_impact_tone(mean_norm)]


# ============================================================
# Session chart synthesis
# ============================================================

def _stat(analytics, key, field):
    value = (((analytics or {}).get("globalStats") or {}).get(key) or {}).get(field)
    return value if is_finite_number(value) else None


def _within_lat10(analytics):
    corridors = ((analytics or {}).get("derived") or {}).get("corridors") or {}
    value = corridors.get("withinLat10")
    return value if is_finite_number(value) else None


def session_statistics(analytics, session=None):
    """Upstream numbers shared by the session chart insight, commentary and tone."""
    session = session or {}
    smash_mean = _stat(analytics, "smash", "mean")
    carry_mean = _stat(analytics, "carry", "mean")
    total_mean = _stat(analytics, "total", "mean")
    club = ((analytics or {}).get("meta") or {}).get("club")
    return {
        "withinLat10": _within_lat10(analytics),
        "latStd": _stat(analytics, "lateral", "std"),
        "carryMean": carry_mean,
        "totalMean": total_mean,
        "smashMean": smash_mean,
        "spinCarryR": spin_carry_correlation(session.get("spinCarryPoints")),
        "smashCv": smash_consistency(
            smash_mean, _stat(analytics, "smash", "std"), _stat(analytics, "smash", "cv")
        ),
        "impactNorm": mean_normalized_impact(session.get("faceImpactPoints"), club),
    }


def base_commentaries(analytics, session=None):
    if not analytics:
        return {}
    stats = session_statistics(analytics, session)
    comments = {
        "dispersion": dispersion_commentary(stats["withinLat10"], stats["latStd"]),
        "carryTotal": carry_total_commentary(stats["carryMean"], stats["totalMean"]),
        "speeds": speeds_commentary(stats["smashMean"]),
        "spinCarry": spin_carry_commentary(stats["spinCarryR"]),
        "smash": smash_commentary(stats["smashCv"]),
        "faceImpact": face_impact_commentary(stats["impactNorm"]),
    }
    return {key: text for key, text in comments.items() if text}


def base_tones(analytics, session=None):
    if not analytics:
        return {key: "warn" for key in BASE_CHART_KEYS}
    stats = session_statistics(analytics, session)
    return {
        "dispersion": dispersion_tone(stats["withinLat10"], stats["latStd"]),
        "carryTotal": carry_total_tone(stats["carryMean"], stats["totalMean"]),
        "speeds": speeds_tone(stats["smashMean"]),
        "spinCarry": spin_carry_tone(stats["spinCarryR"]),
        "smash": smash_tone(stats["smashCv"]),
        "faceImpact": face_impact_tone(stats["impactNorm"]),
    }


def _join(parts):
    kept = [part for part in parts if part]
    return INSIGHT_SEPARATOR.join(kept) if kept else None


def base_insights(global_stats, units, corridors=None, lat_threshold=10):
    """Terse numbers-first line per session chart."""
    global_stats = global_stats or {}
    units = units or {}

    def stat(key, field="mean"):
        value = (global_stats.get(key) or {}).get(field)
        return value if is_finite_number(value) else None

    insights = {}
    lat_unit = units.get("lateral")
    within = (corridors or {}).get("withinLat10")
    lat_mean = stat("lateral")
    lat_std = stat("lateral", "std")
    insights["dispersion"] = _join([
        f"Moyenne latérale {format_insight_value(lat_mean, lat_unit)}" if lat_mean is not None else None,
        f"ET {format_insight_value(lat_std, lat_unit)}" if lat_std is not None else None,
        (
            f"{number_text(within)}% des coups dans {number_text(lat_threshold)} {lat_unit or 'm'}"
            if is_finite_number(within) else None
        ),
    ])

    carry_mean = stat("carry")
    total_mean = stat("total")
    roll = roll_mean(carry_mean, total_mean)
    total_unit = units.get("total") or units.get("carry")
    insights["carryTotal"] = _join([
        f"Carry moyen {format_insight_value(carry_mean, units.get('carry'))}" if carry_mean is not None else None,
        f"Total moyen {format_insight_value(total_mean, total_unit)}" if total_mean is not None else None,
        f"Roll moyen {format_insight_value(roll, total_unit)}" if roll is not None else None,
    ])

    club_mean = stat("club_speed")
    ball_mean = stat("ball_speed")
    smash_mean = stat("smash")
    ratio = ball_mean / club_mean if club_mean and ball_mean else None
    insights["speeds"] = _join([
        f"Club moy. {format_insight_value(club_mean, units.get('club_speed'))}" if club_mean is not None else None,
        f"Balle moy. {format_insight_value(ball_mean, units.get('ball_speed'))}" if ball_mean is not None else None,
        f"Smash moy. {format_insight_value(smash_mean, units.get('smash'), 2)}" if smash_mean is not None else None,
        f"Ratio {format_highlight_value(ratio, 2)}" if ratio is not None else None,
    ])

    spin_mean = stat("spin_rpm")
    insights["spinCarry"] = _join([
        f"Spin moyen {format_insight_value(spin_mean, units.get('spin_rpm'), 0)}" if spin_mean is not None else None,
        f"Carry moyen {format_insight_value(carry_mean, units.get('carry'))}" if carry_mean is not None else None,
    ])

    smash_std = stat("smash", "std")
    smash_cv = stat("smash", "cv")
    insights["smash"] = _join([
        f"Smash moyen {format_insight_value(smash_mean, units.get('smash'), 2)}" if smash_mean is not None else None,
        f"ET {format_insight_value(smash_std, units.get('smash'), 2)}" if smash_std is not None else None,
        f"CV {format_insight_value(smash_cv, '%', 1)}" if smash_cv is not None else None,
    ])

    impact_lat = stat("impact_lat")
    impact_vert = stat("impact_vert")
    insights["faceImpact"] = _join([
        f"Lat. moy. {format_insight_value(impact_lat, units.get('impact_lat') or IMPACT_UNIT)}" if impact_lat is not None else None,
        f"Vert. moy. {format_insight_value(impact_vert, units.get('impact_vert') or IMPACT_UNIT)}" if impact_vert is not None else None,
    ])

    return {key: text for key, text in insights.items() if text}


def _item(value, label):
    if value is None or value == "":
        return None
    return {"value": value, "label": label.strip()}


def base_highlights(analytics):
    if not analytics:
        return {}
    units = (analytics.get("meta") or {}).get("units") or {}
    within = _within_lat10(analytics)
    lat_std = _stat(analytics, "lateral", "std")
    carry_mean = _stat(analytics, "carry", "mean")
    total_mean = _stat(analytics, "total", "mean")
    roll = roll_mean(carry_mean, total_mean)
    total_unit = units.get("total") or units.get("carry") or ""
    smash_mean = _stat(analytics, "smash", "mean")

    highlights = {
        "dispersion": [
            _item(f"{round_half_up(within)}%" if within is not None else None, "Précision ±10"),
            _item(format_highlight_value(lat_std, 1), f"ET {units.get('lateral') or ''}"),
        ],
        "carryTotal": [
            _item(format_highlight_value(carry_mean, 1), f"Carry {units.get('carry') or ''}"),
            _item(format_highlight_value(total_mean, 1), f"Total {total_unit}"),
            _item(format_highlight_value(roll, 1), f"Roll {total_unit}"),
        ],
        "speeds": [
            _item(
                format_highlight_value(_stat(analytics, "club_speed", "mean"), 1),
                f"Club {units.get('club_speed') or ''}",
            ),
            _item(
                format_highlight_value(_stat(analytics, "ball_speed", "mean"), 1),
                f"Balle {units.get('ball_speed') or ''}",
            ),
            _item(format_highlight_value(smash_mean, 2), "Smash"),
        ],
        "spinCarry": [
            _item(
                format_highlight_value(_stat(analytics, "spin_rpm", "mean"), 0),
                f"Spin {units.get('spin_rpm') or ''}",
            ),
            _item(format_highlight_value(carry_mean, 1), f"Carry {units.get('carry') or ''}"),
        ],
        "smash": [
            _item(format_highlight_value(smash_mean, 2), "Smash"),
            _item(format_highlight_value(_stat(analytics, "smash", "std"), 2), "ET"),
        ],
        "faceImpact": [
            _item(format_highlight_value(_stat(analytics, "impact_lat", "mean"), 2), "Lat"),
            _item(format_highlight_value(_stat(analytics, "impact_vert", "mean"), 2), "Vert"),
        ],
    }
    return {key: [item for item in items if item] for key, items in highlights.items()}


# ============================================================
# Narratives
# ============================================================

NARRATIVE_SYNTAXES = ("exp-tech", "exp-comp", "exp-tech-solution", "exp-solution", "global")
DEFAULT_SYNTAX = "exp-tech-solution"


def narrative_flags(syntax):
    syntax = syntax or DEFAULT_SYNTAX
    return {
        "comparative": syntax in ("exp-comp", "global"),
        "solution": syntax in ("exp-solution", "exp-tech-solution", "global"),
        "technique": syntax in ("exp-tech", "exp-tech-solution", "global"),
    }


def _session_reasons(analytics, session, lat_threshold, insights):
    units = (analytics.get("meta") or {}).get("units") or {}
    lateral_unit = units.get("lateral") or session.get("lateralUnit") or "m"
    distance_unit = units.get("carry") or units.get("total") or session.get("distanceUnit") or "m"
    stats = session_statistics(analytics, session)
    reasons = {}

    within = stats["withinLat10"]
    if within is not None:
        label = dispersion_label(within, None)
        reasons["dispersion"] = (
            f"dispersion {label} ({round_half_up(within)}% dans +/-"
            f"{number_text(lat_threshold)} {lateral_unit})"
        )
    elif stats["latStd"] is not None:
        reasons["dispersion"] = f"ET latérale {format_tick_value(stats['latStd'], lateral_unit)}"

    roll = roll_mean(stats["carryMean"], stats["totalMean"])
    if roll is not None:
        reasons["carryTotal"] = f"écart carry/total {format_tick_value(roll, distance_unit)}"

    club_mean = _stat(analytics, "club_speed", "mean")
    ball_mean = _stat(analytics, "ball_speed", "mean")
    if stats["smashMean"] is not None:
        reasons["speeds"] = f"smash moyen {to_fixed(stats['smashMean'], 2)}"
    elif club_mean and ball_mean:
        reasons["speeds"] = f"ratio balle/club {to_fixed(ball_mean / club_mean, 2)}"

    points = session.get("spinCarryPoints") or []
    if len(points) >= MIN_SCATTER_CORRELATION_POINTS:
        if stats["spinCarryR"] is not None:
            r = stats["spinCarryR"]
            reasons["spinCarry"] = (
                f"relation {correlation_strength(r)} spin/carry (r={to_fixed(r, 2)})"
            )

    smash_values = session.get("smashValues") or []
    if len(smash_values) >= MIN_LINE_POINTS:
        reasons["smash"] = f"amplitude smash {to_fixed(max(smash_values) - min(smash_values), 2)}"

    impact_points = session.get("faceImpactPoints") or []
    if impact_points:
        mean_x = sum(p["x"] for p in impact_points) / len(impact_points)
        mean_y = sum(p["y"] for p in impact_points) / len(impact_points)
        reasons["faceImpact"] = (
            f"centrage moyen {format_tick_value(math.hypot(mean_x, mean_y), IMPACT_UNIT)}"
        )

    for key in BASE_CHART_KEYS:
        # Sparse sessions fall back to the numbers-first insight, except where
        # the primary statistic exists but is degenerate.
        if key in reasons:
            continue
        if key == "spinCarry" and len(points) >= MIN_SCATTER_CORRELATION_POINTS:
            continue
        if insights.get(key):
            reasons[key] = insights[key]
    return reasons


def build_narratives(analytics, session=None, comparisons=None, options=None, thresholds=None):
    """
    Reason / solution pairs per chart key.

    Narratives supplied in the options win outright. Otherwise nothing is
    generated while aiNarrative is "off"; the aiSyntax decides whether the
    PGA comparison, the coaching commentary or a technique-only line is used.
    """
    options = options or {}
    provided = options.get("aiNarratives")
    if provided:
        return dict(provided)
    if (options.get("aiNarrative") or "off") == "off" or not analytics:
        return {}

    session = session or {}
    comparisons = comparisons or {}
    flags = narrative_flags(options.get("aiSyntax"))
    lat_threshold = ((thresholds or {}).get("latCorridorMeters") or [5, 10])[1]
    insights = analytics.get("insights") or base_insights(
        analytics.get("globalStats"),
        (analytics.get("meta") or {}).get("units"),
        (analytics.get("derived") or {}).get("corridors"),
        lat_threshold,
    )
    comments = base_commentaries(analytics, session)

    narratives = {}
    for key, base_reason in _session_reasons(analytics, session, lat_threshold, insights).items():
        reason = base_reason
        if flags["comparative"] and comparisons.get(key):
            reason = f"{base_reason} | {comparisons[key]}"
        if flags["solution"]:
            solution = comments.get(key)
        elif flags["technique"]:
            solution = technique_only(key)
        else:
            solution = None
        narratives[key] = {"reason": reason, "solution": solution}

    for key, data in (analytics.get("chartsData") or {}).items():
        payload = (data or {}).get("payload")
        if not payload:
            continue
        base_reason = payload.get("insight") or payload_insight(payload)
        reason = base_reason
        if flags["comparative"] and comparisons.get(key):
            reason = f"{base_reason} | {comparisons[key]}" if base_reason else comparisons[key]
        if flags["solution"]:
            solution = payload_commentary(payload)
        elif flags["technique"]:
            solution = technique_hint([payload.get("title") or ""])
        else:
            solution = None
        if reason or solution:
            narratives[key] = {"reason": reason, "solution": solution}

    logger.debug("Built %d narratives (syntax %s)", len(narratives), options.get("aiSyntax"))
    return narratives


def resolve_narrative(key, narratives, options=None):
    """Config-provided narrative first; computed ones only for selected keys in per-chart mode."""
    options = options or {}
    provided = (options.get("aiNarratives") or {}).get(key)
    if provided:
        return provided
    if options.get("aiNarrative") != "per-chart":
        return None
    if key not in set(options.get("aiSelectionKeys") or []):
        return None
    return (narratives or {}).get(key)


# ============================================================
# Segment text
# ============================================================

SEGMENT_PREFERRED_METRICS = [
    "carry_mean",
    "total_mean",
    "smash_mean",
    "club_speed_mean",
    "ball_speed_mean",
    "spin_rpm_mean",
    "launch_v_mean",
    "launch_h_mean",
    "height_mean",
    "lateral_mean",
    "radial_miss_mean",
    "withinLat10",
    "withinLat5",
    "withinDist10",
    "withinDist5",
]

SEGMENT_METRIC_LABELS = {
    "carry_mean": "Carry moy",
    "total_mean": "Total moy",
    "roll_mean": "Roll moy",
    "smash_mean": "Smash moy",
    "club_speed_mean": "Club moy",
    "ball_speed_mean": "Balle moy",
    "spin_rpm_mean": "Spin moy",
    "launch_v_mean": "Launch V moy",
    "launch_h_mean": "Launch H moy",
    "height_mean": "Height moy",
    "lateral_mean": "Latéral moy",
    "radial_miss_mean": "Dispersion moy",
    "withinlat10": "Précision +/-10",
    "withinlat5": "Précision +/-5",
    "withindist10": "Précision dist +/-10",
    "withindist5": "Précision dist +/-5",
    "impact_lat_mean": "Impact lat moy",
    "impact_vert_mean": "Impact vert moy",
}

_ROW_LABEL_KEYS = ("Groupe", "GROUP", "Group", "group", "key", "label", "type", "shot_type", "Zone", "zone")


def _best_by(summaries, key):
    best = None
    for row in summaries:
        value = row.get(key)
        if not is_finite_number(value):
            continue
        if best is None or value > best[1]:
            best = (row, value)
    return best


def segment_insight(summaries):
    """Best group for precision, else carry, else smash."""
    if not summaries:
        return None
    precision = _best_by(summaries, "withinLat10")
    if precision:
        row, value = precision
        return f"Meilleure précision: {row.get('key') or 'groupe'} ({number_text(value)}% dans 10 m)."
    carry = _best_by(summaries, "carry_mean")
    if carry:
        row, value = carry
        return f"Carry moyen le plus élevé: {row.get('key') or 'groupe'} ({to_fixed(value, 1)})."
    smash = _best_by(summaries, "smash_mean")
    if smash:
        row, value = smash
        return f"Smash moyen le plus élevé: {row.get('key') or 'groupe'} ({to_fixed(value, 2)})."
    return None


def segment_metric_label(key):
    return SEGMENT_METRIC_LABELS.get(key.lower(), key.replace("_", " "))


def format_segment_value(key, value):
    if value is None:
        return "-"
    if not is_finite_number(value):
        return str(value)
    lower = key.lower()
    is_percent = lower.startswith("within") or "percent" in lower or "pct" in lower
    rounded = to_fixed(value, 0 if abs(value) >= 100 else 1)
    if is_percent:
        return f"{rounded}%"
    return rounded[:-2] if rounded.endswith(".0") else rounded


def _segment_row_label(row, index):
    for key in _ROW_LABEL_KEYS:
        if row.get(key) is not None:
            return str(row[key])
    return f"Groupe {index + 1}"


def segment_analysis(summaries, segment_key):
    """One comparative sentence naming the group that stands out on the main metric."""
    if not summaries:
        return None
    numeric_keys = [
        key for key in summaries[0]
        if key.lower() != "count" and any(is_finite_number(row.get(key)) for row in summaries)
    ]
    if not numeric_keys:
        return None
    metric = next((key for key in SEGMENT_PREFERRED_METRICS if key in numeric_keys), numeric_keys[0])
    lower = metric.lower()
    lower_is_better = "std" in lower or "miss" in lower or "dispersion" in lower

    best = None
    for index, row in enumerate(summaries):
        value = row.get(metric)
        if not is_finite_number(value):
            continue
        if best is None or (value < best[1] if lower_is_better else value > best[1]):
            best = (row, value, index)
    if best is None:
        return None

    row, value, index = best
    opener = "Évolution sur la séance." if segment_key == "byPeriodTertile" else "Comparatif par segments."
    return (
        f"{opener} {_segment_row_label(row, index)} ressort sur "
        f"{segment_metric_label(metric)} ({format_segment_value(metric, value)})."
    )
