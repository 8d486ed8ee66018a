import logging

from radar_analytics import compute_analytics, session_rows
from radar_benchmarks import benchmark_club_hint, find_pga_benchmark, pga_comparisons, pga_deltas
from radar_charts import (
    build_face_impact_heatmap,
    build_line_payload,
    build_scatter_payload,
)
from radar_columns import column_key, column_unit, numeric_series, paired_points, resolve_metrics
from radar_config import build_radar_config, enabled_chart_keys
from radar_insights import (
    BASE_CHART_DESCRIPTIONS,
    BASE_CHART_KEYS,
    base_commentaries,
    base_highlights,
    base_insights,
    base_tones,
    build_narratives,
    payload_commentary,
    payload_highlights,
    payload_insight,
    payload_tone,
    resolve_narrative,
    segment_analysis,
    segment_insight,
)
from radar_outliers import outlier_shot_set, rank_outlier_shots

logger = logging.getLogger(__name__)


# ============================================================
# Session series
# ============================================================

def collect_session_series(columns, shots):
    """
    Points behind the session charts, read from the raw export columns.

    Metric columns are resolved once for the whole report. The distance axis
    of the spin chart uses carry, falling back to total.
    """
    metrics = resolve_metrics(columns)
    lateral = metrics["distance_lateral"]
    carry = metrics["distance_carry"]
    distance = carry or metrics["distance_total"]

    return {
        "metrics": metrics,
        "dispersionPoints": paired_points(shots, column_key(lateral), column_key(carry)),
        "spinCarryPoints": paired_points(
            shots, column_key(metrics["spin_rate"]), column_key(distance)
        ),
        "faceImpactPoints": paired_points(
            shots,
            column_key(metrics["face_impact_lateral"]),
            column_key(metrics["face_impact_vertical"]),
        ),
        "smashValues": [
            entry["value"] for entry in numeric_series(shots, column_key(metrics["smash"]))
        ],
        "lateralUnit": column_unit(lateral),
        "distanceUnit": column_unit(distance),
    }


def build_session_payloads(shots, session):
    """Chart payloads for the six session charts; None where the columns are missing."""
    metrics = session["metrics"]

    def key(metric):
        return column_key(metrics[metric])

    def unit(metric):
        return column_unit(metrics[metric])

    distance_metric = "distance_carry" if metrics["distance_carry"] else "distance_total"
    return {
        "dispersion": build_scatter_payload(
            shots, key("distance_lateral"), key("distance_carry"),
            "Dispersion", "Latéral", "Carry",
            x_unit=unit("distance_lateral"), y_unit=unit("distance_carry"),
        ),
        "carryTotal": build_scatter_payload(
            shots, key("distance_carry"), key("distance_total"),
            "Carry vs Total", "Carry", "Total",
            x_unit=unit("distance_carry"), y_unit=unit("distance_total"),
        ),
        "speeds": build_scatter_payload(
            shots, key("speed_club"), key("speed_ball"),
            "Vitesse club vs balle", "Club", "Balle",
            x_unit=unit("speed_club"), y_unit=unit("speed_ball"),
        ),
        "spinCarry": build_scatter_payload(
            shots, key("spin_rate"), key(distance_metric),
            "Spin vs Carry", "Spin", "Carry",
            x_unit=unit("spin_rate"), y_unit=unit(distance_metric),
        ),
        "smash": build_line_payload(
            shots, [("Smash", key("smash"))], "Smash factor", "Coups", "Smash",
        ),
        "faceImpact": build_scatter_payload(
            shots, key("face_impact_lateral"), key("face_impact_vertical"),
            "Impact face", "Latéral", "Vertical", x_unit='"', y_unit='"',
        ),
    }


# ============================================================
# Report
# ============================================================

def _empty_entry():
    return {
        "payload": None,
        "insight": None,
        "commentary": None,
        "tone": "warn",
        "highlights": [],
        "narrative": None,
    }


def _registry_entry(charts_data, key):
    data = charts_data.get(key) or {}
    payload = data.get("payload") if data.get("available") else None
    if payload is None:
        return _empty_entry()
    return {
        "payload": payload,
        "insight": payload.get("insight") or payload_insight(payload),
        "commentary": payload_commentary(payload),
        "tone": payload_tone(payload),
        "highlights": payload_highlights(payload),
        "narrative": None,
    }


def build_segment_report(segments):
    report = {}
    for key, segment in (segments or {}).items():
        summaries = (segment or {}).get("summaries") or []
        report[key] = {
            "key": key,
            "summaries": summaries,
            "insight": segment_insight(summaries),
            "analysis": segment_analysis(summaries, key),
        }
    return report


def build_radar_report(columns, shots, config=None, analytics=None, metadata=None):
    """
    Chart payloads and French coaching text for one radar session.

    Each enabled chart key yields {payload, insight, commentary, tone,
    highlights, narrative}. Precomputed analytics are reused when supplied;
    precomputed insights win over computed ones.
    """
    if not isinstance(columns, list):
        raise TypeError(f"columns must be a list, got {type(columns).__name__}")
    if not isinstance(shots, list):
        raise TypeError(f"shots must be a list, got {type(shots).__name__}")

    radar_config = build_radar_config(config)
    options = radar_config["options"]
    thresholds = radar_config["thresholds"]
    if analytics is None:
        analytics = compute_analytics(columns, shots, radar_config, metadata)

    rows = session_rows(shots)
    session = collect_session_series(columns, rows)
    meta = analytics.get("meta") or {}
    units = meta.get("units") or {}

    club = benchmark_club_hint(options.get("aiAnswers"), meta.get("club"))
    benchmark = find_pga_benchmark(club)
    comparisons = pga_comparisons(
        pga_deltas(analytics.get("globalStats"), units, benchmark), benchmark
    )

    flags = (analytics.get("outliers") or {}).get("flags")
    outliers = dict(analytics.get("outliers") or {})
    outliers["ranked"] = rank_outlier_shots(flags)
    outliers["highlighted"] = sorted(outlier_shot_set(flags))

    narratives = build_narratives(analytics, session, comparisons, options, thresholds)
    insights = analytics.get("insights") or base_insights(
        analytics.get("globalStats"),
        units,
        (analytics.get("derived") or {}).get("corridors"),
        thresholds["latCorridorMeters"][1],
    )
    commentaries = base_commentaries(analytics, session)
    tones = base_tones(analytics, session)
    highlights = base_highlights(analytics)
    session_payloads = build_session_payloads(rows, session)
    charts_data = analytics.get("chartsData") or {}

    charts = {}
    for key in enabled_chart_keys(radar_config):
        if key in BASE_CHART_KEYS:
            entry = {
                "payload": session_payloads.get(key),
                "insight": insights.get(key),
                "commentary": commentaries.get(key),
                "tone": tones.get(key, "warn"),
                "highlights": highlights.get(key, []),
                "description": BASE_CHART_DESCRIPTIONS[key],
                "narrative": None,
            }
            if key == "faceImpact":
                entry["heatmap"] = build_face_impact_heatmap(
                    session["faceImpactPoints"], meta.get("club")
                )
        else:
            entry = _registry_entry(charts_data, key)
        entry["narrative"] = resolve_narrative(key, narratives, options)
        charts[key] = entry

    logger.debug("Radar report built with %d charts", len(charts))
    return {
        "config": radar_config,
        "analytics": analytics,
        "summary": analytics.get("summary") if radar_config["showSummary"] else None,
        "outliers": outliers,
        "charts": charts,
        "segments": build_segment_report(analytics.get("segments"))
        if radar_config["showSegments"] else {},
        "narratives": narratives,
        "sessionSummary": options.get("aiSessionSummary") or analytics.get("summary"),
        "selectionSummary": options.get("aiSelectionSummary"),
    }
