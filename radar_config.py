import copy
import logging

from radar_charts import CHART_KEYS
from radar_insights import BASE_CHART_KEYS

logger = logging.getLogger(__name__)

# ============================================================
# Defaults
# ============================================================

DEFAULT_THRESHOLDS = {
    "latCorridorMeters": [5, 10],                # lateral corridors (narrow, wide)
    "distCorridorMeters": [5, 10],               # distance-to-target corridors
    "impactCenterBox": {"lat": 0.4, "vert": 0.4},
    "bins": {"quantiles": [0.33, 0.66]},         # low / mid / high split points
}

DEFAULT_OPTIONS = {
    "aiNarrative": "off",             # off / per-chart / global
    "aiSyntax": "exp-tech-solution",
    "aiSelectionKeys": [],
    "aiNarratives": {},               # chart key -> {reason, solution}
    "aiSelectionSummary": None,
    "aiSessionSummary": None,
    "aiAnswers": {},                  # questionnaire answers, e.g. {"club": "Driver"}
}

DEFAULT_RADAR_CONFIG = {
    "mode": "default",
    "showSummary": True,
    "showTable": True,
    "showSegments": True,
    "charts": {key: True for key in BASE_CHART_KEYS + CHART_KEYS},
    "thresholds": DEFAULT_THRESHOLDS,
    "options": DEFAULT_OPTIONS,
}

CONFIG_MODES = ("default", "custom", "ai")
NARRATIVE_MODES = ("off", "per-chart", "global")

# Tables keyed by caller data rather than by known fields
FREE_FORM_TABLES = ("aiNarratives", "aiAnswers")


# ============================================================
# Merge
# ============================================================

def _merge_table(defaults, overrides, name):
    """Field-by-field merge of one nested table; unknown keys are dropped."""
    merged = copy.deepcopy(defaults)
    if not isinstance(overrides, dict):
        return merged
    for key, value in overrides.items():
        if key not in defaults:
            logger.debug("Ignoring unknown %s key %r", name, key)
            continue
        if isinstance(defaults[key], dict) and isinstance(value, dict) and key not in FREE_FORM_TABLES:
            merged[key] = _merge_table(defaults[key], value, f"{name}.{key}")
        elif value is not None or defaults[key] is None:
            merged[key] = copy.deepcopy(value)
    return merged


def build_radar_config(config=None):
    """
    Apply defaults to a (possibly partial) radar config.

    Nested charts, thresholds and options tables are merged field by field,
    so a partial override keeps every other default. The caller's dict is
    never mutated.
    """
    config = config or {}
    merged = copy.deepcopy(DEFAULT_RADAR_CONFIG)

    for key in ("mode", "showSummary", "showTable", "showSegments"):
        if config.get(key) is not None:
            merged[key] = config[key]
    if merged["mode"] not in CONFIG_MODES:
        logger.debug("Unknown config mode %r, using default", merged["mode"])
        merged["mode"] = DEFAULT_RADAR_CONFIG["mode"]

    charts = config.get("charts")
    if isinstance(charts, dict):
        for key, enabled in charts.items():
            if key in merged["charts"]:
                merged["charts"][key] = bool(enabled)
            else:
                logger.debug("Ignoring unknown chart key %r", key)

    merged["thresholds"] = _merge_table(DEFAULT_THRESHOLDS, config.get("thresholds"), "thresholds")
    merged["options"] = _merge_table(DEFAULT_OPTIONS, config.get("options"), "options")
    if merged["options"]["aiNarrative"] not in NARRATIVE_MODES:
        merged["options"]["aiNarrative"] = DEFAULT_OPTIONS["aiNarrative"]

    return merged


def enabled_chart_keys(config):
    """Chart keys switched on, base session charts first, registry order after."""
    charts = (config or {}).get("charts") or {}
    return [key for key in BASE_CHART_KEYS + CHART_KEYS if charts.get(key)]
