import copy

import radar_config as rcfg
from radar_charts import CHART_KEYS
from radar_insights import BASE_CHART_KEYS


def test_defaults_when_no_config():
    config = rcfg.build_radar_config(None)

    assert config["mode"] == "default"
    assert config["showSummary"] is True
    assert config["thresholds"]["latCorridorMeters"] == [5, 10]
    assert config["thresholds"]["impactCenterBox"] == {"lat": 0.4, "vert": 0.4}
    assert config["thresholds"]["bins"] == {"quantiles": [0.33, 0.66]}
    assert config["options"]["aiNarrative"] == "off"
    assert config["options"]["aiSyntax"] == "exp-tech-solution"
    assert all(config["charts"][key] for key in BASE_CHART_KEYS + CHART_KEYS)


def test_partial_thresholds_keep_nested_defaults():
    config = rcfg.build_radar_config({
        "thresholds": {"latCorridorMeters": [3, 8], "impactCenterBox": {"lat": 0.3}},
    })

    assert config["thresholds"]["latCorridorMeters"] == [3, 8]
    assert config["thresholds"]["distCorridorMeters"] == [5, 10]
    assert config["thresholds"]["impactCenterBox"] == {"lat": 0.3, "vert": 0.4}
    assert config["thresholds"]["bins"]["quantiles"] == [0.33, 0.66]


def test_partial_charts_and_options():
    config = rcfg.build_radar_config({
        "charts": {"hist_carry": False, "not_a_chart": True},
        "options": {"aiNarrative": "per-chart", "aiSelectionKeys": ["dispersion"]},
    })

    assert config["charts"]["hist_carry"] is False
    assert config["charts"]["dispersion"] is True
    assert "not_a_chart" not in config["charts"]
    assert config["options"]["aiNarrative"] == "per-chart"
    assert config["options"]["aiSelectionKeys"] == ["dispersion"]
    assert config["options"]["aiSyntax"] == "exp-tech-solution"


def test_unknown_keys_are_ignored():
    config = rcfg.build_radar_config({
        "foo": 1,
        "thresholds": {"outlierMethod": "zrobust"},
        "options": {"aiPreset": "ultra"},
    })

    assert "foo" not in config
    assert "outlierMethod" not in config["thresholds"]
    assert "aiPreset" not in config["options"]


def test_free_form_options_are_taken_whole():
    narratives = {"speeds": {"reason": "r", "solution": "s"}}
    config = rcfg.build_radar_config({
        "options": {"aiNarratives": narratives, "aiAnswers": {"club": "7 iron"}},
    })

    assert config["options"]["aiNarratives"] == narratives
    assert config["options"]["aiAnswers"] == {"club": "7 iron"}


def test_invalid_modes_fall_back():
    config = rcfg.build_radar_config({"mode": "weird", "options": {"aiNarrative": "always"}})

    assert config["mode"] == "default"
    assert config["options"]["aiNarrative"] == "off"


def test_caller_dict_and_defaults_are_not_mutated():
    user = {"thresholds": {"latCorridorMeters": [3, 8]}, "charts": {"speeds": False}}
    snapshot = copy.deepcopy(user)
    defaults = copy.deepcopy(rcfg.DEFAULT_RADAR_CONFIG)

    config = rcfg.build_radar_config(user)
    config["thresholds"]["latCorridorMeters"].append(99)
    config["options"]["aiSelectionKeys"].append("x")

    assert user == snapshot
    assert rcfg.DEFAULT_RADAR_CONFIG == defaults


def test_enabled_chart_keys_order():
    config = rcfg.build_radar_config({"charts": {"speeds": False}})

    keys = rcfg.enabled_chart_keys(config)

    assert keys[:5] == ["dispersion", "carryTotal", "spinCarry", "smash", "faceImpact"]
    assert "speeds" not in keys
    assert keys[5] == CHART_KEYS[0]
