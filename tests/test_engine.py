import copy

import pytest

import radar_analytics as ra
import radar_engine as engine

ENTRY_KEYS = {"payload", "insight", "commentary", "tone", "highlights", "narrative"}


def test_contract_violations_raise_type_error(columns, shots):
    with pytest.raises(TypeError):
        engine.build_radar_report(None, shots)
    with pytest.raises(TypeError):
        engine.build_radar_report(columns, {"shots": shots})


def test_report_shape(columns, shots):
    report = engine.build_radar_report(columns, shots)

    assert set(report) == {
        "config",
        "analytics",
        "summary",
        "outliers",
        "charts",
        "segments",
        "narratives",
        "sessionSummary",
        "selectionSummary",
    }
    for entry in report["charts"].values():
        assert ENTRY_KEYS <= set(entry)
        assert entry["tone"] in ("good", "warn", "bad")


def test_same_input_same_report(columns, shots):
    config = {"options": {"aiNarrative": "per-chart", "aiSelectionKeys": ["dispersion", "hist_carry"]}}

    first = engine.build_radar_report(columns, shots, config)
    second = engine.build_radar_report(copy.deepcopy(columns), copy.deepcopy(shots), copy.deepcopy(config))

    assert first == second


def test_only_enabled_charts_are_reported(columns, shots):
    report = engine.build_radar_report(columns, shots, {"charts": {"hist_carry": False, "speeds": False}})

    assert "hist_carry" not in report["charts"]
    assert "speeds" not in report["charts"]
    assert "dispersion" in report["charts"]
    assert "club_vs_ball_speed" in report["charts"]


def test_session_chart_tones_and_texts(columns, shots):
    charts = engine.build_radar_report(columns, shots)["charts"]

    assert charts["dispersion"]["tone"] == "good"
    assert charts["dispersion"]["commentary"].startswith("Dispersion serrée")
    assert charts["carryTotal"]["tone"] == "good"
    # Smash mean 1.445 sits just under the 1.45 threshold
    assert charts["speeds"]["tone"] == "warn"
    assert charts["spinCarry"]["tone"] == "good"
    assert charts["spinCarry"]["commentary"].startswith("Plus de spin augmente le carry")
    assert charts["smash"]["tone"] == "good"
    assert charts["faceImpact"]["tone"] == "warn"
    assert charts["faceImpact"]["payload"] is None
    assert charts["dispersion"]["payload"]["type"] == "scatter"
    assert len(charts["dispersion"]["payload"]["points"]) == 12
    assert charts["smash"]["payload"]["type"] == "line"


def test_registry_charts_without_columns_are_placeholders(columns, shots):
    charts = engine.build_radar_report(columns, shots)["charts"]

    assert charts["aoa_vs_rpm"]["payload"] is None
    assert charts["aoa_vs_rpm"]["tone"] == "warn"
    assert charts["aoa_vs_rpm"]["highlights"] == []
    assert charts["club_vs_ball_speed"]["payload"]["type"] == "scatter"
    assert charts["club_vs_ball_speed"]["insight"].startswith("Relation")


def test_precomputed_insights_are_preferred(columns, shots):
    analytics = ra.compute_analytics(columns, shots)
    analytics["insights"]["dispersion"] = "Dispersion précalculée"
    analytics["chartsData"]["hist_carry"]["payload"]["insight"] = "Histogramme précalculé"

    charts = engine.build_radar_report(columns, shots, analytics=analytics)["charts"]

    assert charts["dispersion"]["insight"] == "Dispersion précalculée"
    assert charts["hist_carry"]["insight"] == "Histogramme précalculé"


def test_face_impact_heatmap_follows_session_club(columns, shots):
    iron = engine.build_radar_report(columns, shots)["charts"]["faceImpact"]["heatmap"]
    driver = engine.build_radar_report(columns, shots, metadata={"club": "Driver"})["charts"]["faceImpact"]["heatmap"]

    assert (iron["binsY"], iron["binsX"]) == (26, 40)
    assert (driver["binsY"], driver["binsX"]) == (20, 40)


def test_per_chart_narratives_only_for_selected_keys(columns, shots):
    config = {"options": {"aiNarrative": "per-chart", "aiSelectionKeys": ["dispersion"]}}

    charts = engine.build_radar_report(columns, shots, config)["charts"]

    assert charts["dispersion"]["narrative"] == {
        "reason": "dispersion serrée (100% dans +/-10 m)",
        "solution": "Dispersion serrée: face et chemin sont bien contrôlés, bon alignement et centrage.",
    }
    assert charts["speeds"]["narrative"] is None


def test_comparative_narratives_use_the_pga_benchmark(columns, shots):
    config = {"options": {"aiNarrative": "global", "aiSyntax": "global"}}

    report = engine.build_radar_report(columns, shots, config, metadata={"club": "Driver"})

    assert "| PGA Driver: carry" in report["narratives"]["dispersion"]["reason"]
    assert "| PGA Driver: spin" in report["narratives"]["spinCarry"]["reason"]
    # Computed narratives are only attached to charts in per-chart mode
    assert report["charts"]["dispersion"]["narrative"] is None


def test_configured_narratives_and_summaries_win(columns, shots):
    config = {
        "options": {
            "aiNarratives": {"speeds": {"reason": "Coach", "solution": "Tempo"}},
            "aiSessionSummary": "Séance solide.",
            "aiSelectionSummary": "Focus dispersion.",
        }
    }

    report = engine.build_radar_report(columns, shots, config)

    assert report["charts"]["speeds"]["narrative"] == {"reason": "Coach", "solution": "Tempo"}
    assert report["sessionSummary"] == "Séance solide."
    assert report["selectionSummary"] == "Focus dispersion."


def test_segments_and_summary_switches(columns, shots):
    report = engine.build_radar_report(columns, shots)
    hidden = engine.build_radar_report(columns, shots, {"showSegments": False, "showSummary": False})

    shot_type = report["segments"]["byShotType"]
    assert shot_type["insight"] == "Meilleure précision: Draw (100% dans 10 m)."
    assert report["segments"]["byPeriodTertile"]["analysis"].startswith("Évolution sur la séance.")
    assert report["summary"].startswith("Carry moyen cible 154.5.")
    assert hidden["segments"] == {}
    assert hidden["summary"] is None
    assert hidden["sessionSummary"] == report["summary"]


def test_outliers_are_ranked_for_highlighting(columns, shots):
    shots[3]["distance_carry"] = 60.0

    outliers = engine.build_radar_report(columns, shots)["outliers"]

    assert outliers["ranked"] == [4]
    assert outliers["highlighted"] == [4]
    assert outliers["flags"] == {"4": ["carry"]}
