import pytest

import radar_charts as rch


def _shots(count):
    return [
        {"shot_index": i, "club_speed": 90.0 + i, "ball_speed": 130.0 + 2 * i, "carry": 150.0 + i}
        for i in range(1, count + 1)
    ]


def test_scatter_payload_carries_points_and_overlay():
    payload = rch.build_scatter_payload(
        _shots(4), "club_speed", "ball_speed", "Club vs ball speed", "Club", "Balle", "mph", "mph"
    )

    assert payload["type"] == "scatter"
    assert len(payload["points"]) == 4
    assert payload["points"][0] == {"x": 91.0, "y": 132.0, "shotIndex": 1}
    assert payload["meanX"] == pytest.approx(92.5)
    assert payload["regression"]["slope"] == pytest.approx(2.0)


def test_scatter_payload_renders_with_a_single_point():
    payload = rch.build_scatter_payload(_shots(1), "club_speed", "ball_speed", "t", "x", "y")

    assert len(payload["points"]) == 1
    assert payload["regression"] is None
    assert rch.build_scatter_payload(_shots(3), "club_speed", "spin_rpm", "t", "x", "y") is None


def test_line_summary_trend():
    rising = rch.line_summary([1.40, 1.42, 1.44, 1.46])
    flat = rch.line_summary([1.45, 1.40, 1.50, 1.45])

    assert rising["trend"] == "en hausse"
    assert rising["range"] == pytest.approx(0.06)
    assert flat["trend"] == "stable"
    assert rch.line_summary([1.5, 1.2])["trend"] == "en baisse"
    assert rch.line_summary([]) is None


def test_line_payload_keeps_shot_indices():
    payload = rch.build_line_payload(_shots(3), [("Carry", "carry")], "Carry dans le temps", "Coups", "Carry")

    assert payload["series"][0]["values"] == [151.0, 152.0, 153.0]
    assert payload["series"][0]["shotIndices"] == [1, 2, 3]
    assert rch.build_line_payload(_shots(3), [("Spin", "spin_rpm")], "t", "x", "y") is None


def test_line_path_switches_to_curves_from_three_points():
    assert rch.build_line_path([(0, 0), (1, 1)]) == "M0,0 L1,1"
    assert rch.build_line_path([(0, 0), (1, 1), (2, 0)]).startswith("M0,0 C")
    assert rch.build_line_path([]) == ""


def test_histogram_dominant_bin_share():
    bins = [{"label": "A", "count": 2}, {"label": "B", "count": 5}, {"label": "C", "count": 3}]

    top = rch.dominant_bin(bins)

    assert top["label"] == "B"
    assert top["share"] == 50
    assert top["ratio"] == pytest.approx(0.5)
    assert rch.dominant_bin([{"label": "A", "count": 0}]) is None


def test_dominant_bin_first_maximum_wins():
    bins = [{"label": "A", "count": 4}, {"label": "B", "count": 4}]

    assert rch.dominant_bin(bins)["label"] == "A"


def test_bin_values_equal_width():
    bins = rch.bin_values([0.0, 1.0, 2.0, 10.0])

    assert len(bins) == 10
    assert bins[0] == {"label": "0.0-1.0", "count": 1}
    assert bins[1]["count"] == 1
    assert bins[-1]["count"] == 1
    assert sum(b["count"] for b in bins) == 4

    flat = rch.bin_values([5.0, 5.0, 5.0])
    assert flat[0] == {"label": "5.0-5.1", "count": 3}
    assert rch.bin_values([]) == []


def test_table_payload_groups_in_first_seen_order():
    shots = [
        {"shot_type": "Fade", "carry": 150.0},
        {"shot_type": "Draw", "carry": 160.0},
        {"shot_type": "Fade", "carry": 154.0},
        {"shot_type": None, "carry": 170.0},
    ]

    payload = rch.build_table_payload(shots, "shot_type", "carry", "Carry par type")

    assert [row["Groupe"] for row in payload["rows"]] == ["Fade", "Draw"]
    assert payload["rows"][0] == {"Groupe": "Fade", "Count": 2, "Min": 150.0, "Median": 152.0, "Max": 154.0}
    assert payload["notes"] == rch.TABLE_NOTES


def test_matrix_and_model_payloads_always_build():
    matrix = rch.build_matrix_payload(None, "Matrice de corrélation")
    model = rch.build_model_payload(None, "Modèle distance", "Distance")

    assert matrix["variables"] == []
    assert matrix["notes"] == "Données insuffisantes."
    assert model["model"]["n"] == 0
    assert model["model"]["name"] == "Distance"
    assert model["notes"] == "Modèle indisponible."
    assert not rch.payload_available(matrix)
    assert not rch.payload_available(model)


def test_strongest_pair_and_dominant_coefficient():
    variables = ["carry", "smash", "spin_rpm"]
    matrix = [[1, 0.2, -0.7], [0.2, 1, 0.1], [-0.7, 0.1, 1]]

    assert rch.strongest_pair(variables, matrix) == {"row": "carry", "col": "spin_rpm", "value": -0.7}
    assert rch.strongest_pair(["carry"], [[1]]) is None
    assert rch.dominant_coefficient({"coefficients": {"a": 0.5, "b": -2.0}}) == ("b", -2.0)
    assert rch.dominant_coefficient({"coefficients": {}}) is None


def test_heatmap_grid_shape_follows_the_clubhead():
    driver = rch.build_face_impact_heatmap([], "Driver")
    iron = rch.build_face_impact_heatmap([], "7 Iron")

    assert (driver["binsY"], driver["binsX"]) == (20, 40)
    assert len(driver["counts"]) == 20 and len(driver["counts"][0]) == 40
    assert (iron["binsY"], iron["binsX"]) == (26, 40)
    assert len(iron["colors"]) == 26
    assert iron["colors"][0][0] == rch.TRANSPARENT


def test_heatmap_clamps_impacts_onto_the_face():
    heatmap = rch.build_face_impact_heatmap(
        [{"x": 0.0, "y": 0.0}, {"x": 10.0, "y": 10.0}, {"x": None, "y": 1.0}], "Driver"
    )

    assert sum(sum(row) for row in heatmap["counts"]) == 2
    assert heatmap["counts"][19][39] == 1
    assert heatmap["counts"][10][20] == 1
    assert heatmap["maxValue"] >= 1.0
    assert heatmap["colors"][10][20].startswith("hsla(")


def test_mean_normalized_impact_uses_half_face_units():
    assert rch.mean_normalized_impact([{"x": 1.25, "y": 0.0}], "Driver") == pytest.approx(0.5)
    assert rch.mean_normalized_impact([], "Driver") is None


def test_registry_definitions():
    assert len(rch.CHART_KEYS) == 42
    assert len(set(rch.CHART_KEYS)) == 42
    groups = {group["key"] for group in rch.CHART_GROUPS}
    assert all(definition["group"] in groups for definition in rch.CHART_DEFINITIONS)


def test_auto_descriptions():
    assert rch.auto_description("Histogramme carry") == "Distribution des coups pour carry."
    assert rch.auto_description("Carry dans le temps") == "Évolution de Carry sur la série."
    assert rch.auto_description("AOA vs RPM") == "Relation entre AOA et RPM."
    assert rch.auto_description("Modèle distance") == "Impact des variables sur la métrique cible."


def test_build_charts_data_marks_missing_columns_unavailable():
    shots = _shots(6)
    units = {"club_speed": "mph", "ball_speed": "mph", "carry": "m"}

    charts = rch.build_charts_data(shots, units, describe=lambda payload: "ok")

    assert charts["club_vs_ball_speed"]["available"] is True
    assert charts["club_vs_ball_speed"]["payload"]["insight"] == "ok"
    assert charts["aoa_vs_rpm"] == {"available": False, "payload": None}
    assert charts["hist_carry"]["available"] is True
    assert charts["corr_heatmap"]["available"] is False
    assert charts["corr_heatmap"]["payload"]["type"] == "matrix"
    assert set(charts) == set(rch.CHART_KEYS)
