import radar_columns as rc


def test_key_prefix_match_beats_array_order():
    columns = [{"key": "distance_total"}, {"key": "distance_carry"}]

    found = rc.find_column(columns, ["distance_carry", "carry"])

    assert found == {"key": "distance_carry"}


def test_label_and_group_are_searched_after_keys():
    columns = [
        {"key": "c1", "group": "Speed", "label": "Club"},
        {"key": "c2", "group": "Impact", "label": "Impact Lateral"},
    ]

    assert rc.find_column(columns, ["face_impact_lateral", "impact lateral"])["key"] == "c2"
    assert rc.find_column(columns, ["speed_ball", "ball"]) is None


def test_resolve_metrics_leaves_unmatched_metrics_empty():
    resolved = rc.resolve_metrics([{"key": "distance_carry", "unit": "m"}])

    assert resolved["distance_carry"]["unit"] == "m"
    assert resolved["spin_rate"] is None
    assert set(resolved) == set(rc.METRIC_PATTERNS)


def test_build_column_map_first_column_wins():
    columns = [
        {"key": "shot_index", "label": "Shot"},
        {"key": "distance_carry", "group": "Distance", "label": "Carry", "unit": "m"},
        {"key": "carry_2", "label": "Carry (bis)", "unit": "yds"},
        {"key": "spin_axis", "label": "Spin Axis", "unit": "deg"},
    ]

    column_map = rc.build_column_map(columns)

    assert column_map["carry"]["key"] == "distance_carry"
    assert column_map["spin_axis"]["key"] == "spin_axis"
    assert column_map["shot_index"]["key"] == "shot_index"
    assert "ball_speed" not in column_map


def test_series_extraction_filters_non_numeric_values():
    shots = [
        {"shot_index": 1, "carry": 150.0, "lateral": -3.0},
        {"shot_index": 2, "carry": "151", "lateral": 2.0},
        {"shot_index": "3", "carry": 152.0, "lateral": None},
        {"shot_index": 4, "carry": float("nan"), "lateral": 1.0},
    ]

    series = rc.numeric_series(shots, "carry")
    points = rc.paired_points(shots, "lateral", "carry")

    assert [entry["value"] for entry in series] == [150.0, 152.0]
    assert [entry["shotIndex"] for entry in series] == [1, 3.0]
    assert points == [{"x": -3.0, "y": 150.0, "shotIndex": 1}]
    assert rc.numeric_series(shots, None) == []


def test_column_helpers_tolerate_missing_columns():
    assert rc.column_key(None) is None
    assert rc.column_unit(None) is None
    assert rc.column_unit({"key": "carry", "unit": "m"}) == "m"
