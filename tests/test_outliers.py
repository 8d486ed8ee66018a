import radar_outliers as ro


def test_rank_by_flag_count_then_shot_order():
    flags = {"3": ["a", "b"], "7": ["a"]}

    assert ro.rank_outlier_shots(flags) == [3, 7]
    assert ro.outlier_shot_set(flags) == frozenset({3, 7})


def test_ties_keep_ascending_shot_order_and_limit_applies():
    flags = {"9": ["a"], "2": ["b"], "5": ["a", "b", "c"], "4": ["c"]}

    assert ro.rank_outlier_shots(flags) == [5, 2, 4, 9]
    assert ro.outlier_shot_set(flags) == frozenset({5, 2, 4})
    assert ro.outlier_shot_set(flags, limit=1) == frozenset({5})


def test_invalid_keys_are_ignored_and_scalar_flags_count_once():
    flags = {"avg": ["a"], "0": ["a", "b"], "-2": ["a"], "6": "carry", "8": ["a", "b"]}

    assert ro.rank_outlier_shots(flags) == [8, 6]
    assert ro.rank_outlier_shots(None) == []


def _shot(index, carry, **extra):
    shot = {"shot_index": index, "carry": carry}
    shot.update(extra)
    return shot


def test_iqr_flags_values_outside_the_fences():
    shots = [_shot(i, 150.0 + (i % 3)) for i in range(1, 10)]
    shots.append(_shot(10, 90.0))

    result = ro.compute_outliers(shots, ["carry", "smash"])

    assert result["method"] == "iqr"
    assert result["byMetric"]["carry"] == [10]
    assert result["flags"] == {"10": ["carry"]}
    # No smash readings, nothing to flag
    assert "smash" not in result["byMetric"]


def test_worst_and_top_shares():
    shots = [
        _shot(i, 150.0, distance_from_target=float(i), radial_miss=float(-i), strike_score=1.30 + i / 100)
        for i in range(1, 11)
    ]

    result = ro.compute_outliers(shots, [])

    assert result["worst10_distance"] == [10]
    assert result["worst10_dispersion"] == [10]
    assert result["top20_strikes"] == [10, 9]


def test_small_sessions_still_report_one_shot():
    shots = [_shot(1, 150.0, distance_from_target=4.0), _shot(2, 151.0, distance_from_target=-6.0)]

    result = ro.compute_outliers(shots, ["carry"])

    assert result["worst10_distance"] == [2]
    assert result["top20_strikes"] == []
    assert result["flags"] == {}
