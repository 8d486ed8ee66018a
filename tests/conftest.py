import pytest


COLUMNS = [
    {"key": "shot_index", "label": "Shot"},
    {"key": "shot_type", "label": "Type"},
    {"key": "distance_carry", "group": "Distance", "label": "Carry", "unit": "m"},
    {"key": "distance_total", "group": "Distance", "label": "Total", "unit": "m"},
    {"key": "distance_lateral", "group": "Distance", "label": "Lateral", "unit": "m"},
    {"key": "speed_club", "group": "Speed", "label": "Club", "unit": "km/h"},
    {"key": "speed_ball", "group": "Speed", "label": "Ball", "unit": "km/h"},
    {"key": "spin_rpm", "group": "Spin", "label": "Rpm", "unit": "rpm"},
    {"key": "smash_factor", "group": "Speed", "label": "Smash"},
]


def make_shots(count=12):
    """
    Twelve-shot driver session plus the "Avg" / "Dev" rows exports append.

    carry 150/153/156/159 m cycling, total = carry + 10, lateral within 8 m.
    """
    shots = []
    for i in range(1, count + 1):
        club = 140.0 + i % 3
        shots.append({
            "shot_index": i,
            "shot_type": "Draw" if i % 2 else "Fade",
            "distance_carry": 150.0 + (i % 4) * 3,
            "distance_total": 160.0 + (i % 4) * 3,
            "distance_lateral": (-1) ** i * (i % 5) * 2.0,
            "speed_club": club,
            "speed_ball": round(club * 1.45, 2),
            "spin_rpm": 6000 + 100 * (i % 4),
            "smash_factor": 1.44 + 0.005 * (i % 3),
        })
    shots.append({"shot_index": "Avg", "distance_carry": 154.5, "distance_lateral": 0.2})
    shots.append({"shot_index": "Dev", "distance_carry": 3.4, "distance_lateral": 4.9})
    return shots


@pytest.fixture
def columns():
    return [dict(column) for column in COLUMNS]


@pytest.fixture
def shots():
    return make_shots()
