import logging

import numpy as np
import pandas as pd

from radar_units import is_finite_number, to_fixed

logger = logging.getLogger(__name__)

# ============================================================
# Constants
# ============================================================

# |r| upper bounds for each strength label, checked in order
STRENGTH_BANDS = [
    (0.2, "faible"),
    (0.5, "modérée"),
    (0.7, "marquée"),
]
STRENGTH_MAX_LABEL = "forte"

MIN_MODEL_ROWS = 8
MIN_REGRESSION_POINTS = 3
MIN_CORRELATION_PAIRS = 2


# ============================================================
# Helpers
# ============================================================

def finite_values(values):
    return [v for v in values if is_finite_number(v)]


def _as_array(values):
    return np.asarray(finite_values(values), dtype=float)


def _finite_pairs(xs, ys):
    pairs = [(x, y) for x, y in zip(xs, ys) if is_finite_number(x) and is_finite_number(y)]
    if not pairs:
        return np.empty(0), np.empty(0)
    arr = np.asarray(pairs, dtype=float)
    return arr[:, 0], arr[:, 1]


# ============================================================
# Descriptive statistics
# ============================================================

def mean(values):
    arr = _as_array(values)
    if arr.size == 0:
        return None
    return float(arr.mean())


def std(values):
    """Population standard deviation (divides by N)."""
    arr = _as_array(values)
    if arr.size == 0:
        return None
    return float(arr.std(ddof=0))


def cv(values):
    """Coefficient of variation as a ratio (std / |mean|); None when the mean is 0."""
    avg = mean(values)
    if not avg:
        return None
    return std(values) / abs(avg)


def median(values):
    arr = _as_array(values)
    if arr.size == 0:
        return None
    return float(np.median(arr))


def percentile(values, p):
    """Linear-interpolated percentile, p in [0, 1]."""
    arr = _as_array(values)
    if arr.size == 0:
        return None
    return float(np.percentile(arr, p * 100.0))


def summary_stats(values):
    arr = _as_array(values)
    count = int(arr.size)
    if not count:
        return {
            "count": 0,
            "mean": None,
            "std": None,
            "cv": None,
            "median": None,
            "p10": None,
            "p90": None,
        }
    avg = float(arr.mean())
    sd = float(arr.std(ddof=0))
    return {
        "count": count,
        "mean": avg,
        "std": sd,
        # stored as a percentage
        "cv": abs(sd / avg * 100.0) if avg else None,
        "median": float(np.median(arr)),
        "p10": float(np.percentile(arr, 10)),
        "p90": float(np.percentile(arr, 90)),
    }


# ============================================================
# Correlation & regression
# ============================================================

def correlation(xs, ys):
    """
    Pearson r over the finite (x, y) pairs.

    Returns None with fewer than 2 pairs or when either series is constant,
    never NaN.
    """
    x, y = _finite_pairs(xs, ys)
    if x.size < MIN_CORRELATION_PAIRS:
        return None
    if np.ptp(x) == 0 or np.ptp(y) == 0:
        return None
    dx = x - x.mean()
    dy = y - y.mean()
    denom_x = float((dx ** 2).sum())
    denom_y = float((dy ** 2).sum())
    if not denom_x or not denom_y:
        return None
    return float((dx * dy).sum() / np.sqrt(denom_x * denom_y))


def linear_regression(xs, ys):
    """Least-squares line; None with fewer than 3 points or no x variance."""
    x, y = _finite_pairs(xs, ys)
    if x.size < MIN_REGRESSION_POINTS or np.ptp(x) == 0:
        return None
    dx = x - x.mean()
    denom = float((dx ** 2).sum())
    if not denom:
        return None
    slope = float((dx * (y - y.mean())).sum() / denom)
    intercept = float(y.mean() - slope * x.mean())
    return {"slope": slope, "intercept": intercept}


def correlation_strength(r):
    """Band |r| into faible / modérée / marquée / forte."""
    magnitude = abs(r)
    for upper, label in STRENGTH_BANDS:
        if magnitude < upper:
            return label
    return STRENGTH_MAX_LABEL


def correlation_direction(r):
    return "positive" if r >= 0 else "négative"


def fit_linear_model(rows, target, features, name=None):
    """
    Multiple linear regression of `target` on `features` via the normal
    equations, over rows where every field is a finite number.

    Needs max(8, k + 2) complete rows. Returns None when there is not enough
    data or the system is singular.
    """
    complete = []
    for row in rows:
        y = row.get(target)
        xs = [row.get(key) for key in features]
        if is_finite_number(y) and all(is_finite_number(v) for v in xs):
            complete.append([y] + xs)

    if len(complete) < max(MIN_MODEL_ROWS, len(features) + 2):
        logger.debug("Model %s skipped: %d complete rows", target, len(complete))
        return None

    data = np.asarray(complete, dtype=float)
    y = data[:, 0]
    design = np.column_stack([np.ones(len(data)), data[:, 1:]])
    xtx = design.T @ design
    xty = design.T @ y

    try:
        if np.linalg.matrix_rank(xtx) < xtx.shape[0]:
            raise np.linalg.LinAlgError("rank deficient normal equations")
        coeffs = np.linalg.solve(xtx, xty)
    except np.linalg.LinAlgError as exc:
        logger.debug("Model %s unavailable: %s", target, exc)
        return None

    if not np.all(np.isfinite(coeffs)):
        logger.debug("Model %s unavailable: non-finite coefficients", target)
        return None

    predictions = design @ coeffs
    ss_tot = float(((y - y.mean()) ** 2).sum())
    ss_res = float(((y - predictions) ** 2).sum())
    r2 = 1.0 - ss_res / ss_tot if ss_tot else 0.0

    return {
        "name": name or target,
        "coefficients": {key: float(coeffs[i + 1]) for i, key in enumerate(features)},
        "intercept": float(coeffs[0]),
        "r2": r2,
        "n": int(len(data)),
        "features": list(features),
    }


def correlation_matrix(frame, variables):
    """
    Pairwise Pearson matrix over the variables that carry at least one value.

    Each cell uses the rows where both variables are present, rounded to 3
    decimals. Degenerate or empty pairs are 0, the diagonal is 1. Returns None
    with fewer than two usable variables.
    """
    if frame is None or frame.empty:
        return None
    present = [
        key for key in variables
        if key in frame.columns and frame[key].notna().any()
    ]
    if len(present) < 2:
        return None

    numeric = frame[present].apply(pd.to_numeric, errors="coerce")
    corr = numeric.corr(method="pearson", min_periods=1)

    matrix = []
    for i, row_key in enumerate(present):
        row = []
        for j, col_key in enumerate(present):
            if i == j:
                row.append(1)
                continue
            value = corr.at[row_key, col_key]
            if pd.isna(value):
                row.append(0)
                continue
            row.append(float(to_fixed(float(value), 3)))
        matrix.append(row)

    return {"variables": present, "matrix": matrix}
