import pandas as pd
import pytest

from hotel_cancellation.errors import SearchError
from hotel_cancellation.models import decision_tree, rand_forest, tune
from hotel_cancellation.recipe import Recipe
from hotel_cancellation.resampling import make_folds
from hotel_cancellation.schema import normalize_types
from hotel_cancellation.tuning import expand_grid, finalize_spec, grid_regular, tune_grid


@pytest.fixture
def xor_bookings():
    """Canceled exactly when the two flags differ: needs a tree of depth 2."""
    rows = [(x1, x2) for x1 in (0, 1) for x2 in (0, 1)] * 10
    df = pd.DataFrame(rows, columns=["x1", "x2"])
    df["status"] = ["Canceled" if x1 != x2 else "Not_Canceled" for x1, x2 in rows]
    df, schema = normalize_types(df)
    return df, Recipe.declare(schema, "status"), make_folds(df, k=3, strata="status", seed=1)


def test_expand_grid_order():
    grid = expand_grid({"a": [1, 2], "b": ["x", "y"]})

    assert grid == [{"a": 1, "b": "x"}, {"a": 1, "b": "y"}, {"a": 2, "b": "x"}, {"a": 2, "b": "y"}]


def test_grid_regular():
    grid = grid_regular({"n_estimators": [100, 500], "max_features": [2, 8], "min_samples_split": [2, 40]}, levels=3)

    assert len(grid) == 27
    assert grid[0] == {"n_estimators": 100, "max_features": 2, "min_samples_split": 2}
    assert grid[-1] == {"n_estimators": 500, "max_features": 8, "min_samples_split": 40}
    assert sorted({point["min_samples_split"] for point in grid}) == [2, 21, 40]
    assert all(isinstance(point["n_estimators"], int) for point in grid)


def test_grid_regular_deduplicates_and_keeps_floats():
    assert grid_regular({"max_depth": [1, 2]}, levels=4) == [{"max_depth": 1}, {"max_depth": 2}]
    assert grid_regular({"max_features": [0.2, 0.6]}, levels=3) == [
        {"max_features": 0.2},
        {"max_features": pytest.approx(0.4)},
        {"max_features": 0.6},
    ]


def test_select_best_picks_the_only_good_combination(xor_bookings):
    _, recipe, folds = xor_bookings
    spec = decision_tree(max_depth=tune(), min_samples_split=tune(), random_state=0)
    grid = expand_grid({"max_depth": [1, 3], "min_samples_split": [2, 1000]})

    results = tune_grid(recipe, spec, folds, grid, ["roc_auc", "accuracy"], "Canceled", n_jobs=4)

    assert results.select_best("roc_auc") == {"max_depth": 3, "min_samples_split": 2}
    best = results.show_best("roc_auc", n=1)
    assert best.loc[0, "mean"] == pytest.approx(1.0)
    assert best.loc[0, "config"] == 3


def test_collect_metrics(xor_bookings):
    _, recipe, folds = xor_bookings
    spec = decision_tree(max_depth=tune(), random_state=0)

    results = tune_grid(recipe, spec, folds, expand_grid({"max_depth": [1, 3]}), ["roc_auc", "accuracy"], "Canceled")
    metrics = results.collect_metrics()

    assert list(metrics.columns) == ["config", "max_depth", "metric", "mean", "std_err", "n", "n_failed"]
    assert len(metrics) == 4
    assert (metrics["n"] == 3).all()


def test_ties_go_to_the_first_grid_point(xor_bookings):
    _, recipe, folds = xor_bookings
    # neither setting can split, so every point scores the same
    spec = decision_tree(min_samples_split=tune(), random_state=0)
    grid = expand_grid({"min_samples_split": [1000, 2000, 3000]})

    results = tune_grid(recipe, spec, folds, grid, ["roc_auc"], "Canceled")

    assert results.select_best("roc_auc") == {"min_samples_split": 1000}


def test_search_is_deterministic(hotel_table):
    df, schema = hotel_table
    folds = make_folds(df, k=3, strata="booking_status", seed=5)
    spec = rand_forest(n_estimators=tune(), max_features=tune(), min_samples_split=4, random_state=0)
    grid = expand_grid({"n_estimators": [5, 15], "max_features": [1, 3]})
    recipe = Recipe.declare(schema, "booking_status")

    first = tune_grid(recipe, spec, folds, grid, ["roc_auc"], "Canceled", n_jobs=4)
    second = tune_grid(recipe, spec, folds, grid, ["roc_auc"], "Canceled", n_jobs=1)

    assert first.select_best("roc_auc") == second.select_best("roc_auc")
    pd.testing.assert_frame_equal(first.collect_metrics(), second.collect_metrics())


def test_empty_grid(xor_bookings):
    _, recipe, folds = xor_bookings

    with pytest.raises(SearchError, match="empty"):
        tune_grid(recipe, decision_tree(max_depth=tune()), folds, [], ["roc_auc"], "Canceled")


def test_grid_must_cover_tuned_parameters(xor_bookings):
    _, recipe, folds = xor_bookings

    with pytest.raises(SearchError, match="grid-point-1"):
        tune_grid(recipe, decision_tree(max_depth=tune()), folds, [{"min_samples_split": 2}], ["roc_auc"], "Canceled")


def test_every_grid_point_failing(xor_bookings):
    _, recipe, folds = xor_bookings
    grid = [{"max_depth": -1}, {"max_depth": 0}]

    with pytest.raises(SearchError, match="all 2 grid points"):
        tune_grid(recipe, decision_tree(max_depth=tune()), folds, grid, ["roc_auc"], "Canceled")


def test_failed_grid_points_are_excluded(xor_bookings):
    _, recipe, folds = xor_bookings
    grid = [{"max_depth": -1}, {"max_depth": 3}]

    results = tune_grid(recipe, decision_tree(max_depth=tune(), random_state=0), folds, grid, ["roc_auc"], "Canceled")

    assert results.failed_points() == [1]
    assert results.select_best("roc_auc") == {"max_depth": 3}


def test_select_best_unknown_metric(xor_bookings):
    _, recipe, folds = xor_bookings
    results = tune_grid(
        recipe, decision_tree(max_depth=tune()), folds, [{"max_depth": 2}], ["roc_auc"], "Canceled"
    )

    with pytest.raises(SearchError):
        results.select_best("accuracy")
    with pytest.raises(SearchError):
        results.select_best("roc_auc", direction="sideways")


def test_finalize_spec():
    spec = rand_forest(n_estimators=tune(), random_state=0)

    assert finalize_spec(spec, {"n_estimators": 50}).params == {"n_estimators": 50, "random_state": 0}
    with pytest.raises(SearchError):
        finalize_spec(spec, {"max_features": 3})
