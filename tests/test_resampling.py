import numpy as np
import pandas as pd
import pytest

from hotel_cancellation.errors import ModelError, PartitionError, RecipeError
from hotel_cancellation.metrics import MetricsRecord
from hotel_cancellation.models import decision_tree, null_model, rand_forest, tune
from hotel_cancellation.recipe import Recipe
from hotel_cancellation.resampling import evaluate, fit_resample_safely, make_folds, summarize
from hotel_cancellation.schema import normalize_types


@pytest.fixture
def imbalanced():
    """30 bookings, 80% Not_Canceled."""
    df = pd.DataFrame(
        {
            "adults": np.arange(30) % 3 + 1,
            "meal": ["Meal Plan 1", "Not Selected"] * 15,
            "status": ["Not_Canceled"] * 24 + ["Canceled"] * 6,
        }
    )
    df, schema = normalize_types(df)
    return df, Recipe.declare(schema, "status")


@pytest.mark.parametrize("k", [2, 3, 5])
def test_every_row_lands_in_exactly_one_fold(hotel_table, k):
    df, _ = hotel_table

    folds = make_folds(df, k=k, strata="booking_status", seed=3)

    assert sorted(folds.assignment.unique()) == list(range(1, k + 1))
    assert folds.assignment.index.equals(df.index)
    held_out = [assessment.index for _, _, assessment in folds.splits()]
    assert sum(len(index) for index in held_out) == len(df)
    assert set().union(*held_out) == set(df.index)
    for fold_id, analysis, assessment in folds.splits():
        assert set(analysis.index).isdisjoint(assessment.index)
        assert len(analysis) + len(assessment) == len(df)


def test_folds_are_stratified(imbalanced):
    df, _ = imbalanced

    folds = make_folds(df, k=3, strata="status", seed=1)

    for _, _, assessment in folds.splits():
        assert (assessment["status"] == "Canceled").sum() == 2
        assert len(assessment) == 10


def test_make_folds_rejects_bad_k(imbalanced):
    df, _ = imbalanced

    with pytest.raises(PartitionError):
        make_folds(df, k=1, strata="status")
    with pytest.raises(PartitionError):
        make_folds(df, k=3, strata="booking_status")


def test_majority_class_model_accuracy(imbalanced):
    df, recipe = imbalanced
    folds = make_folds(df, k=3, strata="status", seed=1)

    records = evaluate(recipe, null_model(), folds, ["accuracy", "roc_auc"], "Canceled", n_jobs=2)

    assert [record.tag for record in records] == ["fold-1", "fold-2", "fold-3"]
    for record in records:
        assert not record.failed
        assert record.values["accuracy"] == pytest.approx(0.8)
        assert record.values["roc_auc"] == pytest.approx(0.5)


def test_evaluate_random_forest(hotel_table):
    df, schema = hotel_table
    folds = make_folds(df, k=3, strata="booking_status", seed=1)
    spec = rand_forest(n_estimators=20, random_state=0)

    records = evaluate(Recipe.declare(schema, "booking_status"), spec, folds, ["roc_auc", "accuracy"], "Canceled")

    assert len(records) == 3
    assert all(record.values["roc_auc"] > 0.7 for record in records)


def test_fold_failures_are_recorded(imbalanced):
    df, recipe = imbalanced
    folds = make_folds(df, k=3, strata="status", seed=1)

    records = evaluate(recipe, decision_tree(max_depth=-1), folds, ["accuracy"], "Canceled")

    assert all(record.failed for record in records)
    assert "fold-1" in records[0].error
    summary = summarize(records)
    assert summary.empty


def test_prediction_failure_is_recorded(imbalanced):
    df, recipe = imbalanced
    analysis, assessment = df.iloc[::2], df.iloc[1::2].copy()
    assessment["adults"] = assessment["adults"].astype(object)
    assessment.loc[assessment.index[0], "adults"] = "two"

    record = fit_resample_safely(
        recipe, decision_tree(random_state=0), analysis, assessment, ["accuracy"], "Canceled", "fold-1"
    )

    assert record.failed
    assert "Prediction" in record.error
    assert record.values == {}


def test_evaluate_requires_declared_recipe_and_resolved_spec(imbalanced):
    df, recipe = imbalanced
    folds = make_folds(df, k=3, strata="status", seed=1)

    with pytest.raises(RecipeError):
        evaluate(recipe.fit(df), null_model(), folds, ["accuracy"], "Canceled")
    with pytest.raises(ModelError):
        evaluate(recipe, rand_forest(n_estimators=tune()), folds, ["accuracy"], "Canceled")


def test_summarize_excludes_failures():
    records = [
        MetricsRecord("fold-1", {"accuracy": 0.8}),
        MetricsRecord("fold-2", {"accuracy": 0.6}),
        MetricsRecord("fold-3", error="boom"),
    ]

    summary = summarize(records).set_index("metric")

    assert summary.loc["accuracy", "mean"] == pytest.approx(0.7)
    assert summary.loc["accuracy", "std_err"] == pytest.approx(0.1)
    assert summary.loc["accuracy", "n"] == 2
    assert summary.loc["accuracy", "n_failed"] == 1
