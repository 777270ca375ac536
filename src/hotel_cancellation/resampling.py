"""Stratified k-fold resampling.

Each fold is an independent unit of work: the declared recipe is fit on the
analysis rows only, the model is trained on the baked analysis rows and the
assessment rows are baked with that same fit recipe before scoring. Units
share nothing but the read-only training table, so they run on a thread pool.
"""

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold

from hotel_cancellation import models
from hotel_cancellation.errors import ModelError, PartitionError, PipelineError, RecipeError
from hotel_cancellation.metrics import MetricsRecord, compute_metrics
from hotel_cancellation.recipe import DECLARED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Folds:
    table: pd.DataFrame
    assignment: pd.Series
    strata: str
    k: int

    def splits(self):
        """Yield ``(fold_id, analysis, assessment)`` for fold ids 1..k."""
        fold_ids = self.assignment.to_numpy()
        for fold_id in range(1, self.k + 1):
            held_out = fold_ids == fold_id
            yield fold_id, self.table[~held_out], self.table[held_out]


def make_folds(train: pd.DataFrame, k: int, strata: str, seed=42) -> Folds:
    """Assign every training row to exactly one of ``k`` stratified folds."""
    if strata not in train.columns:
        raise PartitionError(f"Strata column {strata!r} not in table", stage="folds", partition="train")
    if not 2 <= k <= len(train):
        raise PartitionError(f"Need 2 <= k <= {len(train)} folds, got {k}", stage="folds", partition="train")

    splitter = StratifiedKFold(n_splits=k, shuffle=True, random_state=seed)
    assignment = np.zeros(len(train), dtype=int)
    try:
        for fold_id, (_, held_out) in enumerate(splitter.split(np.zeros(len(train)), train[strata].astype(str)), start=1):
            assignment[held_out] = fold_id
    except ValueError as exc:
        raise PartitionError(f"Cannot build {k} stratified folds: {exc}", stage="folds", partition="train") from exc

    logger.info(f"Assigned {len(train)} training rows to {k} stratified folds")
    return Folds(train, pd.Series(assignment, index=train.index, name="fold"), strata, k)


def fit_resample(recipe, spec, analysis, assessment, metric_names, positive_class, tag, partition=None):
    """Fit on ``analysis``, score on ``assessment``; returns a MetricsRecord."""
    partition = partition or tag
    fitted_recipe, baked = recipe.fit_bake(analysis, partition=partition)
    model = models.train(spec, baked, recipe.outcome, positive_class, partition=partition)
    holdout = fitted_recipe.bake(assessment, partition=partition)
    predictions = models.predict(model, holdout, partition=partition)
    values = compute_metrics(
        holdout[recipe.outcome],
        predictions["pred_class"],
        predictions["pred_prob"],
        positive_class,
        metric_names,
        partition=partition,
    )
    return MetricsRecord(tag, values)


def fit_resample_safely(recipe, spec, analysis, assessment, metric_names, positive_class, tag, partition=None):
    """Like ``fit_resample`` but a pipeline failure becomes a failed record."""
    try:
        return fit_resample(recipe, spec, analysis, assessment, metric_names, positive_class, tag, partition)
    except PipelineError as exc:
        logger.warning(f"Resample failed: {exc}")
        return MetricsRecord(tag, error=str(exc))


def check_inputs(recipe, spec):
    if recipe.state != DECLARED:
        raise RecipeError(f"Resampling needs a declared recipe, got one in state {recipe.state!r}", stage="resample")
    if not spec.is_resolved:
        raise ModelError(f"Parameters still marked for tuning: {list(spec.tunable)}", stage="resample")


def pool_size(n_jobs, n_tasks) -> int:
    return max(1, min(n_jobs or os.cpu_count() or 1, n_tasks))


def evaluate(recipe, spec, folds: Folds, metric_names, positive_class, n_jobs=None):
    """Cross-validate one (recipe, model) pair; one MetricsRecord per fold, ordered by fold id."""
    check_inputs(recipe, spec)
    splits = list(folds.splits())

    records = {}
    with ThreadPoolExecutor(max_workers=pool_size(n_jobs, len(splits))) as executor:
        futures = {
            executor.submit(
                fit_resample_safely,
                recipe,
                spec,
                analysis,
                assessment,
                metric_names,
                positive_class,
                f"fold-{fold_id}",
            ): fold_id
            for fold_id, analysis, assessment in splits
        }
        for future in as_completed(futures):
            records[futures[future]] = future.result()

    ordered = [records[fold_id] for fold_id in sorted(records)]
    failed = sum(record.failed for record in ordered)
    logger.info(f"Evaluated {spec.kind} on {folds.k} folds ({failed} failed)")
    return ordered


def summarize(records) -> pd.DataFrame:
    """Mean and standard error of each metric over the successful records."""
    succeeded = [record for record in records if not record.failed]
    n_failed = len(records) - len(succeeded)
    values = pd.DataFrame([record.values for record in succeeded])

    rows = []
    for metric in values.columns:
        column = values[metric].dropna()
        n = len(column)
        std_err = float(column.std(ddof=1) / math.sqrt(n)) if n > 1 else float("nan")
        rows.append({"metric": metric, "mean": float(column.mean()), "std_err": std_err, "n": n, "n_failed": n_failed})
    return pd.DataFrame(rows, columns=["metric", "mean", "std_err", "n", "n_failed"])
