"""Grid search over model hyperparameters with resampled evaluation."""

import itertools
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from hotel_cancellation.errors import SearchError
from hotel_cancellation.metrics import MAXIMIZE, MetricsRecord
from hotel_cancellation.models import ModelSpec
from hotel_cancellation.resampling import Folds, check_inputs, fit_resample_safely, pool_size, summarize

logger = logging.getLogger(__name__)


def expand_grid(values) -> List[Dict]:
    """Cartesian product of the value lists; the first parameter varies slowest."""
    names = list(values)
    return [dict(zip(names, combo)) for combo in itertools.product(*(values[name] for name in names))]


def grid_regular(ranges, levels=3) -> List[Dict]:
    """``levels`` equally spaced values per ``[low, high]`` range, fully crossed.

    Ranges with integer bounds give integer values; duplicates after rounding
    are dropped.
    """
    values = {}
    for name, (low, high) in ranges.items():
        points = np.linspace(low, high, levels)
        if isinstance(low, int) and isinstance(high, int):
            values[name] = list(dict.fromkeys(int(round(point)) for point in points))
        else:
            values[name] = [float(point) for point in points]
    return expand_grid(values)


@dataclass
class TuneResults:
    spec: ModelSpec
    grid: List[Dict]
    records: Dict[int, List[MetricsRecord]]
    metric_names: Tuple[str, ...]

    def collect_metrics(self) -> pd.DataFrame:
        """One row per grid point and metric; ``config`` is the 1-based grid position."""
        rows = []
        for config, params in enumerate(self.grid, start=1):
            summary = summarize(self.records[config])
            for row in summary.to_dict("records"):
                rows.append({"config": config, **params, **row})
        columns = ["config", *self.spec.tunable, "metric", "mean", "std_err", "n", "n_failed"]
        return pd.DataFrame(rows, columns=columns)

    def failed_points(self) -> List[int]:
        return [config for config, records in self.records.items() if all(record.failed for record in records)]

    def _ranked(self, metric, direction) -> pd.DataFrame:
        if metric not in self.metric_names:
            raise SearchError(f"Metric {metric!r} was not collected; have {list(self.metric_names)}", stage="select")
        if direction is None:
            direction = "maximize" if metric in MAXIMIZE else "minimize"
        if direction not in ("maximize", "minimize"):
            raise SearchError(f"direction must be 'maximize' or 'minimize', got {direction!r}", stage="select")

        metrics = self.collect_metrics()
        table = metrics[(metrics["metric"] == metric) & metrics["mean"].notna()]
        # stable sort keeps grid order among equal means
        return table.sort_values("mean", ascending=direction == "minimize", kind="stable")

    def show_best(self, metric, n=5, direction=None) -> pd.DataFrame:
        return self._ranked(metric, direction).head(n).reset_index(drop=True)

    def select_best(self, metric, direction=None) -> Dict:
        """Best grid point by mean ``metric``; ties go to the earliest grid point."""
        ranked = self._ranked(metric, direction)
        if ranked.empty:
            raise SearchError(f"No grid point produced {metric!r}", stage="select")
        return dict(self.grid[int(ranked.iloc[0]["config"]) - 1])


def tune_grid(recipe, spec: ModelSpec, folds: Folds, grid, metric_names, positive_class, n_jobs=None) -> TuneResults:
    """Evaluate every grid point on every fold.

    All (grid point, fold) pairs are scheduled on one thread pool. Failed
    pairs are recorded and excluded from the means; the search only fails
    when the grid is empty or no grid point succeeded on any fold.
    """
    grid = [dict(params) for params in grid]
    if not grid:
        raise SearchError("Hyperparameter grid is empty", stage="tune")
    tunable = set(spec.tunable)
    for config, params in enumerate(grid, start=1):
        if set(params) != tunable:
            raise SearchError(
                f"Grid point sets {sorted(params)} but the model tunes {sorted(tunable)}",
                stage="tune",
                partition=f"grid-point-{config}",
            )
    check_inputs(recipe, spec.set_params(**grid[0]))

    splits = list(folds.splits())
    results = {config: {} for config in range(1, len(grid) + 1)}
    with ThreadPoolExecutor(max_workers=pool_size(n_jobs, len(grid) * len(splits))) as executor:
        futures = {}
        for config, params in enumerate(grid, start=1):
            candidate = spec.set_params(**params)
            for fold_id, analysis, assessment in splits:
                future = executor.submit(
                    fit_resample_safely,
                    recipe,
                    candidate,
                    analysis,
                    assessment,
                    metric_names,
                    positive_class,
                    f"fold-{fold_id}",
                    f"grid-point-{config}/fold-{fold_id}",
                )
                futures[future] = (config, fold_id)
        for future in as_completed(futures):
            config, fold_id = futures[future]
            results[config][fold_id] = future.result()

    records = {config: [by_fold[fold_id] for fold_id in sorted(by_fold)] for config, by_fold in results.items()}
    tuned = TuneResults(spec, grid, records, tuple(metric_names))
    if len(tuned.failed_points()) == len(grid):
        raise SearchError(f"Evaluation failed for all {len(grid)} grid points", stage="tune")

    logger.info(f"Tuned {spec.kind} over {len(grid)} grid points x {folds.k} folds")
    return tuned


def finalize_spec(spec: ModelSpec, params) -> ModelSpec:
    """Replace the tuning markers of ``spec`` with the chosen values."""
    if set(params) != set(spec.tunable):
        raise SearchError(f"Parameters {sorted(params)} do not match tuned {sorted(spec.tunable)}", stage="finalize")
    return spec.set_params(**params)
