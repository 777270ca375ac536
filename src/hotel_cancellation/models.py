"""Model specifications and the scikit-learn training adapter."""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd
from sklearn.dummy import DummyClassifier
from sklearn.ensemble import RandomForestClassifier
from sklearn.tree import DecisionTreeClassifier

from hotel_cancellation.errors import ModelError

logger = logging.getLogger(__name__)

DECISION_TREE = "decision_tree"
RANDOM_FOREST = "random_forest"
NULL_MODEL = "null_model"

_ESTIMATORS = {
    DECISION_TREE: DecisionTreeClassifier,
    RANDOM_FOREST: RandomForestClassifier,
    NULL_MODEL: DummyClassifier,
}

# Null model predicts the majority class with the training class priors as probabilities.
_DEFAULTS = {
    NULL_MODEL: {"strategy": "prior"},
}


class _Tune:
    def __repr__(self):
        return "tune()"


def tune():
    """Marker for a hyperparameter resolved later by the grid search."""
    return _Tune()


def is_tune(value) -> bool:
    return isinstance(value, _Tune)


@dataclass(frozen=True)
class ModelSpec:
    kind: str
    params: Dict[str, Any] = field(default_factory=dict)
    mode: str = "classification"

    def __post_init__(self):
        if self.kind not in _ESTIMATORS:
            raise ModelError(f"Unknown model kind {self.kind!r}", stage="model")
        if self.mode != "classification":
            raise ModelError(f"Unsupported mode {self.mode!r}", stage="model")
        object.__setattr__(self, "params", dict(self.params))

    @property
    def tunable(self) -> Tuple[str, ...]:
        return tuple(name for name, value in self.params.items() if is_tune(value))

    @property
    def is_resolved(self) -> bool:
        return not self.tunable

    def set_params(self, **values) -> "ModelSpec":
        return replace(self, params={**self.params, **values})

    def estimator(self):
        """Build an unfitted scikit-learn estimator for this specification."""
        if not self.is_resolved:
            raise ModelError(f"Parameters still marked for tuning: {list(self.tunable)}", stage="model")
        params = {**_DEFAULTS.get(self.kind, {}), **self.params}
        try:
            return _ESTIMATORS[self.kind](**params)
        except TypeError as exc:
            raise ModelError(f"Invalid parameters for {self.kind}: {exc}", stage="model") from exc


def decision_tree(**params) -> ModelSpec:
    return ModelSpec(DECISION_TREE, params)


def rand_forest(**params) -> ModelSpec:
    return ModelSpec(RANDOM_FOREST, params)


def null_model() -> ModelSpec:
    return ModelSpec(NULL_MODEL)


@dataclass(frozen=True)
class FittedModel:
    spec: ModelSpec
    estimator: Any
    feature_names: Tuple[str, ...]
    outcome: str
    positive_class: str


def train(spec: ModelSpec, baked: pd.DataFrame, outcome: str, positive_class: str, partition="train") -> FittedModel:
    """Fit ``spec`` on a baked table whose non-outcome columns are all numeric."""
    if outcome not in baked.columns:
        raise ModelError(f"Outcome column {outcome!r} missing from baked table", stage="train", partition=partition)
    X = baked.drop(columns=[outcome])
    y = baked[outcome].astype(str)

    estimator = spec.estimator()
    try:
        estimator.fit(X, y)
    except ValueError as exc:
        raise ModelError(f"Training {spec.kind} failed: {exc}", stage="train", partition=partition) from exc
    return FittedModel(spec, estimator, tuple(X.columns), outcome, positive_class)


def predict(fitted: FittedModel, baked: pd.DataFrame, partition=None) -> pd.DataFrame:
    """Predicted class and positive-class probability for every row of ``baked``."""
    missing = [name for name in fitted.feature_names if name not in baked.columns]
    if missing:
        raise ModelError(f"Feature columns missing: {missing}", stage="predict", partition=partition)
    X = baked[list(fitted.feature_names)]

    classes = list(fitted.estimator.classes_)
    try:
        pred_class = fitted.estimator.predict(X)
        if fitted.positive_class in classes:
            pred_prob = fitted.estimator.predict_proba(X)[:, classes.index(fitted.positive_class)]
        else:
            pred_prob = np.zeros(len(X))
    except ValueError as exc:
        raise ModelError(
            f"Prediction with {fitted.spec.kind} failed: {exc}", stage="predict", partition=partition
        ) from exc
    return pd.DataFrame({"pred_class": pred_class, "pred_prob": pred_prob}, index=baked.index)


def feature_importance(fitted: FittedModel) -> pd.Series:
    """Impurity-based importance per baked column, highest first."""
    importances = getattr(fitted.estimator, "feature_importances_", None)
    if importances is None:
        raise ModelError(f"{fitted.spec.kind} does not provide feature importances", stage="importance")
    importance = pd.Series(importances, index=list(fitted.feature_names), name="importance")
    return importance.sort_values(ascending=False, kind="stable")
