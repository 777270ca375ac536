"""Classification metrics with an explicit positive class."""

from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, recall_score, roc_auc_score
from sklearn.metrics import confusion_matrix as sk_confusion_matrix

from hotel_cancellation.errors import MetricError

METRICS = ("accuracy", "sensitivity", "specificity", "roc_auc")
MAXIMIZE = frozenset(METRICS)


@dataclass(frozen=True)
class MetricsRecord:
    tag: str
    values: Dict[str, float] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self):
        return {"tag": self.tag, **self.values, "error": self.error}


def compute_metrics(truth, predicted, probability, positive_class, metric_names=METRICS, partition=None):
    """Score predictions against the true outcome.

    ``probability`` is the predicted probability of ``positive_class`` and may
    be None when roc_auc is not requested. Sensitivity is the recall of the
    positive class, specificity the recall of every other class.
    """
    unknown = [name for name in metric_names if name not in METRICS]
    if unknown:
        raise MetricError(f"Unknown metrics {unknown}; expected some of {list(METRICS)}", stage="score", partition=partition)

    truth = np.asarray(truth).astype(str)
    predicted = np.asarray(predicted).astype(str)
    actual_positive = (truth == positive_class).astype(int)
    predicted_positive = (predicted == positive_class).astype(int)

    values = {}
    for name in metric_names:
        if name == "accuracy":
            values[name] = float(accuracy_score(truth, predicted))
        elif name == "sensitivity":
            if not actual_positive.any():
                raise MetricError(f"sensitivity undefined: no {positive_class!r} rows", stage="score", partition=partition)
            values[name] = float(recall_score(actual_positive, predicted_positive))
        elif name == "specificity":
            if actual_positive.all():
                raise MetricError(
                    f"specificity undefined: only {positive_class!r} rows", stage="score", partition=partition
                )
            values[name] = float(recall_score(1 - actual_positive, 1 - predicted_positive))
        elif name == "roc_auc":
            if probability is None:
                raise MetricError("roc_auc requires predicted probabilities", stage="score", partition=partition)
            if actual_positive.all() or not actual_positive.any():
                raise MetricError("roc_auc undefined: only one class present", stage="score", partition=partition)
            values[name] = float(roc_auc_score(actual_positive, np.asarray(probability, dtype=float)))
    return values


def confusion_matrix(predicted, truth, labels=None) -> pd.DataFrame:
    """Count matrix with the TRUE class on the rows and the PREDICTED class on the columns."""
    truth = np.asarray(truth).astype(str)
    predicted = np.asarray(predicted).astype(str)
    if labels is None:
        labels = sorted(set(truth) | set(predicted))
    counts = sk_confusion_matrix(truth, predicted, labels=labels)
    return pd.DataFrame(
        counts,
        index=pd.Index(labels, name="actual"),
        columns=pd.Index(labels, name="predicted"),
    )
