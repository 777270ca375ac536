import logging

from hotel_cancellation import models
from hotel_cancellation.errors import MetricError, ModelError
from hotel_cancellation.metrics import METRICS, MetricsRecord, compute_metrics, confusion_matrix

logger = logging.getLogger(__name__)


class ReservationModel:
    """A feature recipe and a model specification fit together on one training table."""

    def __init__(self, recipe, spec, positive_class):
        if not spec.is_resolved:
            raise ModelError(f"Parameters still marked for tuning: {list(spec.tunable)}", stage="final")
        self.recipe = recipe
        self.spec = spec
        self.positive_class = positive_class
        self.model = None

    def train(self, train_set):
        self.recipe, baked = self.recipe.fit_bake(train_set, partition="train")
        self.model = models.train(self.spec, baked, self.recipe.outcome, self.positive_class, partition="train")
        logger.info(f"Trained {self.spec.kind} on {len(baked)} rows and {len(self.model.feature_names)} features")
        return self

    def _require_model(self, stage):
        if self.model is None:
            raise ModelError("ReservationModel has not been trained", stage=stage)

    def predict(self, X, partition="test"):
        self._require_model("predict")
        baked = self.recipe.bake(X, partition=partition)
        return models.predict(self.model, baked, partition=partition)

    def evaluate(self, test_set):
        """Score on ``test_set``; returns the final MetricsRecord and the confusion matrix."""
        self._require_model("score")
        outcome = self.recipe.outcome
        if outcome not in test_set.columns:
            raise MetricError(f"Outcome column {outcome!r} missing from test set", stage="score", partition="test")

        predictions = self.predict(test_set, partition="test")
        truth = test_set[outcome]
        values = compute_metrics(
            truth,
            predictions["pred_class"],
            predictions["pred_prob"],
            self.positive_class,
            METRICS,
            partition="test",
        )
        cm = confusion_matrix(predictions["pred_class"], truth)
        return MetricsRecord("final", values), cm

    def get_feature_importance(self):
        self._require_model("importance")
        return models.feature_importance(self.model)


def fit_final(recipe, spec, train_set, positive_class) -> ReservationModel:
    """Fit the recipe once on the full training partition and train the model on it."""
    return ReservationModel(recipe, spec, positive_class).train(train_set)


def score(model: ReservationModel, test_set) -> MetricsRecord:
    record, _ = model.evaluate(test_set)
    logger.info(f"Final metrics: {record.values}")
    return record
