import logging

import mlflow
from mlflow.models import infer_signature

logger = logging.getLogger(__name__)


def log_run(
    model,
    record,
    experiment_name,
    params=None,
    tracking_uri=None,
    artifacts=(),
    tags=None,
    log_model=True,
    input_example=None,
):
    """Log a trained ReservationModel and its final metrics to MLflow; returns the run id."""
    if tracking_uri:
        mlflow.set_tracking_uri(tracking_uri)
    mlflow.set_experiment(experiment_name=experiment_name)

    with mlflow.start_run(tags=tags) as run:
        run_id = run.info.run_id
        mlflow.log_param("model_type", type(model.model.estimator).__name__)
        mlflow.log_params(dict(params if params is not None else model.spec.params))
        mlflow.log_metrics(record.values)
        for path in artifacts:
            mlflow.log_artifact(str(path))

        if log_model:
            signature = None
            if input_example is not None:
                baked = model.recipe.bake(input_example, partition="signature")
                X = baked[list(model.model.feature_names)]
                signature = infer_signature(model_input=X, model_output=model.model.estimator.predict(X))
            mlflow.sklearn.log_model(sk_model=model.model.estimator, artifact_path=model.spec.kind, signature=signature)

    logger.info(f"Logged run {run_id} to experiment {experiment_name}")
    return run_id
