import argparse
import logging
from pathlib import Path

import matplotlib
import yaml

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402

from hotel_cancellation import eda  # noqa: E402
from hotel_cancellation.config import ProjectConfig  # noqa: E402
from hotel_cancellation.data_processor import DataProcessor, load_data  # noqa: E402
from hotel_cancellation.models import decision_tree, rand_forest, tune  # noqa: E402
from hotel_cancellation.reservation_model import fit_final, score  # noqa: E402
from hotel_cancellation.resampling import make_folds  # noqa: E402
from hotel_cancellation.store import ArtifactStore  # noqa: E402
from hotel_cancellation.tracking import log_run  # noqa: E402
from hotel_cancellation.tuning import finalize_spec, grid_regular, tune_grid  # noqa: E402
from hotel_cancellation.utils import plot_feature_importance, plot_tuning_results, visualize_results  # noqa: E402

parser = argparse.ArgumentParser()
parser.add_argument("--config", action="store", default="project_config.yml", type=str)
parser.add_argument("--data", action="store", default="data/Hotel_Reservations.csv", type=str)
parser.add_argument("--score_data", action="store", default=None, type=str)
args = parser.parse_args()

# Logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

# Load configuration
config = ProjectConfig.from_yaml(config_path=args.config)

print("Configuration loaded:")
print(yaml.dump(config.model_dump(), default_flow_style=False))

target = config.target
positive_class = config.positive_class
artifacts_dir = Path(config.artifacts_dir)
artifacts_dir.mkdir(parents=True, exist_ok=True)
store = ArtifactStore(artifacts_dir)


def save_figure(fig, name):
    path = artifacts_dir / f"{name}.png"
    fig.savefig(path)
    plt.close(fig)
    return path


# Load and normalize the data
data_processor = DataProcessor(args.data, config)
data_processor.preprocess_data()
df, schema = data_processor.df, data_processor.schema
logger.info("Data loaded and types normalized.")
print(eda.summarize(df, schema))

# Exploratory analysis
save_figure(eda.plot_correlation_matrix(eda.correlation_matrix(df, schema)), "correlation")
for group_col in ("market_segment_type", "arrival_month", "type_of_meal_plan"):
    if group_col in df.columns:
        counts = eda.grouped_counts(df, group_col, target)
        save_figure(eda.plot_grouped_counts(counts), f"{group_col}_by_{target}")
if {"lead_time", "avg_price_per_room"}.issubset(df.columns):
    save_figure(eda.plot_scatter(df, "lead_time", "avg_price_per_room", hue=target), "lead_time_vs_price")
logger.info(f"Exploratory plots written to {artifacts_dir}")

# Split the data
train_set, test_set = data_processor.split_data()
recipe = data_processor.recipe

# Decision tree and random forest with fixed hyperparameters
tree_model = fit_final(recipe, decision_tree(**config.decision_tree), train_set, positive_class)
logger.info(f"Decision tree: {score(tree_model, test_set).values}")

forest_model = fit_final(recipe, rand_forest(**config.parameters), train_set, positive_class)
logger.info(f"Random forest: {score(forest_model, test_set).values}")

# Grid search over the random forest hyperparameters
final_spec = rand_forest(**config.parameters)
results = None
if config.tuning:
    folds = make_folds(train_set, k=config.folds, strata=target, seed=config.seed)
    tuned_params = {name: tune() for name in config.tuning.ranges}
    tunable_forest = rand_forest(**{**config.parameters, **tuned_params})
    grid = grid_regular(config.tuning.ranges, levels=config.tuning.levels)
    results = tune_grid(recipe, tunable_forest, folds, grid, config.metrics, positive_class, n_jobs=config.n_jobs)
    print(results.show_best(config.tuning.metric))
    save_figure(plot_tuning_results(results, config.tuning.metric), "tuning")

    best_params = results.select_best(config.tuning.metric)
    logger.info(f"Best parameters by {config.tuning.metric}: {best_params}")
    final_spec = finalize_spec(tunable_forest, best_params)
else:
    logger.info("No tuning section in the configuration; keeping the fixed random forest parameters.")

# Final fit and evaluation
final_model = fit_final(recipe, final_spec, train_set, positive_class)
record, cm = final_model.evaluate(test_set)
logger.info(f"Final model evaluation completed: {record.values}")
print(cm)

## Visualizing Results
cm_path = save_figure(visualize_results(cm), "confusion_matrix")

## Feature Importance
importance_path = save_figure(plot_feature_importance(final_model.get_feature_importance()), "feature_importance")
logger.info("Feature importance plot generated.")

store.save("final_model", final_model)
store.save("final_metrics", record)
if results is not None:
    store.save("tuning_results", results.collect_metrics())

## Scoring new reservations
if args.score_data:
    new_bookings = data_processor.prepare_new_data(load_data(args.score_data))
    predictions = final_model.predict(new_bookings, partition="new data")
    if config.id_column in new_bookings.columns:
        predictions.insert(0, config.id_column, new_bookings[config.id_column])
    predictions.to_csv(artifacts_dir / "predictions.csv", index=False)
    logger.info(f"Scored {len(predictions)} new reservations.")

if config.experiment_name:
    run_id = log_run(
        final_model,
        record,
        experiment_name=config.experiment_name,
        params={**final_model.spec.params},
        tracking_uri=config.tracking_uri,
        artifacts=[cm_path, importance_path],
        input_example=train_set.head(5),
    )
    logger.info(f"MLflow run: {run_id}")
