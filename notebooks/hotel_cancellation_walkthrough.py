# Databricks notebook source
# MAGIC %md
# MAGIC # Hotel Reservation Cancellations: EDA and Random Forest
# MAGIC
# MAGIC This notebook walks through the hotel reservations dataset: loading and cleaning the data,
# MAGIC exploring it, building a preprocessing recipe, fitting a decision tree and a random forest,
# MAGIC tuning the forest with cross-validation and inspecting the final model.

# COMMAND ----------

import matplotlib.pyplot as plt
import yaml

from hotel_cancellation import eda
from hotel_cancellation.config import ProjectConfig
from hotel_cancellation.data_processor import DataProcessor
from hotel_cancellation.models import decision_tree, rand_forest, tune
from hotel_cancellation.reservation_model import fit_final, score
from hotel_cancellation.resampling import evaluate, make_folds, summarize
from hotel_cancellation.tuning import finalize_spec, grid_regular, tune_grid
from hotel_cancellation.utils import plot_feature_importance, plot_tuning_results, visualize_results

# COMMAND ----------

# Load configuration
config = ProjectConfig.from_yaml(config_path="../project_config.yml")

print("Configuration loaded:")
print(yaml.dump(config.model_dump(), default_flow_style=False))

target = config.target
positive_class = config.positive_class

# COMMAND ----------

# MAGIC %md
# MAGIC ## Loading the data
# MAGIC
# MAGIC Column names are cleaned on load (`Booking_ID` becomes `booking_id`). Text columns become
# MAGIC categoricals; the integer-coded flags listed in `cat_features` are treated as categorical too.

# COMMAND ----------

data_processor = DataProcessor("../data/Hotel_Reservations.csv", config)
data_processor.preprocess_data()
df, schema = data_processor.df, data_processor.schema
df.head()

# COMMAND ----------

eda.summarize(df, schema)

# COMMAND ----------

# MAGIC %md
# MAGIC ## Exploratory analysis

# COMMAND ----------

corr = eda.correlation_matrix(df, schema)
eda.plot_correlation_matrix(corr)
plt.show()

# COMMAND ----------

# MAGIC %md
# MAGIC Lead time is the numeric feature most related to a cancellation. Cancellations by market segment
# MAGIC and by arrival month:

# COMMAND ----------

eda.plot_grouped_counts(eda.grouped_counts(df, "market_segment_type", target))
plt.show()

eda.plot_grouped_counts(eda.grouped_counts(df, "arrival_month", target))
plt.show()

# COMMAND ----------

eda.plot_scatter(df, "lead_time", "avg_price_per_room", hue=target)
plt.show()

# COMMAND ----------

# MAGIC %md
# MAGIC ## Train / test split and the recipe
# MAGIC
# MAGIC The split is stratified on `booking_status`. The recipe pools levels seen in less than 5% of the
# MAGIC training rows into `other` and one-hot encodes every categorical column. It is only ever fit on
# MAGIC training rows.

# COMMAND ----------

train_set, test_set = data_processor.split_data()
recipe = data_processor.recipe

print("Training set shape:", train_set.shape)
print("Test set shape:", test_set.shape)

# COMMAND ----------

fitted_recipe, baked = recipe.fit_bake(train_set)
print(fitted_recipe.pooling)
print(fitted_recipe.references)
baked.head()

# COMMAND ----------

# MAGIC %md
# MAGIC ## Decision tree

# COMMAND ----------

tree_model = fit_final(recipe, decision_tree(**config.decision_tree), train_set, positive_class)
score(tree_model, test_set).values

# COMMAND ----------

# MAGIC %md
# MAGIC ## Random forest with fixed hyperparameters

# COMMAND ----------

forest_spec = rand_forest(**config.parameters)
folds = make_folds(train_set, k=config.folds, strata=target, seed=config.seed)

records = evaluate(recipe, forest_spec, folds, config.metrics, positive_class)
summarize(records)

# COMMAND ----------

# MAGIC %md
# MAGIC The fold-to-fold standard error is small, so the forest is not overly sensitive to which rows it
# MAGIC was trained on.
# MAGIC
# MAGIC ## Tuning `n_estimators`, `max_features` and `min_samples_split`

# COMMAND ----------

tunable_forest = rand_forest(**{**config.parameters, **{name: tune() for name in config.tuning.ranges}})
grid = grid_regular(config.tuning.ranges, levels=config.tuning.levels)

results = tune_grid(recipe, tunable_forest, folds, grid, config.metrics, positive_class, n_jobs=config.n_jobs)
results.show_best("roc_auc")

# COMMAND ----------

plot_tuning_results(results, "roc_auc")
plt.show()

# COMMAND ----------

best_params = results.select_best("roc_auc")
final_model = fit_final(recipe, finalize_spec(tunable_forest, best_params), train_set, positive_class)

record, cm = final_model.evaluate(test_set)
record.values

# COMMAND ----------

## Visualizing Results
visualize_results(cm)
plt.show()

# COMMAND ----------

## Feature Importance
plot_feature_importance(final_model.get_feature_importance())
plt.show()
