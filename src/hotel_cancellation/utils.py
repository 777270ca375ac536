import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns


def _finish(fig, save_path):
    fig.tight_layout()
    if save_path is not None:
        fig.savefig(save_path)
    return fig


def visualize_results(cm, title="Confusion Matrix", save_path=None):
    fig, ax = plt.subplots(figsize=(10, 6))
    sns.heatmap(cm, annot=True, fmt="d", cmap="Blues", ax=ax)
    ax.set_xlabel("Predicted Reservation")
    ax.set_ylabel("Actual Reservation")
    ax.set_title(title)
    return _finish(fig, save_path)


def plot_feature_importance(feature_importance, top_n=10, save_path=None):
    top = feature_importance.sort_values(ascending=False, kind="stable").head(top_n)[::-1]
    fig, ax = plt.subplots(figsize=(10, 6))
    pos = np.arange(len(top)) + 0.5
    ax.barh(pos, top.to_numpy())
    ax.set_yticks(pos)
    ax.set_yticklabels(top.index)
    ax.set_title(f"Top {len(top)} Feature Importance")
    return _finish(fig, save_path)


def plot_tuning_results(results, metric="roc_auc", save_path=None):
    """Mean resampled metric against each tuned parameter."""
    metrics = results.collect_metrics()
    metrics = metrics[metrics["metric"] == metric]
    params = list(results.spec.tunable)
    fig, axes = plt.subplots(1, max(len(params), 1), figsize=(5 * max(len(params), 1), 4), squeeze=False)
    for ax, param in zip(axes[0], params):
        sns.scatterplot(data=metrics, x=param, y="mean", ax=ax)
        ax.set_ylabel(f"mean {metric}")
    fig.suptitle(f"Resampled {metric} by hyperparameter")
    return _finish(fig, save_path)
