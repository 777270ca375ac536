"""Exploratory summaries and plots. Nothing here modifies its input."""

import logging

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from hotel_cancellation.errors import SchemaError
from hotel_cancellation.schema import CATEGORICAL, NUMERIC

logger = logging.getLogger(__name__)


def correlation_matrix(df: pd.DataFrame, schema=None) -> pd.DataFrame:
    """Pearson correlation between the numeric columns."""
    if schema is not None:
        columns = [name for name in schema.names(NUMERIC) if name in df.columns]
    else:
        columns = df.select_dtypes(include="number").columns.tolist()
    return df[columns].corr(method="pearson")


def grouped_counts(df: pd.DataFrame, group_col: str, target_col: str) -> pd.DataFrame:
    """Counts of each ``target_col`` level per ``group_col`` value, zero-filled."""
    missing = [column for column in (group_col, target_col) if column not in df.columns]
    if missing:
        raise SchemaError(f"Columns not in table: {missing}", stage="eda")
    counts = df.groupby([group_col, target_col], observed=True).size().unstack(fill_value=0)
    return counts.astype(int)


def summarize(df: pd.DataFrame, schema) -> pd.DataFrame:
    rows = []
    for name, column in schema.items():
        series = df[name]
        rows.append(
            {
                "column": name,
                "kind": column.kind,
                "missing": int(series.isna().sum()),
                "levels": len(column.levels) if column.kind == CATEGORICAL else None,
                "mean": float(series.mean()) if column.kind == NUMERIC else None,
            }
        )
    return pd.DataFrame(rows).set_index("column")


def plot_correlation_matrix(corr: pd.DataFrame, save_path=None):
    fig, ax = plt.subplots(figsize=(12, 10))
    sns.heatmap(corr, annot=True, fmt=".2f", cmap="coolwarm", vmin=-1, vmax=1, square=True, ax=ax)
    ax.set_title("Correlation of numeric features")
    fig.tight_layout()
    if save_path is not None:
        fig.savefig(save_path)
    return fig


def plot_grouped_counts(counts: pd.DataFrame, title=None, save_path=None):
    fig, ax = plt.subplots(figsize=(10, 6))
    counts.plot(kind="bar", stacked=True, ax=ax)
    ax.set_xlabel(counts.index.name)
    ax.set_ylabel("Bookings")
    ax.set_title(title or f"{counts.columns.name} by {counts.index.name}")
    fig.tight_layout()
    if save_path is not None:
        fig.savefig(save_path)
    return fig


def plot_scatter(df: pd.DataFrame, x: str, y: str, hue=None, save_path=None):
    fig, ax = plt.subplots(figsize=(10, 6))
    sns.scatterplot(data=df, x=x, y=y, hue=hue, alpha=0.5, ax=ax)
    ax.set_title(f"{y} vs {x}")
    fig.tight_layout()
    if save_path is not None:
        fig.savefig(save_path)
    return fig
