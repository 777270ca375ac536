"""Column schema inference and enforcement.

``normalize_types`` decides once, from the raw loaded table, which columns are
numeric, categorical or identifiers. Ambiguous text columns are rejected
instead of being coerced.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Iterable, Tuple

import pandas as pd
from pandas.api.types import (
    is_bool_dtype,
    is_numeric_dtype,
    is_object_dtype,
    is_string_dtype,
)

from hotel_cancellation.errors import SchemaError

logger = logging.getLogger(__name__)

NUMERIC = "numeric"
CATEGORICAL = "categorical"
IDENTIFIER = "identifier"


@dataclass(frozen=True)
class ColumnSchema:
    name: str
    kind: str
    levels: Tuple[str, ...] = ()


class TableSchema(Mapping):
    """Ordered, read-only mapping of column name to ColumnSchema."""

    def __init__(self, columns: Iterable[ColumnSchema]):
        self._columns = {column.name: column for column in columns}

    def __getitem__(self, name):
        return self._columns[name]

    def __iter__(self):
        return iter(self._columns)

    def __len__(self):
        return len(self._columns)

    def __repr__(self):
        return f"TableSchema({list(self._columns.values())!r})"

    def names(self, kind=None):
        return [name for name, column in self._columns.items() if kind is None or column.kind == kind]


def clean_token(raw) -> str:
    """Lowercase, underscore-separated token made of [a-z0-9_]."""
    token = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", str(raw))
    token = re.sub(r"[^a-z0-9]+", "_", token.lower()).strip("_")
    if not token or token[0].isdigit():
        token = f"x{token}"
    return token


def _as_category(series: pd.Series) -> pd.Series:
    return series.astype(object).map(str, na_action="ignore").astype("category")


def _numeric_text(name, series):
    """Return the numeric version of a text column, or None if it is categorical."""
    values = series.dropna()
    if values.empty:
        return None
    parsed = pd.to_numeric(values.astype(str), errors="coerce")
    share = parsed.notna().mean()
    if share == 1:
        return pd.to_numeric(series.astype(object), errors="coerce")
    if share >= 0.5:
        offending = sorted(values[parsed.isna()].astype(str).unique())[:5]
        raise SchemaError(
            f"Column {name!r} is mostly numeric but contains non-numeric values {offending}",
            stage="normalize",
        )
    return None


def normalize_types(df: pd.DataFrame, categorical=(), identifiers=()):
    """Convert text columns to categoricals and describe every column.

    Args:
        df: table returned by ``load_data``.
        categorical: numeric-coded columns to treat as categorical.
        identifiers: columns that identify rows and are never predictors.

    Returns:
        A new DataFrame and its TableSchema.
    """
    unknown = (set(categorical) | set(identifiers)) - set(df.columns)
    if unknown:
        raise SchemaError(f"Unknown columns requested: {sorted(unknown)}", stage="normalize")

    out = df.copy()
    columns = []
    for name in df.columns:
        series = df[name]
        if name in identifiers:
            columns.append(ColumnSchema(name, IDENTIFIER))
            continue

        if name in categorical or is_bool_dtype(series):
            out[name] = _as_category(series)
        elif isinstance(series.dtype, pd.CategoricalDtype) or is_object_dtype(series) or is_string_dtype(series):
            numeric = _numeric_text(name, series)
            if numeric is not None:
                out[name] = numeric
                columns.append(ColumnSchema(name, NUMERIC))
                continue
            out[name] = _as_category(series)
        elif is_numeric_dtype(series):
            columns.append(ColumnSchema(name, NUMERIC))
            continue
        else:
            raise SchemaError(f"Column {name!r} has unsupported dtype {series.dtype}", stage="normalize")

        columns.append(ColumnSchema(name, CATEGORICAL, tuple(out[name].cat.categories)))

    schema = TableSchema(columns)
    logger.info(
        f"Types normalized: {len(schema.names(NUMERIC))} numeric, "
        f"{len(schema.names(CATEGORICAL))} categorical, {len(schema.names(IDENTIFIER))} identifier columns"
    )
    return out, schema


def apply_schema(df: pd.DataFrame, schema: TableSchema, optional=()) -> pd.DataFrame:
    """Coerce another table to an existing schema without re-learning levels."""
    missing = [name for name in schema if name not in df.columns and name not in optional]
    if missing:
        raise SchemaError(f"Columns missing from table: {missing}", stage="normalize", partition="new data")

    out = df.copy()
    for name, column in schema.items():
        if name not in df.columns:
            continue
        if column.kind == CATEGORICAL:
            out[name] = _as_category(df[name])
        elif column.kind == NUMERIC:
            try:
                out[name] = pd.to_numeric(df[name])
            except (ValueError, TypeError) as exc:
                raise SchemaError(
                    f"Column {name!r} is not numeric: {exc}", stage="normalize", partition="new data"
                ) from exc
    return out[[name for name in schema if name in out.columns]]
