import logging
from pathlib import Path

import pandas as pd
from sklearn.model_selection import train_test_split

from hotel_cancellation.errors import LoadError, PartitionError, SchemaError
from hotel_cancellation.recipe import Recipe
from hotel_cancellation.schema import apply_schema, clean_token, normalize_types

logger = logging.getLogger(__name__)


def clean_names(columns):
    """Clean column names, suffixing duplicates with _2, _3, ..."""
    cleaned = []
    used = set()
    for column in columns:
        base = clean_token(column)
        token = base
        n = 1
        while token in used:
            n += 1
            token = f"{base}_{n}"
        used.add(token)
        cleaned.append(token)
    return cleaned


def load_data(filepath) -> pd.DataFrame:
    """Read a comma-separated file with a header row and clean its column names."""
    path = Path(filepath)
    if not path.is_file():
        raise LoadError(f"Data file not found: {path}", stage="load")
    try:
        df = pd.read_csv(path, encoding="utf-8")
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError, OSError) as exc:
        raise LoadError(f"Could not read {path}: {exc}", stage="load") from exc
    if df.empty:
        raise LoadError(f"Data file has no rows: {path}", stage="load")

    df.columns = clean_names(df.columns)
    logger.info(f"Loaded {len(df)} rows and {len(df.columns)} columns from {path}")
    return df


def split_data(df: pd.DataFrame, target: str, train_fraction=0.7, seed=42):
    """Split the DataFrame into stratified training and test sets."""
    if not 0 < train_fraction < 1:
        raise PartitionError(f"train_fraction must be in (0, 1), got {train_fraction}", stage="split")
    if target not in df.columns:
        raise PartitionError(f"Target column {target!r} not in table", stage="split")
    if df[target].isna().any():
        raise PartitionError(f"Target column {target!r} has missing values", stage="split")

    try:
        train_set, test_set = train_test_split(
            df, train_size=train_fraction, random_state=seed, stratify=df[target]
        )
    except ValueError as exc:
        raise PartitionError(f"Cannot stratify on {target!r}: {exc}", stage="split") from exc

    logger.info(f"Split {len(df)} rows into {len(train_set)} train / {len(test_set)} test")
    return train_set, test_set


class DataProcessor:
    def __init__(self, filepath, config):
        self.config = config
        self.df = self.load_data(filepath)
        self.schema = None
        self.recipe = None

    def load_data(self, filepath):
        return load_data(filepath)

    def preprocess_data(self):
        """Normalize column types and declare the feature recipe against the schema."""
        identifiers = [self.config.id_column] if self.config.id_column else []
        self.df, self.schema = normalize_types(
            self.df, categorical=self.config.cat_features, identifiers=identifiers
        )
        self.recipe = Recipe.declare(self.schema, self.config.target, threshold=self.config.rare_threshold)

    def split_data(self, train_fraction=None, seed=None):
        """Split the DataFrame (self.df) into stratified training and test sets."""
        if train_fraction is None:
            train_fraction = self.config.train_fraction
        if seed is None:
            seed = self.config.seed
        return split_data(self.df, self.config.target, train_fraction=train_fraction, seed=seed)

    def prepare_new_data(self, df):
        """Clean the column names of new reservations and coerce them to the training schema."""
        if self.schema is None:
            raise SchemaError("preprocess_data() must run before new data", stage="normalize", partition="new data")
        df = df.copy()
        df.columns = clean_names(df.columns)
        return apply_schema(df, self.schema, optional=[self.config.target])
