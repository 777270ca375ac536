"""Feature recipe: rare-level pooling followed by one-hot indicator columns.

A recipe is declared against a schema, fit on one training table and then
baked against any table with the same columns. Everything learned at fit
time (retained levels, indicator columns) is stored on the fit recipe, so
baking never looks at statistics of the table being baked.

Every categorical predictor has one reference level without an indicator
column. When fitting pooled anything into ``"other"`` (a rare level, a
missing value) the reference is ``"other"``; otherwise it is the first
retained level in sorted order. Levels never seen at fit time pool into
``"other"`` and bake to an all-zero row either way.
"""

import hashlib
import logging
from dataclasses import dataclass

import pandas as pd

from hotel_cancellation.errors import RecipeError
from hotel_cancellation.schema import CATEGORICAL, IDENTIFIER, NUMERIC, clean_token

logger = logging.getLogger(__name__)

DECLARED = "declared"
FIT = "fit"
BAKED = "baked"

OTHER = "other"


@dataclass(frozen=True)
class Indicator:
    column: str
    level: str
    name: str


def _fingerprint(df: pd.DataFrame) -> str:
    digest = hashlib.sha256("|".join(map(str, df.columns)).encode())
    digest.update(pd.util.hash_pandas_object(df, index=True).to_numpy().tobytes())
    return digest.hexdigest()


def _as_levels(series: pd.Series) -> pd.Series:
    return series.astype(object).map(str, na_action="ignore")


class Recipe:
    def __init__(
        self,
        outcome,
        numeric,
        categorical,
        identifiers=(),
        threshold=0.05,
        pooling=None,
        indicators=(),
        fingerprint=None,
        references=None,
    ):
        self.outcome = outcome
        self.numeric = tuple(numeric)
        self.categorical = tuple(categorical)
        self.identifiers = tuple(identifiers)
        self.threshold = threshold
        self._pooling = tuple((column, tuple(levels)) for column, levels in (pooling or {}).items())
        self._references = tuple((references or {}).items())
        self.indicators = tuple(indicators)
        self.fingerprint = fingerprint
        self._state = DECLARED if fingerprint is None else FIT

    @classmethod
    def declare(cls, schema, outcome, threshold=0.05):
        """Declare a recipe: the outcome plus every non-identifier column as predictor."""
        if outcome not in schema:
            raise RecipeError(f"Outcome column {outcome!r} not in schema", stage="recipe.declare")
        if not 0 <= threshold < 1:
            raise RecipeError(f"Pooling threshold must be in [0, 1), got {threshold}", stage="recipe.declare")
        return cls(
            outcome=outcome,
            numeric=[name for name in schema.names(NUMERIC) if name != outcome],
            categorical=[name for name in schema.names(CATEGORICAL) if name != outcome],
            identifiers=[name for name in schema.names(IDENTIFIER) if name != outcome],
            threshold=threshold,
        )

    @property
    def state(self):
        return self._state

    @property
    def predictors(self):
        return self.numeric + self.categorical

    @property
    def pooling(self):
        """Retained levels per categorical predictor; anything else becomes "other"."""
        return dict(self._pooling)

    @property
    def references(self):
        """Baseline level per categorical predictor; it gets no indicator column."""
        return dict(self._references)

    @property
    def feature_names(self):
        return list(self.numeric) + [indicator.name for indicator in self.indicators]

    def __repr__(self):
        return (
            f"Recipe(state={self._state!r}, outcome={self.outcome!r}, "
            f"numeric={len(self.numeric)}, categorical={len(self.categorical)}, "
            f"indicators={len(self.indicators)})"
        )

    def _check_columns(self, table, stage, partition):
        missing = [column for column in self.predictors if column not in table.columns]
        if missing:
            raise RecipeError(f"Predictor columns missing: {missing}", stage=stage, partition=partition)

    def fit(self, train: pd.DataFrame, partition="train") -> "Recipe":
        """Learn retained levels and indicator columns from ``train``.

        Returns a new recipe in state ``fit``. A recipe that is already fit
        returns itself for the identical table and refuses any other table.
        """
        self._check_columns(train, "recipe.fit", partition)
        fingerprint = _fingerprint(train[list(self.predictors)])
        if self._state != DECLARED:
            if fingerprint == self.fingerprint:
                return self
            raise RecipeError(
                "Recipe is already fit on a different table; declare a new recipe to fit again",
                stage="recipe.fit",
                partition=partition,
            )

        used = set(self.numeric) | set(self.identifiers) | {self.outcome}
        pooling = {}
        references = {}
        indicators = []
        for column in self.categorical:
            levels = _as_levels(train[column])
            frequencies = levels.dropna().value_counts(normalize=True)
            retained = tuple(
                sorted(level for level, share in frequencies.items() if share >= self.threshold and level != OTHER)
            )
            pooling[column] = retained
            pooled_any = not levels.isin(retained).all()
            references[column] = OTHER if pooled_any or not retained else retained[0]
            for level in retained:
                if level == references[column]:
                    continue
                base = clean_token(f"{column}_{level}")
                name = base
                n = 1
                while name in used:
                    n += 1
                    name = f"{base}_{n}"
                used.add(name)
                indicators.append(Indicator(column, level, name))

        recipe = Recipe(
            outcome=self.outcome,
            numeric=self.numeric,
            categorical=self.categorical,
            identifiers=self.identifiers,
            threshold=self.threshold,
            pooling=pooling,
            indicators=indicators,
            fingerprint=fingerprint,
            references=references,
        )
        logger.debug(f"Recipe fit on {len(train)} rows ({partition}): {len(indicators)} indicator columns")
        return recipe

    def pool(self, table: pd.DataFrame, partition=None) -> pd.DataFrame:
        """Categorical predictors of ``table`` with the stored pooling applied."""
        if self._state == DECLARED:
            raise RecipeError("pool() called before fit()", stage="recipe.bake", partition=partition)
        self._check_columns(table, "recipe.bake", partition)
        pooled = {}
        for column, retained in self._pooling:
            levels = _as_levels(table[column])
            pooled[column] = levels.where(levels.isin(retained), OTHER)
        return pd.DataFrame(pooled, index=table.index, columns=list(self.categorical))

    def bake(self, table: pd.DataFrame, partition=None) -> pd.DataFrame:
        """Apply the fit recipe to ``table``.

        Output columns: numeric predictors, then 0/1 indicator columns, then
        the outcome when ``table`` has it.
        """
        if self._state == DECLARED:
            raise RecipeError("bake() called before fit()", stage="recipe.bake", partition=partition)
        pooled = self.pool(table, partition=partition)

        columns = {column: table[column] for column in self.numeric}
        for indicator in self.indicators:
            columns[indicator.name] = (pooled[indicator.column] == indicator.level).astype(int)
        if self.outcome in table.columns:
            columns[self.outcome] = table[self.outcome]

        self._state = BAKED
        return pd.DataFrame(columns, index=table.index)

    def fit_bake(self, train: pd.DataFrame, partition="train"):
        recipe = self.fit(train, partition=partition)
        return recipe, recipe.bake(train, partition=partition)
