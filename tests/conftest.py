import matplotlib

matplotlib.use("Agg")

import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
import pytest  # noqa: E402

from hotel_cancellation.config import ProjectConfig  # noqa: E402
from hotel_cancellation.data_processor import clean_names  # noqa: E402
from hotel_cancellation.schema import normalize_types  # noqa: E402


@pytest.fixture
def raw_hotel_frame():
    """Raw reservations with the dataset's original column names."""
    rng = np.random.default_rng(0)
    n = 200
    lead_time = rng.integers(0, 300, n)
    canceled = (lead_time > 150) ^ (rng.random(n) < 0.1)
    return pd.DataFrame(
        {
            "Booking_ID": [f"INN{i:05d}" for i in range(n)],
            "no_of_adults": rng.integers(1, 4, n),
            "lead_time": lead_time,
            "avg_price_per_room": rng.normal(100, 25, n).round(2),
            "type_of_meal_plan": rng.choice(["Meal Plan 1", "Not Selected", "Meal Plan 2"], n, p=[0.7, 0.2, 0.1]),
            "market_segment_type": rng.choice(
                ["Online", "Offline", "Corporate", "Aviation"], n, p=[0.6, 0.3, 0.08, 0.02]
            ),
            "repeated_guest": rng.integers(0, 2, n),
            "booking_status": np.where(canceled, "Canceled", "Not_Canceled"),
        }
    )


@pytest.fixture
def hotel_csv(tmp_path, raw_hotel_frame):
    path = tmp_path / "Hotel_Reservations.csv"
    raw_hotel_frame.to_csv(path, index=False)
    return path


@pytest.fixture
def hotel_table(raw_hotel_frame):
    """Cleaned and type-normalized reservations with their schema."""
    df = raw_hotel_frame.copy()
    df.columns = clean_names(df.columns)
    return normalize_types(df, categorical=["repeated_guest"], identifiers=["booking_id"])


@pytest.fixture
def config():
    return ProjectConfig(
        target="booking_status",
        positive_class="Canceled",
        id_column="booking_id",
        cat_features=["repeated_guest"],
        train_fraction=0.7,
        seed=1,
        rare_threshold=0.05,
        folds=3,
        parameters={"n_estimators": 20, "max_features": 2, "min_samples_split": 4, "random_state": 0},
    )
