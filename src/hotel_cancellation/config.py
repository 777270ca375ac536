from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator


class TuningConfig(BaseModel):
    ranges: Dict[str, List[Union[int, float]]]
    levels: int = Field(default=3, ge=1)
    metric: str = "roc_auc"

    @field_validator("ranges")
    @classmethod
    def check_ranges(cls, ranges):
        for name, bounds in ranges.items():
            if len(bounds) != 2 or bounds[0] > bounds[1]:
                raise ValueError(f"range for {name} must be [low, high], got {bounds}")
        return ranges


class ProjectConfig(BaseModel):
    target: str
    positive_class: str
    id_column: Optional[str] = None
    cat_features: List[str] = []
    train_fraction: float = Field(default=0.7, gt=0, lt=1)
    seed: int = 42
    rare_threshold: float = Field(default=0.05, ge=0, lt=1)
    folds: int = Field(default=5, ge=2)
    metrics: List[str] = ["roc_auc", "accuracy", "sensitivity", "specificity"]
    n_jobs: Optional[int] = Field(default=None, ge=1)
    decision_tree: Dict[str, Any] = {}
    parameters: Dict[str, Any] = {}
    tuning: Optional[TuningConfig] = None
    experiment_name: Optional[str] = None
    tracking_uri: Optional[str] = None
    artifacts_dir: str = "artifacts"

    @classmethod
    def from_yaml(cls, config_path: str):
        """Load the project configuration from a YAML file."""
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
        return cls(**config_dict)
