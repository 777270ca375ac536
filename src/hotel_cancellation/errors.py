"""Exceptions raised by the pipeline stages.

Every error carries the stage that raised it and, where it applies, the data
partition it was working on (``train``, ``test``, ``fold-3``, ``grid-point-2``).
"""


class PipelineError(Exception):
    def __init__(self, message, stage=None, partition=None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.partition = partition

    def __str__(self):
        context = []
        if self.stage:
            context.append(f"stage={self.stage}")
        if self.partition:
            context.append(f"partition={self.partition}")
        if not context:
            return self.message
        return f"{self.message} [{', '.join(context)}]"


class LoadError(PipelineError):
    """Source file missing, unreadable or empty."""


class SchemaError(PipelineError):
    """Column type cannot be normalized consistently."""


class PartitionError(PipelineError):
    """Table cannot be split as requested."""


class RecipeError(PipelineError):
    """Recipe used out of order or re-fit on a different table."""


class ModelError(PipelineError):
    """Model specification cannot be trained or queried."""


class SearchError(PipelineError):
    """Hyperparameter search has nothing to rank."""


class MetricError(PipelineError):
    """Metric undefined for the given predictions."""
