from pathlib import Path

import joblib

from hotel_cancellation.errors import LoadError
from hotel_cancellation.schema import clean_token


class ArtifactStore:
    """Fitted models and metrics records saved as joblib files keyed by name."""

    def __init__(self, directory):
        self.directory = Path(directory)

    def path(self, name) -> Path:
        return self.directory / f"{clean_token(name)}.joblib"

    def exists(self, name) -> bool:
        return self.path(name).is_file()

    def save(self, name, obj) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path(name)
        joblib.dump(obj, path)
        return path

    def load(self, name):
        path = self.path(name)
        if not path.is_file():
            raise LoadError(f"No artifact named {name!r} in {self.directory}", stage="store")
        return joblib.load(path)
