"""
JSON Model Store

One ``<model_id>.json`` document per record in a directory. Writes go to a
temporary file first and are moved into place, so a crash never leaves a
half-written record.
"""

from pathlib import Path
from typing import List, Union
import json
import logging
import os
import tempfile

from credit_lifecycle.core.exceptions import RegistryError
from credit_lifecycle.registry.model_record import ModelRecord

logger = logging.getLogger(__name__)


class JsonModelStore:
    """Directory-backed persistence for model records."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, model_id: str) -> Path:
        return self.directory / f"{model_id}.json"

    def save(self, record: ModelRecord) -> None:
        path = self._path(record.model_id)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            with os.fdopen(fd, "w") as f:
                json.dump(record.to_dict(), f, indent=2, default=str)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name and os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise RegistryError(
                f"Failed to persist model record to {path}",
                model_id=record.model_id,
                cause=e,
            )

    def delete(self, model_id: str) -> None:
        path = self._path(model_id)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise RegistryError(f"Failed to delete {path}", model_id=model_id, cause=e)

    def load_all(self) -> List[ModelRecord]:
        records = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                with open(path) as f:
                    records.append(ModelRecord.from_dict(json.load(f)))
            except (OSError, ValueError, KeyError) as e:
                raise RegistryError(f"Corrupt model record {path}", cause=e)
        logger.info("Loaded %d model records from %s", len(records), self.directory)
        return records
