"""
Persistence of the race configuration and state as opaque blobs
"""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ValidationError

from stintkeeper.race.models import RaceConfiguration, RaceState

logger = logging.getLogger(__name__)

_M = TypeVar("_M", bound=BaseModel)

DEFAULT_CONFIG_KEY = "race-config"
DEFAULT_STATE_KEY = "race-state"


@runtime_checkable
class StateStore(Protocol):
    """
    Protocol for the configuration and race state stores
    """

    def load_config(self) -> RaceConfiguration | None:
        """
        Load the stored configuration

        :return: The configuration, or None when missing or malformed
        """

    def save_config(self, config: RaceConfiguration) -> None:
        """
        Store the configuration

        :param config: The configuration to store
        """

    def load_state(self) -> RaceState | None:
        """
        Load the stored race state

        :return: The state, or None when missing or malformed
        """

    def save_state(self, state: RaceState) -> None:
        """
        Store the race state

        :param state: The state to store
        """

    def clear_state(self) -> None:
        """
        Remove the stored race state
        """


class BlobStore(ABC):
    """
    Key-value blob storage of the serialized models. Malformed blobs
    are discarded as a whole rather than repaired.
    """

    def __init__(
        self,
        *,
        config_key: str = DEFAULT_CONFIG_KEY,
        state_key: str = DEFAULT_STATE_KEY,
    ) -> None:
        self.config_key = config_key
        self.state_key = state_key

    @abstractmethod
    def read_blob(self, key: str) -> str | None:
        """
        Read a blob

        :param key: The blob key
        :return: The blob, or None when not stored
        """

    @abstractmethod
    def write_blob(self, key: str, blob: str) -> None:
        """
        Write a blob, replacing any previous value

        :param key: The blob key
        :param blob: The serialized data
        """

    @abstractmethod
    def delete_blob(self, key: str) -> None:
        """
        Delete a blob if it exists

        :param key: The blob key
        """

    def _load(self, key: str, model: type[_M]) -> _M | None:
        blob = self.read_blob(key)
        if blob is None:
            logger.info("No stored %s found", key)
            return None

        try:
            return model.model_validate_json(blob)
        except ValidationError:
            logger.error("Discarding malformed %s", key)
            return None

    def load_config(self) -> RaceConfiguration | None:
        return self._load(self.config_key, RaceConfiguration)

    def save_config(self, config: RaceConfiguration) -> None:
        self.write_blob(self.config_key, config.model_dump_json(by_alias=True))

    def load_state(self) -> RaceState | None:
        return self._load(self.state_key, RaceState)

    def save_state(self, state: RaceState) -> None:
        self.write_blob(self.state_key, state.model_dump_json(by_alias=True))

    def clear_state(self) -> None:
        self.delete_blob(self.state_key)


class MemoryStore(BlobStore):
    """
    Store keeping the blobs in memory
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.blobs: dict[str, str] = {}

    def read_blob(self, key: str) -> str | None:
        return self.blobs.get(key)

    def write_blob(self, key: str, blob: str) -> None:
        self.blobs[key] = blob

    def delete_blob(self, key: str) -> None:
        self.blobs.pop(key, None)


class JsonFileStore(BlobStore):
    """
    Store keeping one JSON file per blob in a directory. Files are
    replaced atomically, so a reader never sees a partial write.
    """

    def __init__(self, directory: Path, **kwargs) -> None:
        super().__init__(**kwargs)
        self.directory = directory

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read_blob(self, key: str) -> str | None:
        try:
            with self._path(key).open("r", encoding="utf-8") as file:
                return file.read()

        except FileNotFoundError:
            return None

        except UnicodeDecodeError:
            logger.error("Stored %s is not valid text", key)
            return ""

    def write_blob(self, key: str, blob: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

        fd, temp_name = tempfile.mkstemp(
            dir=self.directory, prefix=f".{key}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file:
                file.write(blob)
            os.replace(temp_name, self._path(key))

        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def delete_blob(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
