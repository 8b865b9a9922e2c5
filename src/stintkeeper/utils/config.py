"""
Global configurations
"""

import logging
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Self

import anyio
from pydantic import BaseModel, Field, ValidationError

from stintkeeper.utils.logging import generate_default_config

DEFAULT_CONFIG_FILE = Path("config.json")


_logger = logging.getLogger(__name__)


class _GeneralConfig(BaseModel):
    last_modified_time: datetime = Field(default_factory=datetime.now)


class _StorageConfig(BaseModel):
    directory: Path = Field(default_factory=partial(Path, "data"))
    config_key: str = "race-config"
    state_key: str = "race-state"


class _TimingConfig(BaseModel):
    tick_interval_sec: float = Field(default=0.1, gt=0, le=5)
    """Delay between time-driven re-evaluations while a clock is running"""


class StintkeeperConfig(BaseModel):
    """
    The application configs
    """

    general: _GeneralConfig = Field(default_factory=_GeneralConfig)
    storage: _StorageConfig = Field(default_factory=_StorageConfig)
    timing: _TimingConfig = Field(default_factory=_TimingConfig)
    logging: dict = Field(default_factory=generate_default_config)

    @classmethod
    def from_file(cls, filepath: Path) -> Self:
        """
        Loads a config from a filepath

        :param filepath: The filepath to load the config from
        """
        try:
            with filepath.open("rb") as file:
                return cls.model_validate_json(file.read())

        except ValidationError:
            _logger.error("Invalid application config file. Using defaults.")
            return cls()

        except FileNotFoundError:
            _logger.info("Config file not found. Loading defaults")
            return cls()

    def write_config_to_file(self, filepath: Path) -> None:
        """
        Writes the current config to a file

        :param filepath: The filepath to save the config to
        """
        self.general.last_modified_time = datetime.now()

        with filepath.open("w", encoding="utf-8") as file:
            file.write(self.model_dump_json(indent=4))

    async def write_config_to_file_async(self, filepath: Path) -> None:
        """
        Writes the current config to a file

        :param filepath: The filepath to save the config to
        """
        self.general.last_modified_time = datetime.now()

        async with await anyio.open_file(filepath, "w", encoding="utf-8") as file:
            await file.write(self.model_dump_json(indent=4))
