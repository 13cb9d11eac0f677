"""Application context: owns the storage handle and the repositories.

The entry point builds one context, initializes it, hands its
repositories to whatever needs them and closes it on exit.

Usage:
    async with InventoryContext.from_file("config.yaml") as app:
        devices = await app.devices.list_all()
"""

from __future__ import annotations

import copy
import logging
import os
from typing import Any, Dict, Optional

import yaml

from devicemanager.app.seed import seed_sample_data
from devicemanager.repositories import (
    AlertRepository,
    AuditRepository,
    DeviceRepository,
    LoanRepository,
    SupervisorRepository,
)
from devicemanager.storage.db import DatabaseManager

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_DB_PATH = "data/devicemanager.db"

DEFAULT_CONFIG: Dict[str, Any] = {
    "database": {
        "path": DEFAULT_DB_PATH,
        "settings_path": None,
        "cache_size_mb": 16,
    },
    "seed": {
        "sample_data": True,
    },
    "logging": {
        "level": "WARNING",
    },
}


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load the YAML configuration merged over the defaults.

    A missing file yields the defaults; a malformed one raises.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if not os.path.exists(config_path):
        logger.debug("Config %s not found, using defaults", config_path)
        return config

    with open(config_path, "r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config {config_path} must be a mapping")

    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values
    return config


class InventoryContext:
    """Explicitly constructed storage context shared by all repositories."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, db_path: Optional[str] = None):
        self.config = config if config is not None else copy.deepcopy(DEFAULT_CONFIG)
        db_cfg = self.config.get("database") or {}
        self.db_path = db_path or db_cfg.get("path") or DEFAULT_DB_PATH

        self.db = DatabaseManager(
            self.db_path,
            settings_path=db_cfg.get("settings_path"),
            cache_size_mb=int(db_cfg.get("cache_size_mb") or 16),
        )
        self.supervisors = SupervisorRepository(self.db)
        self.devices = DeviceRepository(self.db)
        self.loans = LoanRepository(self.db, devices=self.devices)
        self.alerts = AlertRepository(self.db)
        self.audit = AuditRepository(self.db)

    @classmethod
    def from_file(cls, config_path: str = DEFAULT_CONFIG_PATH, db_path: Optional[str] = None) -> InventoryContext:
        return cls(load_config(config_path), db_path=db_path)

    async def initialize(self, seed: Optional[bool] = None) -> bool:
        """Open the database and seed sample data on first run.

        ``seed`` overrides ``seed.sample_data`` from the config.  Returns
        True when sample data was inserted by this call.
        """
        await self.db.initialize()

        if seed is None:
            seed = bool((self.config.get("seed") or {}).get("sample_data", False))
        if not seed:
            return False

        return await seed_sample_data(self)

    async def close(self) -> None:
        await self.db.close()

    async def __aenter__(self) -> InventoryContext:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
