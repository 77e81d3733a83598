"""Persistent storage for provider configurations.

Configs are kept in a single JSON file with the structure::

    {
        "providers": [
            {"config": {...}, "enabled": true, "created_at": "...", "updated_at": "..."}
        ]
    }

The store only holds configuration. Whether a provider is actually connected
is tracked by the ConnectionRegistry.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from mcp_relay.providers.types import ProviderConfig

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ProviderConfigStore:
    """File-backed store of provider configs and their enabled flags."""

    def __init__(self, path: Path):
        """Initialize the store.

        Args:
            path: Path to the JSON file. Its directory is created if needed.
        """
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _load(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"Failed to read provider store: {e}")
        if not isinstance(data, dict) or not isinstance(data.get("providers", []), list):
            raise ValueError(f"Malformed provider store: {self.path}")
        return list(data.get("providers", []))

    def _dump(self, records: list[dict[str, Any]]) -> None:
        # Most recently updated first
        records = sorted(records, key=lambda r: r.get("updated_at", ""), reverse=True)
        try:
            self.path.write_text(
                json.dumps({"providers": records}, indent=2), encoding="utf-8"
            )
        except OSError as e:
            raise ValueError(f"Failed to write provider store: {e}")

    def _records(self) -> dict[str, dict[str, Any]]:
        records = {}
        for record in self._load():
            config = record.get("config") if isinstance(record, dict) else None
            if not isinstance(config, dict) or not isinstance(config.get("id"), str):
                logger.warning(f"Skipping malformed provider record: {record!r:.200}")
                continue
            records[config["id"]] = record
        return records

    def list_all(self) -> list[ProviderConfig]:
        """Return every stored config, most recently updated first."""
        configs = []
        for record in self._records().values():
            try:
                configs.append(ProviderConfig.model_validate(record["config"]))
            except Exception as e:
                logger.warning(f"Skipping invalid stored provider config: {e}")
        return configs

    def get(self, provider_id: str) -> ProviderConfig | None:
        record = self._records().get(provider_id)
        if record is None:
            return None
        return ProviderConfig.model_validate(record["config"])

    def save(self, config: ProviderConfig) -> None:
        """Insert or update a config, keeping its enabled flag and creation time."""
        records = self._records()
        now = _now()
        existing = records.get(config.id, {})
        records[config.id] = {
            "config": config.model_dump(mode="json"),
            "enabled": existing.get("enabled", True),
            "created_at": existing.get("created_at", now),
            "updated_at": now,
        }
        self._dump(list(records.values()))
        logger.info(f"Saved provider config: {config.id}")

    def save_all(self, configs: list[ProviderConfig]) -> None:
        """Replace the stored set with ``configs``; ids not listed are removed."""
        existing = self._records()
        now = _now()
        records = [
            {
                "config": config.model_dump(mode="json"),
                "enabled": existing.get(config.id, {}).get("enabled", True),
                "created_at": existing.get(config.id, {}).get("created_at", now),
                "updated_at": now,
            }
            for config in configs
        ]
        removed = set(existing) - {c.id for c in configs}
        self._dump(records)
        logger.info(f"Saved {len(records)} provider configs, removed {len(removed)}")

    def delete(self, provider_id: str) -> None:
        """Delete a stored config.

        Raises:
            FileNotFoundError: If no config with that id is stored.
        """
        records = self._records()
        if provider_id not in records:
            raise FileNotFoundError(f"Provider '{provider_id}' not found")
        del records[provider_id]
        self._dump(list(records.values()))
        logger.info(f"Deleted provider config: {provider_id}")

    def set_enabled(self, provider_id: str, enabled: bool) -> None:
        """Change whether a provider's tools are offered to the model.

        Raises:
            FileNotFoundError: If no config with that id is stored.
        """
        records = self._records()
        if provider_id not in records:
            raise FileNotFoundError(f"Provider '{provider_id}' not found")
        records[provider_id]["enabled"] = enabled
        records[provider_id]["updated_at"] = _now()
        self._dump(list(records.values()))

    def enabled_states(self) -> dict[str, bool]:
        """Map every stored provider id to its enabled flag."""
        return {pid: bool(r.get("enabled", True)) for pid, r in self._records().items()}

    def list_enabled(self) -> list[ProviderConfig]:
        states = self.enabled_states()
        return [c for c in self.list_all() if states.get(c.id, True)]

    def disabled_ids(self) -> set[str]:
        return {pid for pid, enabled in self.enabled_states().items() if not enabled}
