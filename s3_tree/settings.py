from __future__ import annotations
"""Adapter settings persistence helpers."""

from dataclasses import asdict, dataclass
import json
import logging
from pathlib import Path

LOGGER = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000
MAX_SHARE_EXPIRY_SECONDS = 7 * 24 * 60 * 60
ITEM_ERROR_POLICIES = ("continue", "stop")


@dataclass
class AdapterSettings:
    """Simple container for persistent adapter settings."""

    page_size: int = MAX_PAGE_SIZE
    item_error_policy: str = "continue"
    share_expiry_seconds: int = MAX_SHARE_EXPIRY_SECONDS


def _bounded_int(value: object, default: int, upper: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if number <= 0 or number > upper:
        return default
    return number


class SettingsStorage:
    """JSON-backed persistence for :class:`AdapterSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pys3tree_settings.json"
        self._path = Path(storage_path)

    def load(self) -> AdapterSettings:
        if not self._path.exists():
            return AdapterSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable settings file %s", self._path)
            return AdapterSettings()
        if not isinstance(data, dict):
            return AdapterSettings()

        policy = data.get("item_error_policy", AdapterSettings.item_error_policy)
        if not isinstance(policy, str) or policy.strip().lower() not in ITEM_ERROR_POLICIES:
            policy = AdapterSettings.item_error_policy
        return AdapterSettings(
            page_size=_bounded_int(data.get("page_size"), AdapterSettings.page_size, MAX_PAGE_SIZE),
            item_error_policy=policy.strip().lower(),
            share_expiry_seconds=_bounded_int(
                data.get("share_expiry_seconds"),
                AdapterSettings.share_expiry_seconds,
                MAX_SHARE_EXPIRY_SECONDS,
            ),
        )

    def save(self, settings: AdapterSettings) -> None:
        payload = asdict(settings)
        payload["page_size"] = min(max(int(settings.page_size), 1), MAX_PAGE_SIZE)
        payload["share_expiry_seconds"] = min(
            max(int(settings.share_expiry_seconds), 1), MAX_SHARE_EXPIRY_SECONDS
        )
        if settings.item_error_policy not in ITEM_ERROR_POLICIES:
            payload["item_error_policy"] = AdapterSettings.item_error_policy
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            LOGGER.warning("Could not write settings file %s", self._path)
