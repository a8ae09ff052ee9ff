from __future__ import annotations

import logging
import os
from typing import Any

from .adapters.base import DataDirInspector
from .constants import (
    LEGACY_LOG_FILE,
    LEGACY_SET_COMMAND,
    LEGACY_SNAPSHOT_DIR,
    LEGACY_STANDBY_INFO,
    MIGRATION_KEY,
    MIGRATION_VALUE,
)

logger = logging.getLogger(__name__)


def snapshot_dir(data_dir: str) -> str:
    return os.path.join(data_dir, LEGACY_SNAPSHOT_DIR)


def log_file(data_dir: str) -> str:
    return os.path.join(data_dir, LEGACY_LOG_FILE)


def standby_info_file(data_dir: str) -> str:
    return os.path.join(data_dir, LEGACY_STANDBY_INFO)


def _lookup_node(state: dict[str, Any], key: str) -> dict[str, Any] | None:
    node: Any = state.get("Root")
    for part in key.strip("/").split("/"):
        if not isinstance(node, dict):
            return None
        node = (node.get("Children") or {}).get(part)
    return node if isinstance(node, dict) else None


def snapshot_has_migrated(state: dict[str, Any] | None) -> bool:
    if state is None:
        return False
    node = _lookup_node(state, MIGRATION_KEY)
    return node is not None and node.get("Value") == MIGRATION_VALUE


def has_migrated(inspector: DataDirInspector, data_dir: str) -> bool:
    """Report whether a move to the v2 protocol was committed in legacy data.

    The latest snapshot is consulted first, then the command log from the
    start. One sentinel write is enough evidence. Decode errors propagate.
    """
    state = inspector.decode_latest_snapshot(snapshot_dir(data_dir))
    if snapshot_has_migrated(state):
        logger.debug("migration sentinel found in snapshot of %s", data_dir)
        return True

    for command in inspector.decode_command_log(log_file(data_dir)):
        if command.name != LEGACY_SET_COMMAND:
            continue
        if command.key == MIGRATION_KEY and command.value == MIGRATION_VALUE:
            logger.debug("migration sentinel found in command log of %s", data_dir)
            return True
    return False
