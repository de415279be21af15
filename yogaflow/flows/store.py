"""Flow Store - persisted session history.

A single JSON document holding every saved flow, most recent first. The
whole document is rewritten atomically on every mutation, so no migration
or schema versioning is needed.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections import OrderedDict
from datetime import datetime
from pathlib import Path

from yogaflow.exceptions import PersistenceError, YogaFlowError
from yogaflow.flows.models import Flow
from yogaflow.observability.logging import get_logger

logger = get_logger(__name__)


class FlowStore:
    """Append-only, most-recent-first flow history.

    Usage:
        store = FlowStore("data/flows.json")
        store.append(flow)
        for saved in store.list():
            ...
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def list(self) -> list[Flow]:
        """All saved flows, most recent first.

        An unreadable document yields an empty history and a malformed
        record is skipped; an I/O failure raises.

        Raises:
            PersistenceError: If the file exists but cannot be read
        """
        flows = (self._decode(item) for item in self._read())
        return [flow for flow in flows if flow is not None]

    def get(self, flow_id: str) -> Flow | None:
        for item in self._read():
            if _item_id(item) == flow_id:
                return self._decode(item)
        return None

    def append(self, flow: Flow) -> None:
        """Save a flow at the head of the history.

        Raises:
            PersistenceError: If the document cannot be written
        """
        items = self._read()
        items.insert(0, flow.to_dict())
        self._write(items)
        logger.info("flow_saved", flow_id=flow.id, poses=len(flow), total=len(items))

    def remove(self, flow_id: str) -> bool:
        """Delete a flow. Returns True if it existed."""
        items = self._read()
        kept = [item for item in items if _item_id(item) != flow_id]
        if len(kept) == len(items):
            return False
        self._write(kept)
        logger.info("flow_removed", flow_id=flow_id)
        return True

    def group_by_date(self) -> OrderedDict[str, list[Flow]]:
        """Saved flows grouped by local calendar day, most recent first."""
        grouped: OrderedDict[str, list[Flow]] = OrderedDict()
        for flow in self.list():
            day = datetime.fromisoformat(flow.created_at).astimezone().strftime("%A %d %B %Y")
            grouped.setdefault(day, []).append(flow)
        return grouped

    def _decode(self, item: object) -> Flow | None:
        try:
            flow = Flow.from_dict(item)
            datetime.fromisoformat(flow.created_at)
        except (KeyError, TypeError, ValueError, AttributeError, YogaFlowError) as e:
            logger.warning(
                "flow_store_corrupt",
                path=str(self._path),
                flow_id=_item_id(item),
                error=f"{type(e).__name__}: {e}",
            )
            return None
        return flow

    def _read(self) -> list[dict]:
        if not self._path.exists():
            return []
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError("read", str(self._path), str(e)) from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("flow_store_corrupt", path=str(self._path), error=str(e))
            return []

        if not isinstance(data, list):
            logger.warning("flow_store_corrupt", path=str(self._path), error="not a list")
            return []
        return data

    def _write(self, items: list[dict]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(items, f, ensure_ascii=False)
                os.replace(tmp_path, self._path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError("write", str(self._path), str(e)) from e


def _item_id(item: object) -> str | None:
    return item.get("id") if isinstance(item, dict) else None
