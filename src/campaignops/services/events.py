from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


@dataclass
class EventLogger:
    path: Path
    workspace: str
    enabled: bool = True

    def log(
        self,
        *,
        event_type: str,
        campaign_id: str,
        entity_type: str,
        entity_ids: Iterable[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if not self.enabled:
            return
        payload = {
            "ts": datetime.now(UTC).replace(microsecond=0).isoformat(),
            "workspace": self.workspace,
            "campaign_id": campaign_id,
            "event_type": event_type,
            "entity_type": entity_type,
            "entity_ids": list(entity_ids or []),
            "details": details or {},
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, sort_keys=True) + "\n")
