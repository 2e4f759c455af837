from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class ManualOverrideTable:
    """Operator-maintained mapping of broken selectors to replacements.

    The file is read on every lookup so edits take effect without a restart.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def lookup(self, selector: str) -> str | None:
        healed = self.entries().get(selector)
        return healed or None

    def entries(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable manual healing file %s: %s", self.path, exc)
            return {}
        if not isinstance(payload, dict):
            logger.warning("Ignoring manual healing file %s: expected a JSON object", self.path)
            return {}
        return {key: value for key, value in payload.items() if isinstance(value, str)}
