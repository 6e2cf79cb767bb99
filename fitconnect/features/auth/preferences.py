"""Local onboarding preferences (device-level, not per account)."""

import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class OnboardingPreferences:
    """
    Remembers whether the intro screens were completed on this device.

    With `path=None` the flag lives in memory only.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._seen = self._load()

    def _load(self) -> bool:
        if self.path is None or not self.path.exists():
            return False
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return bool(data.get("has_seen_onboarding", False))
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Unreadable onboarding preferences at {self.path}: {e}")
            return False

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps({"has_seen_onboarding": self._seen}), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not save onboarding preferences: {e}")

    @property
    def has_seen_onboarding(self) -> bool:
        return self._seen

    def mark_seen(self) -> None:
        if not self._seen:
            self._seen = True
            self._save()

    def reset(self) -> None:
        self._seen = False
        self._save()
