"""Desktop user-agent rotation."""

from __future__ import annotations

import random
from pathlib import Path
from threading import Lock
from typing import TYPE_CHECKING, Iterable, List, Optional

if TYPE_CHECKING:
    from ..config import HttpSettings


class UserAgentPool:
    """Hand out random user agents from a configured list or file."""

    def __init__(self, user_agents: Iterable[str] | None = None, file_path: Path | None = None) -> None:
        self._lock = Lock()
        self._agents: List[str] = []
        if user_agents:
            self._agents.extend(ua.strip() for ua in user_agents if ua.strip())
        if file_path and file_path.exists():
            lines = file_path.read_text(encoding="utf-8").splitlines()
            self._agents.extend(line.strip() for line in lines if line.strip())

    @classmethod
    def from_settings(cls, settings: "HttpSettings") -> "UserAgentPool | None":
        """Return a pool for the configured list, or None when rotation is off."""

        agents = settings.user_agent_list
        if isinstance(agents, list) and agents:
            return cls(user_agents=agents)
        return None

    def __len__(self) -> int:
        return len(self._agents)

    def get(self) -> Optional[str]:
        with self._lock:
            if not self._agents:
                return None
            return random.choice(self._agents)


__all__ = ["UserAgentPool"]
