import time
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class UserSession:
    history: List[str] = field(default_factory=list)
    last_coin: Optional[str] = None
    last_seen: float = field(default_factory=time.monotonic)

    def record(self, user_message: str, bot_reply: str, max_entries: int = 20) -> None:
        """Append one turn, keeping only the newest ``max_entries`` lines."""
        self.history.append(f"User: {user_message}")
        self.history.append(f"Bot: {bot_reply}")
        if len(self.history) > max_entries:
            self.history = self.history[-max_entries:]

    def recent(self, entries: int) -> List[str]:
        return self.history[-entries:] if entries > 0 else []
