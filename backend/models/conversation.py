"""Conversation data models."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

USER = "user"
ASSISTANT = "assistant"
ROLES = (USER, ASSISTANT)

DEFAULT_TITLE = "New conversation"
TITLE_LENGTH = 30


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(timestamp_str: str) -> datetime:
    """
    Parse an ISO-8601 timestamp, handling the browser and Python formats.

    Browsers write ``2026-02-21T02:08:26.189Z`` while ``isoformat()`` writes
    ``2026-02-21T02:08:26.189760+00:00``. Fractional seconds of any precision
    are normalised to six digits so ``fromisoformat()`` accepts them.

    Args:
        timestamp_str: Timestamp string from persisted storage

    Returns:
        Timezone-aware datetime (naive values are assumed to be UTC)
    """
    if not isinstance(timestamp_str, str):
        raise ValueError(f"Timestamp must be a string, got {type(timestamp_str).__name__}")

    # Replace 'Z' with '+00:00' for timezone
    timestamp_str = timestamp_str.replace("Z", "+00:00")

    if "." in timestamp_str:
        head, tail = timestamp_str.split(".", 1)
        # Split fraction from timezone
        for sign in ("+", "-"):
            if sign in tail:
                fraction, tz = tail.split(sign, 1)
                timestamp_str = f"{head}.{fraction[:6].ljust(6, '0')}{sign}{tz}"
                break
        else:
            timestamp_str = f"{head}.{tail[:6].ljust(6, '0')}"

    parsed = datetime.fromisoformat(timestamp_str)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def derive_title(content: str) -> str:
    """Build a conversation title from the leading characters of a message."""
    title = content[:TITLE_LENGTH]
    if len(content) > TITLE_LENGTH:
        title += "..."
    return title


@dataclass(frozen=True)
class Message:
    """A single turn in a conversation, authored by the user or the assistant."""
    role: str
    content: str
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")
        if not isinstance(self.content, str):
            raise ValueError("Message content must be a string")

    def to_api(self) -> Dict[str, str]:
        """Role and content only, as sent to the completion endpoint."""
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            role=data["role"],
            content=data["content"],
            timestamp=parse_timestamp(data["timestamp"]),
        )


@dataclass
class Conversation:
    """A titled, ordered sequence of messages."""
    id: str
    title: str = DEFAULT_TITLE
    messages: List[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def has_user_message(self) -> bool:
        return any(m.role == USER for m in self.messages)

    def last_user_message(self) -> Optional[Message]:
        for message in reversed(self.messages):
            if message.role == USER:
                return message
        return None

    def append(self, message: Message) -> None:
        """
        Append a message, keeping the title and timestamp invariants.

        The title is derived only when this is the first user message, and
        ``updated_at`` never moves backwards.
        """
        derive = message.role == USER and not self.has_user_message
        self.messages.append(message)
        if derive:
            self.title = derive_title(message.content)
        self.updated_at = max(self.updated_at, utc_now())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        if not isinstance(data, dict):
            raise ValueError("Conversation entry must be an object")
        if not isinstance(data.get("id"), str) or not data["id"]:
            raise ValueError("Conversation id must be a non-empty string")
        messages = data.get("messages", [])
        if not isinstance(messages, list):
            raise ValueError("Conversation messages must be a list")

        created_at = parse_timestamp(data["createdAt"])
        return cls(
            id=data["id"],
            title=str(data.get("title") or DEFAULT_TITLE),
            messages=[Message.from_dict(m) for m in messages],
            created_at=created_at,
            updated_at=parse_timestamp(data.get("updatedAt") or data["createdAt"]),
        )
