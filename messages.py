import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

from errors import ParseError
from timestamps import TimestampInput, TimezoneOffset, normalize_timestamp


@dataclass(frozen=True)
class Message:
    """A single entry of the provider's mail list."""

    subject: str
    create_time: TimestampInput
    name: Optional[str] = None
    send_email: Optional[str] = None

    @property
    def sender(self) -> Optional[str]:
        return self.name or self.send_email

    @classmethod
    def from_payload(cls, item: Dict[str, Any]) -> "Message":
        """
        Build a message from one item of the provider's ``data.list``.

        Args:
            item: Raw JSON object with ``subject``, ``createTime``, ``name`` and ``sendEmail``

        Returns:
            The decoded message
        """
        if not isinstance(item, dict):
            raise ParseError(f"Expected a message object, got {type(item).__name__}")

        return cls(
            subject=item.get("subject") or "",
            create_time=item.get("createTime"),
            name=item.get("name"),
            send_email=item.get("sendEmail"),
        )


@dataclass(frozen=True)
class VerificationResult:
    code: str
    time: TimestampInput
    subject: str
    sender: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "time": self.time,
            "subject": self.subject,
            "from": self.sender,
        }


def rank_messages(messages: Iterable[Message],
                  tz: Union[str, TimezoneOffset, None] = "UTC") -> List[Message]:
    """
    Order messages newest first without touching the input.

    Messages with equal timestamps keep their relative order. Messages whose
    timestamp cannot be parsed sort after every dated message.
    """
    def sort_key(message: Message):
        ts = normalize_timestamp(message.create_time, tz)
        if math.isnan(ts):
            return (1, 0.0)
        return (0, -ts)

    return sorted(messages, key=sort_key)
