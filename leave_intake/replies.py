"""
Outbound chat messages.

A reply is a text body, optionally with quick-reply chips. A chip shows a
label and, when tapped, sends its text back as the caller's next message.
LINE accepts at most 13 chips per message and 20 characters per label.
"""

from dataclasses import dataclass, field

MAX_QUICK_REPLY_ITEMS = 13
MAX_LABEL_LENGTH = 20


@dataclass(frozen=True)
class QuickReplyItem:
    label: str
    text: str


@dataclass(frozen=True)
class Reply:
    text: str
    quick_replies: list[QuickReplyItem] = field(default_factory=list)

    def to_line_message(self) -> dict:
        message = {"type": "text", "text": self.text}
        if self.quick_replies:
            message["quickReply"] = {
                "items": [
                    {
                        "type": "action",
                        "action": {"type": "message", "label": item.label, "text": item.text},
                    }
                    for item in self.quick_replies
                ]
            }
        return message


def text_reply(text: str) -> Reply:
    return Reply(text=text)


def quick_reply(text: str, options: list[str]) -> Reply:
    """Text with one chip per option, capped at the LINE limits."""
    items = [
        QuickReplyItem(label=option[:MAX_LABEL_LENGTH], text=option)
        for option in options[:MAX_QUICK_REPLY_ITEMS]
    ]
    return Reply(text=text, quick_replies=items)
