from __future__ import annotations


class ResponderError(Exception):
    """Base class for errors raised by the vacation responder."""


class MalformedHeaderError(ResponderError):
    """Raised when a message header cannot be used to build a reply."""

    def __init__(self, message_id: str, header: str, value: str | None):
        self.message_id = message_id
        self.header = header
        self.value = value
        super().__init__(f"Message {message_id} has an unusable {header} header: {value!r}")


class LabelNotFoundError(ResponderError):
    """Raised when the mail store reports a label conflict but the label cannot be found."""

    def __init__(self, label_name: str):
        self.label_name = label_name
        super().__init__(f"Label '{label_name}' already exists but was not returned by labels.list")
