"""A small append-only JSON text builder used for log lines."""

from __future__ import annotations

from typing import Mapping


class JsonBuffer:
    """Builds JSON text piece by piece; strings are written without escaping."""

    def __init__(self, initial: str = "") -> None:
        self._parts: list[str] = [initial] if initial else []

    def _append(self, text: str) -> JsonBuffer:
        if text:
            self._parts.append(text)
        return self

    def _last_char(self) -> str:
        return self._parts[-1][-1] if self._parts else ""

    def begin_object(self) -> JsonBuffer:
        return self._append("{")

    def end_object(self) -> JsonBuffer:
        return self._append("}")

    def begin_string(self) -> JsonBuffer:
        return self._append('"')

    def end_string(self) -> JsonBuffer:
        return self._append('"')

    def append_raw(self, text: str) -> JsonBuffer:
        """Append text verbatim."""
        return self._append(text)

    def append_key(self, key: str) -> JsonBuffer:
        """Append an object key, preceded by a comma unless it opens the object."""
        last = self._last_char()
        if not last:
            raise ValueError("cannot append a key to an empty buffer")
        if last != "{":
            self._append(",")
        return self.append_string(key)._append(":")

    def append_string(self, value: str) -> JsonBuffer:
        return self._append('"')._append(value)._append('"')

    def append_uint(self, value: int) -> JsonBuffer:
        if value < 0:
            raise ValueError(f"unsigned value expected, got {value}")
        return self._append(str(int(value)))

    def append_ids(self, request_id: int, event_id: int) -> JsonBuffer:
        """Append a string value naming the request and event identifiers."""
        self._append('"')._append("RequestID ")
        self.append_uint(request_id)
        self._append(", EventID ")
        self.append_uint(event_id)
        return self._append('"')

    def append_tags(self, tags: Mapping[str, str]) -> JsonBuffer:
        """Append an object of string tags."""
        self.begin_object()
        for key, value in tags.items():
            self.append_key(key)
            self.append_string(value)
        return self.end_object()

    def __str__(self) -> str:
        return "".join(self._parts)