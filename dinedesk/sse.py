"""Server-sent events framing shared by the relay and the Python client."""

from __future__ import annotations

import json
from typing import Any, AsyncIterable, AsyncIterator, List, Mapping

MEDIA_TYPE = "text/event-stream"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_event(payload: Mapping[str, Any]) -> str:
    return f"data: {json.dumps(payload, separators=(',', ':'))}\n\n"


class SSEDecoder:
    """Turns stream lines into ``data`` payloads, one per blank-line terminated frame.

    Only the ``data`` field is used; ``event``/``id``/``retry`` fields and
    ``:`` comment lines are ignored.
    """

    def __init__(self) -> None:
        self._data: List[str] = []

    def feed(self, line: str) -> str | None:
        line = line.rstrip("\r\n")
        if not line:
            if not self._data:
                return None
            data = "\n".join(self._data)
            self._data = []
            return data
        if line.startswith(":"):
            return None
        field, _, value = line.partition(":")
        if field == "data":
            self._data.append(value[1:] if value.startswith(" ") else value)
        return None


async def iter_data(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    decoder = SSEDecoder()
    async for line in lines:
        data = decoder.feed(line)
        if data is not None:
            yield data
