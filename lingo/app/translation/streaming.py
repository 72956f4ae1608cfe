from __future__ import annotations

from lingo.app.translation.providers.base import EMPTY_RESPONSE_MESSAGE, ProviderError


def delta_chunk(previous: str, current: str) -> str | None:
    if current == previous:
        return None
    if current.startswith(previous):
        suffix = current[len(previous) :]
        return suffix or None
    # The backend restarted its buffer.
    return current or None


class StreamAggregator:
    def __init__(self) -> None:
        self._previous = ""
        self._chunks: list[str] = []

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    def push(self, snapshot: str) -> str | None:
        chunk = delta_chunk(self._previous, snapshot)
        self._previous = snapshot
        if chunk is not None:
            self._chunks.append(chunk)
        return chunk

    def push_delta(self, delta: str) -> str | None:
        if not delta:
            return None
        self._previous += delta
        self._chunks.append(delta)
        return delta

    def finish(self) -> str:
        if not self._chunks and not self._previous.strip():
            raise ProviderError.invalid_response(EMPTY_RESPONSE_MESSAGE)
        return self.text
