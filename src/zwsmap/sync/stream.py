"""Per-stream generation counter and cancellation handle.

Each logical request stream (a layer's bbox fetches, the click stream) owns
one RequestStream. Starting a request cancels the previous token and bumps
the generation; a response is applied only while its generation is still
current. Both mechanisms are needed: token cancellation is best-effort, the
generation check is not.
"""

from __future__ import annotations

from zwsmap.protocols.transport import CancelToken


class RequestStream:
    def __init__(self, name: str) -> None:
        self.name = name
        self.generation = 0
        self._token: CancelToken | None = None

    def begin(self) -> tuple[int, CancelToken]:
        """Supersede the in-flight request and start a new one."""
        if self._token is not None:
            self._token.cancel(f"{self.name}: superseded")
        self.generation += 1
        self._token = CancelToken()
        return self.generation, self._token

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancel the in-flight request and invalidate its generation."""
        if self._token is not None:
            self._token.cancel(f"{self.name}: {reason}")
            self._token = None
        self.generation += 1
