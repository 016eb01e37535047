from __future__ import annotations
from typing import List, Optional

from parley.core.ports import DeltaSink


class ResponseAggregator:
    """
    Fold over decoder events. Use the instance itself as the decoder's sink;
    every event is forwarded to `downstream` (the caller's on_delta) after
    being recorded.
    """

    def __init__(self, downstream: Optional[DeltaSink] = None):
        self._downstream = downstream
        self._parts: List[str] = []
        self._text: Optional[str] = None
        self.completed_by_sentinel: Optional[bool] = None

    def __call__(self, text: str, is_final: bool) -> None:
        if self._text is not None:
            # Already frozen; a second final would break the callback contract.
            return
        if is_final:
            self._text = "".join(self._parts)
        elif text:
            self._parts.append(text)
        if self._downstream is not None:
            self._downstream(text, is_final)

    @property
    def finished(self) -> bool:
        return self._text is not None

    @property
    def text(self) -> str:
        """Frozen result once finished, otherwise the text so far."""
        return self._text if self._text is not None else "".join(self._parts)

    def mark_completion(self, by_sentinel: bool) -> None:
        self.completed_by_sentinel = by_sentinel
