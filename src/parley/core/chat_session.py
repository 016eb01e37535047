from __future__ import annotations
import datetime as dt
import time
from typing import Dict, Iterator, List, Mapping, Optional

from .ports import Message, Provider


class ChatSession:
    """
    In-memory conversation driving one provider. History lives only as long
    as the session object; nothing is written anywhere.
    """

    def __init__(
        self,
        provider: Provider,
        system_prompt: Optional[str] = None,
        params: Optional[Mapping[str, str]] = None,
        session_id: Optional[str] = None,
    ):
        self.provider = provider
        self.params: Dict[str, str] = dict(params or {})
        self.session_id = session_id or dt.datetime.now(dt.timezone.utc).strftime("%Y%m%d-%H%M%S-%f")
        self._system_prompt = system_prompt
        self._messages: List[Message] = []
        self.reset()

    @property
    def messages(self) -> List[Message]:
        # Return a shallow copy to avoid accidental mutation
        return list(self._messages)

    def reset(self) -> None:
        self._messages = []
        if self._system_prompt:
            self._append("system", self._system_prompt)

    def _append(self, role: str, content: str) -> None:
        self._messages.append(Message(role=role, content=content, timestamp=time.time()))

    def run_turn(self, user_text: str) -> str:
        self._append("user", user_text)
        reply = self.provider.send_message(self._messages, self.params)
        self._append("assistant", reply)
        return reply

    def run_turn_stream(self, user_text: str) -> Iterator[str]:
        self._append("user", user_text)
        pieces = self.provider.stream(list(self._messages), self.params)
        partial: list[str] = []

        def gen():
            try:
                for piece in pieces:
                    partial.append(piece)
                    yield piece
            finally:
                close = getattr(pieces, "close", None)
                if close is not None:
                    close()
                if partial:
                    self._append("assistant", "".join(partial))
        return gen()
