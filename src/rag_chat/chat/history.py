"""Session-scoped, append-only chat history."""

from __future__ import annotations

from rag_chat.types import ChatRole, ChatTurn

DEFAULT_HISTORY_WINDOW = 6


class ChatHistory:
    """Ordered turns for one conversation.

    Only `commit_exchange` appends, and it always appends a user turn and its
    assistant answer together. `window` is what gets replayed into prompts.
    """

    def __init__(self) -> None:
        self._turns: list[ChatTurn] = []

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def turns(self) -> tuple[ChatTurn, ...]:
        return tuple(self._turns)

    def window(self, size: int = DEFAULT_HISTORY_WINDOW) -> list[ChatTurn]:
        if size <= 0:
            return []
        return self._turns[-size:]

    def commit_exchange(self, user_content: str, assistant_content: str) -> None:
        self._turns.append(ChatTurn(role=ChatRole.USER, content=user_content))
        self._turns.append(ChatTurn(role=ChatRole.ASSISTANT, content=assistant_content))

    def clear(self) -> None:
        self._turns.clear()
