"""LangChain adapters for the classification and generation endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder

from rag_chat.config import LLMConfig
from rag_chat.errors import GenerationError
from rag_chat.types import ChatRole, ChatTurn

_GENERATION_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", "{system_message}"),
        MessagesPlaceholder(variable_name="history", optional=True),
        ("human", "{user_message}"),
    ]
)


def create_chat_model(
    config: LLMConfig,
    *,
    temperature: float,
    max_tokens: int | None = None,
) -> Any:
    """Chat model for an OpenAI-compatible server, or None when unconfigured."""
    if not config.enabled:
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=config.model,
        base_url=config.base_url,
        # Ollama ignores the key but the client requires one.
        api_key=config.api_key or "ollama",
        temperature=temperature,
        max_tokens=max_tokens,
    )


class LangChainCompletionClient:
    """`CompletionClient` over a LangChain chat model."""

    def __init__(self, llm: BaseChatModel) -> None:
        self.llm = llm

    async def complete(self, prompt: str) -> str:
        response = await self.llm.ainvoke([HumanMessage(content=prompt)])
        return message_text(response)


class LangChainGenerationClient:
    """`GenerationClient` streaming from a LangChain chat model."""

    def __init__(self, llm: BaseChatModel) -> None:
        self.llm = llm

    async def stream(
        self,
        system_message: str,
        history: Sequence[ChatTurn],
        user_message: str,
    ) -> AsyncIterator[str]:
        messages = _GENERATION_PROMPT.format_messages(
            system_message=system_message,
            history=to_langchain_messages(history),
            user_message=user_message,
        )
        try:
            async for chunk in self.llm.astream(messages):
                text = message_text(chunk)
                if text:
                    yield text
        except Exception as exc:
            raise GenerationError(str(exc)) from exc


def to_langchain_messages(turns: Sequence[ChatTurn]) -> list[BaseMessage]:
    messages: list[BaseMessage] = []
    for turn in turns:
        if turn.role is ChatRole.USER:
            messages.append(HumanMessage(content=turn.content))
        elif turn.role is ChatRole.ASSISTANT:
            messages.append(AIMessage(content=turn.content))
        else:
            messages.append(SystemMessage(content=turn.content))
    return messages


def message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                parts.append(str(item.get("text", "")))
            else:
                parts.append(str(item))
        return "".join(parts)
    return str(content)
