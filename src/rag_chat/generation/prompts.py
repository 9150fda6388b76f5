"""System/user message construction per response mode and language."""

from __future__ import annotations

from dataclasses import dataclass

from rag_chat.types import ResponseLanguage, ResponseMode

_SYSTEM_PROMPTS: dict[ResponseLanguage, dict[ResponseMode, str]] = {
    ResponseLanguage.ENGLISH: {
        ResponseMode.STRICT: (
            "You are an AI assistant that answers accurately based on the provided context. "
            "Answer only from the information in the context. "
            "If the context does not contain the answer, say that you cannot find it in the documents."
        ),
        ResponseMode.HYBRID: (
            "You are an AI assistant that combines the provided context with general knowledge. "
            "Prioritize context information, but supplement with general knowledge when needed. "
            "Clearly distinguish between information from the context and general knowledge."
        ),
        ResponseMode.FALLBACK: (
            "You are a helpful AI assistant. "
            "No document context is available for this question, so answer from general knowledge."
        ),
    },
    ResponseLanguage.KOREAN: {
        ResponseMode.STRICT: (
            "당신은 제공된 문서 내용을 바탕으로 정확하게 답변하는 AI 어시스턴트입니다. "
            "문서에 있는 정보만으로 답변하세요. "
            "문서에서 답을 찾을 수 없으면 찾을 수 없다고 말하세요. 한국어로 답변하세요."
        ),
        ResponseMode.HYBRID: (
            "당신은 제공된 문서 내용과 일반 지식을 결합하여 답변하는 AI 어시스턴트입니다. "
            "문서의 정보를 우선하되, 필요하면 일반 지식으로 보완하세요. "
            "문서에서 온 정보와 일반 지식을 명확히 구분하세요. 한국어로 답변하세요."
        ),
        ResponseMode.FALLBACK: (
            "당신은 도움이 되는 AI 어시스턴트입니다. "
            "이 질문에 대한 문서 정보가 없으므로 일반 지식으로 답변하세요. 한국어로 답변하세요."
        ),
    },
}

_USER_TEMPLATES: dict[ResponseLanguage, dict[ResponseMode, str]] = {
    ResponseLanguage.ENGLISH: {
        ResponseMode.STRICT: (
            "[Reference Documents]\n"
            "{context}\n"
            "[End of Reference Documents]\n\n"
            "Based on the content above, please answer the following question.\n\n"
            "Question: {query}"
        ),
        ResponseMode.HYBRID: (
            "[Related Documents]\n"
            "{context}\n"
            "[End of Related Documents]\n\n"
            "The documents above contain related information. Please answer based on the document content, "
            "but you may supplement with general knowledge if needed.\n"
            "Please distinguish between information from the documents and general knowledge.\n\n"
            "Question: {query}"
        ),
        ResponseMode.FALLBACK: (
            "Question: {query}\n\n"
            "Note: No directly relevant information was found in the uploaded documents.\n"
            "Please answer with general knowledge, and suggest adding relevant documents "
            "if more accurate information is needed."
        ),
    },
    ResponseLanguage.KOREAN: {
        ResponseMode.STRICT: (
            "[참고 문서]\n"
            "{context}\n"
            "[참고 문서 끝]\n\n"
            "위 내용을 바탕으로 다음 질문에 답변해 주세요.\n\n"
            "질문: {query}"
        ),
        ResponseMode.HYBRID: (
            "[관련 문서]\n"
            "{context}\n"
            "[관련 문서 끝]\n\n"
            "위 문서에는 관련 정보가 포함되어 있습니다. 문서 내용을 바탕으로 답변하되, "
            "필요하면 일반 지식으로 보완해도 됩니다.\n"
            "문서의 정보와 일반 지식을 구분해 주세요.\n\n"
            "질문: {query}"
        ),
        ResponseMode.FALLBACK: (
            "질문: {query}\n\n"
            "참고: 업로드된 문서에서 직접 관련된 정보를 찾지 못했습니다.\n"
            "일반 지식으로 답변하고, 더 정확한 정보가 필요하면 관련 문서를 추가하도록 안내해 주세요."
        ),
    },
}


@dataclass(frozen=True, slots=True)
class Prompt:
    system_message: str
    user_message: str


def build_prompt(
    mode: ResponseMode,
    query: str,
    context_text: str,
    language: ResponseLanguage = ResponseLanguage.ENGLISH,
) -> Prompt:
    """Assemble the instruction pair for one generation call.

    Strict and hybrid modes embed `context_text` between delimiter lines;
    fallback mode ignores it and adds a no-context disclaimer instead.
    """

    user_message = _USER_TEMPLATES[language][mode].format(
        context=context_text.strip(),
        query=query.strip(),
    )
    return Prompt(system_message=_SYSTEM_PROMPTS[language][mode], user_message=user_message)
