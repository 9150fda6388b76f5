from rag_chat.generation.prompts import build_prompt
from rag_chat.types import ResponseLanguage, ResponseMode

_CONTEXT = "Photosynthesis converts light energy into chemical energy."


def test_strict_prompt_wraps_context_in_reference_markers() -> None:
    prompt = build_prompt(ResponseMode.STRICT, "What is photosynthesis?", _CONTEXT)

    assert "Answer only from the information in the context" in prompt.system_message
    assert prompt.user_message.startswith("[Reference Documents]\n" + _CONTEXT + "\n[End of Reference Documents]")
    assert prompt.user_message.endswith("Question: What is photosynthesis?")


def test_hybrid_prompt_allows_general_knowledge() -> None:
    prompt = build_prompt(ResponseMode.HYBRID, "What is photosynthesis?", _CONTEXT)

    assert "general knowledge" in prompt.system_message
    assert "[Related Documents]" in prompt.user_message
    assert "[End of Related Documents]" in prompt.user_message
    assert _CONTEXT in prompt.user_message


def test_fallback_prompt_omits_context() -> None:
    prompt = build_prompt(ResponseMode.FALLBACK, "What is photosynthesis?", _CONTEXT)

    assert _CONTEXT not in prompt.user_message
    assert prompt.user_message.startswith("Question: What is photosynthesis?")
    assert "No directly relevant information was found" in prompt.user_message


def test_korean_prompts() -> None:
    strict = build_prompt(ResponseMode.STRICT, "광합성이란?", _CONTEXT, ResponseLanguage.KOREAN)
    fallback = build_prompt(ResponseMode.FALLBACK, "광합성이란?", "", ResponseLanguage.KOREAN)

    assert "[참고 문서]" in strict.user_message
    assert "한국어" in strict.system_message
    assert strict.user_message.endswith("질문: 광합성이란?")
    assert fallback.user_message.startswith("질문: 광합성이란?")


def test_braces_in_query_and_context_are_kept_verbatim() -> None:
    prompt = build_prompt(ResponseMode.STRICT, "What does {x} mean?", "Set {x} = 1.")

    assert "Set {x} = 1." in prompt.user_message
    assert "Question: What does {x} mean?" in prompt.user_message
