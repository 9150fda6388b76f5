from rag_chat.generation.prompts import build_prompt
from rag_chat.query.classifier import build_classification_prompt
from rag_chat.types import ResponseLanguage, ResponseMode


def test_classification_prompt_forbids_invented_words() -> None:
    prompt = build_classification_prompt("What is photosynthesis?")

    assert "MUST ONLY use words present in the input" in prompt
    assert "Do NOT invent new words" in prompt
    assert "Respond ONLY in JSON" in prompt
    for field in ("is_valid", "query_type", "implicit_intent", "normalized_query", "keywords", "confidence"):
        assert field in prompt


def test_strict_prompts_restrict_answers_to_context() -> None:
    english = build_prompt(ResponseMode.STRICT, "q", "ctx")
    korean = build_prompt(ResponseMode.STRICT, "q", "ctx", ResponseLanguage.KOREAN)

    assert "Answer only from the information in the context" in english.system_message
    assert "cannot find it in the documents" in english.system_message
    assert "문서에 있는 정보만으로 답변하세요" in korean.system_message


def test_hybrid_prompts_require_source_distinction() -> None:
    prompt = build_prompt(ResponseMode.HYBRID, "q", "ctx")

    assert "Clearly distinguish between information from the context and general knowledge" in prompt.system_message
    assert "Please distinguish between information from the documents and general knowledge" in prompt.user_message
