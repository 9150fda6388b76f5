import pytest

from rag_chat.generation.modes import HYBRID_THRESHOLD, STRICT_THRESHOLD, select_mode
from rag_chat.types import ResponseMode


@pytest.mark.parametrize(
    ("has_context", "best", "expected"),
    [
        (True, 0.95, ResponseMode.STRICT),
        (True, STRICT_THRESHOLD, ResponseMode.STRICT),
        (True, 0.6999, ResponseMode.HYBRID),
        (True, HYBRID_THRESHOLD, ResponseMode.HYBRID),
        (True, 0.4999, ResponseMode.FALLBACK),
        (True, 0.0, ResponseMode.FALLBACK),
        (False, 0.95, ResponseMode.FALLBACK),
    ],
)
def test_select_mode_boundaries(has_context: bool, best: float, expected: ResponseMode) -> None:
    assert select_mode(has_context, best) is expected
