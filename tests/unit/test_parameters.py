import pytest

from rag_chat.query.parameters import DEFAULT_PARAMETERS, map_to_parameters
from rag_chat.types import ExplicitCommand, QueryClassification, QueryType, RetrievalParameters


def _classified(query_type: QueryType) -> QueryClassification:
    return QueryClassification(
        is_valid=True,
        type=query_type,
        original_query="q",
        normalized_query="q",
        keywords=(),
        confidence=0.9,
    )


@pytest.mark.parametrize(
    ("query_type", "expected"),
    [
        (QueryType.DEFINITION, (1, 1000, 5)),
        (QueryType.EXPLANATION, (2, 2500, 10)),
        (QueryType.FACTUAL, (1, 1500, 5)),
        (QueryType.COMPARISON, (2, 3000, 12)),
        (QueryType.LISTING, (3, 4000, 15)),
        (QueryType.SUMMARY, (1, 1500, 5)),
        (QueryType.OPINION, (2, 2000, 10)),
        (QueryType.UNKNOWN, (2, 2000, 10)),
    ],
)
def test_type_table(query_type: QueryType, expected: tuple[int, int, int]) -> None:
    assert map_to_parameters(_classified(query_type)) == RetrievalParameters(*expected)


@pytest.mark.parametrize(
    ("command", "expected"),
    [
        (ExplicitCommand.SUMMARY, (2, 3000, 10)),
        (ExplicitCommand.DEFINE, (1, 1000, 5)),
        (ExplicitCommand.MORE, (3, 4000, 15)),
    ],
)
def test_command_overrides_type(command: ExplicitCommand, expected: tuple[int, int, int]) -> None:
    assert map_to_parameters(_classified(QueryType.LISTING), command) == RetrievalParameters(*expected)


def test_command_applies_to_rejected_classification() -> None:
    rejected = QueryClassification.rejected("?", "Please enter a meaningful question.")

    assert map_to_parameters(rejected, ExplicitCommand.SUMMARY).token_budget == 3000
    assert map_to_parameters(rejected) == DEFAULT_PARAMETERS
