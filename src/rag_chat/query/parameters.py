"""Maps query intent (or an explicit command) to retrieval parameters."""

from __future__ import annotations

from rag_chat.types import (
    ExplicitCommand,
    QueryClassification,
    QueryType,
    RetrievalParameters,
)

COMMAND_PARAMETERS: dict[ExplicitCommand, RetrievalParameters] = {
    ExplicitCommand.SUMMARY: RetrievalParameters(adjacent_chunks=2, token_budget=3000, top_k=10),
    ExplicitCommand.DEFINE: RetrievalParameters(adjacent_chunks=1, token_budget=1000, top_k=5),
    ExplicitCommand.MORE: RetrievalParameters(adjacent_chunks=3, token_budget=4000, top_k=15),
}

TYPE_PARAMETERS: dict[QueryType, RetrievalParameters] = {
    QueryType.DEFINITION: RetrievalParameters(adjacent_chunks=1, token_budget=1000, top_k=5),
    QueryType.EXPLANATION: RetrievalParameters(adjacent_chunks=2, token_budget=2500, top_k=10),
    QueryType.FACTUAL: RetrievalParameters(adjacent_chunks=1, token_budget=1500, top_k=5),
    QueryType.COMPARISON: RetrievalParameters(adjacent_chunks=2, token_budget=3000, top_k=12),
    QueryType.LISTING: RetrievalParameters(adjacent_chunks=3, token_budget=4000, top_k=15),
    QueryType.SUMMARY: RetrievalParameters(adjacent_chunks=1, token_budget=1500, top_k=5),
}

DEFAULT_PARAMETERS = RetrievalParameters(adjacent_chunks=2, token_budget=2000, top_k=10)


def map_to_parameters(
    classification: QueryClassification,
    command: ExplicitCommand | None = None,
) -> RetrievalParameters:
    """An explicit command wins over the classified query type."""
    if command is not None:
        return COMMAND_PARAMETERS[command]
    return TYPE_PARAMETERS.get(classification.type, DEFAULT_PARAMETERS)
