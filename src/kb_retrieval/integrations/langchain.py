"""LangChain bindings for agents that consume the retrieval engine.

Both bindings treat a `RetrievalError` as "no matching knowledge", so the agent
never sees a search-layer failure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from langchain_core.callbacks import (
    AsyncCallbackManagerForRetrieverRun,
    CallbackManagerForRetrieverRun,
)
from langchain_core.documents import Document
from langchain_core.retrievers import BaseRetriever
from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ConfigDict, Field

from kb_retrieval.errors import RetrievalError
from kb_retrieval.retrieval.retriever import RetrievalOrchestrator
from kb_retrieval.types import ScoredCandidate

logger = logging.getLogger(__name__)

NO_RESULTS = "NO_RESULTS"


class SearchToolInput(BaseModel):
    query: str = Field(min_length=1)
    top_k: int = Field(default=5, ge=1, le=20)


async def retrieve_or_empty(
    orchestrator: RetrievalOrchestrator,
    query: str,
    *,
    tenant_id: str | None = None,
    top_k: int | None = None,
    min_score: float = 0.0,
) -> list[ScoredCandidate]:
    try:
        response = await orchestrator.retrieve(query, tenant_id, top_k, min_score)
    except RetrievalError as exc:
        logger.warning("[retrieval] treating %s leg failure as no knowledge: %s", exc.leg, exc)
        return []
    return response.results


def to_document(candidate: ScoredCandidate) -> Document:
    return Document(
        page_content=candidate.chunk.content,
        metadata={
            **candidate.chunk.metadata,
            "id": candidate.chunk.id,
            "score": candidate.score,
            "vector_score": candidate.vector_score,
            "text_score": candidate.text_score,
            "language": candidate.chunk.language,
            "source": candidate.source,
        },
    )


class KnowledgeBaseRetriever(BaseRetriever):
    """Tenant-scoped `BaseRetriever` over a `RetrievalOrchestrator`."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    orchestrator: Any
    tenant_id: str | None = None
    top_k: int | None = None
    min_score: float = 0.0

    async def _aget_relevant_documents(
        self,
        query: str,
        *,
        run_manager: AsyncCallbackManagerForRetrieverRun,
    ) -> list[Document]:
        hits = await retrieve_or_empty(
            self.orchestrator,
            query,
            tenant_id=self.tenant_id,
            top_k=self.top_k,
            min_score=self.min_score,
        )
        return [to_document(hit) for hit in hits]

    def _get_relevant_documents(
        self,
        query: str,
        *,
        run_manager: CallbackManagerForRetrieverRun,
    ) -> list[Document]:
        """Blocking variant for callers without a running event loop.

        Uses `asyncio.run`, so it raises `RuntimeError` inside a running loop;
        async callers use `ainvoke` instead.
        """
        hits = asyncio.run(
            retrieve_or_empty(
                self.orchestrator,
                query,
                tenant_id=self.tenant_id,
                top_k=self.top_k,
                min_score=self.min_score,
            )
        )
        return [to_document(hit) for hit in hits]


def build_search_tool(
    orchestrator: RetrievalOrchestrator,
    *,
    tenant_id: str | None = None,
    min_score: float = 0.0,
    name: str = "internal_search",
) -> StructuredTool:
    """Expose retrieval as a tool returning ``[id] score=... snippet`` lines."""

    async def _search(query: str, top_k: int = 5) -> str:
        hits = await retrieve_or_empty(
            orchestrator, query, tenant_id=tenant_id, top_k=top_k, min_score=min_score
        )
        lines = []
        for hit in hits[:top_k]:
            snippet = _truncate(hit.chunk.content.replace("\n", " "), 220)
            lines.append(f"[{hit.chunk.id}] score={hit.score:.4f} {snippet}")
        if not lines:
            return NO_RESULTS
        return "\n".join(lines)

    return StructuredTool.from_function(
        coroutine=_search,
        name=name,
        description="Search the tenant knowledge base and return cited passages.",
        args_schema=SearchToolInput,
    )


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
