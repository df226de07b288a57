"""Query-time context assembly for retrieval-augmented generation.

Given a question and a set of collections, :class:`ContextBuilder`:

1. resolves the chunk ids under those collections (empty -> "no sources")
2. embeds the question and searches the vector store restricted to them;
   in hybrid mode (the default) it asks for twice the limit at a 0.2
   similarity floor and merges chunks that contain the question verbatim
   (base score 0.6, +0.2 when the vector search also found them)
3. reranks hits with a keyword boost (+0.05 per distinct query term found
   in the chunk, +0.2 for the whole question verbatim, capped at 1.0)
4. concatenates ``[source: <title>]\\n<text>\\n\\n`` pieces in rank order,
   stopping before the character budget (``max_tokens * chars_per_token``)
   would be exceeded
5. attaches one :class:`Citation` per included chunk and an advisory
   groundedness warning when confidence is low

Provider and content-store failures never raise here: a failed search is
an empty result and surfaces as a warning on the returned
:class:`RAGContext`.
"""

from __future__ import annotations

from collections import Counter

import structlog

from notebook_rag.config.settings import Settings
from notebook_rag.interfaces.content_store import IContentStore
from notebook_rag.models.rag import Citation, RAGContext, RAGQuery, VectorFilter, VectorSearchResult
from notebook_rag.services.embedding_service import EmbeddingService
from notebook_rag.services.vector_index import VectorIndexService
from notebook_rag.utils.errors import NotebookRAGError

logger = structlog.get_logger(logger_name=__name__)

NO_SOURCES_WARNING = "No sources are available in the selected collections."
NOTHING_RELEVANT_WARNING = "No relevant content was found. Try rephrasing the question."
BUDGET_WARNING = "The most relevant passage does not fit within the context budget."
LOW_CONFIDENCE_WARNING = "The retrieved passages have low relevance. Try a more specific question."
LIMITED_INFO_WARNING = "Only limited reference information was found for this question."
STORE_UNAVAILABLE_WARNING = "The knowledge base is temporarily unavailable. Please try again."

_TERM_BOOST = 0.05
_PHRASE_BOOST = 0.2
_HYBRID_VECTOR_THRESHOLD = 0.2
_KEYWORD_MATCH_SCORE = 0.6
_HYBRID_OVERLAP_BOOST = 0.2
_RECENT_CHUNKS_FOR_SUGGESTIONS = 20

_SYSTEM_PROMPT = """\
You are an assistant that answers questions using only the knowledge base provided below.

## Rules
1. Use only information contained in the context below. Do not use outside knowledge or guess.
2. Cite your sources by title, e.g. "According to 'XYZ', ...".
3. If the context does not contain the answer, say explicitly: \
"The provided sources do not contain information about this."
4. If sources disagree, point out the conflict.
5. Keep the answer clear and well structured.

---
## Context

{context}

---
Answer the user's question based on the context above."""

_EMPTY_CONTEXT_PLACEHOLDER = "(no reference material available)"

_QUESTION_TEMPLATES = (
    "Can you explain {keyword}?",
    "What are the main characteristics of {keyword}?",
    "Summarize what the sources say about {keyword}.",
)
_DEFAULT_QUESTIONS = [
    "What is this collection about?",
    "Summarize the main topics.",
]
_SUMMARY_QUESTION = "Summarize the overall content."


def rerank(query: str, results: list[VectorSearchResult]) -> list[tuple[float, VectorSearchResult]]:
    """Return ``(boosted_score, result)`` pairs sorted by boosted score.

    Ties keep the vector store's order.
    """
    lowered = query.strip().lower()
    terms = list(dict.fromkeys(t for t in lowered.split() if len(t) > 1))

    scored: list[tuple[float, VectorSearchResult]] = []
    for result in results:
        text = result.text.lower()
        boost = sum(_TERM_BOOST for term in terms if term in text)
        if lowered and lowered in text:
            boost += _PHRASE_BOOST
        scored.append((min(result.score + boost, 1.0), result))
    scored.sort(key=lambda item: item[0], reverse=True)
    return scored


class ContextBuilder:
    """Assembles token-bounded, cited context for a question.

    Parameters
    ----------
    content_store:
        Resolves chunk ids per collection and source titles.
    embedding_service:
        Embeds the question (mock fallback on failure).
    vector_index:
        Similarity search over indexed chunks.
    settings:
        Retrieval defaults and warning thresholds.
    """

    def __init__(
        self,
        content_store: IContentStore,
        embedding_service: EmbeddingService,
        vector_index: VectorIndexService,
        settings: Settings,
    ) -> None:
        self._store = content_store
        self._embeddings = embedding_service
        self._vector_index = vector_index
        self._settings = settings

    async def build_context(
        self,
        query: str,
        collection_ids: list[str],
        max_tokens: int | None = None,
        limit: int | None = None,
        use_hybrid_search: bool | None = None,
    ) -> RAGContext:
        """Retrieve, rerank and assemble context for *query*.

        Parameters
        ----------
        query:
            The user's question.
        collection_ids:
            Collections to search; chunks outside them are never returned.
        max_tokens:
            Context budget in estimated tokens (default
            ``retrieval_max_tokens``).
        limit:
            Number of hits to keep (default ``retrieval_limit``).
        use_hybrid_search:
            Merge verbatim text matches into the vector hits (default
            ``retrieval_use_hybrid_search``).
        """
        s = self._settings
        max_tokens = s.retrieval_max_tokens if max_tokens is None else max_tokens
        limit = s.retrieval_limit if limit is None else limit
        hybrid = s.retrieval_use_hybrid_search if use_hybrid_search is None else use_hybrid_search

        if not collection_ids:
            return RAGContext(warning=NO_SOURCES_WARNING)
        try:
            chunk_ids = await self._store.get_chunk_ids(collection_ids)
        except NotebookRAGError as exc:
            logger.warning("context_store_unavailable", error=str(exc))
            return RAGContext(warning=STORE_UNAVAILABLE_WARNING)
        if not chunk_ids:
            logger.info("context_no_sources", collections=len(collection_ids))
            return RAGContext(warning=NO_SOURCES_WARNING)

        query_embedding = await self._embeddings.embed(query)
        if hybrid:
            hits = await self._hybrid_search(query, collection_ids, query_embedding.embedding, chunk_ids, limit)
        else:
            hits = await self._vector_search(
                query_embedding.embedding, chunk_ids, top_k=limit, threshold=s.retrieval_min_similarity
            )
        if not hits:
            logger.info("context_nothing_relevant", candidates=len(chunk_ids))
            return RAGContext(warning=NOTHING_RELEVANT_WARNING)

        titles = await self._titles(hits)
        max_chars = max_tokens * s.retrieval_chars_per_token
        pieces: list[str] = []
        used_chars = 0
        citations: list[Citation] = []

        for boosted, hit in rerank(query, hits):
            source_id = str(hit.metadata.get("source_id", ""))
            title = titles.get(source_id, "Unknown")
            piece = f"[source: {title}]\n{hit.text}\n\n"
            if used_chars + len(piece) > max_chars:
                break
            pieces.append(piece)
            used_chars += len(piece)
            citations.append(
                Citation(
                    source_id=source_id,
                    source_title=title,
                    chunk_id=hit.id,
                    snippet=self._snippet(hit.text),
                    score=hit.score,
                    rerank_score=boosted,
                )
            )

        if not citations:
            return RAGContext(warning=BUDGET_WARNING)

        warning = self._groundedness_warning(citations)
        logger.info(
            "context_built",
            citations=len(citations),
            context_chars=used_chars,
            warning=warning is not None,
        )
        return RAGContext(context_text="".join(pieces).strip(), citations=citations, warning=warning)

    async def build_query(
        self,
        query: str,
        collection_ids: list[str],
        max_tokens: int | None = None,
        system_prompt_override: str | None = None,
    ) -> RAGQuery:
        """Build the context plus a grounding system prompt that embeds it."""
        context = await self.build_context(query, collection_ids, max_tokens=max_tokens)
        prompt = system_prompt_override or _SYSTEM_PROMPT.format(
            context=context.context_text or _EMPTY_CONTEXT_PLACEHOLDER
        )
        return RAGQuery(context=context, system_prompt=prompt)

    async def suggested_questions(self, collection_ids: list[str], limit: int = 5) -> list[str]:
        """Suggest starter questions from the most frequent chunk keywords."""
        try:
            chunks = await self._store.list_chunks(collection_ids=collection_ids)
        except NotebookRAGError as exc:
            logger.warning("suggestions_store_unavailable", error=str(exc))
            chunks = []
        if not chunks:
            return _DEFAULT_QUESTIONS[:limit]

        recent = sorted(chunks, key=lambda c: c.created_at, reverse=True)[:_RECENT_CHUNKS_FOR_SUGGESTIONS]
        frequency = Counter(kw for chunk in recent for kw in chunk.keywords)
        top = [kw for kw, _ in frequency.most_common(5)]

        questions = [_SUMMARY_QUESTION]
        for i, keyword in enumerate(top[: max(0, limit - 1)]):
            questions.append(_QUESTION_TEMPLATES[i % len(_QUESTION_TEMPLATES)].format(keyword=keyword))
        return questions[:limit]

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def _vector_search(
        self,
        vector: list[float],
        chunk_ids: set[str],
        top_k: int,
        threshold: float,
    ) -> list[VectorSearchResult]:
        hits = await self._vector_index.search(
            vector, top_k=top_k, vector_filter=VectorFilter(ids=frozenset(chunk_ids))
        )
        return [h for h in hits if h.score >= threshold]

    async def _hybrid_search(
        self,
        query: str,
        collection_ids: list[str],
        vector: list[float],
        chunk_ids: set[str],
        limit: int,
    ) -> list[VectorSearchResult]:
        """Vector hits merged with chunks containing *query* verbatim."""
        threshold = max(_HYBRID_VECTOR_THRESHOLD, self._settings.retrieval_min_similarity)
        vector_hits = await self._vector_search(vector, chunk_ids, top_k=limit * 2, threshold=threshold)

        needle = query.strip()
        if not needle:
            return vector_hits[:limit]
        try:
            matches = await self._store.search_chunks_by_text(needle, collection_ids, limit=limit)
        except NotebookRAGError as exc:
            logger.warning("keyword_search_failed", error=str(exc))
            return vector_hits[:limit]

        merged = {hit.id: hit for hit in vector_hits}
        for chunk in matches:
            existing = merged.get(chunk.id)
            if existing is not None:
                merged[chunk.id] = existing.model_copy(
                    update={"score": min(existing.score + _HYBRID_OVERLAP_BOOST, 1.0)}
                )
            else:
                merged[chunk.id] = VectorSearchResult(
                    id=chunk.id,
                    text=chunk.text,
                    score=_KEYWORD_MATCH_SCORE,
                    metadata={"source_id": chunk.source_id, "collection_id": chunk.collection_id},
                )
        logger.debug("hybrid_search", vector_hits=len(vector_hits), text_matches=len(matches))
        return sorted(merged.values(), key=lambda h: h.score, reverse=True)[:limit]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _titles(self, hits: list[VectorSearchResult]) -> dict[str, str]:
        titles: dict[str, str] = {}
        for hit in hits:
            source_id = str(hit.metadata.get("source_id", ""))
            if source_id in titles:
                continue
            title = hit.metadata.get("source_title")
            if not title and source_id:
                try:
                    source = await self._store.get_source(source_id)
                except NotebookRAGError as exc:
                    logger.warning("source_title_lookup_failed", source_id=source_id, error=str(exc))
                    source = None
                title = source.title if source is not None else ""
            titles[source_id] = str(title or "") or "Unknown"
        return titles

    def _snippet(self, text: str) -> str:
        size = self._settings.citation_snippet_chars
        return text[:size] + ("..." if len(text) > size else "")

    def _groundedness_warning(self, citations: list[Citation]) -> str | None:
        mean = sum(c.score for c in citations) / len(citations)
        if mean < self._settings.low_confidence_threshold:
            return LOW_CONFIDENCE_WARNING
        if len(citations) == 1 and mean < self._settings.single_citation_threshold:
            return LIMITED_INFO_WARNING
        return None
