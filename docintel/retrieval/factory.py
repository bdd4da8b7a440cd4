"""
Retrieval Factory

Builds the production retrieval stack (OpenAI embeddings → pgvector index
→ balanced retriever → streaming chat) from PipelineConfig. Callers
only import build_retriever() / build_chat_service() and never touch
the concrete classes directly.

Usage from an API layer:
    chat = build_chat_service(PipelineConfig.from_settings(get_settings()))
    async for event in chat.answer(question, record_ids): ...
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docintel.core.config import PipelineConfig
from docintel.db.session import get_session_factory
from docintel.llm.chat import ChatStreamer
from docintel.processing.embeddings import EmbeddingGenerator
from docintel.retrieval.chat_service import PolicyChatService
from docintel.retrieval.pgvector_index import PgVectorIndex
from docintel.retrieval.retriever import BalancedRetriever


def build_retriever(
    config: PipelineConfig,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> BalancedRetriever:
    """
    Return a retriever over document_chunks.
    The session factory defaults to the process-wide one from db.session.
    """
    index = PgVectorIndex(session_factory or get_session_factory())
    return BalancedRetriever(
        EmbeddingGenerator(config.provider, config.retry),
        index,
        config.retrieval,
    )


def build_chat_service(
    config: PipelineConfig,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> PolicyChatService:
    return PolicyChatService(
        build_retriever(config, session_factory),
        ChatStreamer(config.provider, config.retry),
    )
