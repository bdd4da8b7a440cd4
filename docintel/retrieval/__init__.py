from docintel.retrieval.base import SearchHit, VectorIndex
from docintel.retrieval.chat_service import ChatTurn, PolicyChatService
from docintel.retrieval.factory import build_chat_service, build_retriever
from docintel.retrieval.pgvector_index import PgVectorIndex
from docintel.retrieval.retriever import BalancedRetriever

__all__ = [
    "BalancedRetriever",
    "ChatTurn",
    "PgVectorIndex",
    "PolicyChatService",
    "SearchHit",
    "VectorIndex",
    "build_chat_service",
    "build_retriever",
]
