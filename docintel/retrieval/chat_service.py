"""
Policy Chat Service — retrieval-augmented answers streamed as events.

Flow per question:
  1. Decide whether retrieval is needed (greetings / acknowledgements skip it).
  2. BalancedRetriever.search() over the active records. A search failure
     does not abort the answer: it continues without excerpts and the
     completion event is flagged degraded.
  3. Build [system, history..., question-with-excerpts] and stream it.
  4. Map [Source: Page X] citations in the answer back to chunk ids.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import AsyncIterator, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from docintel.llm.chat import ChatCompleted, ChatEvent, ChatStreamer, TextDelta
from docintel.retrieval.base import SearchHit
from docintel.retrieval.chat_prompts import CHAT_SYSTEM_PROMPT, DEGRADED_NOTE, build_context_prompt
from docintel.retrieval.retriever import BalancedRetriever

logger = logging.getLogger(__name__)

MAX_HISTORY_TURNS     = 6
MAX_HISTORY_CHARS     = 500
IMPLICIT_CITATION_COUNT = 3

SKIP_RETRIEVAL_PHRASES = frozenset({
    "hi", "hello", "hey", "thanks", "thank you", "ok", "okay", "got it",
    "understood", "great", "perfect", "awesome", "cool", "bye", "goodbye",
    "yes", "no", "sure", "yep", "nope", "alright", "sounds good",
})

_CITATION_RE = re.compile(r"\[Source:\s*Pages?\s*(\d+)(?:\s*-\s*(\d+))?", re.IGNORECASE)


@dataclass(frozen=True)
class ChatTurn:
    role:    str        # "user" | "assistant"
    content: str


def needs_retrieval(question: str) -> bool:
    normalized = question.strip().lower().rstrip("!.")
    return normalized not in SKIP_RETRIEVAL_PHRASES


def truncate_history(history: Sequence[ChatTurn]) -> list[ChatTurn]:
    recent = list(history)[-MAX_HISTORY_TURNS:]
    return [
        ChatTurn(
            role=turn.role,
            content=turn.content if len(turn.content) <= MAX_HISTORY_CHARS
            else turn.content[:MAX_HISTORY_CHARS] + "...",
        )
        for turn in recent
    ]


def extract_citations(answer: str, hits: Sequence[SearchHit]) -> tuple[str, ...]:
    """Chunk ids cited in the answer; the top hits when nothing is cited explicitly."""
    cited: list[str] = []
    for match in _CITATION_RE.finditer(answer):
        start = int(match.group(1))
        end   = int(match.group(2)) if match.group(2) else start
        for hit in hits:
            if hit.page_start <= end and hit.page_end >= start:
                if hit.chunk_id not in cited:
                    cited.append(hit.chunk_id)
                break

    if not cited:
        cited = [hit.chunk_id for hit in hits[:IMPLICIT_CITATION_COUNT]]
    return tuple(cited)


class PolicyChatService:

    def __init__(self, retriever: BalancedRetriever, streamer: ChatStreamer) -> None:
        self._retriever = retriever
        self._streamer  = streamer

    async def answer(
        self,
        question: str,
        record_ids: Sequence[str],
        history: Sequence[ChatTurn] = (),
    ) -> AsyncIterator[ChatEvent]:
        hits: list[SearchHit] = []
        degraded = False
        balanced = len(set(record_ids)) > 1

        if needs_retrieval(question) and record_ids:
            try:
                hits = await self._retriever.search(question, record_ids)
            except Exception as exc:
                logger.warning(
                    "PolicyChatService | search failed, answering without context: %s: %s",
                    type(exc).__name__, exc,
                )
                degraded = True
        else:
            logger.info("PolicyChatService | skipping retrieval for short acknowledgement")

        messages = self.build_messages(question, hits, history, balanced=balanced, degraded=degraded)

        answer_parts: list[str] = []
        async for event in self._streamer.stream(messages):
            if isinstance(event, TextDelta):
                answer_parts.append(event.text)
                yield event
            elif isinstance(event, ChatCompleted):
                cited = extract_citations("".join(answer_parts), hits)
                logger.info(
                    "PolicyChatService | hits=%d cited=%d degraded=%s input_tokens=%d output_tokens=%d",
                    len(hits), len(cited), degraded, event.input_tokens, event.output_tokens,
                )
                yield ChatCompleted(
                    input_tokens=event.input_tokens,
                    output_tokens=event.output_tokens,
                    cited_chunk_ids=cited,
                    degraded=degraded,
                )

    @staticmethod
    def build_messages(
        question: str,
        hits: Sequence[SearchHit],
        history: Sequence[ChatTurn],
        *,
        balanced: bool = False,
        degraded: bool = False,
    ) -> list[BaseMessage]:
        messages: list[BaseMessage] = [SystemMessage(content=CHAT_SYSTEM_PROMPT)]
        for turn in truncate_history(history):
            if turn.role == "assistant":
                messages.append(AIMessage(content=turn.content))
            else:
                messages.append(HumanMessage(content=turn.content))

        if hits:
            content = build_context_prompt(hits, question, balanced=balanced)
        elif degraded:
            content = f"{DEGRADED_NOTE}\n\n{question}"
        else:
            content = question
        messages.append(HumanMessage(content=content))
        return messages
