# docqa/workflow/chains.py

"""
Retrieval + generation building blocks used by the QA engine.

    question ──► retriever ──► chunks ──► stuff-documents ──► answer
                    ▲
    history ────────┘ (history-aware retriever condenses first)
"""

import logging
from typing import Any, Callable, Dict, List, Sequence, Tuple

from docqa.memory.chunk import Chunk
from docqa.memory.retriever import VectorStoreRetriever
from docqa.prompts.prompt_builder import ChatMessage, build_contextualize_messages

logger = logging.getLogger(__name__)

MessageBuilder = Callable[[str, Sequence[Chunk], Sequence[ChatMessage]], List[ChatMessage]]


class HistoryAwareRetriever:
    """
    Rewrites the latest question into a standalone query using the prior
    turns, then retrieves with it. With no prior turns the question is
    retrieved as-is and the LLM is not called.
    """

    def __init__(self, llm, retriever: VectorStoreRetriever):
        self.llm = llm
        self.retriever = retriever

    def condense_question(self, question: str, chat_history: Sequence[ChatMessage]) -> str:

        if not chat_history:
            return question

        standalone = self.llm.chat(
            build_contextualize_messages(question, chat_history)
        ).strip()

        logger.info(
            "Question condensed",
            extra={
                "history_turns": len(chat_history),
                "rewritten": standalone != question,
            },
        )

        # an empty rewrite would fail retrieval validation
        return standalone or question

    def retrieve(self, inputs: Dict[str, Any]) -> Tuple[str, List[Chunk]]:
        """Returns the query actually searched along with its chunks."""

        query = self.condense_question(inputs["input"], inputs.get("chat_history") or [])

        return query, self.retriever.invoke(query)

    def invoke(self, inputs: Dict[str, Any]) -> List[Chunk]:
        return self.retrieve(inputs)[1]


class StuffDocumentsChain:
    """Puts every retrieved chunk into one prompt and calls the LLM once."""

    def __init__(self, llm, build_messages: MessageBuilder):
        self.llm = llm
        self.build_messages = build_messages

    def invoke(self, inputs: Dict[str, Any]) -> str:

        messages = self.build_messages(
            inputs["input"],
            inputs.get("context") or [],
            inputs.get("chat_history") or [],
        )

        return self.llm.chat(messages)


class RetrievalChain:
    """
    invoke({"input", "chat_history"?}) →
        {"input", "chat_history", "query", "context": [Chunk], "answer": str}

    "query" is the text sent to the retriever: the condensed question for
    a history-aware retriever, the input otherwise.
    """

    def __init__(self, retriever, combine_docs_chain: StuffDocumentsChain):
        self.retriever = retriever
        self.combine_docs_chain = combine_docs_chain

    def invoke(self, inputs: Dict[str, Any]) -> Dict[str, Any]:

        if isinstance(self.retriever, HistoryAwareRetriever):
            query, context = self.retriever.retrieve(inputs)
        else:
            query = inputs["input"]
            context = self.retriever.invoke(query)

        result = {
            "input": inputs["input"],
            "chat_history": inputs.get("chat_history") or [],
            "query": query,
            "context": context,
        }

        result["answer"] = self.combine_docs_chain.invoke(result)

        return result
