# docqa/prompts/prompt_builder.py

from typing import Dict, List, Sequence, Union

from docqa.errors import RetrievalError
from docqa.memory.chunk import Chunk
from docqa.models import Message
from docqa.prompts.system_prompts import (
    CONTEXTUALIZE_QUESTION_SYSTEM_PROMPT,
    DOCUMENT_SEPARATOR,
    QA_PROMPT_TEMPLATE,
    QA_SYSTEM_PROMPT,
)

ChatMessage = Dict[str, str]


def build_context(chunks: Sequence[Chunk]) -> str:
    """Stuff every retrieved chunk into one context block."""
    return DOCUMENT_SEPARATOR.join(chunk.content for chunk in chunks)


def to_chat_history(history: Sequence[Union[Message, dict]]) -> List[ChatMessage]:
    """
    Convert caller-supplied turns into OpenAI chat messages.

    Raises RetrievalError on a turn without role/content or with a role
    other than user/assistant.
    """

    messages = []

    for turn in history or []:

        if isinstance(turn, Message):
            role, content = turn.role, turn.content
        elif isinstance(turn, dict):
            role, content = turn.get("role"), turn.get("content")
        else:
            raise RetrievalError("History must be an array of messages")

        if not role or content is None:
            raise RetrievalError(
                "Each message in history must have 'role' and 'content' properties"
            )

        if role not in ("user", "assistant"):
            raise RetrievalError("Message role must be either 'user' or 'assistant'")

        if not isinstance(content, str):
            raise RetrievalError("Message content must be a string")

        messages.append({"role": role, "content": content})

    return messages


def build_qa_prompt(question: str, chunks: Sequence[Chunk]) -> str:
    return QA_PROMPT_TEMPLATE.format(context=build_context(chunks), input=question)


def build_qa_messages(
    question: str,
    chunks: Sequence[Chunk],
    chat_history: Sequence[ChatMessage] = (),
) -> List[ChatMessage]:
    """Stateless generation prompt as a single user message."""

    return [{"role": "user", "content": build_qa_prompt(question, chunks)}]


def build_conversational_messages(
    question: str,
    chunks: Sequence[Chunk],
    chat_history: Sequence[ChatMessage] = (),
) -> List[ChatMessage]:
    """Context in a system message, prior turns replayed before the question."""

    return [
        {"role": "system", "content": QA_SYSTEM_PROMPT.format(context=build_context(chunks))},
        *chat_history,
        {"role": "user", "content": question},
    ]


def build_contextualize_messages(
    question: str,
    chat_history: Sequence[ChatMessage],
) -> List[ChatMessage]:

    return [
        {"role": "system", "content": CONTEXTUALIZE_QUESTION_SYSTEM_PROMPT},
        *chat_history,
        {"role": "user", "content": question},
    ]
