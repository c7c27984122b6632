"""Admission checks for incoming chat requests."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from arxivrag.errors import EmptyQuery, InvalidRequestBody, QueryTooLong
from arxivrag.models import ChatMessage, ChatQuery

DEFAULT_EMBEDDING_MODEL = "openai"
DEFAULT_TOP_K = 5
MAX_QUERY_LENGTH = 500


def query_length(query: str) -> int:
    """Length in UTF-16 code units, so astral characters count twice."""

    return len(query.encode("utf-16-le")) // 2


class ChatMessagePayload(BaseModel):
    role: str
    content: str


class ChatRequestPayload(BaseModel):
    """Shape of the ``POST /chat`` body. Bounds are checked separately."""

    model_config = ConfigDict(extra="ignore")

    query: Optional[str] = None
    embedding_model: Optional[str] = None
    history: Optional[List[ChatMessagePayload]] = None
    top_k: Optional[int] = Field(default=None, ge=1)


def validate_chat_request(
    raw: Any,
    *,
    max_query_length: int = MAX_QUERY_LENGTH,
    default_embedding_model: str = DEFAULT_EMBEDDING_MODEL,
    default_top_k: int = DEFAULT_TOP_K,
    max_top_k: int | None = None,
) -> ChatQuery:
    """Turn a decoded JSON body into a :class:`ChatQuery`.

    Raises :class:`EmptyQuery` when the query is missing or blank, and
    :class:`QueryTooLong` when the untrimmed query exceeds
    ``max_query_length``. The query and history are passed through as-is.
    """

    if not isinstance(raw, Mapping):
        raise InvalidRequestBody()
    try:
        payload = ChatRequestPayload.model_validate(dict(raw))
    except PydanticValidationError as exc:
        raise InvalidRequestBody() from exc

    query = payload.query
    if not query or not query.strip():
        raise EmptyQuery()
    if query_length(query) > max_query_length:
        raise QueryTooLong(max_query_length)

    top_k = payload.top_k if payload.top_k is not None else default_top_k
    if max_top_k is not None and top_k > max_top_k:
        raise InvalidRequestBody(f"top_k must be at most {max_top_k}")

    history = tuple(ChatMessage(role=item.role, content=item.content) for item in payload.history or ())
    return ChatQuery(
        query=query,
        embedding_model=(
            payload.embedding_model if payload.embedding_model is not None else default_embedding_model
        ),
        history=history,
        top_k=top_k,
    )
