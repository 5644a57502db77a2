from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import cast

from pydantic import ValidationError as PydanticValidationError

from grammar_proxy.errors import ValidationError
from grammar_proxy.models import ChatMessage, ChatRequest

MISSING_MESSAGES_ERROR = "Bad Request: 'messages' are required."
INVALID_MESSAGES_ERROR = "Bad Request: 'messages' must be a list of {role, content} objects."
EMPTY_MESSAGES_ERROR = "Bad Request: 'messages' must contain at least one user or assistant message."
INVALID_BODY_ERROR = "Bad Request: request body must be a JSON object."


def parse_messages(raw: object) -> list[ChatMessage]:
    """Validate a caller-supplied chat history and return it as chat messages."""
    if raw is None:
        raise ValidationError(MISSING_MESSAGES_ERROR)
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
        raise ValidationError(INVALID_MESSAGES_ERROR)

    messages: list[ChatMessage] = []
    for index, entry in enumerate(cast("Sequence[object]", raw)):
        messages.append(_parse_entry(index, entry))

    if not any(message.role != "system" for message in messages):
        raise ValidationError(EMPTY_MESSAGES_ERROR)
    return messages


def _parse_entry(index: int, entry: object) -> ChatMessage:
    if isinstance(entry, ChatMessage):
        return entry
    if not isinstance(entry, Mapping):
        raise ValidationError(INVALID_MESSAGES_ERROR, details=f"messages[{index}] is not an object")

    mapping = cast("Mapping[str, object]", entry)
    if "content" not in mapping or mapping["content"] is None:
        raise ValidationError(INVALID_MESSAGES_ERROR, details=f"messages[{index}] is missing 'content'")
    try:
        return ChatMessage.model_validate(dict(mapping))
    except PydanticValidationError as exc:
        problems = "; ".join(f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in exc.errors())
        raise ValidationError(INVALID_MESSAGES_ERROR, details=f"messages[{index}] {problems}") from exc


def parse_chat_request(payload: object) -> ChatRequest:
    """Validate the inbound JSON body ``{model?, messages}``."""
    if not isinstance(payload, Mapping):
        raise ValidationError(INVALID_BODY_ERROR)
    body = cast("Mapping[str, object]", payload)
    messages = parse_messages(body.get("messages"))

    model = body.get("model")
    if model is not None and not isinstance(model, str):
        raise ValidationError("Bad Request: 'model' must be a string.")
    return ChatRequest(model=model or None, messages=tuple(messages))
