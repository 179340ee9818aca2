"""Shared type aliases and typed dictionaries."""

from __future__ import annotations

from typing import Literal, TypeAlias, TypedDict

ChatRole: TypeAlias = Literal["system", "user", "assistant"]


class ChatMessage(TypedDict):
    """One entry of a chat-completion message list."""

    role: ChatRole
    content: str


class ChatCompletionPayload(TypedDict):
    """Request body sent to the chat-completion endpoint."""

    model: str
    messages: list[ChatMessage]
