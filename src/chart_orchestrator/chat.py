"""
Chat assistant for Chart Orchestrator.

PURPOSE: Let users reconfigure the dashboard in natural language.
AI CONTEXT: The LLM replies with text that may embed one VIEW_UPDATE block.

COMMAND FORMAT (inside the assistant reply):
    :::VIEW_UPDATE
    {
      "specs": [{"t": "line", "m": ["active_contributors"], "ti": "Contributors"}],
      "filters": {"repository": "backend-api", "date": "7d"}
    }
    :::

MESSAGE FLOW:
    user text -> ChatAssistant.send -> ChatClient.complete (proxy or direct)
              -> parse_assistant_reply -> ViewController.apply_view_update
              -> visible reply (command block removed)

ERROR HANDLING:
- Malformed/invalid command block: logged, dropped; reply text still shown
- Missing endpoint and API key: "Configuration Error: ..." chat message
- Request failure: generic apology chat message
No chat error propagates past ChatAssistant.send.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from .config import Config
from .models import (
    ChatConfigurationError,
    ChatMessage,
    ChatRequestError,
    ViewState,
    ViewUpdate,
    ViewUpdateError,
)

if TYPE_CHECKING:
    from .controller import ViewController

__all__ = [
    "ChatClient",
    "HttpChatClient",
    "AssistantReply",
    "ChatAssistant",
    "parse_assistant_reply",
    "build_system_prompt",
]

logger = logging.getLogger(__name__)

VIEW_UPDATE_PATTERN = re.compile(r":::VIEW_UPDATE\s*(\{.*?\})\s*:::", re.DOTALL)


# =============================================================================
# LLM COLLABORATOR
# =============================================================================


class ChatClient(Protocol):
    """Protocol for the chat/LLM collaborator."""

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        """
        Send a message history and return the assistant's text.

        Raises:
            ChatConfigurationError: If the client cannot be used as configured.
            ChatRequestError: On transport or response failure.
        """
        ...


class HttpChatClient:
    """
    Chat client that prefers a server-side proxy over a direct API key.

    PRIORITY:
    1. Proxy endpoint: POST {"messages": [...]} - keeps the key server-side
    2. Direct API: POST to Config.LLM_API_URL with a bearer token
    3. Neither: ChatConfigurationError
    """

    def __init__(
        self,
        endpoint: str | None = None,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = Config.HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self.endpoint = endpoint if endpoint is not None else Config.get_chat_url()
        self.api_key = api_key if api_key is not None else Config.get_llm_api_key()
        self._client = client
        self._timeout = timeout

    def _build_request(self, messages: Sequence[ChatMessage]) -> tuple[str, dict[str, str], dict[str, Any]]:
        payload_messages = [m.to_dict() for m in messages]
        if self.endpoint:
            return self.endpoint, {"Content-Type": "application/json"}, {"messages": payload_messages}
        if not self.api_key:
            raise ChatConfigurationError("Configuration Error: Missing API Key or Endpoint")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        body = {
            "model": Config.LLM_MODEL,
            "messages": payload_messages,
            "temperature": Config.LLM_TEMPERATURE,
            "top_p": Config.LLM_TOP_P,
            "return_related_questions": False,
            "stream": False,
        }
        return Config.LLM_API_URL, headers, body

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        url, headers, body = self._build_request(messages)
        try:
            if self._client is not None:
                response = await self._client.post(url, headers=headers, json=body)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, headers=headers, json=body)
            response.raise_for_status()
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except httpx.HTTPStatusError as e:
            raise ChatRequestError(
                f"Chat API error: {e.response.status_code} - {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise ChatRequestError(f"Chat request failed: {e}") from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ChatRequestError(f"Unreadable chat response: {e}") from e
        if not isinstance(content, str):
            raise ChatRequestError("Unreadable chat response: content is not text")
        return content


# =============================================================================
# COMMAND PARSING
# =============================================================================


@dataclass(frozen=True)
class AssistantReply:
    """Visible reply text plus the view update it carried, if any."""

    text: str
    update: ViewUpdate | None = None


def parse_assistant_reply(text: str) -> AssistantReply:
    """
    Extract and validate the VIEW_UPDATE block from an assistant reply.

    Only the first block is considered. The block is removed from the
    visible text whether or not it is valid; an invalid block is logged and
    its command dropped.

    Args:
        text: Raw assistant reply.

    Returns:
        AssistantReply with the cleaned text and a validated ViewUpdate or None.

    Example:
        >>> reply = parse_assistant_reply(
        ...     'Switching.\\n:::VIEW_UPDATE {"filters": {"date": "7d"}} :::'
        ... )
        >>> reply.text, reply.update.kind
        ('Switching.', 'merge_filters')
    """
    match = VIEW_UPDATE_PATTERN.search(text)
    if match is None:
        return AssistantReply(text=text)

    visible = (text[: match.start()] + text[match.end() :]).strip()
    try:
        update = ViewUpdate.from_dict(json.loads(match.group(1)))
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse view update JSON: {e}")
        return AssistantReply(text=visible)
    except ViewUpdateError as e:
        logger.error(f"Rejected view update: {e}")
        return AssistantReply(text=visible)

    logger.info("Assistant requested %s view update", update.kind)
    return AssistantReply(text=visible, update=update)


def build_system_prompt(state: ViewState, context: Mapping[str, Any] | None = None) -> str:
    """
    Describe the current dashboard and the command protocol to the LLM.

    Args:
        state: Current specs and global filters.
        context: Optional host-supplied extras; 'kpis' is included verbatim.

    Returns:
        System prompt text.
    """
    context = context or {}
    active = "; ".join(spec.title or ", ".join(spec.metrics) for spec in state.specs) or "none"
    filter_lines = []
    for entry in Config.FILTER_CATALOG:
        values = ", ".join(f"'{option['value']}'" for option in entry["options"])
        filter_lines.append(f"  - {entry['key']} options: {values}.")
    kinds = "|".join(f"'{kind}'" for kind in sorted(Config.CHART_KINDS))

    return "\n".join(
        [
            "You are an expert Data Analyst Assistant for a Git Role-Based Management Dashboard.",
            "Current Configuration & Data:",
            f"- KPIs: {json.dumps(context.get('kpis', {}))}",
            f"- Global Filters: {json.dumps(state.filters)}",
            f"- Active Charts: {active}",
            "",
            "Rules:",
            "- Be concise and professional.",
            "- Refer to the specific metrics provided above.",
            "",
            "Capabilities:",
            "- You can CONTROL the dashboard view. If the user asks to see specific charts,"
            " focus on a metric, or filter by a repository/date, output a JSON command block.",
            "- Format:",
            ":::VIEW_UPDATE",
            '{ "specs": [ ...array of chart specs... ], "filters": { "repository": "backend-api", "date": "7d" } }',
            ":::",
            f"- A spec has {{ t: {kinds}, m: ['metric_name'], ti: 'Title', s: true|false }}.",
            f"  - Available metrics: {', '.join(Config.METRICS)}.",
            "- Use 'filters' to set global filters.",
            *filter_lines,
            "- ONLY output the JSON block if the user explicitly asks to change the view.",
            "- When updating the view, ALWAYS include a small sample of the relevant data values"
            " in your text response.",
        ]
    )


# =============================================================================
# ASSISTANT
# =============================================================================


class ChatAssistant:
    """
    One chat conversation bound to a ViewController.

    The history starts with a greeting shown to the user; the greeting is
    never sent to the LLM. Each turn sends a fresh system prompt built from
    the controller's current state.
    """

    def __init__(
        self,
        client: ChatClient,
        controller: ViewController,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        self.client = client
        self.controller = controller
        self.context = dict(context or {})
        self.history: list[ChatMessage] = [ChatMessage("assistant", Config.CHAT_GREETING)]

    def _api_messages(self) -> list[ChatMessage]:
        turns = self.history[1:] if self.history[0].role == "assistant" else self.history
        system = ChatMessage("system", build_system_prompt(self.controller.snapshot(), self.context))
        return [system, *turns]

    async def send(self, text: str) -> ChatMessage:
        """
        Run one chat turn.

        Appends the user message, asks the LLM, applies any valid view
        update through the controller, and appends the visible reply.

        Args:
            text: User message. Blank input is ignored.

        Returns:
            The assistant message appended to history (for blank input, the
            last message in history).

        Example:
            >>> reply = await assistant.send("Show contributors for the backend")
            >>> reply.role
            'assistant'
        """
        if not text.strip():
            return self.history[-1]

        self.history.append(ChatMessage("user", text))
        try:
            raw = await self.client.complete(self._api_messages())
        except ChatConfigurationError as e:
            logger.error(f"Chat configuration error: {e}")
            reply = ChatMessage("assistant", str(e))
        except ChatRequestError as e:
            logger.error(f"Chat request failed: {e}")
            reply = ChatMessage("assistant", Config.CHAT_ERROR_REPLY)
        else:
            parsed = parse_assistant_reply(raw)
            if parsed.update is not None:
                self.controller.apply_view_update(parsed.update)
            reply = ChatMessage("assistant", parsed.text)

        self.history.append(reply)
        return reply
