"""Reconstruct complete tool calls from fragmented streaming events."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from llm_relay._exceptions import ToolArgumentsError
from llm_relay.types import ToolCall, ToolDefinition, find_tool_metadata

__all__ = ["PartialToolCall", "ToolCallAccumulator", "parse_tool_arguments", "build_tool_call"]

_logger = logging.getLogger(__name__)


def parse_tool_arguments(name: str, arguments: str | dict[str, Any] | None) -> dict[str, Any]:
    """
    Decode tool-call argument text into a dict.

    Blank text means "no arguments". Anything that is not a JSON object
    raises ToolArgumentsError.
    """
    if isinstance(arguments, dict):
        return arguments
    if arguments is None or not arguments.strip():
        return {}
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as exc:
        raise ToolArgumentsError(name, arguments, exc) from exc
    if not isinstance(parsed, dict):
        raise ToolArgumentsError(name, arguments)
    return parsed


def build_tool_call(
    call_id: str,
    name: str,
    arguments: str | dict[str, Any] | None,
    tools: Sequence[ToolDefinition] | None,
) -> ToolCall:
    return ToolCall(
        id=call_id,
        namespaced_tool_name=name,
        args=parse_tool_arguments(name, arguments),
        tool_metadata=find_tool_metadata(tools, name),
    )


@dataclass(slots=True)
class PartialToolCall:
    """In-progress tool call keyed by the protocol's item identifier."""

    id: str
    call_id: str
    name: str
    arguments: str = ""


class ToolCallAccumulator:
    """
    Call-scoped buffer turning item lifecycle events into ToolCalls.

    Events are fed in stream order:

    * :meth:`start` when an item carrying identity and name is added
    * :meth:`append` for every argument fragment
    * :meth:`replace` when the protocol sends the authoritative final string
    * :meth:`finish` when the item is done

    Finished calls are reported in the order their items were first opened,
    regardless of the order in which they finish.
    """

    def __init__(
        self,
        tools: Sequence[ToolDefinition] | None = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._tools = tools
        self._pending: dict[str, PartialToolCall] = {}
        self._order: dict[str, int] = {}
        self._completed: list[tuple[int, ToolCall]] = []
        self._opened = 0
        self._logger = logger or _logger

    def start(self, item_id: str, call_id: str, name: str, arguments: str = "") -> PartialToolCall:
        partial = PartialToolCall(id=item_id, call_id=call_id, name=name, arguments=arguments)
        self._pending[item_id] = partial
        self._order[item_id] = self._opened
        self._opened += 1
        return partial

    def append(self, item_id: str, fragment: str) -> None:
        partial = self._pending.get(item_id)
        if partial is None:
            self._logger.debug("Dropping argument delta for unknown item %s", item_id)
            return
        partial.arguments += fragment

    def replace(self, item_id: str, arguments: str) -> None:
        partial = self._pending.get(item_id)
        if partial is None:
            self._logger.debug("Dropping final arguments for unknown item %s", item_id)
            return
        partial.arguments = arguments

    def finish(self, item_id: str) -> ToolCall | None:
        """Finalize *item_id*; raises ToolArgumentsError on unparsable arguments."""
        partial = self._pending.pop(item_id, None)
        if partial is None:
            return None
        call = build_tool_call(partial.call_id, partial.name, partial.arguments, self._tools)
        self._completed.append((self._order.pop(item_id), call))
        return call

    def finish_all(self) -> None:
        """Finalize whatever is still open when the stream ends."""
        for item_id in list(self._pending):
            self.finish(item_id)

    @property
    def tool_calls(self) -> list[ToolCall] | None:
        ordered = sorted(self._completed, key=lambda entry: entry[0])
        return [call for _, call in ordered] or None
