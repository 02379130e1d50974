"""Shared streaming utilities: frame aggregation and SSE line handling."""
from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence

from openai.types.chat import ChatCompletionChunk

from llm_relay.accumulator import build_tool_call
from llm_relay.types import ToolCall, ToolDefinition

__all__ = ["chunk_text", "aggregate_tool_calls", "SSELineBuffer", "parse_sse_record", "sse_records"]

_logger = logging.getLogger(__name__)


def chunk_text(chunk: ChatCompletionChunk) -> str:
    """Text delta carried by a single frame, or an empty string."""
    if not chunk.choices:
        return ""
    delta = chunk.choices[0].delta
    if delta is None:
        return ""
    return delta.content or ""


def aggregate_tool_calls(
    chunks: Iterable[ChatCompletionChunk],
    tools: Sequence[ToolDefinition] | None,
) -> Optional[List[ToolCall]]:
    """
    Pure function that derives the final tool calls from a buffered set of frames.

    Tool-call fragments are grouped by their ``index``; ids and types replace,
    names and arguments concatenate. Entries that never received an id or a
    name are dropped.

    Args:
        chunks: Every ChatCompletionChunk received, in stream order
        tools: Tool definitions used to enrich calls with metadata

    Returns:
        The calls in index order, or None when there are none
    """
    tool_calls_agg: List[Dict[str, Any]] = []

    for chunk in chunks:
        if not chunk.choices:
            continue

        delta = chunk.choices[0].delta
        if delta is None or not delta.tool_calls:
            continue

        for tc_chunk in delta.tool_calls:
            while len(tool_calls_agg) <= tc_chunk.index:
                tool_calls_agg.append({"id": "", "name": "", "arguments": ""})

            agg_tc = tool_calls_agg[tc_chunk.index]
            if tc_chunk.id:
                agg_tc["id"] = tc_chunk.id
            if tc_chunk.function:
                if tc_chunk.function.name:
                    agg_tc["name"] += tc_chunk.function.name
                if tc_chunk.function.arguments:
                    agg_tc["arguments"] += tc_chunk.function.arguments

    final_tool_calls: List[ToolCall] = []
    for tc_data in tool_calls_agg:
        if not tc_data["id"] or not tc_data["name"]:
            continue
        final_tool_calls.append(
            build_tool_call(tc_data["id"], tc_data["name"], tc_data["arguments"], tools)
        )

    return final_tool_calls or None


class SSELineBuffer:
    """
    Splits a byte stream into complete lines across arbitrary read boundaries.

    A trailing partial line is kept until the next :meth:`feed`, or returned
    by :meth:`flush` when the stream ends. Multi-byte characters split
    between reads are decoded correctly.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, data: bytes) -> List[str]:
        self._pending += self._decoder.decode(data)
        *lines, self._pending = self._pending.split("\n")
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> List[str]:
        self._pending += self._decoder.decode(b"", final=True)
        rest, self._pending = self._pending.rstrip("\r"), ""
        return [rest] if rest else []


def parse_sse_record(line: str) -> Optional[Dict[str, Any]]:
    """
    Best-effort decode of one ``data:`` line.

    Blank lines, comments, ``event:``/``id:`` fields and records that are
    not JSON objects return None; they are protocol noise, not errors.
    """
    if not line.startswith("data:"):
        return None
    payload = line[len("data:"):].strip()
    if not payload or payload == "[DONE]":
        return None
    try:
        record = json.loads(payload)
    except json.JSONDecodeError:
        _logger.debug("Skipping unparsable stream record: %.200s", payload)
        return None
    return record if isinstance(record, dict) else None


async def sse_records(chunks: AsyncIterator[bytes]) -> AsyncIterator[Dict[str, Any]]:
    """Yield every parsable record from a raw byte stream, in order."""
    buffer = SSELineBuffer()
    async for data in chunks:
        for line in buffer.feed(data):
            record = parse_sse_record(line)
            if record is not None:
                yield record
    for line in buffer.flush():
        record = parse_sse_record(line)
        if record is not None:
            yield record
