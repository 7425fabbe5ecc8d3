from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

LiteLLM-backed model using the OpenAI-style Responses protocol.

This module centralizes:
  - item history -> Responses input mapping
  - tool / output-shape declarations -> Responses payload
  - Responses output -> run items
  - stream event normalization
"""

import json
from collections import defaultdict
from typing import Any, AsyncIterator

from ..items import (
    ApprovalRequestItem,
    HandoffCallItem,
    HandoffOutputItem,
    ImagePart,
    MessageItem,
    ReasoningItem,
    RefusalPart,
    RunItem,
    TextPart,
    ToolCallItem,
    ToolCallOutputItem,
)
from .base import Model
from .config import ModelConfig
from .errors import ModelConfigurationError, ModelInvalidResponseError
from .normalization import extract_usage, to_plain_dict
from .types import (
    FunctionDeclaration,
    ModelRequest,
    ModelResponse,
    ModelStreamEvent,
    OutputDeclaration,
    StreamCompletedEvent,
    StreamTextDeltaEvent,
    StreamToolCallDeltaEvent,
)


class LiteLLMModel(Model):
    """Concrete model using `litellm.aresponses`."""

    def __init__(self, model: str | None = None, *, config: ModelConfig | None = None) -> None:
        super().__init__(config=config)
        self.model = model or self.config.default_model

    @property
    def provider_id(self) -> str:
        return "litellm"

    async def _responses_create(self, payload: dict[str, Any]) -> Any:
        """Dispatch a payload to `litellm.aresponses`."""
        try:
            from litellm import aresponses
        except Exception as e:  # pragma: no cover - environment dependent
            raise ModelConfigurationError(
                "litellm is not installed. Install the dependency to use LiteLLMModel."
            ) from e

        return await aresponses(**self._with_transport_defaults(payload))

    async def _response_core(self, request: ModelRequest) -> ModelResponse:
        payload = self._build_responses_payload(request, stream=False)
        raw = await self._responses_create(payload)
        return self._normalize_responses_response(raw)

    async def _stream_core(self, request: ModelRequest) -> AsyncIterator[ModelStreamEvent]:
        payload = self._build_responses_payload(request, stream=True)
        raw_stream = await self._call_with_retries(lambda: self._responses_create(payload))

        tool_meta: dict[int, dict[str, Any]] = defaultdict(lambda: {"call_id": None, "name": None})
        completed: dict[str, Any] | None = None

        async for event in raw_stream:
            event_dict = to_plain_dict(event)
            event_type = event_dict.get("type")

            if event_type == "response.output_text.delta":
                delta = event_dict.get("delta")
                if isinstance(delta, str) and delta:
                    yield StreamTextDeltaEvent(delta=delta)
                continue

            if event_type in ("response.output_item.added", "response.output_item.done"):
                output_index = event_dict.get("output_index")
                item = to_plain_dict(event_dict.get("item"))
                if isinstance(output_index, int) and item.get("type") == "function_call":
                    meta = tool_meta[output_index]
                    if isinstance(item.get("call_id"), str):
                        meta["call_id"] = item["call_id"]
                    if isinstance(item.get("name"), str):
                        meta["name"] = item["name"]
                continue

            if event_type == "response.function_call_arguments.delta":
                output_index = event_dict.get("output_index")
                if not isinstance(output_index, int):
                    output_index = 0
                delta = event_dict.get("delta")
                if isinstance(delta, str) and delta:
                    meta = tool_meta[output_index]
                    yield StreamToolCallDeltaEvent(
                        index=output_index,
                        call_id=meta["call_id"],
                        tool_name=meta["name"],
                        arguments_delta=delta,
                    )
                continue

            if event_type == "response.completed":
                response_obj = to_plain_dict(event_dict.get("response"))
                if response_obj:
                    completed = response_obj
                continue

        # A stream that never completes is surfaced by the runner as a
        # protocol error, so no completion marker is synthesized here.
        if completed is not None:
            yield StreamCompletedEvent(response=self._normalize_responses_response(completed))

    # ''''''''''''''''''''''''''''''''''''''
    # Request mapping
    # ''''''''''''''''''''''''''''''''''''''

    def _build_responses_payload(self, request: ModelRequest, *, stream: bool) -> dict[str, Any]:
        """Map a `ModelRequest` into a Responses API payload."""
        settings = request.model_settings
        payload: dict[str, Any] = {
            "model": self.model,
            "input": self._items_to_responses_input(request.input),
            "stream": stream,
        }

        if request.system_instructions:
            payload["instructions"] = request.system_instructions
        if request.previous_response_id:
            payload["previous_response_id"] = request.previous_response_id

        if settings.max_output_tokens is not None:
            payload["max_output_tokens"] = settings.max_output_tokens
        if settings.temperature is not None:
            payload["temperature"] = settings.temperature
        if settings.top_p is not None:
            payload["top_p"] = settings.top_p
        if settings.parallel_tool_calls is not None:
            payload["parallel_tool_calls"] = settings.parallel_tool_calls

        if request.tools:
            payload["tools"] = [self._tool_to_responses_tool(t) for t in request.tools]
            if settings.tool_choice is not None:
                payload["tool_choice"] = settings.tool_choice

        if request.output_schema is not None:
            payload["text"] = self._structured_output_payload(request.output_schema)

        payload.update(settings.extra)
        return payload

    def _tool_to_responses_tool(self, decl: FunctionDeclaration) -> dict[str, Any]:
        return {
            "type": "function",
            "name": decl.name,
            "description": decl.description,
            "parameters": decl.parameters,
            "strict": decl.strict,
        }

    def _structured_output_payload(self, output: OutputDeclaration) -> dict[str, Any]:
        return {
            "format": {
                "type": "json_schema",
                "name": output.name,
                "schema": output.json_schema,
                "strict": output.strict,
            }
        }

    def _items_to_responses_input(self, items: list[RunItem]) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        for item in items:
            row = self._item_to_responses_input(item)
            if row is not None:
                out.append(row)
        return out

    def _item_to_responses_input(self, item: RunItem) -> dict[str, Any] | None:
        """Convert one run item into one Responses input item."""
        if isinstance(item, MessageItem):
            return {
                "type": "message",
                "role": item.role,
                "content": self._message_content(item),
            }

        if isinstance(item, (ToolCallItem, HandoffCallItem)):
            return {
                "type": "function_call",
                "call_id": item.call_id,
                "name": item.name,
                "arguments": item.arguments,
            }

        if isinstance(item, (ToolCallOutputItem, HandoffOutputItem)):
            return {
                "type": "function_call_output",
                "call_id": item.call_id,
                "output": item.output,
            }

        if isinstance(item, ReasoningItem):
            # Responses only accepts reasoning items it issued itself.
            if item.id is None:
                return None
            return {
                "type": "reasoning",
                "id": item.id,
                "summary": [{"type": "summary_text", "text": s} for s in item.summary],
            }

        if isinstance(item, ApprovalRequestItem):
            return None

        raise ModelInvalidResponseError(f"Cannot send item of type {type(item).__name__}")

    def _message_content(self, item: MessageItem) -> list[dict[str, Any]]:
        assistant = item.role == "assistant"
        parts: list[dict[str, Any]] = []
        for part in item.content:
            if isinstance(part, TextPart):
                parts.append({"type": "output_text" if assistant else "input_text", "text": part.text})
            elif isinstance(part, RefusalPart):
                parts.append({"type": "refusal", "refusal": part.refusal})
            elif isinstance(part, ImagePart):
                parts.append({"type": "input_image", "image_url": part.image_url})
        if not parts:
            parts = [{"type": "output_text" if assistant else "input_text", "text": ""}]
        return parts

    def _with_transport_defaults(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Apply config-level transport defaults without overriding explicit extras."""
        out = dict(payload)
        if self.config.api_base_url:
            out.setdefault("api_base", self.config.api_base_url)
        if self.config.api_key:
            out.setdefault("api_key", self.config.api_key)
        return out

    # ''''''''''''''''''''''''''''''''''''''
    # Response mapping
    # ''''''''''''''''''''''''''''''''''''''

    def _normalize_responses_response(self, raw: Any) -> ModelResponse:
        """Normalize a raw Responses payload into `ModelResponse`."""
        raw_dict = to_plain_dict(raw)
        output = raw_dict.get("output")
        if output is not None and not isinstance(output, list):
            raise ModelInvalidResponseError("Responses payload 'output' must be a list")

        items: list[RunItem] = []
        for entry in output or []:
            items.append(self._output_to_item(to_plain_dict(entry)))

        response_id = raw_dict.get("id")
        return ModelResponse(
            output=items,
            usage=extract_usage(raw_dict),
            response_id=response_id if isinstance(response_id, str) else None,
        )

    def _output_to_item(self, row: dict[str, Any]) -> RunItem:
        row_type = row.get("type")
        item_id = row.get("id") if isinstance(row.get("id"), str) else None

        if row_type == "message":
            return MessageItem(
                role="assistant",
                content=self._content_parts(row.get("content")),
                id=item_id,
            )

        if row_type == "function_call":
            call_id = row.get("call_id") if isinstance(row.get("call_id"), str) else item_id
            name = row.get("name")
            if not isinstance(call_id, str) or not isinstance(name, str):
                raise ModelInvalidResponseError("Function call output is missing 'call_id' or 'name'")
            raw_args = row.get("arguments")
            if isinstance(raw_args, dict):
                arguments = json.dumps(raw_args, ensure_ascii=False)
            elif isinstance(raw_args, str):
                arguments = raw_args
            else:
                arguments = "{}"
            return ToolCallItem(call_id=call_id, name=name, arguments=arguments, id=item_id)

        if row_type == "reasoning":
            summary: list[str] = []
            for part in row.get("summary") or []:
                text = to_plain_dict(part).get("text")
                if isinstance(text, str):
                    summary.append(text)
            return ReasoningItem(summary=tuple(summary), id=item_id)

        raise ModelInvalidResponseError(f"Unsupported Responses output item type: {row_type!r}")

    def _content_parts(self, content: Any) -> tuple[TextPart | RefusalPart, ...]:
        if isinstance(content, str):
            return (TextPart(text=content),)
        parts: list[TextPart | RefusalPart] = []
        for part in content if isinstance(content, list) else []:
            block = to_plain_dict(part)
            p_type = block.get("type")
            if p_type in ("output_text", "text", "input_text") and isinstance(block.get("text"), str):
                parts.append(TextPart(text=block["text"]))
            elif p_type == "refusal" and isinstance(block.get("refusal"), str):
                parts.append(RefusalPart(refusal=block["refusal"]))
        return tuple(parts)


class LiteLLMProvider:
    """
    Resolves model names into `LiteLLMModel` instances.

    Instances are cached per name so retry policy and transport defaults
    are shared by every agent that names the same model.
    """

    def __init__(self, *, config: ModelConfig | None = None) -> None:
        self.config = config or ModelConfig.from_env()
        self._models: dict[str, LiteLLMModel] = {}

    def get_model(self, name: str | None) -> Model:
        resolved = name or self.config.default_model
        model = self._models.get(resolved)
        if model is None:
            model = LiteLLMModel(resolved, config=self.config)
            self._models[resolved] = model
        return model
