"""Gemini LLM integration for the production agents"""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from google import genai
from google.genai import types
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.outputs import ChatGeneration, ChatResult

from .config import PROJECT_ID, LOCATION, ORCHESTRATOR_MODEL, CONTENT_MODEL, get_google_credentials
from ..schemas import get_schema

logger = logging.getLogger(__name__)

_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_HARASSMENT",
)


def create_genai_client(model_name: str = "") -> genai.Client:
    """Vertex AI backed google-genai client (Gemini 3 models need the global location)"""
    location = "global" if "gemini-3" in model_name.lower() else LOCATION
    return genai.Client(
        vertexai=True,
        project=PROJECT_ID,
        location=location,
        credentials=get_google_credentials()
    )


class GeminiVertexLLM(BaseChatModel):
    """Gemini chat model with manual function calling

    The model never executes tools itself: function calls come back as
    ``AIMessage.tool_calls`` and the orchestrator answers them with
    ``ToolMessage`` entries on the next invocation.
    """

    model_name: str = ORCHESTRATOR_MODEL
    gemini_configs: Dict[str, Any] = {
        'max_output_tokens': 8192,
        'temperature': 0.7,
    }
    enable_thinking: bool = True
    thinking_budget_tokens: int = -1
    thinking_level: str = "high"  # For Gemini 3: "high" or "low"
    function_declarations: Optional[List[Dict[str, Any]]] = None

    @property
    def _llm_type(self) -> str:
        return "gemini_vertex"

    def setup_gemini(self) -> genai.Client:
        return create_genai_client(self.model_name)

    def bind_tools(self, tools: Sequence[Dict[str, Any]], **kwargs) -> "GeminiVertexLLM":
        """Return a copy of this model that advertises ``tools`` (function schemas)"""
        declarations = []
        for schema in tools:
            declarations.append({
                "name": schema["name"],
                "description": schema.get("description", ""),
                "parameters_json_schema": schema.get("parameters", {"type": "object", "properties": {}}),
            })
        return self.model_copy(update={"function_declarations": declarations})

    def _build_config(self, system_instruction: Optional[str]) -> types.GenerateContentConfig:
        config_params = {
            "temperature": self.gemini_configs.get('temperature', 0.7),
            "max_output_tokens": self.gemini_configs.get('max_output_tokens', 8192),
            "safety_settings": [
                types.SafetySetting(category=category, threshold="BLOCK_NONE")
                for category in _SAFETY_CATEGORIES
            ],
        }
        if self.enable_thinking:
            if "gemini-3" in self.model_name.lower():
                config_params["thinking_config"] = types.ThinkingConfig(
                    thinking_level=self.thinking_level, include_thoughts=True
                )
            else:
                config_params["thinking_config"] = types.ThinkingConfig(
                    thinking_budget=self.thinking_budget_tokens, include_thoughts=True
                )
        if system_instruction:
            config_params["system_instruction"] = system_instruction
        if self.function_declarations:
            config_params["tools"] = [types.Tool(function_declarations=[
                types.FunctionDeclaration(**declaration) for declaration in self.function_declarations
            ])]
            # Tools are executed by the orchestrator, never by the SDK
            config_params["automatic_function_calling"] = types.AutomaticFunctionCallingConfig(disable=True)
        return types.GenerateContentConfig(**config_params)

    def _to_contents(self, messages: List[BaseMessage]):
        """Convert langchain messages to (system_instruction, contents)"""
        system_parts = []
        contents: List[types.Content] = []
        pending_responses: List[types.Part] = []

        def flush_responses():
            if pending_responses:
                contents.append(types.Content(role="tool", parts=list(pending_responses)))
                pending_responses.clear()

        for message in messages:
            if isinstance(message, SystemMessage):
                system_parts.append(str(message.content))
            elif isinstance(message, ToolMessage):
                try:
                    response = json.loads(message.content)
                except (TypeError, json.JSONDecodeError):
                    response = {"result": message.content}
                if not isinstance(response, dict):
                    response = {"result": response}
                pending_responses.append(types.Part.from_function_response(
                    name=message.name or "tool", response=response
                ))
            elif isinstance(message, AIMessage):
                flush_responses()
                # Replay the raw model content so thought signatures survive
                raw = message.additional_kwargs.get("gemini_content")
                if raw is not None:
                    contents.append(raw)
                    continue
                parts = []
                if message.content:
                    parts.append(types.Part.from_text(text=str(message.content)))
                for call in message.tool_calls:
                    parts.append(types.Part.from_function_call(name=call["name"], args=call.get("args") or {}))
                contents.append(types.Content(role="model", parts=parts))
            else:
                flush_responses()
                contents.append(types.Content(role="user", parts=[types.Part.from_text(text=str(message.content))]))

        flush_responses()
        return "\n\n".join(system_parts) or None, contents

    def _extract_thinking_and_content(self, response):
        """Extract thinking, text and function calls from the first candidate"""
        thinking_text = ""
        response_text = ""
        function_calls = []

        if response.candidates and response.candidates[0].content and response.candidates[0].content.parts:
            for part in response.candidates[0].content.parts:
                if getattr(part, 'thought', None) and self.enable_thinking:
                    thinking_text += f"{part.text or ''}\n"
                elif getattr(part, 'function_call', None):
                    function_calls.append(part.function_call)
                elif getattr(part, 'text', None):
                    response_text += part.text

        return thinking_text, response_text, function_calls

    def _generate(self, messages: List[BaseMessage], stop=None, run_manager=None, **kwargs) -> ChatResult:
        client = self.setup_gemini()
        system_instruction, contents = self._to_contents(messages)
        config = self._build_config(system_instruction)

        response = client.models.generate_content(model=self.model_name, contents=contents, config=config)
        thinking, text, function_calls = self._extract_thinking_and_content(response)

        tool_calls = []
        for fc in function_calls:
            tool_calls.append({
                "name": fc.name,
                "args": dict(fc.args) if fc.args else {},
                "id": getattr(fc, "id", None) or f"call_{uuid.uuid4().hex[:12]}",
                "type": "tool_call",
            })
        if tool_calls:
            logger.info(f"[Gemini LLM] {len(tool_calls)} function call(s): {[c['name'] for c in tool_calls]}")

        additional = {"thinking": thinking}
        if response.candidates and response.candidates[0].content:
            additional["gemini_content"] = response.candidates[0].content
        message = AIMessage(content=text, tool_calls=tool_calls, additional_kwargs=additional)
        return ChatResult(generations=[ChatGeneration(message=message)])


def generate_structured(prompt: str, schema_name: str, system_instruction: Optional[str] = None,
                        model_name: str = CONTENT_MODEL, temperature: float = 0.8,
                        contents_prefix: Optional[List[types.Part]] = None) -> Dict[str, Any]:
    """One-shot JSON generation against a registered response schema

    Args:
        prompt: User prompt text
        schema_name: Name passed to get_schema (e.g. "content_plan")
        system_instruction: Optional system prompt
        model_name: Gemini model
        temperature: Sampling temperature
        contents_prefix: Extra parts (audio, images) placed before the prompt

    Returns:
        Parsed JSON object
    """
    from ..agents.base import clean_json_response

    client = create_genai_client(model_name)
    parts = list(contents_prefix or []) + [types.Part.from_text(text=prompt)]
    config = types.GenerateContentConfig(
        temperature=temperature,
        response_mime_type="application/json",
        response_schema=get_schema(schema_name, "gemini"),
        system_instruction=system_instruction,
    )
    response = client.models.generate_content(
        model=model_name,
        contents=[types.Content(role="user", parts=parts)],
        config=config
    )
    return json.loads(clean_json_response(response.text or "{}"))


def get_llm(**kwargs) -> GeminiVertexLLM:
    """Get Gemini LLM instance

    Args:
        **kwargs: Configuration parameters passed to GeminiVertexLLM

    Returns:
        GeminiVertexLLM instance
    """
    kwargs.pop('model', None)
    return GeminiVertexLLM(**kwargs)
