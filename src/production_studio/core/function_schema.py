"""
Function Schema Converter

Converts tool argument models (pydantic) and tool docstrings into
function-calling schemas for the LLM.
"""

import copy
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel

# JSON schema keys Gemini function declarations do not accept
_UNSUPPORTED_KEYS = {"title", "additionalProperties", "$defs", "definitions", "examples"}


def extract_function_description(docstring: str) -> str:
    """Extract function description (text before Args:/Returns:)"""
    if not docstring:
        return ""

    lines = docstring.strip().split('\n')
    description_lines = []

    for line in lines:
        stripped = line.strip()
        if stripped.lower().startswith(('args:', 'returns:', 'raises:')):
            break
        if stripped:
            description_lines.append(stripped)

    return ' '.join(description_lines)


def _resolve_refs(node: Any, defs: Dict[str, Any]) -> Any:
    """Inline ``$ref`` pointers into ``$defs`` so the schema is self-contained"""
    if isinstance(node, dict):
        if "$ref" in node:
            ref_name = node["$ref"].split("/")[-1]
            resolved = copy.deepcopy(defs.get(ref_name, {}))
            extra = {k: v for k, v in node.items() if k != "$ref"}
            resolved.update(extra)
            return _resolve_refs(resolved, defs)
        return {k: _resolve_refs(v, defs) for k, v in node.items()}
    if isinstance(node, list):
        return [_resolve_refs(item, defs) for item in node]
    return node


def _simplify(node: Any) -> Any:
    """Collapse Optional[T] unions and drop keys the function API rejects"""
    if isinstance(node, list):
        return [_simplify(item) for item in node]
    if not isinstance(node, dict):
        return node

    # Optional[T] -> {"anyOf": [T, {"type": "null"}]} becomes T with nullable
    any_of = node.get("anyOf")
    if any_of:
        non_null = [option for option in any_of if option.get("type") != "null"]
        if len(non_null) == 1:
            merged = {k: v for k, v in node.items() if k != "anyOf"}
            merged.update(non_null[0])
            if len(non_null) != len(any_of):
                merged["nullable"] = True
            return _simplify(merged)

    simplified = {}
    for key, value in node.items():
        if key in _UNSUPPORTED_KEYS:
            continue
        if key == "default" and value is None:
            continue
        if key == "properties" and isinstance(value, dict):
            simplified[key] = {name: _simplify(prop) for name, prop in value.items()}
        else:
            simplified[key] = _simplify(value)
    return simplified


def model_to_parameters_schema(args_model: Type[BaseModel]) -> Dict[str, Any]:
    """
    Convert a pydantic argument model into a JSON schema object.

    Field aliases (camelCase) become property names because that is the shape
    the LLM sends back as tool-call arguments.
    """
    raw = args_model.model_json_schema(by_alias=True)
    defs = raw.get("$defs", {})
    resolved = _resolve_refs(raw, defs)
    schema = _simplify(resolved)
    schema.setdefault("type", "object")
    schema.setdefault("properties", {})
    return schema


def tool_to_function_schema(name: str, description: str, args_model: Type[BaseModel],
                            dependencies: Optional[list] = None) -> Dict[str, Any]:
    """
    Build a function declaration for one tool.

    Returns tool schema format:
    {
        "type": "function",
        "name": "...",
        "description": "...",
        "parameters": {...},
        "strict": False
    }
    """
    if dependencies:
        description = f"{description} Requires: {', '.join(dependencies)}."
    return {
        "type": "function",
        "name": name,
        "description": description,
        "parameters": model_to_parameters_schema(args_model),
        "strict": False
    }
