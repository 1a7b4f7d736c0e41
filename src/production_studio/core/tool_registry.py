"""
Central registry for production tools

Single source of truth for:
- Tool naming and stage groups
- Argument schemas exposed to the LLM
- Declared dependencies between tools
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel

from .errors import DuplicateToolError
from .function_schema import extract_function_description, tool_to_function_schema

logger = logging.getLogger(__name__)


class ToolGroup(str, Enum):
    IMPORT = "IMPORT"
    CONTENT = "CONTENT"
    MEDIA = "MEDIA"
    ENHANCEMENT = "ENHANCEMENT"
    EXPORT = "EXPORT"
    UTILITY = "UTILITY"


@dataclass
class ToolDefinition:
    """One callable operation: ``func(context, args_model_instance) -> dict``"""
    name: str
    group: ToolGroup
    func: Callable[[Any, BaseModel], Dict[str, Any]]
    args_model: Type[BaseModel]
    dependencies: List[str] = field(default_factory=list)
    description: str = ""

    def __post_init__(self):
        if not self.description:
            self.description = extract_function_description(self.func.__doc__)

    def schema(self) -> Dict[str, Any]:
        return tool_to_function_schema(self.name, self.description, self.args_model, self.dependencies)

    def invoke(self, context: Any, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Validate raw LLM arguments and run the tool

        Raises:
            pydantic.ValidationError: If arguments do not match the schema
        """
        parsed = self.args_model.model_validate(arguments or {})
        return self.func(context, parsed)


class ToolRegistry:
    """Catalog of tools organized into stage groups with a dependency graph"""

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}

    def register(self, definition: ToolDefinition) -> ToolDefinition:
        if definition.name in self._tools:
            raise DuplicateToolError(f"Tool already registered: {definition.name}")
        self._tools[definition.name] = definition
        logger.debug(f"[Registry] Registered {definition.name} ({definition.group.value})")
        return definition

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def lookup(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> List[str]:
        return list(self._tools)

    def by_group(self, group: ToolGroup) -> List[ToolDefinition]:
        return [tool for tool in self._tools.values() if tool.group == group]

    def summary(self) -> Dict[str, int]:
        """Tool count per group (every group listed, zero included)"""
        counts = {group.value: 0 for group in ToolGroup}
        for tool in self._tools.values():
            counts[tool.group.value] += 1
        return counts

    def clear(self):
        self._tools.clear()

    def dependencies_of(self, name: str) -> List[str]:
        tool = self._tools.get(name)
        return list(tool.dependencies) if tool else []

    def can_execute(self, name: str, executed: Iterable[str]) -> bool:
        """True when every declared dependency of ``name`` is in ``executed``"""
        if name not in self._tools:
            return False
        done = set(executed)
        return all(dep in done for dep in self._tools[name].dependencies)

    def validate_execution_order(self, names: List[str]) -> List[str]:
        """Return one message per tool that appears before one of its dependencies"""
        violations = []
        seen = set()
        for name in names:
            tool = self._tools.get(name)
            if tool is None:
                violations.append(f"Unknown tool: {name}")
                continue
            missing = [dep for dep in tool.dependencies if dep in self._tools and dep not in seen]
            if missing:
                violations.append(f"{name} requires {', '.join(missing)} to run first")
            seen.add(name)
        return violations

    def subset(self, groups: Iterable[ToolGroup], extra: Iterable[str] = ()) -> "ToolRegistry":
        """New registry holding the tools of ``groups`` plus named extras"""
        wanted = set(groups)
        extra_names = set(extra)
        sub = ToolRegistry()
        for tool in self._tools.values():
            if tool.group in wanted or tool.name in extra_names:
                sub.register(tool)
        return sub

    def schemas(self, names: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        """Function declarations for the given tools (all when None)"""
        selected = list(names) if names is not None else self.names()
        return [self._tools[name].schema() for name in selected if name in self._tools]

    def describe(self) -> str:
        """Human readable tool list grouped by stage, for system prompts"""
        sections = []
        for group in ToolGroup:
            tools = self.by_group(group)
            if not tools:
                continue
            lines = [f"### {group.value}"]
            for tool in tools:
                requires = f" (after: {', '.join(tool.dependencies)})" if tool.dependencies else ""
                lines.append(f"- {tool.name}{requires}: {tool.description}")
            sections.append("\n".join(lines))
        return "\n\n".join(sections)
