"""Core system components"""

from .state import ProductionState, create_production_state
from .session_store import SessionStore
from .tool_registry import ToolRegistry, ToolDefinition, ToolGroup

__all__ = ['ProductionState', 'create_production_state', 'SessionStore', 'ToolRegistry', 'ToolDefinition', 'ToolGroup']
