"""Tool dispatch: routes tool_name to handler function."""

from typing import Any, Callable, Dict

from pydantic import ValidationError

from spec_engine.core.errors import SpecEngineError
from spec_engine.core.logging import get_logger

logger = get_logger(__name__)

# Lazy-import handler map, populated on first call
_HANDLER_MAP: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] | None = None


def _build_handler_map() -> Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]]:
    from .handlers import (
        _fetch_spec,
        _generate_spec,
        _get_constraints,
        _ingest_context,
        _list_features,
        _run_simulation,
    )

    return {
        "fetch_spec": _fetch_spec,
        "ingest_context": _ingest_context,
        "generate_spec": _generate_spec,
        "list_features": _list_features,
        "get_constraints": _get_constraints,
        "run_simulation": _run_simulation,
    }


def _error(message: str, code: str) -> Dict[str, Any]:
    return {"error": message, "code": code}


def execute_tool(tool_name: str, tool_input: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """
    Execute a tool and return results.

    Args:
        tool_name: Name of tool to execute
        tool_input: Tool input parameters

    Returns:
        Tool result dict, or {"error", "code"} on failure
    """
    global _HANDLER_MAP
    if _HANDLER_MAP is None:
        _HANDLER_MAP = _build_handler_map()

    handler = _HANDLER_MAP.get(tool_name)
    if handler is None:
        return _error(f"Unknown tool: {tool_name}", "unknown_tool")

    try:
        logger.info(f"Executing tool {tool_name}")
        return handler(tool_input or {})

    except SpecEngineError as e:
        logger.warning(f"Tool {tool_name} failed: {e}")
        return _error(str(e), e.code)

    except (ValidationError, ValueError) as e:
        return _error(str(e), "invalid_input")

    except Exception as e:
        logger.error(f"Error executing tool {tool_name}: {e}", exc_info=True)
        return _error(str(e), "internal_error")
