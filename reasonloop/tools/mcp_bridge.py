"""
MCP Bridge — exposes reasonloop tools in the MCP tool-listing shape.

Each tool info becomes one ``{name, description, inputSchema}`` entry, and
``call_exported`` runs a call through ``ToolInfo.invoke`` so exported tools
behave exactly as they do inside the generation loop.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Union

from ..core.errors import ToolCallError
from ..core.tool import TOOL_CALL_FAILURE, TOOL_NOT_FOUND, Tool, ToolInfo

logger = logging.getLogger(__name__)


def export_tools(*tools: Tool) -> List[Dict[str, Any]]:
    """Describe every info of *tools* as an MCP tool definition."""
    exported = []
    for info in _infos(tools):
        exported.append({
            "name": info.name,
            "description": info.description,
            "inputSchema": info.input_schema,
        })
    return exported


async def call_exported(
    tools: Sequence[Tool],
    name: str,
    arguments: Union[str, Mapping[str, Any]],
) -> Tuple[str, bool]:
    """
    Run the exported tool *name* with *arguments*.

    Returns ``(text, is_error)``. Unknown names and declared tool failures
    are reported in-band with the same texts the generation loop uses; any
    other exception propagates.
    """
    info = next((i for i in _infos(tools) if i.name == name), None)
    if info is None:
        logger.warning(f"MCP call to unknown tool: {name}")
        return TOOL_NOT_FOUND + name, True

    if not isinstance(arguments, str):
        arguments = json.dumps(dict(arguments), ensure_ascii=False)

    try:
        return await info.invoke(arguments), False
    except ToolCallError as e:
        logger.info(f"MCP tool {name} failed: {e.message}")
        return TOOL_CALL_FAILURE + e.message, True


def _infos(tools: Sequence[Tool]) -> Tuple[ToolInfo, ...]:
    return Tool.aggregate(*tools).infos

