"""MCP server exposing the reporting flows as tools over stdio."""

from __future__ import annotations

import argparse
import functools
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence, Tuple

import anyio
import mcp.types as types
from dotenv import load_dotenv
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from .tool_bridge import ToolCallBridge

logger = logging.getLogger(__name__)

DEFAULT_SERVER_NAME = "gitlab_flows"


def build_server(bridge: ToolCallBridge, name: str = DEFAULT_SERVER_NAME) -> Server:
    """Create an MCP server whose tools are the bridge's tools.

    Flows block on network and subprocess calls, so each tool call runs in a
    worker thread.
    """
    server: Server = Server(name)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return [
            types.Tool(name=tool.name, description=tool.description, inputSchema=tool.input_schema)
            for tool in bridge.list_tools()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> Tuple[List[types.TextContent], Dict[str, Any]]:
        response = await anyio.to_thread.run_sync(functools.partial(bridge.call, name, arguments))
        content = [types.TextContent(type="text", text=item["text"]) for item in response["content"]]
        return content, response["structuredContent"]

    return server


async def serve(bridge: ToolCallBridge, name: str = DEFAULT_SERVER_NAME) -> None:
    server = build_server(bridge, name=name)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gitlab-flows-mcp",
        description="Serve the weekly pulse and merge request reviewer flows as MCP tools over stdio.",
    )
    parser.add_argument("--name", default=DEFAULT_SERVER_NAME, help="Server name announced to clients.")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO).")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    load_dotenv(override=False)
    # stdout carries the protocol stream
    logging.basicConfig(
        level=args.log_level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting MCP server", extra={"server_name": args.name})
    anyio.run(serve, ToolCallBridge(), args.name)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
