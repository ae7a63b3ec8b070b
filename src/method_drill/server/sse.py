#!/usr/bin/env python3
"""
Method Drill MCP Server - SSE (Server-Sent Events) transport

Exposes call-tree extraction and ancestor search as MCP tools, plus a small
JSON HTTP API for scripts and dashboards.

Usage:
    python -m method_drill.server.sse --config method_drill_config.json

    # Then in an MCP client configuration:
    {
      "mcp": {
        "method_drill": {
          "type": "remote",
          "url": "http://localhost:9830/sse"
        }
      }
    }
"""

import argparse
import asyncio
import logging
import sys
from typing import Any

from mcp.server.fastmcp import FastMCP
from starlette.responses import JSONResponse

from ..analysis.ancestors import distinct_entry_points, format_ancestor_path
from ..analysis.serializer import call_node_to_dict
from ..config.analysis import AnalysisConfig
from ..core.interfaces import AnalysisError, MethodNotFoundError, ProviderUnavailableError
from ..service.analysis_service import AnalysisService

# Configure logging to stderr (stdout may be used by transport)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger(__name__)

# Global service instance (initialized in main)
analysis_service: AnalysisService | None = None

mcp = FastMCP(
    "Method Drill",
    instructions="""
    Call-graph tools for a C#/.NET codebase. Provides:
    - Forward call trees with interface calls resolved to implementations
    - Caller paths from a method up to its entry points
    - Per-project/namespace dependency counts for a method

    Use method_overloads to find the overload number of a method first.
    Use method_call_tree to see everything a method calls.
    Use method_ancestor_paths to see how a method is reached.
    """
)


def _not_ready() -> dict[str, Any]:
    return {"error": "Analysis service not initialized"}


@mcp.custom_route("/health", methods=["GET"])
async def health_check(request):
    """Health check endpoint for service readiness detection."""
    if analysis_service:
        return JSONResponse({
            "status": "healthy",
            "methods": len(analysis_service.index.nodes),
        })
    return JSONResponse({"status": "initializing"}, status_code=503)


@mcp.custom_route("/api/status", methods=["GET"])
async def status_api(request):
    """Index statistics and oracle state as JSON."""
    if analysis_service:
        return JSONResponse(analysis_service.get_status())
    return JSONResponse(_not_ready(), status_code=503)


@mcp.custom_route("/api/analyze", methods=["POST"])
async def analyze_api(request):
    """Full analysis report for one method."""
    if not analysis_service:
        return JSONResponse(_not_ready(), status_code=503)

    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Request body must be JSON"}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"error": "Request body must be a JSON object"}, status_code=400)

    missing = [key for key in ("namespace", "class_name", "method_name") if not body.get(key)]
    if missing:
        return JSONResponse({"error": f"Missing fields: {', '.join(missing)}"}, status_code=400)

    try:
        overload = int(body.get("overload", 1))
    except (TypeError, ValueError):
        return JSONResponse({"error": "overload must be an integer"}, status_code=400)

    try:
        result = await analysis_service.analyze_async(
            namespace=body["namespace"],
            class_name=body["class_name"],
            method_name=body["method_name"],
            overload=overload,
            include_context=body.get("include_context"),
        )
        return JSONResponse(result)
    except MethodNotFoundError as e:
        return JSONResponse({"error": str(e)}, status_code=404)
    except ProviderUnavailableError as e:
        logger.error(f"Symbol provider unavailable: {e}")
        return JSONResponse({"error": str(e)}, status_code=503)
    except AnalysisError as e:
        logger.error(f"Analysis failed: {e}")
        return JSONResponse({"error": str(e)}, status_code=500)


@mcp.tool()
async def method_overloads(namespace: str, class_name: str, method_name: str) -> dict[str, Any]:
    """
    List the overloads of a method, numbered from 1.

    Args:
        namespace: Namespace containing the type, e.g. "Shop.Orders"
        class_name: Type name, e.g. "OrderService" (generic arity optional)
        method_name: Method name or operator symbol ("+", "==", ...)

    Returns:
        Dictionary with numbered overload signatures
    """
    if not analysis_service:
        return _not_ready()

    overloads = analysis_service.list_overloads(namespace, class_name, method_name)
    return {
        "method": f"{namespace}.{class_name}.{method_name}",
        "overloads": [
            {"number": number, "signature": method.signature, "project": method.project}
            for number, method in enumerate(overloads, start=1)
        ],
    }


@mcp.tool()
async def method_call_tree(
    namespace: str,
    class_name: str,
    method_name: str,
    overload: int = 1
) -> dict[str, Any]:
    """
    Get the full tree of methods a method calls, transitively.

    Interface calls are resolved to concrete implementations; resolved nodes
    carry the interface name in resolvedFrom. A method already expanded
    elsewhere in the tree appears again as a leaf.

    Args:
        namespace: Namespace containing the type
        class_name: Type name
        method_name: Method name
        overload: 1-based overload number (default 1)

    Returns:
        Dictionary with call_tree and dependency_index
    """
    if not analysis_service:
        return _not_ready()

    try:
        method = analysis_service.locate_method(namespace, class_name, method_name, overload)
        tree, dependencies = await analysis_service.extract_call_tree_async(method)
    except AnalysisError as e:
        return {"error": str(e)}

    return {
        "method": method.qualified_name,
        "signature": method.signature,
        "call_tree": call_node_to_dict(tree),
        "dependency_index": [item.to_dict() for item in dependencies],
    }


@mcp.tool()
async def method_ancestor_paths(
    namespace: str,
    class_name: str,
    method_name: str,
    overload: int = 1,
    one_per_entry_point: bool = True
) -> dict[str, Any]:
    """
    Get every caller chain from a method up to an entry point.

    Args:
        namespace: Namespace containing the type
        class_name: Type name
        method_name: Method name
        overload: 1-based overload number (default 1)
        one_per_entry_point: Keep only the first path per entry point (default True)

    Returns:
        Dictionary with paths as Class.Method label lists
    """
    if not analysis_service:
        return _not_ready()

    try:
        method = analysis_service.locate_method(namespace, class_name, method_name, overload)
        paths = await analysis_service.find_ancestor_paths_async(method)
    except AnalysisError as e:
        return {"error": str(e)}

    shown = distinct_entry_points(paths) if one_per_entry_point else paths
    return {
        "method": method.qualified_name,
        "total_paths": len(paths),
        "paths": [format_ancestor_path(path) for path in shown],
    }


@mcp.tool()
async def method_dependency_index(
    namespace: str,
    class_name: str,
    method_name: str,
    overload: int = 1
) -> dict[str, Any]:
    """
    Count how many methods of each project/namespace a method depends on.

    Args:
        namespace: Namespace containing the type
        class_name: Type name
        method_name: Method name
        overload: 1-based overload number (default 1)

    Returns:
        Dictionary with rows ordered by count, then project, then namespace
    """
    if not analysis_service:
        return _not_ready()

    try:
        method = analysis_service.locate_method(namespace, class_name, method_name, overload)
        _, dependencies = await analysis_service.extract_call_tree_async(method)
    except AnalysisError as e:
        return {"error": str(e)}

    return {
        "method": method.qualified_name,
        "dependencies": [item.to_dict() for item in dependencies],
    }


def main():
    """Main entry point for SSE MCP server"""
    global analysis_service

    parser = argparse.ArgumentParser(description="Method Drill MCP Server (SSE/HTTP)")
    parser.add_argument("--config", type=str, help="Config file path")
    parser.add_argument("--index", type=str, help="Codebase index snapshot (overrides config)")
    parser.add_argument("--host", type=str, help="Host to bind to")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument("--log-level", type=str, help="Log level")

    args = parser.parse_args()

    try:
        config = AnalysisConfig.discover(args.config)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    if args.index:
        config.index_path = args.index
    host = args.host or config.host
    port = args.port or config.port
    log_level = (args.log_level or config.log_level).upper()

    logging.getLogger().setLevel(getattr(logging, log_level))

    try:
        analysis_service = AnalysisService(config)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load codebase index: {e}")
        sys.exit(1)

    logger.info(f"=== READY === {len(analysis_service.index.nodes)} methods indexed")
    logger.info(f"Starting Method Drill MCP Server (SSE) on http://{host}:{port}/sse")

    mcp.settings.host = host
    mcp.settings.port = port

    import uvicorn

    async def run_server():
        app = mcp.sse_app()
        config_uvicorn = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=log_level.lower(),
            access_log=True
        )
        server = uvicorn.Server(config_uvicorn)
        try:
            await server.serve()
        finally:
            await analysis_service.close()

    asyncio.run(run_server())


if __name__ == "__main__":
    main()
