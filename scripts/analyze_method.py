#!/usr/bin/env python3
"""
Analyze one method of an indexed codebase and print the report as JSON.

Examples:
    python scripts/analyze_method.py --index index.json Shop.Orders OrderService PlaceOrder
    python scripts/analyze_method.py --index index.json Shop.Math Money + --overload 2
    python scripts/analyze_method.py --index index.json Shop.Orders OrderService PlaceOrder --list
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add src to path so the script runs from a checkout
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from method_drill.analysis.serializer import call_tree_to_json
from method_drill.config.analysis import AnalysisConfig, generate_example_config
from method_drill.core.interfaces import AnalysisError
from method_drill.service.analysis_service import AnalysisService

logger = logging.getLogger("analyze_method")


async def run(service: AnalysisService, args) -> int:
    """Run the requested analysis and print it."""
    try:
        if args.list:
            overloads = service.list_overloads(args.namespace, args.class_name, args.method_name)
            for number, method in enumerate(overloads, start=1):
                print(f"{number}. [{method.project}] {method.signature}")
            return 0 if overloads else 1

        if args.tree_only:
            method = service.locate_method(args.namespace, args.class_name, args.method_name, args.overload)
            tree, _ = await service.extract_call_tree_async(method)
            print(call_tree_to_json(tree))
            return 0

        report = await service.analyze_async(
            args.namespace,
            args.class_name,
            args.method_name,
            overload=args.overload,
            include_context=args.context or None,
        )
    except AnalysisError as e:
        logger.error(str(e))
        return 1
    finally:
        await service.close()

    context = report.pop("context", None)
    print(json.dumps(report, indent=2))
    if context:
        print()
        print(context)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Analyze a method's call tree and callers")
    parser.add_argument("namespace", nargs="?", help="Namespace, e.g. Shop.Orders")
    parser.add_argument("class_name", nargs="?", help="Type name, e.g. OrderService")
    parser.add_argument("method_name", nargs="?", help="Method name or operator symbol")
    parser.add_argument("--overload", type=int, default=1, help="1-based overload number (default: 1)")
    parser.add_argument("--config", type=str, help="Path to config file (JSON/YAML)")
    parser.add_argument("--index", type=str, help="Codebase index snapshot (overrides config)")
    parser.add_argument("--list", action="store_true", help="List overloads and exit")
    parser.add_argument("--tree-only", action="store_true", help="Print only the call tree")
    parser.add_argument("--context", action="store_true", help="Include method bodies as text context")
    parser.add_argument("--max-paths", type=int, help="Stop the ancestor search after N paths")
    parser.add_argument("--oracle", action="store_true", help="Enable the LLM disambiguation oracle")
    parser.add_argument("--generate-config", type=str, help="Generate an example config file and exit")
    parser.add_argument("--log-level", type=str, default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    if args.generate_config:
        generate_example_config(args.generate_config)
        print(f"Example configuration saved to: {args.generate_config}")
        return 0

    if not (args.namespace and args.class_name and args.method_name):
        parser.error("namespace, class_name and method_name are required")

    try:
        config = AnalysisConfig.discover(args.config)
        if args.index:
            config.index_path = args.index
        if args.max_paths is not None:
            config.max_ancestor_paths = args.max_paths
        if args.oracle:
            config.oracle.enabled = True
        service = AnalysisService(config)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to initialize: {e}")
        return 1

    return asyncio.run(run(service, args))


if __name__ == "__main__":
    sys.exit(main())
