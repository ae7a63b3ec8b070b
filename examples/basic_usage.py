#!/usr/bin/env python3
"""
Basic usage example for method-drill

This example demonstrates:
1. Loading a codebase index snapshot
2. Listing the overloads of a method
3. Extracting a forward call tree with its dependency index
4. Finding every caller path up to an entry point
"""

import asyncio
from pathlib import Path

from method_drill import AnalysisConfig, get_analysis_service
from method_drill.analysis.ancestors import format_ancestor_path
from method_drill.analysis.serializer import call_tree_to_json


async def main():
    # Point the config at an index snapshot (this one ships with the examples)
    config = AnalysisConfig(
        index_path=str(Path(__file__).parent / "sample_index.json"),
        max_ancestor_paths=100,
    )

    AnalysisService = get_analysis_service()
    service = AnalysisService(config)

    # Check status
    status = service.get_status()
    print(f"Indexed methods: {status['index']['total_methods']}")
    print(f"Projects: {', '.join(status['index']['projects'])}")

    # Overloads are numbered from 1
    print("\n--- Overloads of OrderService.PlaceOrder ---")
    for number, method in enumerate(service.list_overloads("Shop.Orders", "OrderService", "PlaceOrder"), 1):
        print(f"{number}. {method.signature}")

    method = service.locate_method("Shop.Orders", "OrderService", "PlaceOrder")

    # Forward: everything PlaceOrder calls
    print("\n--- Call tree ---")
    tree, dependencies = await service.extract_call_tree_async(method)
    print(call_tree_to_json(tree))

    print("\n--- Dependency index ---")
    for item in dependencies:
        print(f"{item.times_referenced:3d}  {item.project_name} / {item.namespace}")

    # Backward: every path from PlaceOrder to an entry point
    print("\n--- Ancestor paths ---")
    for path in await service.find_ancestor_paths_async(method):
        print(" <- ".join(format_ancestor_path(path)))

    await service.close()


if __name__ == "__main__":
    asyncio.run(main())
