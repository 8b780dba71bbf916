#!/usr/bin/env python3
"""
spanwise Observation Layer Example
==================================

Demonstrates the observation pipeline without the HTTP layer:
- an observed service call, logged by TagLoggingHandler
- nested observations recorded as parent/child spans
- a failing call whose error is recorded and re-raised
- concurrent calls each getting their own trace

Usage:
    python examples/observation_example.py
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from spanwise.observation import (
    ObservationRegistry,
    SpanCollector,
    TagLoggingHandler,
    TracingHandler,
    observed,
)
from spanwise.users import InMemoryUserRepository, User, UserService


async def demonstrate_observations():
    """Main demonstration of observation features."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )

    collector = SpanCollector()
    registry = ObservationRegistry()
    registry.register_handler(TagLoggingHandler())
    registry.register_handler(TracingHandler(collector))
    registry.observation_config.key_value_provider(lambda ctx: {"application": "example"})

    service = UserService(InMemoryUserRepository([User(id=1, name="alice")]), registry)

    @observed(name="request.handling", contextual_name="handle request", registry=registry)
    async def handle_request(user_id: str) -> str:
        return await service.user_name(user_id)

    print(f"\n{'='*70}")
    print("1. NESTED OBSERVATIONS")
    print(f"{'='*70}")
    print(f"Result: {await handle_request('1')}")

    print(f"\n{'='*70}")
    print("2. FAILING CALL")
    print(f"{'='*70}")
    try:
        await service.user_name("not-a-number")
    except ValueError as e:
        print(f"Caller saw the original error: {e!r}")

    print(f"\n{'='*70}")
    print("3. CONCURRENT CALLS")
    print(f"{'='*70}")
    results = await asyncio.gather(*(service.user_name(str(i)) for i in range(3)))
    print(f"Results: {results}")

    print(f"\n{'='*70}")
    print("RECORDED TRACES")
    print(f"{'='*70}")
    for trace_id, spans in collector.get_all_traces().items():
        print(f"Trace {trace_id}:")
        for span in spans:
            parent = span.parent_id or "-"
            print(
                f"  • {span.operation} [{span.status}] {span.duration:.3f}s "
                f"(span={span.span_id}, parent={parent})"
            )
    print()


if __name__ == "__main__":
    asyncio.run(demonstrate_observations())
