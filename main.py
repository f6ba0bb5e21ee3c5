"""GoDeep - Conversational Research Assistant

Simple CLI for running research queries and bootstrapping the graph schema.
"""

import argparse
import asyncio

from godeep.agents.orchestrator import ResearchOrchestrator
from godeep.config import settings
from godeep.graph.driver import close_driver
from godeep.graph.schema import init_schema
from godeep.models.events import ProgressEvent
from godeep.models.research import ResearchRequest
from godeep.services.progress import ProgressChannel


def print_progress(event: ProgressEvent) -> None:
    status = event.status.value
    if status == "processing-query":
        print(f"\n[~] Step {event.current_step}/{event.total_steps}: {event.message}")
    elif status == "finalizing":
        print(f"\n[+] {event.message}...")
    elif status == "error":
        print(f"\n[!] {event.message}")
    else:
        print(f"[*] {event.message}")


async def run_research(query: str, max_sub_queries: int, quiet: bool = False):
    """Run research on the given query."""
    print(f"Research query: {query}")
    print("-" * 50)

    channel = ProgressChannel("cli", grace_seconds=0)
    if not quiet:
        channel.subscribe(print_progress)

    orchestrator = ResearchOrchestrator()
    try:
        outcome = await orchestrator.run(
            ResearchRequest(query=query, max_sub_queries=max_sub_queries, chat_id="cli"),
            progress=channel,
        )
    finally:
        await close_driver()

    print("\n[*] Sub-queries:")
    for i, sub_query in enumerate(outcome.sub_queries, 1):
        print(f"  {i}. {sub_query[:80]}")

    print(f"\n{'='*50}")
    print("REPORT:")
    print(f"{'='*50}")
    print(outcome.report.text if outcome.report else "")
    if outcome.error:
        print(f"\n[!] Error: {outcome.error}")


async def run_init_schema():
    try:
        result = await init_schema()
    finally:
        await close_driver()
    print(f"Schema statements applied: {result['applied']}, failed: {result['failed']}")


def main():
    parser = argparse.ArgumentParser(description="GoDeep Research Assistant")
    subparsers = parser.add_subparsers(dest="command", required=True)

    research = subparsers.add_parser("research", help="Run a deep research query")
    research.add_argument("--query", "-q", required=True, help="Research query")
    research.add_argument(
        "--max-sub-queries",
        "-n",
        type=int,
        default=settings.research_max_sub_queries,
        help="Maximum number of sub-questions (default: from config)",
    )
    research.add_argument("--quiet", action="store_true", help="Hide progress output")

    subparsers.add_parser("init-schema", help="Create Neo4j constraints and indexes")

    args = parser.parse_args()

    if args.command == "init-schema":
        asyncio.run(run_init_schema())
    else:
        asyncio.run(run_research(args.query, args.max_sub_queries, args.quiet))


if __name__ == "__main__":
    main()
