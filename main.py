"""UniHelper - University program page analysis

Simple CLI for analyzing a program page or discovering program pages.
"""

import argparse
import asyncio
import json

from unihelper.agents.discovery import UniversityDiscovery
from unihelper.agents.orchestrator import AnalysisOrchestrator
from unihelper.models.analysis import UserPreferences
from unihelper.models.events import SSEEvent


async def print_event(event: SSEEvent):
    event_type = event.event.value
    data = event.data

    if event_type == "analysis_started":
        categories = ", ".join(data.get("categories", [])) or "none"
        print(f"[*] Analyzing {data.get('entity_name') or 'page'} (categories: {categories})")

    elif event_type == "stage_completed":
        mark = "+" if data.get("success", True) else "!"
        print(f"  [{mark}] {data.get('stage')} complete")

    elif event_type == "category_completed":
        if data.get("success"):
            print(
                f"  [+] {data.get('category')}: {data.get('links_count', 0)} links, "
                f"{data.get('snippets_count', 0)} snippets"
            )
        else:
            print(f"  [!] {data.get('category')} failed")

    elif event_type == "analysis_complete":
        print(f"\n[*] Analysis complete in {data.get('runtime_ms')}ms ({data.get('errors_count')} errors)")

    elif event_type == "discovery_complete":
        print(f"[*] Found {data.get('universities_count')} program pages")

    elif event_type == "error":
        print(f"\n[!] Error: {data.get('message', 'Unknown error')}")


async def run_analysis(url: str, preferences: UserPreferences):
    print(f"Program page: {url}")
    print("-" * 50)
    orchestrator = AnalysisOrchestrator(on_event=print_event)
    outcome = await orchestrator.run_for_url(preferences, url)
    print(json.dumps(outcome.to_payload(), indent=2))


async def run_discovery(course: str, location: str):
    print(f"Discovering '{course}' programs in {location}")
    print("-" * 50)
    discovery = UniversityDiscovery(on_event=print_event)
    outcome = await discovery.run(course, location)
    print(json.dumps(outcome.to_payload(), indent=2))


def main():
    parser = argparse.ArgumentParser(description="UniHelper program page analysis")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze a program page")
    analyze.add_argument("--url", "-u", required=True, help="Program page URL")
    analyze.add_argument("--scholarships", action=argparse.BooleanOptionalAction, default=True)
    analyze.add_argument("--reviews", action=argparse.BooleanOptionalAction, default=True)
    analyze.add_argument("--location", action=argparse.BooleanOptionalAction, default=False)
    analyze.add_argument("--app-tips", action=argparse.BooleanOptionalAction, default=False)
    analyze.add_argument("--sociable", type=int, default=5, help="Sociability, 0-10")
    analyze.add_argument("--nature", type=int, default=5, help="Nature affinity, 0-10")
    analyze.add_argument("--study", type=int, default=5, help="Study focus, 0-10")

    discover = subparsers.add_parser("discover", help="Find program pages for a course")
    discover.add_argument("--course", "-c", required=True, help="Course of study")
    discover.add_argument("--location", "-l", required=True, help="Country or city")

    args = parser.parse_args()

    if args.command == "analyze":
        preferences = UserPreferences.from_mapping(
            {
                "scholarships": args.scholarships,
                "reviews": args.reviews,
                "location": args.location,
                "appTips": args.app_tips,
                "sociable": args.sociable,
                "nature": args.nature,
                "study": args.study,
            }
        )
        asyncio.run(run_analysis(args.url, preferences))
    else:
        asyncio.run(run_discovery(args.course, args.location))


if __name__ == "__main__":
    main()
