#!/usr/bin/env python3
"""CLI entry point for Lead Scout.

Searches a places directory for businesses without a website and manages
the saved leads, their notes and projects in a local SQLite store.

Usage:
    leadscout search bakery --location "Springfield, IL"
    leadscout search bakery --location 62701 --save --project <id>
    leadscout leads --status new --exclude-chains
    leadscout status <lead-id> contacted
    leadscout export --output leads.csv

Example:
    # Broad search, every business type, sorted by rating
    leadscout search "" --location "Portland, ME" --sort rating

    # Serve the HTTP API
    leadscout serve --port 8080
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import ConfigError, config
from .errors import LeadScoutError
from .export import csv_filename, email_digest, leads_to_csv, mailto_link
from .leads import LeadStore
from .logging_utils import get_logger
from .logging_utils import setup_logging as configure_logging
from .models import BusinessRecord, Lead, LeadStatus
from .notes import NoteStore
from .pipeline import LeadSearchPipeline, SearchResult, saveable
from .projects import ProjectStore
from .scoring import SortOrder, calculate_lead_score, filter_leads, filter_search_results
from .storage import KeyValueStore

logger = get_logger("cli")


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Configure logging for the CLI.

    Args:
        verbose: Enable verbose output (INFO level).
        debug: Enable debug output (DEBUG level). Also on when DEBUG is set.

    Returns:
        Configured logger instance.
    """
    level = "WARNING"
    if debug or config.DEBUG:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    return configure_logging(level=level, structured=False)


def print_search_result(
    result: SearchResult,
    records: Sequence[BusinessRecord],
) -> None:
    """Print search results in a formatted manner."""
    print("\n" + "=" * 60)
    print(f"SEARCH: {result.query or 'all businesses'} in {result.location}")
    print("=" * 60)
    print(f"  Found: {len(result.businesses)}")
    print(f"  Without website: {len(result.without_website)}")
    print(f"  With website: {len(result.with_website)}")
    print(f"  Duration: {result.duration_seconds:.1f} seconds")
    print("-" * 60)

    for index, record in enumerate(records, start=1):
        marker = "web" if record.has_website else "---"
        print(f"\n  {index:>3}. [{marker}] {record.name}")
        if record.address:
            print(f"       {record.address}")
        if record.phone:
            print(f"       {record.phone}")
        if record.rating:
            print(f"       Rating: {record.rating:g}/5 ({record.user_ratings_total or 0} reviews)")
        if record.types:
            print(f"       {', '.join(record.types)}")
        if record.website:
            print(f"       Website: {record.website}")
    print("\n" + "=" * 60)


def print_leads(leads: Sequence[Lead]) -> None:
    if not leads:
        print("No leads.")
        return
    for lead in leads:
        print(
            f"{calculate_lead_score(lead):>4}  {lead.status.value:<9}  "
            f"{lead.name}  [{lead.id}]"
        )
        details = [value for value in (lead.phone, lead.address) if value]
        if details:
            print(f"      {' | '.join(details)}")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="leadscout",
        description="Find local businesses without a website and track outreach",
        epilog="""
Examples:
  %(prog)s search bakery --location "Springfield, IL"
  %(prog)s search plumber --location 62701 --save
  %(prog)s leads --exclude-chains
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument(
        "--database",
        default=None,
        help="SQLAlchemy URL of the lead store (default: LEADSCOUT_DATABASE_URL)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Search for businesses")
    search.add_argument("query", nargs="?", default="", help="Business category, blank for all")
    search.add_argument("--location", "-l", required=True, help="City, address or zip code")
    search.add_argument(
        "--sort",
        choices=[order.value for order in SortOrder],
        default=SortOrder.RELEVANCE.value,
        help="Result order (default: relevance)",
    )
    search.add_argument("--filter", dest="text", default=None, help="Free-text filter")
    search.add_argument(
        "--exclude-chains", action="store_true", help="Hide franchise and chain businesses"
    )
    search.add_argument(
        "--show-with-websites", action="store_true", help="Include businesses with a website"
    )
    search.add_argument("--save", action="store_true", help="Save results without a website")
    search.add_argument("--project", default=None, help="Project id for saved leads")
    search.add_argument("--json", action="store_true", help="Print the raw JSON payload")

    leads = commands.add_parser("leads", help="List saved leads by score")
    leads.add_argument("--project", default=None, help="Only leads of this project")
    leads.add_argument(
        "--status",
        choices=["all"] + [s.value for s in LeadStatus],
        default="all",
    )
    leads.add_argument("--q", dest="text", default=None, help="Free-text filter")
    leads.add_argument("--exclude-chains", action="store_true")

    status = commands.add_parser("status", help="Set a lead's status")
    status.add_argument("lead_id")
    status.add_argument("status", choices=[s.value for s in LeadStatus])

    note = commands.add_parser("note", help="Add a note to a lead, or list its notes")
    note.add_argument("lead_id")
    note.add_argument("text", nargs="?", default=None)

    remove = commands.add_parser("remove", help="Delete a saved lead")
    remove.add_argument("lead_id")

    assign = commands.add_parser("assign", help="Tag leads with a project")
    assign.add_argument("project_id", help="Project id, or 'none' to untag")
    assign.add_argument("lead_ids", nargs="+")

    commands.add_parser("projects", help="List projects")

    project_create = commands.add_parser("project-create", help="Create a project")
    project_create.add_argument("name")
    project_create.add_argument("--query", default=None)
    project_create.add_argument("--location", default=None)

    project_rename = commands.add_parser("project-rename", help="Rename a project")
    project_rename.add_argument("project_id")
    project_rename.add_argument("name")

    project_delete = commands.add_parser("project-delete", help="Delete a project, keep its leads")
    project_delete.add_argument("project_id")

    project_search = commands.add_parser("project-search", help="Re-run a project's search")
    project_search.add_argument("project_id")

    export = commands.add_parser("export", help="Export leads to CSV")
    export.add_argument("--output", "-o", default=None, help="Output path (default: leads_<date>.csv)")
    export.add_argument("--project", default=None)

    digest = commands.add_parser("digest", help="Print an e-mail digest of saved leads")
    digest.add_argument("--project", default=None)
    digest.add_argument("--mailto", action="store_true", help="Print a mailto: link instead")

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--reload", action="store_true")

    return parser


async def run_search(args: argparse.Namespace, store: KeyValueStore) -> int:
    """Search, print and optionally save results."""
    leads = LeadStore(store)
    if args.project and ProjectStore(store, leads).get(args.project) is None:
        print(f"Error: Unknown project: {args.project}")
        return 1

    pipeline = LeadSearchPipeline()
    try:
        result = await pipeline.search(args.query, args.location)
    finally:
        pipeline.close()

    visible = filter_search_results(
        result.visible(args.show_with_websites),
        text=args.text,
        exclude_chains=args.exclude_chains,
        order=args.sort,
    )

    if args.json:
        print(json.dumps({"businesses": [r.to_payload() for r in visible]}, indent=2))
    else:
        print_search_result(result, visible)

    if args.save:
        created = leads.add(saveable(visible), project_id=args.project)
        print(f"\nSaved {len(created)} new leads ({leads.count()} total)")
    return 0


async def run_project_search(args: argparse.Namespace, store: KeyValueStore) -> int:
    project = ProjectStore(store).get(args.project_id)
    if project is None:
        print(f"Error: Unknown project: {args.project_id}")
        return 1
    pipeline = LeadSearchPipeline()
    try:
        result = await pipeline.search_again(project)
    finally:
        pipeline.close()
    print_search_result(result, result.without_website)
    return 0


def run_command(args: argparse.Namespace, store: KeyValueStore) -> int:
    """Dispatch a store-backed sub-command.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    leads = LeadStore(store)
    projects = ProjectStore(store, leads)
    notes = NoteStore(store)

    if args.command == "search":
        return asyncio.run(run_search(args, store))

    if args.command == "project-search":
        return asyncio.run(run_project_search(args, store))

    if args.command == "leads":
        leads.refresh_scores()
        print_leads(
            filter_leads(
                leads.list(),
                project_id=args.project,
                status=args.status,
                text=args.text,
                exclude_chains=args.exclude_chains,
            )
        )
        return 0

    if args.command == "status":
        lead = leads.update_status(args.lead_id, args.status)
        if lead is None:
            print(f"Error: Unknown lead: {args.lead_id}")
            return 1
        print(f"{lead.name} is now {lead.status.value}")
        return 0

    if args.command == "note":
        if leads.get(args.lead_id) is None:
            print(f"Error: Unknown lead: {args.lead_id}")
            return 1
        if args.text is not None:
            if notes.add(args.lead_id, args.text) is None:
                print("Ignoring empty note")
        for entry in notes.for_lead(args.lead_id):
            print(f"{entry.date:%Y-%m-%d %H:%M}  {entry.text}")
        return 0

    if args.command == "remove":
        if not leads.remove(args.lead_id):
            print(f"Error: Unknown lead: {args.lead_id}")
            return 1
        print(f"Removed {args.lead_id}")
        return 0

    if args.command == "assign":
        project_id = None if args.project_id.lower() == "none" else args.project_id
        if project_id and projects.get(project_id) is None:
            print(f"Error: Unknown project: {project_id}")
            return 1
        changed = leads.assign_project(args.lead_ids, project_id)
        print(f"Updated {changed} leads")
        return 0

    if args.command == "projects":
        counts = projects.lead_counts()
        all_projects = projects.list()
        if not all_projects:
            print("No projects.")
        for project in all_projects:
            search = " ".join(filter(None, [project.query, project.location]))
            print(f"{project.id}  {project.name}  ({counts.get(project.id, 0)} leads)  {search}")
        return 0

    if args.command == "project-create":
        project = projects.create(args.name, args.query, args.location)
        if project is None:
            print("Error: Project name is required")
            return 1
        print(f"Created project {project.name} [{project.id}]")
        return 0

    if args.command == "project-rename":
        if projects.get(args.project_id) is None:
            print(f"Error: Unknown project: {args.project_id}")
            return 1
        if projects.rename(args.project_id, args.name):
            print(f"Renamed project to {args.name.strip()}")
        else:
            print("Name unchanged")
        return 0

    if args.command == "project-delete":
        if not projects.delete(args.project_id):
            print(f"Error: Unknown project: {args.project_id}")
            return 1
        print(f"Deleted project {args.project_id}")
        return 0

    if args.command == "export":
        selected = filter_leads(leads.list(), project_id=args.project)
        output_path = Path(args.output or csv_filename())
        output_path.write_text(leads_to_csv(selected, notes.latest_texts()), encoding="utf-8")
        print(f"Exported {len(selected)} leads to: {output_path}")
        return 0

    if args.command == "digest":
        selected = filter_leads(leads.list(), project_id=args.project)
        subject, body = email_digest(selected)
        if args.mailto:
            print(mailto_link(subject, body))
        else:
            print(f"Subject: {subject}\n\n{body}")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, debug=args.debug)

    if args.command == "serve":
        from .api import serve

        serve(
            host=args.host,
            port=args.port,
            reload=args.reload,
            database_url=args.database,
        )
        return 0

    try:
        with KeyValueStore(args.database) as store:
            return run_command(args, store)
    except (LeadScoutError, ConfigError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"\nError: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n\nCancelled by user.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
