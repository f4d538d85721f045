#!/usr/bin/env python3
"""Create a workspace for local testing and initial setup.

Usage:
    # Using environment variables:
    WORKSPACE_NAME="Acme" WORKSPACE_USAGE_LIMIT=100 python scripts/bootstrap_workspace.py

    # Or with command line args:
    python scripts/bootstrap_workspace.py --name Acme --usage-limit 100 --tone friendly

Environment Variables:
    WORKSPACE_NAME: Display name of the workspace
    WORKSPACE_USAGE_LIMIT: Generation quota (defaults to DEFAULT_USAGE_LIMIT)
    DATABASE_URL: PostgreSQL connection string (optional, uses memory store if not set)
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Optional

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def bootstrap_workspace(
    name: str,
    usage_limit: Optional[int],
    *,
    workspace_id: Optional[str] = None,
    tone: Optional[str] = None,
    style: Optional[str] = None,
    terminology: Optional[list[str]] = None,
    dry_run: bool = False,
) -> dict:
    """Create a workspace, or report the existing one with the same id.

    Returns:
        dict with workspace_id, name, usage_limit and status
    """
    # Import here to avoid loading config before env vars are set
    from prowrite.service.runtime import get_runtime
    from prowrite.storage.models import BrandVoice

    runtime = get_runtime()
    limit = usage_limit if usage_limit is not None else runtime.settings.default_usage_limit

    if workspace_id:
        existing = runtime.store.get_workspace(workspace_id)
        if existing:
            print(f"Workspace {workspace_id} already exists ({existing.name})")
            return {
                "workspace_id": existing.id,
                "name": existing.name,
                "usage_limit": existing.usage_limit,
                "status": "exists",
            }

    if dry_run:
        print(f"[DRY RUN] Would create workspace: {name} (limit {limit})")
        return {"workspace_id": workspace_id, "name": name, "usage_limit": limit, "status": "dry_run"}

    voice = None
    if tone or style or terminology:
        voice = BrandVoice(tone=tone, style=style, terminology=terminology or [])
    workspace = runtime.store.create_workspace(
        name, limit, workspace_id=workspace_id, brand_voice=voice
    )
    print(f"Created workspace: {name} (id: {workspace.id})")
    return {
        "workspace_id": workspace.id,
        "name": workspace.name,
        "usage_limit": workspace.usage_limit,
        "status": "created",
    }


def main():
    parser = argparse.ArgumentParser(
        description="Bootstrap a workspace for ProWrite chat",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--name",
        default=os.environ.get("WORKSPACE_NAME"),
        help="Workspace name (or set WORKSPACE_NAME env var)",
    )
    parser.add_argument(
        "--usage-limit",
        type=int,
        default=(
            int(os.environ["WORKSPACE_USAGE_LIMIT"])
            if os.environ.get("WORKSPACE_USAGE_LIMIT")
            else None
        ),
        help="Generation quota (or set WORKSPACE_USAGE_LIMIT env var)",
    )
    parser.add_argument("--id", dest="workspace_id", help="Explicit workspace id")
    parser.add_argument("--tone", help="Brand voice tone")
    parser.add_argument("--style", help="Brand voice style")
    parser.add_argument(
        "--term",
        dest="terminology",
        action="append",
        help="Preferred term; repeat for several",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )

    args = parser.parse_args()

    if not args.name:
        print("Error: --name or WORKSPACE_NAME environment variable required")
        sys.exit(1)
    if args.usage_limit is not None and args.usage_limit < 0:
        print("Error: --usage-limit must not be negative")
        sys.exit(1)

    # Use memory store if no database configured
    if not os.environ.get("DATABASE_URL"):
        os.environ["USE_MEMORY_STORE"] = "true"
        print("Note: Using in-memory store (set DATABASE_URL for persistence)")

    try:
        result = bootstrap_workspace(
            args.name,
            args.usage_limit,
            workspace_id=args.workspace_id,
            tone=args.tone,
            style=args.style,
            terminology=args.terminology,
            dry_run=args.dry_run,
        )
        if result["status"] == "created":
            print("\nWorkspace created successfully!")
            print(f"  Name: {result['name']}")
            print(f"  Workspace ID: {result['workspace_id']}")
            print(f"  Usage limit: {result['usage_limit']}")
            print("  Send it as the X-Workspace-ID header.")
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
