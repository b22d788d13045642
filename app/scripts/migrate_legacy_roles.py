"""
Migrate Legacy Roles Script
Rewrites workspace_members.role values from the legacy scheme
(manager, sales_rep, setter, appointment_setter) to the workspace role
hierarchy (owner, admin, member, viewer).
Safe to run repeatedly; rows already on the hierarchy are left alone.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.core.roles import LEGACY_ROLES
from app.database.supabase_client import get_service_supabase
from supabase import Client
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def migrate_legacy_roles(supabase: Client, dry_run: bool = False) -> dict:
    """Returns {legacy name: rows rewritten}"""
    migrated = {}
    for legacy_name, role in LEGACY_ROLES.items():
        existing = supabase.table("workspace_members")\
            .select("id")\
            .eq("role", legacy_name)\
            .execute()
        ids = [row["id"] for row in existing.data or []]
        if not ids:
            continue
        if not dry_run:
            supabase.table("workspace_members")\
                .update({"role": role.value})\
                .in_("id", ids)\
                .execute()
        migrated[legacy_name] = len(ids)
        logger.info(f"{'Would migrate' if dry_run else 'Migrated'} {len(ids)} '{legacy_name}' memberships to '{role.value}'")
    return migrated


def main():
    """Main function to migrate legacy role names"""
    dry_run = "--dry-run" in sys.argv[1:]
    try:
        supabase = get_service_supabase()
        logger.info("Starting legacy role migration...")
        migrated = migrate_legacy_roles(supabase, dry_run=dry_run)
        logger.info(f"Migration completed: {sum(migrated.values())} memberships processed")
    except Exception as e:
        logger.error(f"Error during migration: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
