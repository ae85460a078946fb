"""
Seed script to populate default permissions and roles.

Run this script after database initialization to create:
- Default permissions
- Default roles
- Role grants (synced, so re-running brings existing roles back in line)

Usage:
    uv run python -m scripts.seed_permissions
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from single_role.core.database.engine import get_db, init_db
from single_role.features.permissions.models import Permission, Role
from single_role.features.permissions.resolver import PermissionResolver
from single_role.features.permissions.store import SQLAlchemyPermissionStore
from single_role.utils import get_logger


log = get_logger(__name__)


DEFAULT_PERMISSIONS = [
    # Content
    ("posts.read", "View posts"),
    ("posts.create", "Write new posts"),
    ("posts.edit", "Edit any post"),
    ("posts.delete", "Delete any post"),
    ("posts.publish", "Publish posts"),

    # Comments
    ("comments.read", "View comments"),
    ("comments.moderate", "Hide or remove comments"),

    # User management
    ("users.read", "View user information"),
    ("users.manage", "Create and update users"),
    ("users.assign_role", "Change the role of a user"),

    # Permission management
    ("permissions.read", "View permissions and roles"),
    ("permissions.grant", "Grant and revoke permissions"),
]


DEFAULT_ROLES = {
    "admin": {
        "description": "Administrator with all permissions",
        "permissions": "ALL"  # Special case - gets all permissions
    },
    "editor": {
        "description": "Edits and publishes content",
        "permissions": [
            "posts.read", "posts.create", "posts.edit", "posts.delete", "posts.publish",
            "comments.read", "comments.moderate",
        ]
    },
    "author": {
        "description": "Writes content",
        "permissions": ["posts.read", "posts.create", "comments.read"]
    },
    "viewer": {
        "description": "Read-only access",
        "permissions": ["posts.read", "comments.read"]
    },
}


async def seed_permissions(db: AsyncSession) -> dict[str, Permission]:
    """
    Create default permissions.

    Returns:
        Dictionary mapping permission names to Permission objects
    """
    log.info("Creating default permissions...")
    result = await db.execute(select(Permission))
    permissions_map = {permission.name: permission for permission in result.scalars().all()}

    for name, description in DEFAULT_PERMISSIONS:
        if name in permissions_map:
            log.debug(f"Permission '{name}' already exists, skipping")
            continue
        permission = Permission(name=name, description=description)
        db.add(permission)
        permissions_map[name] = permission
        log.info(f"Created permission: {name}")

    await db.commit()
    log.info(f"{len(permissions_map)} permissions available")
    return permissions_map


async def seed_roles(db: AsyncSession, permissions_map: dict[str, Permission]) -> dict[str, Role]:
    """
    Create default roles and sync their permissions.

    Args:
        db: Database session
        permissions_map: Dictionary of permission name -> Permission object
    """
    log.info("Creating default roles...")
    resolver = PermissionResolver(SQLAlchemyPermissionStore(db))
    roles = {}

    for role_name, role_config in DEFAULT_ROLES.items():
        result = await db.execute(select(Role).where(Role.name == role_name))
        role = result.scalars().first()
        if role is None:
            role = Role(name=role_name, description=role_config["description"])
            db.add(role)
            await db.flush()

        if role_config["permissions"] == "ALL":
            granted = list(permissions_map.values())
        else:
            granted = []
            for perm_name in role_config["permissions"]:
                if perm_name in permissions_map:
                    granted.append(permissions_map[perm_name])
                else:
                    log.warning(f"Permission '{perm_name}' not found for role '{role_name}'")

        await resolver.sync_permissions(role, granted)
        roles[role_name] = role
        log.info(f"Role '{role_name}' has {len(granted)} permissions")

    await db.commit()
    log.info("Default roles created successfully")
    return roles


async def main():
    """Main function to seed permissions and roles."""
    log.info("Starting permission seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            permissions_map = await seed_permissions(db)
            await seed_roles(db, permissions_map)
            log.info("Permission seeding completed successfully!")
        except Exception as e:
            log.error(f"Error seeding permissions: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
