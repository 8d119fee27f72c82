#!/usr/bin/env python3
"""CLI script to provision a new organization with its first member.

Usage:
    python scripts/provision_organization.py --slug acme --name "Acme"
    python scripts/provision_organization.py --slug acme --name "Acme" --admin-email admin@acme.com --admin-name "Ada Admin"

Connects directly to the database using DATABASE_URL from environment or .env file.
Creates the organization and, optionally, an admin user with a linked Person
record, then prints a bearer token for that user.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.manageros
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def provision(slug: str, name: str, admin_email: str | None, admin_name: str | None) -> None:
    """Create the organization, optional admin user and linked person."""
    from src.manageros.core.database import close_db, get_session, init_db
    from src.manageros.core.security import create_access_token
    from src.manageros.models.shared import Organization, User
    from src.manageros.models.tenant import Person

    await init_db()

    print(f"Provisioning organization: slug={slug}, name={name}")
    async for session in get_session():
        organization = Organization(slug=slug, name=name)
        session.add(organization)
        await session.flush()

        user = None
        if admin_email:
            user = User(
                email=admin_email,
                name=admin_name,
                organization_id=organization.id,
                role="admin",
            )
            session.add(user)
            await session.flush()
            session.add(
                Person(
                    organization_id=organization.id,
                    name=admin_name or admin_email.split("@", 1)[0],
                    email=admin_email,
                    user_id=user.id,
                )
            )

        await session.commit()

        print("Organization provisioned successfully:")
        print(f"  ID:   {organization.id}")
        print(f"  Slug: {organization.slug}")
        print(f"  Name: {organization.name}")
        if user is not None:
            print(f"  Admin user created: {user.email}")
            print(f"  Access token: {create_access_token({'sub': str(user.id)})}")

    await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description="Provision a new organization")
    parser.add_argument("--slug", required=True, help="Organization slug (e.g., acme)")
    parser.add_argument("--name", required=True, help="Organization display name (e.g., 'Acme')")
    parser.add_argument("--admin-email", default=None, help="Initial admin user email")
    parser.add_argument("--admin-name", default=None, help="Initial admin display name")
    args = parser.parse_args()

    if args.admin_name and not args.admin_email:
        parser.error("--admin-name requires --admin-email")

    asyncio.run(provision(args.slug, args.name, args.admin_email, args.admin_name))


if __name__ == "__main__":
    main()
