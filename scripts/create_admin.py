"""Script to create the first administrator account and an access key for it."""

import argparse
import asyncio
import getpass

from sqlalchemy import select

from quadriparlanti.auth.security import create_api_key, hash_password
from quadriparlanti.db.models import User, UserRole, UserStatus
from quadriparlanti.db.session import async_session_maker, init_db


async def main(email: str, name: str, password: str):
    """Create (or promote) an admin user and print a non-expiring access key."""
    print("Initializing database...")
    await init_db()

    async with async_session_maker() as db:
        user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if user is None:
            user = User(email=email, name=name)
            db.add(user)
            print(f"Creating admin {email}...")
        else:
            print(f"Promoting existing user {email} to admin...")

        user.role = UserRole.ADMIN
        user.status = UserStatus.ACTIVE
        user.password_hash = hash_password(password)
        await db.flush()

        api_key, full_key = await create_api_key(db, user, name="Admin Key")
        await db.commit()

        print("\n" + "=" * 60)
        print("ADMIN ACCOUNT READY")
        print("=" * 60)
        print(f"\nUser ID: {user.id}")
        print(f"Access key: {full_key}")
        print(f"Prefix:     {api_key.key_prefix}")
        print("\nSAVE THIS KEY NOW - IT WILL NOT BE SHOWN AGAIN!")
        print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("email")
    parser.add_argument("--name", default="Administrator")
    args = parser.parse_args()

    password = getpass.getpass("Password (min 8 characters): ")
    if len(password) < 8:
        parser.error("password must be at least 8 characters")

    asyncio.run(main(args.email, args.name, password))
