#!/usr/bin/env python3
"""Attach a role to a user (idempotent).

Usage:
  python scripts/attach_role.py --email staff@example.com --role admin
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.portal.constants import ROLE_ADMIN, ROLE_NAMES
from app.portal.models import Role, User
from scripts._db_utils import script_db_url, script_session


def attach_role(email: str, role_key: str, *, database_url: str | None = None) -> bool:
    """Returns True when the role was attached, False when nothing changed."""
    with script_session(database_url or script_db_url()) as s:
        user = s.query(User).filter(User.email.ilike(email)).one_or_none()
        if not user:
            print(f"User not found: {email}")
            return False
        role = s.query(Role).filter(Role.key == role_key).one_or_none()
        if not role:
            print(f"Role '{role_key}' not found. Run python scripts/init_db.py first.")
            return False
        if role in (user.roles or []):
            print(f"User already has {role_key} role: {email}")
            return False
        user.roles.append(role)
    print(f"{role_key} role attached to {email}")
    return True


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument("--role", default=ROLE_ADMIN, choices=sorted(ROLE_NAMES), help="Role key to attach")
    args = parser.parse_args()
    attach_role(args.email, args.role)


if __name__ == "__main__":
    main()
