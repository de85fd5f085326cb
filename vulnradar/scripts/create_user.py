"""
Create a local account (e.g. the first admin). Run from project root:
  python -m vulnradar.scripts.create_user EMAIL PASSWORD [role] [--company NAME]
Example:
  python -m vulnradar.scripts.create_user admin@example.com your-secure-password admin --company "Acme"
"""
import argparse
import sys

from vulnradar.core.database import SessionLocal
from vulnradar.core.security import (
    EMAIL_MAX_LEN,
    EMAIL_MIN_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    hash_password,
)
from vulnradar.models import User
from vulnradar.schemas.auth import ROLE_VALUES
from vulnradar.schemas.company import CompanyCreate
from vulnradar.services.companies import create_company, link_user_to_company


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a VulnRadar local account.")
    parser.add_argument("email", help="Email (3-255 chars)")
    parser.add_argument("password", help="Password (8-128 chars)")
    parser.add_argument("role", nargs="?", default="employee", choices=sorted(ROLE_VALUES))
    parser.add_argument("--company", help="Company name to join (created if missing)")
    args = parser.parse_args()

    email = args.email.strip().lower()
    if not (EMAIL_MIN_LEN <= len(email) <= EMAIL_MAX_LEN) or "@" not in email:
        print("Invalid email.", file=sys.stderr)
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        print("Password must be 8-128 characters.", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            print(f"User '{email}' already exists.", file=sys.stderr)
            return 1
        user = User(
            email=email,
            password_hash=hash_password(args.password),
            role=args.role,
        )
        db.add(user)
        db.commit()
        if args.company:
            company, _ = create_company(db, CompanyCreate(name=args.company))
            link_user_to_company(db, user, company.id)
            print(f"Created user '{email}' with role '{args.role}' in company '{company.name}'.")
        else:
            print(f"Created user '{email}' with role '{args.role}'.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
