"""
Create the admin/operator/viewer roles and optionally grant one to a user.

Usage:
    python scripts/seed_roles.py [--grant EMAIL ROLE]
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from opsdesk.db import Base, SessionLocal, engine
from opsdesk.models.models import Role, User


ROLES = {
    "admin": "Full access, approves device registrations",
    "operator": "Runs sync jobs",
    "viewer": "Read-only inventory access",
}


def seed_roles(db) -> None:
    for name, description in ROLES.items():
        role = db.query(Role).filter(Role.name == name).first()
        if role:
            print(f"  = {name}")
            continue
        db.add(Role(name=name, description=description))
        print(f"  + {name}")
    db.commit()


def grant_role(db, email: str, role_name: str) -> None:
    role = db.query(Role).filter(Role.name == role_name).first()
    if role is None:
        raise SystemExit(f"Unknown role: {role_name}")
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(email=email, display_name=email.split("@")[0])
        db.add(user)
    if role not in user.roles:
        user.roles.append(role)
    db.commit()
    print(f"Granted {role_name} to {email} (user id {user.id})")


def main():
    parser = argparse.ArgumentParser(description="Seed OpsDesk roles")
    parser.add_argument("--grant", nargs=2, metavar=("EMAIL", "ROLE"), help="Grant ROLE to EMAIL, creating the user if needed")
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        print("Seeding roles...")
        seed_roles(db)
        if args.grant:
            grant_role(db, args.grant[0], args.grant[1])
    finally:
        db.close()


if __name__ == "__main__":
    main()
