"""Database seeding for releasegate.

Creates accounts and projects from a YAML seed file so a fresh database
can run the approval workflow.
"""

from typing import Any, Dict, List

from sqlalchemy import and_
from sqlalchemy.orm import Session

from releasegate.db.models import Account, AccountRole, Project


def seed_accounts(db: Session, accounts: List[Dict[str, Any]]) -> Dict[str, Account]:
    """
    Create accounts keyed by email.

    Accounts are idempotent - if the email already exists, the existing
    account is returned unchanged.

    Args:
        db: Database session
        accounts: Dicts with ``name``, ``email`` and optional ``role``,
            ``department`` and ``position``

    Returns:
        Dict mapping email to Account object
    """
    seeded = {}

    for entry in accounts:
        email = entry["email"]
        existing = db.query(Account).filter(Account.email == email).first()
        if existing:
            seeded[email] = existing
            continue

        account = Account(
            name=entry["name"],
            email=email,
            role=AccountRole(str(entry.get("role", AccountRole.DEVELOPER.value)).upper()),
            department=entry.get("department"),
            position=entry.get("position"),
        )
        db.add(account)
        seeded[email] = account

    db.flush()
    return seeded


def seed_projects(db: Session, projects: List[Dict[str, Any]]) -> Dict[str, Project]:
    """
    Create projects keyed by name, skipping names that already exist.

    Args:
        db: Database session
        projects: Dicts with ``name`` and optional ``description`` and
            ``repository_url``

    Returns:
        Dict mapping project name to Project object
    """
    seeded = {}

    for entry in projects:
        name = entry["name"]
        existing = db.query(Project).filter(
            and_(
                Project.name == name,
                Project.active_filter(),
            )
        ).first()
        if existing:
            seeded[name] = existing
            continue

        project = Project(
            name=name,
            description=entry.get("description"),
            repository_url=entry.get("repository_url"),
        )
        db.add(project)
        seeded[name] = project

    db.flush()
    return seeded


def seed_from_config(db: Session, config: Dict[str, Any]) -> Dict[str, int]:
    """
    Seed accounts and projects from a parsed seed file and commit.

    Returns:
        Counts of seeded accounts and projects
    """
    accounts = seed_accounts(db, config.get("accounts", []))
    projects = seed_projects(db, config.get("projects", []))
    db.commit()
    return {"accounts": len(accounts), "projects": len(projects)}
