"""CLI tools for helpdesk administration."""

import click

from helpdesk.core.config import settings
from helpdesk.core.permissions import PermissionKey, is_valid_permission
from helpdesk.core.structured_logging import configure_logging
from helpdesk.db.session import SessionLocal
from helpdesk.services import (
    category_service,
    clinic_service,
    sequence_service,
    society_service,
    status_service,
    user_service,
)
from helpdesk.services.errors import HelpdeskError

BASE_CATEGORIES = [
    ("Maintenance", "Building and facilities maintenance requests"),
    ("Medical Equipment", "Support and maintenance for medical devices"),
    ("Computer Hardware", "Hardware support for computers and IT devices"),
    ("Medical Exams", "Exams and medical procedures"),
    ("Prescriptions", "Prescriptions and medication"),
    ("Scheduling", "Bookings and appointment management"),
    ("Billing", "Invoices and administrative matters"),
    ("Human Resources", "Staff and human resources"),
    ("Travel", "Travel and business trips"),
]


@click.group()
def cli():
    """Helpdesk CLI tools."""
    configure_logging(settings.LOG_LEVEL)


@cli.command()
def init_statuses():
    """
    Create the default ticket statuses (open, in_progress, closed).

    Safe to run repeatedly.

    Example:
        python -m helpdesk.cli init-statuses
    """
    db = SessionLocal()
    try:
        created = status_service.initialize_default_statuses(db)
        db.commit()
        click.echo(f"✓ Created {len(created)} status(es)")
        for status in status_service.list_active_statuses(db):
            click.echo(f"  {status.order}. {status.slug} ({status.name})")
    except HelpdeskError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--code", required=True, help="Society code (stored upper-case)")
@click.option("--name", required=True, help="Society display name")
def create_society(code: str, name: str):
    """
    Create a society.

    Example:
        python -m helpdesk.cli create-society --code HQ --name "Head Office"
    """
    db = SessionLocal()
    try:
        society = society_service.create_society(db, code=code, name=name)
        db.commit()
        click.echo(f"✓ Created society: {society.name}")
        click.echo(f"  ID: {society.id}")
        click.echo(f"  Code: {society.code}")
    except HelpdeskError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--code", required=True, help="Clinic code (3-10 alphanumeric characters)")
@click.option("--name", required=True, help="Clinic display name")
@click.option("--no-public-tickets", is_flag=True, help="Disallow public tickets")
@click.option(
    "--require-category-approval", is_flag=True, help="New categories need approval before use"
)
@click.option("--admin-email", default=None, help="Create an administrator for the clinic")
def create_clinic(
    code: str,
    name: str,
    no_public_tickets: bool,
    require_category_approval: bool,
    admin_email: str | None,
):
    """
    Create a clinic (tenant), optionally with a first administrator.

    Example:
        python -m helpdesk.cli create-clinic --code MI01 --name "Milan" --admin-email a@b.com
    """
    db = SessionLocal()
    try:
        clinic = clinic_service.create_clinic(
            db,
            name=name,
            code=code,
            allow_public_tickets=not no_public_tickets,
            require_approval_for_categories=require_category_approval,
        )
        click.echo(f"✓ Created clinic: {clinic.name}")
        click.echo(f"  ID: {clinic.id}")
        click.echo(f"  Code: {clinic.code}")

        if admin_email:
            role = user_service.get_or_create_role(
                db, "Administrator", [PermissionKey.FULL_ACCESS.value]
            )
            user = user_service.get_user_by_email(db, admin_email)
            if not user:
                user = user_service.create_user(
                    db, admin_email, admin_email.split("@")[0], role=role
                )
            clinic_service.add_user_to_clinic(db, user.id, clinic.id, make_primary=True)
            click.echo(f"✓ Administrator {user.email} added to {clinic.code}")
        db.commit()
    except HelpdeskError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--name", required=True, help="Role name")
@click.option(
    "--permission", "permissions", multiple=True, required=True,
    help="Capability to grant (repeatable)",
)
def create_role(name: str, permissions: tuple[str, ...]):
    """
    Create a role with a set of capabilities.

    Example:
        python -m helpdesk.cli create-role --name Agent --permission view_all_tickets
    """
    invalid = [p for p in permissions if not is_valid_permission(p)]
    if invalid:
        click.echo(f"❌ Unknown permission(s): {', '.join(invalid)}")
        return

    db = SessionLocal()
    try:
        role = user_service.get_or_create_role(db, name, list(permissions))
        db.commit()
        click.echo(f"✓ Role {role.name}: {', '.join(role.permissions)}")
    finally:
        db.close()


@cli.command()
def seed_categories():
    """
    Create the base category set (skips names that already exist).

    Example:
        python -m helpdesk.cli seed-categories
    """
    db = SessionLocal()
    try:
        created = 0
        for name, description in BASE_CATEGORIES:
            if category_service.get_category_by_slug(db, category_service.slugify(name)):
                continue
            category_service.create_category(db, name=name, description=description)
            created += 1
        db.commit()
        click.echo(f"✓ Created {created} categor{'y' if created == 1 else 'ies'}")
    except HelpdeskError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--name", default=None, help="Sequence name (default: ticket sequence)")
def counter(name: str | None):
    """
    Show the last allocated value of a sequence.

    Example:
        python -m helpdesk.cli counter
    """
    sequence_name = name or settings.TICKET_SEQUENCE_NAME
    db = SessionLocal()
    try:
        value = sequence_service.current_value(db, sequence_name)
        click.echo(f"{sequence_name}: {value}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for a user by bumping their token_version.

    Example:
        python -m helpdesk.cli revoke-sessions --email "user@example.com"
    """
    db = SessionLocal()
    try:
        user = user_service.get_user_by_email(db, email)
        if not user:
            click.echo(f"❌ User not found: {email}")
            return

        old_version = user.token_version
        user_service.revoke_all_sessions(db, user.id)
        db.commit()

        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
