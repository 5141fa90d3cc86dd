"""CLI tools for helpdesk administration."""

import click

from helpdesk.db.enums import AuditAction, AuditEntity, Role
from helpdesk.db.models import User
from helpdesk.db.session import SessionLocal
from helpdesk.services import audit_service, test_data_cleanup_service
from helpdesk.utils.normalization import normalize_email


@click.group()
def cli():
    """Helpdesk CLI tools."""
    pass


@cli.command()
@click.option("--batch-id", default=None, help="Delete this batch instead of expired data")
def cleanup_test_data(batch_id: str | None):
    """
    Remove synthetic test data.

    Without --batch-id, deletes every test user and ticket whose
    cleanup_at has passed.

    Example:
        helpdesk-cli cleanup-test-data --batch-id test_0f3c...
    """
    db = SessionLocal()
    try:
        if batch_id:
            result = test_data_cleanup_service.delete_batch(db, batch_id)
        else:
            result = test_data_cleanup_service.cleanup_expired(db)
        click.echo(f"✓ Deleted {result.deleted_users} users, {result.deleted_tickets} tickets")
        click.echo(
            f"  messages: {result.deleted_messages}, audit logs: {result.deleted_audit_logs}, "
            f"memberships: {result.deleted_team_memberships}, "
            f"conversations: {result.deleted_conversations}"
        )
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email")
@click.option(
    "--role",
    required=True,
    type=click.Choice([r.value for r in Role]),
    help="New role",
)
def set_role(email: str, role: str):
    """
    Change a user's role directly (bootstrap the first ADMIN).

    Example:
        helpdesk-cli set-role --email admin@example.com --role ADMIN
    """
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == normalize_email(email)).first()
        if not user:
            click.echo(f"❌ User not found: {email}")
            raise SystemExit(1)
        old_role = user.role
        user.role = Role(role)
        audit_service.log_event(
            db,
            action=AuditAction.UPDATE,
            entity=AuditEntity.USER,
            entity_id=user.id,
            old_data={"role": old_role},
            new_data={"role": user.role},
        )
        db.commit()
        click.echo(f"✓ {user.email} is now {role}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    finally:
        db.close()


if __name__ == "__main__":
    cli()
