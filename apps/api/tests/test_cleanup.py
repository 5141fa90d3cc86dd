"""Tests for test-data cleanup: batch deletes, expiry sweep, cron endpoint and CLI."""

from datetime import datetime, timedelta, timezone

from click.testing import CliRunner

from helpdesk.cli import cli
from helpdesk.core.config import settings
from helpdesk.db.enums import AuditAction, AuditEntity, ConversationStatus, Role
from helpdesk.db.models import (
    AuditLog,
    MarketplaceConversation,
    Message,
    Team,
    TeamMember,
    Ticket,
    User,
)
from helpdesk.schemas import test_data as schemas
from helpdesk.services import test_data_cleanup_service, test_data_service

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _seed_batch(db, admin, manager):
    """Two synthetic agents with a ticket, a message, a conversation and a team seat."""
    batch_id, users = test_data_service.create_test_users(
        db,
        admin.id,
        schemas.TestUserConfig(user_count=2, role=[schemas.WeightedRole(value=Role.AGENT)]),
    )
    first = users[0]

    ticket = Ticket(title="Synthetic", customer_id=first.id, created_by_id=first.id)
    db.add(ticket)
    db.flush()
    db.add(Message(ticket_id=ticket.id, created_by_id=first.id, content="hello"))
    db.add(
        AuditLog(
            action=AuditAction.CREATE,
            entity=AuditEntity.TICKET,
            entity_id=ticket.id,
            user_id=first.id,
        )
    )
    db.add(
        MarketplaceConversation(
            raw_content="Earl: hi",
            status=ConversationStatus.PENDING,
            created_by_id=first.id,
        )
    )
    team = Team(name="Support", created_by_id=manager.id)
    db.add(team)
    db.flush()
    db.add(TeamMember(team_id=team.id, user_id=manager.id))
    db.add(TeamMember(team_id=team.id, user_id=first.id))
    db.commit()
    return batch_id, [u.id for u in users], team.id


def test_delete_batch_removes_dependents_first(db, admin, manager):
    batch_id, user_ids, team_id = _seed_batch(db, admin, manager)

    result = test_data_cleanup_service.delete_batch(db, batch_id)

    assert result.deleted_users == 2
    assert result.deleted_tickets == 1
    assert result.deleted_messages == 1
    assert result.deleted_conversations == 1
    assert result.deleted_team_memberships == 1
    assert set(result.user_ids) == set(user_ids)

    assert db.query(User).filter(User.id.in_(user_ids)).count() == 0
    assert db.query(Ticket).count() == 0
    assert db.query(AuditLog).filter(AuditLog.entity_id.in_(user_ids)).count() == 0
    # the real team and its other member survive
    assert db.get(Team, team_id) is not None
    assert [m.user_id for m in db.query(TeamMember).all()] == [manager.id]


def test_delete_batch_removes_audit_rows_of_staff_messages(db, admin, manager):
    batch_id, _, _ = _seed_batch(db, admin, manager)
    ticket = db.query(Ticket).one()
    reply = Message(ticket_id=ticket.id, created_by_id=manager.id, content="On it")
    db.add(reply)
    db.flush()
    db.add(
        AuditLog(
            action=AuditAction.CREATE,
            entity=AuditEntity.MESSAGE,
            entity_id=reply.id,
            user_id=manager.id,
        )
    )
    db.commit()
    reply_id = reply.id

    result = test_data_cleanup_service.delete_batch(db, batch_id)

    assert result.deleted_messages == 2
    assert db.query(AuditLog).filter(AuditLog.entity_id == reply_id).count() == 0
    assert db.query(AuditLog).filter(AuditLog.user_id == manager.id).count() == 0


def test_delete_unknown_batch_is_noop(db, admin):
    result = test_data_cleanup_service.delete_batch(db, "test_missing")
    assert result.as_dict()["deleted_users"] == 0
    assert db.get(User, admin.id) is not None


def test_delete_ticket_batch_keeps_users(db, admin):
    batch_id, users = test_data_service.create_test_users(
        db, admin.id, schemas.TestUserConfig(user_count=1)
    )
    test_data_service.create_test_tickets(
        db, admin.id, schemas.TestTicketConfig(ticket_count=2, test_batch_id=batch_id)
    )

    result = test_data_cleanup_service.delete_ticket_batch(db, batch_id)

    assert result.deleted_tickets == 2
    assert result.deleted_users == 0
    assert db.query(User).filter(User.test_batch_id == batch_id).count() == 1
    assert db.query(AuditLog).filter(AuditLog.entity == AuditEntity.TICKET).count() == 0


def test_cleanup_expired_only_removes_past_due(db, user_factory, customer):
    expired = user_factory(Role.CUSTOMER, test_batch_id="old", cleanup_at=NOW - timedelta(hours=1))
    fresh = user_factory(Role.CUSTOMER, test_batch_id="new", cleanup_at=NOW + timedelta(hours=1))
    expired_id, fresh_id = expired.id, fresh.id
    db.add(
        Ticket(
            title="Old ticket",
            customer_id=customer.id,
            created_by_id=customer.id,
            test_batch_id="tickets-only",
            cleanup_at=NOW - timedelta(minutes=5),
        )
    )
    db.commit()

    result = test_data_cleanup_service.cleanup_expired(db, now=NOW)

    assert result.user_ids == [expired_id]
    assert result.deleted_users == 1
    assert result.deleted_tickets == 1
    assert db.query(User).filter(User.id == fresh_id).count() == 1
    assert db.query(User).filter(User.id == customer.id).count() == 1


# =============================================================================
# Endpoints
# =============================================================================

async def test_delete_batch_endpoint(client, auth_headers, db, admin, manager):
    batch_id, user_ids, _ = _seed_batch(db, admin, manager)

    response = await client.delete(
        "/test-data/users", params={"batch_id": batch_id}, headers=auth_headers(admin)
    )

    assert response.status_code == 200
    assert response.json()["deleted_users"] == 2


async def test_deleted_ticket_detail_is_not_served_from_cache(client, auth_headers, db, admin, manager):
    batch_id, _, _ = _seed_batch(db, admin, manager)
    ticket_id = db.query(Ticket).one().id
    headers = auth_headers(admin)

    response = await client.get(f"/tickets/{ticket_id}", headers=headers)
    assert response.status_code == 200

    response = await client.delete("/test-data/users", params={"batch_id": batch_id}, headers=headers)
    assert response.status_code == 200

    response = await client.get(f"/tickets/{ticket_id}", headers=headers)
    assert response.status_code == 404


async def test_internal_cleanup_requires_secret(client, monkeypatch):
    url = "/internal/scheduled/cleanup-test-data"

    response = await client.post(url, headers={"x-internal-secret": "wrong"})
    assert response.status_code == 403

    response = await client.post(url)
    assert response.status_code == 422

    monkeypatch.setattr(settings, "INTERNAL_SECRET", "")
    response = await client.post(url, headers={"x-internal-secret": "anything"})
    assert response.status_code == 501


async def test_internal_cleanup_sweeps_expired(client, user_factory):
    user_factory(
        Role.CUSTOMER,
        test_batch_id="old",
        cleanup_at=datetime.now(timezone.utc) - timedelta(days=1),
    )

    response = await client.post(
        "/internal/scheduled/cleanup-test-data",
        headers={"x-internal-secret": "test-internal-secret"},
    )

    assert response.status_code == 200
    assert response.json()["deleted_users"] == 1


# =============================================================================
# CLI
# =============================================================================

def test_cli_cleanup_batch(db, admin, manager):
    batch_id, _, _ = _seed_batch(db, admin, manager)

    result = CliRunner().invoke(cli, ["cleanup-test-data", "--batch-id", batch_id])

    assert result.exit_code == 0
    assert "Deleted 2 users, 1 tickets" in result.output


def test_cli_set_role_is_audited(db, customer):
    result = CliRunner().invoke(cli, ["set-role", "--email", customer.email, "--role", "ADMIN"])

    assert result.exit_code == 0
    db.expire_all()
    assert db.get(User, customer.id).role == Role.ADMIN
    audit = db.query(AuditLog).filter(AuditLog.entity_id == customer.id).one()
    assert audit.user_id is None
    assert audit.new_data == {"role": "ADMIN"}


def test_cli_set_role_unknown_email(db):
    result = CliRunner().invoke(cli, ["set-role", "--email", "ghost@test.com", "--role", "AGENT"])
    assert result.exit_code == 1
    assert "User not found" in result.output
