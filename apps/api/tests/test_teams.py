"""Tests for teams, memberships and routing tags."""

import uuid

from helpdesk.db.enums import AuditAction, AuditEntity, Role
from helpdesk.db.models import AuditLog, TeamMember
from helpdesk.services.team_service import filter_teams_by_tags


async def _create_team(client, headers, name="Billing", tags=None):
    response = await client.post(
        "/teams", json={"name": name, "tags": tags or []}, headers=headers
    )
    assert response.status_code == 201
    return response.json()


async def test_team_endpoints_require_manager(client, auth_headers, agent):
    assert (await client.get("/teams", headers=auth_headers(agent))).status_code == 403
    assert (
        await client.post("/teams", json={"name": "x"}, headers=auth_headers(agent))
    ).status_code == 403


async def test_create_team_adds_creator_as_member(client, auth_headers, db, manager):
    team = await _create_team(client, auth_headers(manager), tags=["billing", "billing", " refunds "])

    assert team["tags"] == ["billing", "refunds"]
    assert [m["user_id"] for m in team["members"]] == [str(manager.id)]

    audit = db.query(AuditLog).filter(AuditLog.entity == AuditEntity.TEAM).one()
    assert audit.action == AuditAction.CREATE
    assert audit.new_data["member_ids"] == [str(manager.id)]


async def test_add_and_remove_members(client, auth_headers, manager, agent):
    headers = auth_headers(manager)
    team = await _create_team(client, headers)
    url = f"/teams/{team['id']}/members"

    response = await client.post(url, json={"user_id": str(agent.id)}, headers=headers)
    assert response.status_code == 201
    assert {m["user_id"] for m in response.json()["members"]} == {str(manager.id), str(agent.id)}

    # duplicate
    response = await client.post(url, json={"user_id": str(agent.id)}, headers=headers)
    assert response.status_code == 409

    # unknown user
    response = await client.post(url, json={"user_id": str(uuid.uuid4())}, headers=headers)
    assert response.status_code == 404

    response = await client.delete(f"{url}/{agent.id}", headers=headers)
    assert response.status_code == 200
    assert [m["user_id"] for m in response.json()["members"]] == [str(manager.id)]

    response = await client.delete(f"{url}/{agent.id}", headers=headers)
    assert response.status_code == 404


async def test_add_and_remove_tags(client, auth_headers, manager):
    headers = auth_headers(manager)
    team = await _create_team(client, headers, tags=["billing"])
    url = f"/teams/{team['id']}/tags"

    response = await client.post(url, json={"tags": ["refunds", "billing", "vip"]}, headers=headers)
    assert response.json()["tags"] == ["billing", "refunds", "vip"]

    response = await client.delete(url, params={"tags": ["billing"]}, headers=headers)
    assert response.json()["tags"] == ["refunds", "vip"]


async def test_update_team_name(client, auth_headers, db, manager):
    headers = auth_headers(manager)
    team = await _create_team(client, headers)

    response = await client.patch(f"/teams/{team['id']}", json={"name": "Payments"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Payments"

    audit = db.query(AuditLog).filter(AuditLog.action == AuditAction.UPDATE).one()
    assert audit.old_data == {"name": "Billing"}
    assert audit.new_data == {"name": "Payments"}


async def test_list_teams_tag_filter_requires_all(client, auth_headers, manager):
    headers = auth_headers(manager)
    await _create_team(client, headers, name="Both", tags=["billing", "vip"])
    await _create_team(client, headers, name="Billing only", tags=["billing"])
    await _create_team(client, headers, name="Untagged")

    response = await client.get("/teams", params={"tags": ["billing", "vip"]}, headers=headers)
    assert [t["name"] for t in response.json()] == ["Both"]

    response = await client.get("/teams", params={"include_untagged": True}, headers=headers)
    assert [t["name"] for t in response.json()] == ["Untagged"]

    response = await client.get("/teams", params={"search": "only"}, headers=headers)
    assert [t["name"] for t in response.json()] == ["Billing only"]


def test_filter_teams_by_tags_without_filters_keeps_all():
    teams = [object(), object()]
    assert filter_teams_by_tags(teams, [], include_untagged=False) == teams


async def test_delete_team(client, auth_headers, db, manager):
    headers = auth_headers(manager)
    team = await _create_team(client, headers)

    response = await client.delete(f"/teams/{team['id']}", headers=headers)
    assert response.status_code == 204
    assert db.query(TeamMember).count() == 0
    assert (await client.get(f"/teams/{team['id']}", headers=headers)).status_code == 404

    audit = db.query(AuditLog).filter(AuditLog.action == AuditAction.DELETE).one()
    assert audit.old_data["name"] == "Billing"
    assert audit.old_data["member_ids"] == [str(manager.id)]


async def test_my_team_tags_for_any_member(client, auth_headers, user_factory, manager):
    headers = auth_headers(manager)
    agent = user_factory(Role.AGENT)
    first = await _create_team(client, headers, name="A", tags=["vip", "billing"])
    second = await _create_team(client, headers, name="B", tags=["shipping", "billing"])
    await _create_team(client, headers, name="C", tags=["other"])
    for team in (first, second):
        await client.post(
            f"/teams/{team['id']}/members", json={"user_id": str(agent.id)}, headers=headers
        )

    response = await client.get("/teams/my-tags", headers=auth_headers(agent))
    assert response.status_code == 200
    assert response.json() == ["billing", "shipping", "vip"]


async def test_team_list_cache_invalidated_on_write(client, auth_headers, manager):
    headers = auth_headers(manager)
    await _create_team(client, headers, name="First")
    assert len((await client.get("/teams", headers=headers)).json()) == 1

    await _create_team(client, headers, name="Second")
    assert len((await client.get("/teams", headers=headers)).json()) == 2
