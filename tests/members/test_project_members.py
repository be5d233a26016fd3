from unittest.mock import patch

import pytest
from fastapi import status

from taskboard.core.config import settings
from taskboard.models.project_member import ProjectMember
from taskboard.models.task_assignee import TaskAssignee


@pytest.fixture
def setup(create_test_user, create_test_project):
    owner = create_test_user(username="owner", email="owner@example.com")
    other = create_test_user(username="other", email="other@example.com")
    project = create_test_project(owner)
    return owner, other, project


class TestAddMember:
    """Test cases for POST /api/v1/project-members/{projectId}/members"""

    def test_owner_adds_member_directly(self, client, setup, auth_headers, db_session):
        owner, other, project = setup

        response = client.post(
            f"/api/v1/project-members/{project.id}/members",
            json={"userId": other.id},
            headers=auth_headers(owner),
        )

        assert response.status_code == status.HTTP_201_CREATED
        member = db_session.query(ProjectMember).filter_by(project_id=project.id, user_id=other.id).one()
        assert member.joined_via == "direct"

    def test_already_member_conflicts(self, client, setup, add_member, auth_headers):
        owner, other, project = setup
        add_member(project, other)

        response = client.post(
            f"/api/v1/project-members/{project.id}/members",
            json={"userId": other.id},
            headers=auth_headers(owner),
        )
        assert response.status_code == status.HTTP_409_CONFLICT

        response = client.post(
            f"/api/v1/project-members/{project.id}/members",
            json={"userId": owner.id},
            headers=auth_headers(owner),
        )
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_unknown_user(self, client, setup, auth_headers):
        owner, _, project = setup

        response = client.post(
            f"/api/v1/project-members/{project.id}/members",
            json={"userId": 9999},
            headers=auth_headers(owner),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_member_cannot_add(self, client, setup, create_test_user, add_member, auth_headers):
        owner, other, project = setup
        add_member(project, other)
        newcomer = create_test_user(username="newcomer", email="newcomer@example.com")

        response = client.post(
            f"/api/v1/project-members/{project.id}/members",
            json={"userId": newcomer.id},
            headers=auth_headers(other),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_direct_add_can_be_disabled(self, client, setup, auth_headers, monkeypatch, db_session):
        owner, other, project = setup
        monkeypatch.setattr(settings, "allow_direct_member_add", False)

        response = client.post(
            f"/api/v1/project-members/{project.id}/members",
            json={"userId": other.id},
            headers=auth_headers(owner),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert db_session.query(ProjectMember).count() == 0


class TestListMembers:
    """Test cases for GET /api/v1/project-members/{projectId}/members"""

    def test_member_lists_members(self, client, setup, add_member, auth_headers):
        _, other, project = setup
        add_member(project, other)

        response = client.get(
            f"/api/v1/project-members/{project.id}/members", headers=auth_headers(other)
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert len(data) == 1
        assert data[0]["userId"] == other.id
        assert data[0]["username"] == "other"
        assert data[0]["joinedVia"] == "invitation"

    def test_outsider_and_unknown_project_get_403(self, client, setup, auth_headers):
        _, other, project = setup

        response = client.get(
            f"/api/v1/project-members/{project.id}/members", headers=auth_headers(other)
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = client.get("/api/v1/project-members/9999/members", headers=auth_headers(other))
        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestRemoveMember:
    """Test cases for DELETE /api/v1/project-members/{projectId}/members/{userId}"""

    def test_remove_drops_access_and_assignments(
        self, client, setup, add_member, create_test_task, auth_headers, db_session
    ):
        owner, other, project = setup
        add_member(project, other)
        task = create_test_task(project, assignees=[other, owner])

        response = client.delete(
            f"/api/v1/project-members/{project.id}/members/{other.id}",
            headers=auth_headers(owner),
        )

        assert response.status_code == status.HTTP_200_OK
        assert db_session.query(ProjectMember).count() == 0
        remaining = db_session.query(TaskAssignee).filter_by(task_id=task.id).all()
        assert [link.user_id for link in remaining] == [owner.id]

        response = client.get(f"/api/v1/projects/{project.id}", headers=auth_headers(other))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_remove_non_member_is_idempotent(self, client, setup, auth_headers):
        owner, other, project = setup

        response = client.delete(
            f"/api/v1/project-members/{project.id}/members/{other.id}",
            headers=auth_headers(owner),
        )

        assert response.status_code == status.HTTP_200_OK

    def test_owner_cannot_be_removed(self, client, setup, auth_headers):
        owner, _, project = setup

        response = client.delete(
            f"/api/v1/project-members/{project.id}/members/{owner.id}",
            headers=auth_headers(owner),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_member_cannot_remove_others(self, client, setup, create_test_user, add_member, auth_headers, db_session):
        owner, other, project = setup
        third = create_test_user(username="third", email="third@example.com")
        add_member(project, other)
        add_member(project, third)

        response = client.delete(
            f"/api/v1/project-members/{project.id}/members/{third.id}",
            headers=auth_headers(other),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert db_session.query(ProjectMember).count() == 2


class TestConcurrentAdd:
    def test_membership_created_meanwhile_conflicts(self, client, setup, add_member, auth_headers, db_session):
        owner, other, project = setup
        add_member(project, other)

        with patch("taskboard.api.v1.project_member.is_project_member", return_value=False):
            response = client.post(
                f"/api/v1/project-members/{project.id}/members",
                json={"userId": other.id},
                headers=auth_headers(owner),
            )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == "User is already a member of the project"
        assert db_session.query(ProjectMember).count() == 1
