from unittest.mock import patch

import pytest
from fastapi import status

from taskboard.models.project_invitation import ProjectInvitation
from taskboard.models.project_member import ProjectMember


@pytest.fixture
def setup(create_test_user, create_test_project):
    owner = create_test_user(username="owner", email="owner@example.com")
    invitee = create_test_user(username="invitee", email="invitee@example.com")
    project = create_test_project(owner, name="Launch")
    return owner, invitee, project


def send(client, project, user, headers):
    return client.post(
        f"/api/v1/project-invitations/{project.id}/invitations",
        json={"userId": user.id},
        headers=headers,
    )


class TestSendInvitation:
    """Test cases for POST /api/v1/project-invitations/{projectId}/invitations"""

    def test_owner_sends_invitation(self, client, setup, auth_headers, db_session, mock_invitation_email):
        owner, invitee, project = setup

        response = send(client, project, invitee, auth_headers(owner))

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["message"] == "Invitation sent"
        invitation = db_session.query(ProjectInvitation).filter_by(id=data["invitationId"]).one()
        assert invitation.status == "pending"
        assert invitation.invited_by == owner.id
        # no membership until the invitee accepts
        assert db_session.query(ProjectMember).count() == 0
        mock_invitation_email.assert_called_once_with("invitee@example.com", "Launch", "owner")

    def test_member_cannot_invite(self, client, setup, create_test_user, add_member, auth_headers):
        owner, invitee, project = setup
        member = create_test_user(username="member", email="member@example.com")
        add_member(project, member)

        response = send(client, project, invitee, auth_headers(member))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_duplicate_pending_invitation_conflicts(self, client, setup, auth_headers, db_session):
        owner, invitee, project = setup
        send(client, project, invitee, auth_headers(owner))

        response = send(client, project, invitee, auth_headers(owner))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert db_session.query(ProjectInvitation).count() == 1

    def test_inviting_member_or_owner_conflicts(self, client, setup, add_member, auth_headers):
        owner, invitee, project = setup
        add_member(project, invitee)

        assert send(client, project, invitee, auth_headers(owner)).status_code == status.HTTP_409_CONFLICT
        assert send(client, project, owner, auth_headers(owner)).status_code == status.HTTP_409_CONFLICT

    def test_unknown_invitee(self, client, setup, auth_headers):
        owner, _, project = setup

        response = client.post(
            f"/api/v1/project-invitations/{project.id}/invitations",
            json={"userId": 9999},
            headers=auth_headers(owner),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestListInvitations:
    """Test cases for the invitation listings"""

    def test_my_pending_invitations(self, client, setup, auth_headers):
        owner, invitee, project = setup
        send(client, project, invitee, auth_headers(owner))

        response = client.get("/api/v1/project-invitations/me", headers=auth_headers(invitee))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert len(data) == 1
        assert data[0]["projectId"] == project.id
        assert data[0]["projectName"] == "Launch"
        assert data[0]["status"] == "pending"

        assert client.get("/api/v1/project-invitations/me", headers=auth_headers(owner)).json() == []

    def test_owner_lists_project_invitations(self, client, setup, auth_headers):
        owner, invitee, project = setup
        send(client, project, invitee, auth_headers(owner))

        response = client.get(
            f"/api/v1/project-invitations/{project.id}/invitations", headers=auth_headers(owner)
        )
        assert response.status_code == status.HTTP_200_OK
        assert [i["userId"] for i in response.json()] == [invitee.id]

        response = client.get(
            f"/api/v1/project-invitations/{project.id}/invitations", headers=auth_headers(invitee)
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestRespondToInvitation:
    """Test cases for accept and decline"""

    def test_accept_creates_membership(self, client, setup, auth_headers, db_session):
        owner, invitee, project = setup
        invitation_id = send(client, project, invitee, auth_headers(owner)).json()["invitationId"]

        response = client.put(
            f"/api/v1/project-invitations/{invitation_id}/accept", headers=auth_headers(invitee)
        )

        assert response.status_code == status.HTTP_200_OK
        member = db_session.query(ProjectMember).filter_by(project_id=project.id, user_id=invitee.id).one()
        assert member.joined_via == "invitation"
        invitation = db_session.query(ProjectInvitation).filter_by(id=invitation_id).one()
        assert invitation.status == "accepted"

        response = client.get(f"/api/v1/projects/{project.id}", headers=auth_headers(invitee))
        assert response.status_code == status.HTTP_200_OK

    def test_second_accept_conflicts(self, client, setup, auth_headers, db_session):
        owner, invitee, project = setup
        invitation_id = send(client, project, invitee, auth_headers(owner)).json()["invitationId"]
        url = f"/api/v1/project-invitations/{invitation_id}/accept"

        client.put(url, headers=auth_headers(invitee))
        response = client.put(url, headers=auth_headers(invitee))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert db_session.query(ProjectMember).count() == 1

    def test_accept_after_direct_add(self, client, setup, add_member, auth_headers, db_session):
        """A pending invitation can still be accepted once the invitee was added directly"""
        owner, invitee, project = setup
        invitation_id = send(client, project, invitee, auth_headers(owner)).json()["invitationId"]
        add_member(project, invitee, joined_via="direct")

        response = client.put(
            f"/api/v1/project-invitations/{invitation_id}/accept", headers=auth_headers(invitee)
        )

        assert response.status_code == status.HTTP_200_OK
        members = db_session.query(ProjectMember).all()
        assert len(members) == 1
        assert members[0].joined_via == "direct"

    def test_only_invitee_may_respond(self, client, setup, auth_headers, db_session):
        owner, invitee, project = setup
        invitation_id = send(client, project, invitee, auth_headers(owner)).json()["invitationId"]

        response = client.put(
            f"/api/v1/project-invitations/{invitation_id}/accept", headers=auth_headers(owner)
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = client.delete(
            f"/api/v1/project-invitations/{invitation_id}/decline", headers=auth_headers(owner)
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert db_session.query(ProjectMember).count() == 0

    def test_unknown_invitation(self, client, setup, auth_headers):
        _, invitee, _ = setup

        response = client.put("/api/v1/project-invitations/9999/accept", headers=auth_headers(invitee))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_decline_deletes_invitation(self, client, setup, auth_headers, db_session):
        owner, invitee, project = setup
        invitation_id = send(client, project, invitee, auth_headers(owner)).json()["invitationId"]

        response = client.delete(
            f"/api/v1/project-invitations/{invitation_id}/decline", headers=auth_headers(invitee)
        )

        assert response.status_code == status.HTTP_200_OK
        assert db_session.query(ProjectInvitation).count() == 0
        assert db_session.query(ProjectMember).count() == 0

        # declining leaves room for a fresh invitation
        assert send(client, project, invitee, auth_headers(owner)).status_code == status.HTTP_201_CREATED

    def test_decline_after_accept_conflicts(self, client, setup, auth_headers, db_session):
        owner, invitee, project = setup
        invitation_id = send(client, project, invitee, auth_headers(owner)).json()["invitationId"]
        client.put(f"/api/v1/project-invitations/{invitation_id}/accept", headers=auth_headers(invitee))

        response = client.delete(
            f"/api/v1/project-invitations/{invitation_id}/decline", headers=auth_headers(invitee)
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert db_session.query(ProjectMember).count() == 1


class TestConcurrentAccept:
    def test_membership_created_meanwhile_conflicts(self, client, setup, add_member, auth_headers, db_session):
        """The member insert loses to a row committed by another request"""
        owner, invitee, project = setup
        invitation_id = send(client, project, invitee, auth_headers(owner)).json()["invitationId"]
        add_member(project, invitee)

        with patch("taskboard.api.v1.project_invitation.is_project_member", return_value=False):
            response = client.put(
                f"/api/v1/project-invitations/{invitation_id}/accept", headers=auth_headers(invitee)
            )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert db_session.query(ProjectMember).count() == 1
        # the status change was rolled back with the insert
        invitation = db_session.query(ProjectInvitation).filter_by(id=invitation_id).one()
        assert invitation.status == "pending"
