from sqlalchemy import func, select

from lockedin.models.session_invite import SessionInvite
from lockedin.models.study_session import StudySession
from lockedin.services.notifications import KIND_CONFLICT_ALERT, KIND_INVITATION
from tests.utils.auth import get_user_authentication_headers
from tests.utils.factories import FUTURE_ISO, accept_invite, create_group, create_profile, create_session

ALICE = get_user_authentication_headers("alice", "alice@test.com")
BOB = get_user_authentication_headers("bob", "bob@test.com")
CAROL = get_user_authentication_headers("carol", "carol@test.com")
MALLORY = get_user_authentication_headers("mallory")


def _group(db, members=("bob", "carol")):
    for uid in ("alice", *members):
        create_profile(db, uid)
    return create_group(db, "alice", list(members))


def _count(db, model):
    return db.scalar(select(func.count()).select_from(model))


def _create(client, group_id, headers=ALICE, **body):
    body.setdefault("start_at", FUTURE_ISO)
    return client.post(f"/api/groups/{group_id}/sessions", json=body, headers=headers)


# --- create ---

def test_create_session(client, db_session, dispatcher):
    group = _group(db_session)

    res = _create(client, group.id, topic="Linear algebra", venue="Library", time_goal_minutes=60)

    assert res.status_code == 200
    session = res.json()["session"]
    assert session["id"] > 0
    assert session["group_id"] == group.id
    assert session["creator_id"] == "alice"
    assert session["start_at"] == "2099-12-25T10:00:00.000Z"
    assert session["topic"] == "Linear algebra"

    assert sorted(job.recipient_email for job in dispatcher.sent) == ["bob@test.com", "carol@test.com"]
    assert all(job.kind == KIND_INVITATION for job in dispatcher.sent)
    assert _count(db_session, SessionInvite) == 2


def test_create_requires_token(client, db_session):
    group = _group(db_session)
    res = client.post(f"/api/groups/{group.id}/sessions", json={"start_at": FUTURE_ISO})
    assert res.status_code == 401
    assert res.json() == {"detail": "Unauthorized"}


def test_create_by_non_member_writes_nothing(client, db_session, dispatcher):
    group = _group(db_session)

    res = _create(client, group.id, headers=MALLORY)

    assert res.status_code == 403
    assert res.json()["detail"] == "Not a group member"
    assert _count(db_session, StudySession) == 0
    assert _count(db_session, SessionInvite) == 0
    assert dispatcher.sent == []


def test_create_without_start_at(client, db_session):
    group = _group(db_session)
    res = client.post(f"/api/groups/{group.id}/sessions", json={"topic": "x"}, headers=ALICE)
    assert res.status_code == 400
    assert res.json()["detail"] == "start_at is required"


def test_create_with_unparseable_start_at(client, db_session):
    group = _group(db_session)
    res = _create(client, group.id, start_at="tomorrow-ish")
    assert res.status_code == 400
    assert res.json()["detail"] == "Invalid start_at"


def test_create_in_the_past(client, db_session):
    group = _group(db_session)
    res = _create(client, group.id, start_at="2001-01-01T00:00:00Z")
    assert res.status_code == 400
    assert res.json()["detail"] == "start_at cannot be in the past"
    assert _count(db_session, StudySession) == 0


def test_create_with_epoch_millis(client, db_session):
    group = _group(db_session)
    res = _create(client, group.id, start_at=4102444800000)
    assert res.status_code == 200
    assert res.json()["session"]["start_at"] == "2100-01-01T00:00:00.000Z"


def test_create_with_non_instant_start_at_is_400(client, db_session):
    group = _group(db_session)
    res = _create(client, group.id, start_at={"day": 25})
    assert res.status_code == 400
    assert res.json() == {"detail": "Invalid start_at"}


def test_create_in_single_member_group_sends_nothing(client, db_session, dispatcher):
    group = _group(db_session, members=())

    res = _create(client, group.id)

    assert res.status_code == 200
    assert dispatcher.sent == []
    assert _count(db_session, SessionInvite) == 0


def test_create_skips_conflicted_member_and_alerts_creator(client, db_session, dispatcher):
    group = _group(db_session)
    create_profile(db_session, "dave")
    other = create_group(db_session, "dave", ["carol"])
    accept_invite(db_session, create_session(db_session, other.id, "dave"), "carol")

    res = _create(client, group.id)
    session_id = res.json()["session"]["id"]

    assert res.status_code == 200
    sent = [(job.kind, job.recipient_email) for job in dispatcher.sent]
    assert (KIND_INVITATION, "bob@test.com") in sent
    assert (KIND_CONFLICT_ALERT, "alice@test.com") in sent
    assert (KIND_INVITATION, "carol@test.com") not in sent

    invited = db_session.scalars(
        select(SessionInvite.user_id).where(SessionInvite.session_id == session_id)
    ).all()
    assert invited == ["bob"]


def test_create_survives_notification_failure(client, db_session, dispatcher):
    dispatcher.fail_for = {"bob@test.com"}
    group = _group(db_session, members=("bob", "carol", "erin"))

    res = _create(client, group.id)

    assert res.status_code == 200
    assert sorted(job.recipient_email for job in dispatcher.sent) == [
        "bob@test.com",
        "carol@test.com",
        "erin@test.com",
    ]
    assert _count(db_session, SessionInvite) == 3


# --- list ---

def test_list_sessions_in_start_order(client, db_session):
    group = _group(db_session)
    _create(client, group.id, start_at="2099-12-26T10:00:00Z", topic="later")
    _create(client, group.id, start_at="2099-12-24T10:00:00Z", topic="sooner")

    res = client.get(f"/api/groups/{group.id}/sessions", headers=BOB)

    assert res.status_code == 200
    assert [s["topic"] for s in res.json()["sessions"]] == ["sooner", "later"]


def test_list_sessions_requires_membership(client, db_session):
    group = _group(db_session)
    res = client.get(f"/api/groups/{group.id}/sessions", headers=MALLORY)
    assert res.status_code == 403


# --- delete ---

def test_only_creator_can_delete(client, db_session):
    group = _group(db_session)
    session_id = _create(client, group.id).json()["session"]["id"]

    res = client.delete(f"/api/groups/{group.id}/sessions/{session_id}", headers=BOB)
    assert res.status_code == 403
    assert res.json()["detail"] == "Only the creator can delete"

    res = client.delete(f"/api/groups/{group.id}/sessions/{session_id}", headers=ALICE)
    assert res.status_code == 200
    assert res.json() == {"message": "Session deleted"}

    listed = client.get(f"/api/groups/{group.id}/sessions", headers=ALICE).json()["sessions"]
    assert listed == []
    assert _count(db_session, SessionInvite) == 0


def test_delete_unknown_session(client, db_session):
    group = _group(db_session)
    res = client.delete(f"/api/groups/{group.id}/sessions/12345", headers=ALICE)
    assert res.status_code == 404
    assert res.json()["detail"] == "Session not found"


# --- respond ---

def _respond(client, group_id, session_id, status, headers=BOB):
    return client.post(
        f"/api/groups/{group_id}/sessions/{session_id}/respond",
        json={"status": status},
        headers=headers,
    )


def test_accept_is_idempotent(client, db_session):
    group = _group(db_session)
    session_id = _create(client, group.id).json()["session"]["id"]

    first = _respond(client, group.id, session_id, "accepted")
    second = _respond(client, group.id, session_id, "accepted")

    assert first.status_code == 200
    assert first.json()["message"] == "Session accepted"
    assert second.status_code == 200
    assert second.json()["invite"]["status"] == "accepted"
    assert second.json()["invite"]["responded_at"] is not None

    rows = db_session.scalar(
        select(func.count()).select_from(SessionInvite).where(
            SessionInvite.session_id == session_id, SessionInvite.user_id == "bob"
        )
    )
    assert rows == 1


def test_decline(client, db_session):
    group = _group(db_session)
    session_id = _create(client, group.id).json()["session"]["id"]

    res = _respond(client, group.id, session_id, "declined")

    assert res.status_code == 200
    assert res.json()["invite"]["status"] == "declined"


def test_respond_with_bad_status(client, db_session):
    group = _group(db_session)
    session_id = _create(client, group.id).json()["session"]["id"]

    res = _respond(client, group.id, session_id, "maybe")
    assert res.status_code == 400

    res = client.post(f"/api/groups/{group.id}/sessions/{session_id}/respond", json={}, headers=BOB)
    assert res.status_code == 400

    res = _respond(client, group.id, session_id, 1)
    assert res.status_code == 400
    assert res.json() == {"detail": "status must be 'accepted' or 'declined'"}


def test_respond_auth_and_membership(client, db_session):
    group = _group(db_session)
    session_id = _create(client, group.id).json()["session"]["id"]

    assert _respond(client, group.id, session_id, "accepted", headers={}).status_code == 401
    assert _respond(client, group.id, session_id, "accepted", headers=MALLORY).status_code == 403


def test_respond_to_unknown_session(client, db_session):
    group = _group(db_session)
    res = _respond(client, group.id, 4242, "accepted")
    assert res.status_code == 404


def test_second_accept_at_same_instant_is_rejected(client, db_session, dispatcher):
    group = _group(db_session)
    first = _create(client, group.id).json()["session"]["id"]
    second = _create(client, group.id, headers=CAROL).json()["session"]["id"]

    assert _respond(client, group.id, first, "accepted").status_code == 200
    dispatcher.sent.clear()

    res = _respond(client, group.id, second, "accepted")

    assert res.status_code == 409
    assert res.json()["detail"] == "You already have an accepted session at this time"
    assert [(job.kind, job.recipient_email) for job in dispatcher.sent] == [
        (KIND_CONFLICT_ALERT, "carol@test.com")
    ]

    accepted = db_session.scalar(
        select(func.count()).select_from(SessionInvite).where(
            SessionInvite.user_id == "bob", SessionInvite.status == "accepted"
        )
    )
    assert accepted == 1


# --- enlaces de email ---

def test_accept_via_email_link(client, db_session):
    group = _group(db_session)
    session_id = _create(client, group.id).json()["session"]["id"]

    res = client.get(f"/api/sessions/{session_id}/accept/bob")

    assert res.status_code == 200
    assert res.text == "You have accepted the study session."
    db_session.expire_all()
    invite = db_session.scalar(
        select(SessionInvite).where(SessionInvite.session_id == session_id, SessionInvite.user_id == "bob")
    )
    assert invite.status == "accepted"


def test_decline_via_email_link(client, db_session):
    group = _group(db_session)
    session_id = _create(client, group.id).json()["session"]["id"]

    res = client.get(f"/api/sessions/{session_id}/decline/carol")

    assert res.status_code == 200
    assert res.text == "You have declined the study session."


def test_email_link_for_missing_session(client, db_session):
    res = client.get("/api/sessions/999/accept/bob")
    assert res.status_code == 404
    assert res.text == "Session not found."


def test_email_link_respects_double_booking(client, db_session):
    group = _group(db_session)
    first = _create(client, group.id).json()["session"]["id"]
    second = _create(client, group.id, headers=CAROL).json()["session"]["id"]
    client.get(f"/api/sessions/{first}/accept/bob")

    res = client.get(f"/api/sessions/{second}/accept/bob")

    assert res.status_code == 409
    assert "organizer has been notified" in res.text
