from datetime import datetime, timedelta

import pytest

from app.models.chat import Chat, Message
from app.services import chat_service


@pytest.fixture()
def pair(make_user, assign):
    member = make_user(plan="premium", valid_days=30)
    trainer = make_user(role="trainer")
    assign(member.id, trainer.id)
    return member, trainer


def _initiate(client, headers, participant_id):
    return client.post("/api/chat/initiate", json={"participant_id": participant_id}, headers=headers)


def _send(client, headers, chat_id, content):
    return client.post("/api/chat/message", json={"chat_id": chat_id, "content": content}, headers=headers)


def test_initiate_creates_once_then_returns_existing(client, pair, auth_headers, db):
    member, trainer = pair

    created = _initiate(client, auth_headers(member), trainer.id)
    assert created.status_code == 201
    chat_id = created.json()["data"]["chat"]["id"]
    assert created.json()["data"]["chat"]["other_participant"]["id"] == trainer.id

    again = _initiate(client, auth_headers(trainer), member.id)
    assert again.status_code == 200
    assert again.json()["data"]["chat"]["id"] == chat_id
    assert db.query(Chat).count() == 1


def test_concurrent_initiation_falls_back_to_existing_chat(client, pair, auth_headers, db, monkeypatch):
    member, trainer = pair
    chat_id = _initiate(client, auth_headers(member), trainer.id).json()["data"]["chat"]["id"]

    # Simulate losing the race: the existence check misses the row another request just inserted.
    original = chat_service.find_chat
    calls = {"n": 0}

    def _stale_then_real(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return original(*args, **kwargs)

    monkeypatch.setattr(chat_service, "find_chat", _stale_then_real)

    response = _initiate(client, auth_headers(member), trainer.id)

    assert response.status_code == 200
    assert response.json()["data"]["chat"]["id"] == chat_id
    assert calls["n"] == 2
    assert db.query(Chat).count() == 1


def test_unassigned_pair_is_denied(client, make_user, auth_headers):
    member = make_user(plan="premium", valid_days=30)
    trainer = make_user(role="trainer")

    for headers, participant in ((auth_headers(member), trainer.id), (auth_headers(trainer), member.id)):
        response = _initiate(client, headers, participant)
        assert response.status_code == 403
        assert response.json()["code"] == "ACCESS_DENIED"


def test_member_without_premium_is_denied(client, make_user, assign, auth_headers):
    member = make_user(plan="basic", valid_days=30)
    trainer = make_user(role="trainer")
    assign(member.id, trainer.id)

    response = _initiate(client, auth_headers(member), trainer.id)
    assert response.status_code == 403
    assert response.json()["code"] == "ACCESS_DENIED"

    listing = client.get("/api/chat", headers=auth_headers(member))
    assert listing.status_code == 403
    assert listing.json()["code"] == "SUBSCRIPTION_REQUIRED"


def test_initiate_input_errors(client, make_user, auth_headers):
    member = make_user(plan="premium", valid_days=30)
    unverified_trainer = make_user(role="trainer", verified=False)
    other_member = make_user(plan="premium", valid_days=30)
    headers = auth_headers(member)

    missing = client.post("/api/chat/initiate", json={}, headers=headers)
    assert missing.json()["code"] == "MISSING_PARTICIPANT_ID"

    self_chat = _initiate(client, headers, member.id)
    assert self_chat.json()["code"] == "SELF_CHAT_NOT_ALLOWED"

    unknown = _initiate(client, headers, 9999)
    assert unknown.status_code == 404
    assert unknown.json()["code"] == "PARTICIPANT_NOT_FOUND"

    unverified = _initiate(client, headers, unverified_trainer.id)
    assert unverified.status_code == 403
    assert unverified.json()["code"] == "VERIFICATION_REQUIRED"

    member_to_member = _initiate(client, headers, other_member.id)
    assert member_to_member.status_code == 403
    assert member_to_member.json()["code"] == "ACCESS_DENIED"


def test_send_message_validates_and_bumps_chat(client, pair, auth_headers, db):
    member, trainer = pair
    headers = auth_headers(member)
    chat_id = _initiate(client, headers, trainer.id).json()["data"]["chat"]["id"]
    before = db.get(Chat, chat_id).updated_at

    assert _send(client, headers, chat_id, "   ").json()["code"] == "EMPTY_MESSAGE"
    assert _send(client, headers, chat_id, "x" * 1001).json()["code"] == "MESSAGE_TOO_LONG"
    assert client.post("/api/chat/message", json={"chat_id": chat_id}, headers=headers).json()["code"] == (
        "MISSING_REQUIRED_FIELDS"
    )

    sent = _send(client, headers, chat_id, "  Hello coach  ")
    assert sent.status_code == 201
    assert sent.json()["data"]["message"]["content"] == "Hello coach"

    db.expire_all()
    assert db.get(Chat, chat_id).updated_at > before
    assert db.query(Message).count() == 1


def test_send_message_requires_participation_and_running_subscription(client, pair, make_user, auth_headers, db):
    member, trainer = pair
    chat_id = _initiate(client, auth_headers(member), trainer.id).json()["data"]["chat"]["id"]

    outsider = make_user(role="trainer")
    response = _send(client, auth_headers(outsider), chat_id, "hi")
    assert response.status_code == 404
    assert response.json()["code"] == "CHAT_NOT_FOUND"

    from app.models.user import User

    db.query(User).filter(User.id == member.id).update(
        {User.subscription_valid_till: datetime.utcnow() - timedelta(minutes=1)}
    )
    db.commit()

    lapsed = _send(client, auth_headers(member), chat_id, "still there?")
    assert lapsed.status_code == 403
    assert lapsed.json()["code"] == "SUBSCRIPTION_REQUIRED"

    # Trainers are not gated on subscriptions.
    assert _send(client, auth_headers(trainer), chat_id, "yes").status_code == 201


def test_history_is_chronological_and_paginated(client, pair, auth_headers):
    member, trainer = pair
    headers = auth_headers(member)
    chat_id = _initiate(client, headers, trainer.id).json()["data"]["chat"]["id"]
    for index in range(3):
        _send(client, headers, chat_id, f"message {index}")

    response = client.get(f"/api/chat/{chat_id}/history?limit=2", headers=headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert [message["content"] for message in data["messages"]] == ["message 1", "message 2"]
    assert data["pagination"]["total"] == 3
    assert data["pagination"]["has_next"] is True

    older = client.get(f"/api/chat/{chat_id}/history?limit=2&page=2", headers=headers).json()["data"]
    assert [message["content"] for message in older["messages"]] == ["message 0"]

    missing = client.get("/api/chat/999/history", headers=headers)
    assert missing.json()["code"] == "CHAT_NOT_FOUND"


def test_history_requires_running_premium_for_members(client, pair, auth_headers, db):
    member, trainer = pair
    chat_id = _initiate(client, auth_headers(member), trainer.id).json()["data"]["chat"]["id"]
    _send(client, auth_headers(member), chat_id, "see you monday")

    from app.models.user import User

    db.query(User).filter(User.id == member.id).update(
        {User.subscription_valid_till: datetime.utcnow() - timedelta(days=1)}
    )
    db.commit()

    lapsed = client.get(f"/api/chat/{chat_id}/history", headers=auth_headers(member))
    assert lapsed.status_code == 403
    assert lapsed.json()["code"] == "SUBSCRIPTION_REQUIRED"

    trainer_view = client.get(f"/api/chat/{chat_id}/history", headers=auth_headers(trainer))
    assert trainer_view.status_code == 200
    assert [message["content"] for message in trainer_view.json()["data"]["messages"]] == ["see you monday"]


def test_chat_list_shows_last_message(client, pair, auth_headers):
    member, trainer = pair
    chat_id = _initiate(client, auth_headers(member), trainer.id).json()["data"]["chat"]["id"]
    _send(client, auth_headers(member), chat_id, "first")
    _send(client, auth_headers(trainer), chat_id, "second")

    response = client.get("/api/chat", headers=auth_headers(trainer))

    chats = response.json()["data"]["chats"]
    assert len(chats) == 1
    assert chats[0]["last_message"]["content"] == "second"
    assert chats[0]["other_participant"]["id"] == member.id

    read = client.put(f"/api/chat/{chat_id}/read", headers=auth_headers(trainer))
    assert read.status_code == 200


def test_delete_message_window(client, pair, auth_headers, db):
    member, trainer = pair
    headers = auth_headers(member)
    chat_id = _initiate(client, headers, trainer.id).json()["data"]["chat"]["id"]
    fresh_id = _send(client, headers, chat_id, "oops").json()["data"]["message"]["id"]
    old_id = _send(client, headers, chat_id, "ancient").json()["data"]["message"]["id"]

    db.query(Message).filter(Message.id == old_id).update(
        {Message.created_at: datetime.utcnow() - timedelta(minutes=16)}
    )
    db.commit()

    expired = client.delete(f"/api/chat/message/{old_id}", headers=headers)
    assert expired.status_code == 403
    assert expired.json()["code"] == "DELETE_TIME_EXPIRED"

    not_sender = client.delete(f"/api/chat/message/{fresh_id}", headers=auth_headers(trainer))
    assert not_sender.status_code == 404
    assert not_sender.json()["code"] == "MESSAGE_NOT_FOUND"

    deleted = client.delete(f"/api/chat/message/{fresh_id}", headers=headers)
    assert deleted.status_code == 200
    db.expire_all()
    assert db.get(Message, fresh_id) is None
    assert db.get(Message, old_id) is not None


def test_admins_cannot_use_chat(client, make_user, auth_headers):
    admin = make_user(role="admin")
    trainer = make_user(role="trainer")

    assert client.get("/api/chat", headers=auth_headers(admin)).status_code == 403
    initiate = _initiate(client, auth_headers(admin), trainer.id)
    assert initiate.status_code == 403
    assert initiate.json()["code"] == "INVALID_USER_ROLE"
