from conftest import auth_headers

START = "/api/conversation/start"
CONTINUE = "/api/conversation/continue"


def _start(client, user="alice", **overrides):
    body = {"topic": "food", "difficulty_level": "beginner"}
    body.update(overrides)
    return client.post(START, json=body, headers=auth_headers(user))


def test_topics_follow_tier(client):
    resp = client.get("/api/conversation/topics", headers=auth_headers("alice"))
    assert resp.status_code == 200
    assert list(resp.json()["topics"]) == ["beginner"]

    resp = client.get("/api/conversation/topics", headers=auth_headers("carol"))
    assert list(resp.json()["topics"]) == ["beginner", "intermediate", "advanced"]


def test_start_conversation(client, completion):
    resp = _start(client, participant_count=3, context_size=40, focus_areas=["greeting"])
    assert resp.status_code == 200
    body = resp.json()
    assert body["conversation_id"].startswith("conv_")
    assert body["conversation"]["initial_message"] == completion.reply
    assert body["conversation"]["participant_count"] == 1
    assert body["metadata"]["max_context_size"] == 5
    assert body["metadata"]["tier"] == "free"

    call = completion.calls[-1]
    assert '"food" at a beginner level' in call["user_message"]
    assert "### hola" in call["context"]


def test_start_rejects_difficulty_above_tier(client):
    resp = _start(client, difficulty_level="advanced")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Free tier users can only access beginner-level conversations"

    resp = _start(client, user="bob", difficulty_level="advanced")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Basic tier users can only access beginner and intermediate-level conversations"

    assert _start(client, user="carol", difficulty_level="advanced").status_code == 200


def test_start_validation(client):
    assert _start(client, topic="x").status_code == 422
    assert _start(client, focus_areas=["a", "b", "c", "d"]).status_code == 422
    assert _start(client, difficulty_level="expert").status_code == 422


def test_start_failure_is_500_and_creates_nothing(client, completion):
    completion.fail = True
    resp = _start(client)
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to start conversation. Please try again later."
    assert client.app.state.conversations.session_count == 0


def test_continue_conversation(client, completion):
    conv_id = _start(client, user="bob").json()["conversation_id"]
    completion.reply = "¡Muy bien! ¿Y para beber?"

    resp = client.post(
        CONTINUE,
        json={"conversation_id": conv_id, "user_message": "Quiero tacos"},
        headers=auth_headers("bob"),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "¡Muy bien! ¿Y para beber?"
    assert body["message_count"] == 3
    assert body["metadata"]["include_alternatives"] is False

    prompt = completion.calls[-1]["user_message"]
    assert "User: Quiero tacos" in prompt
    assert "major grammar errors" in prompt


def test_continue_reuses_start_context(client, completion):
    conv_id = _start(client).json()["conversation_id"]
    start_context = completion.calls[-1]["context"]
    client.post(CONTINUE, json={"conversation_id": conv_id, "user_message": "Hola"}, headers=auth_headers())
    assert completion.calls[-1]["context"] == start_context


def test_failed_continue_leaves_no_unanswered_turn(client, completion):
    conv_id = _start(client).json()["conversation_id"]
    body = {"conversation_id": conv_id, "user_message": "Quiero tacos"}

    completion.fail = True
    resp = client.post(CONTINUE, json=body, headers=auth_headers())
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to continue conversation. Please try again later."
    detail = client.get(f"/api/conversation/{conv_id}", headers=auth_headers()).json()
    assert detail["conversation"]["message_count"] == 1

    completion.fail = False
    resp = client.post(CONTINUE, json=body, headers=auth_headers())
    assert resp.status_code == 200
    assert resp.json()["message_count"] == 3
    assert completion.calls[-1]["user_message"].count("User: Quiero tacos") == 1

    roles = [m["role"] for m in client.get(f"/api/conversation/{conv_id}", headers=auth_headers()).json()["conversation"]["messages"]]
    assert roles == ["system", "user", "system"]


def test_continue_unknown_and_foreign_conversations(client):
    resp = client.post(CONTINUE, json={"conversation_id": "conv_nope", "user_message": "Hola"}, headers=auth_headers())
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Conversation not found"

    conv_id = _start(client, user="alice").json()["conversation_id"]
    resp = client.post(CONTINUE, json={"conversation_id": conv_id, "user_message": "Hola"}, headers=auth_headers("bob"))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "You do not have access to this conversation"


def test_history_lists_own_conversations_newest_first(client, clock):
    first = _start(client).json()["conversation_id"]
    clock.advance(minutes=1)
    second = _start(client, topic="travel").json()["conversation_id"]
    _start(client, user="bob")

    resp = client.get("/api/conversation/history", headers=auth_headers("alice"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 2
    assert [c["id"] for c in body["conversations"]] == [second, first]
    assert body["conversations"][0]["preview"].endswith("...")


def test_get_conversation(client):
    conv_id = _start(client).json()["conversation_id"]
    resp = client.get(f"/api/conversation/{conv_id}", headers=auth_headers())
    assert resp.status_code == 200
    conversation = resp.json()["conversation"]
    assert conversation["id"] == conv_id
    assert conversation["message_count"] == 1
    assert conversation["messages"][0]["role"] == "system"

    assert client.get(f"/api/conversation/{conv_id}", headers=auth_headers("bob")).status_code == 403
    assert client.get("/api/conversation/conv_nope", headers=auth_headers()).status_code == 404


def test_delete_conversation(client):
    conv_id = _start(client).json()["conversation_id"]
    assert client.delete(f"/api/conversation/{conv_id}", headers=auth_headers("bob")).status_code == 403

    resp = client.delete(f"/api/conversation/{conv_id}", headers=auth_headers())
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Conversation deleted successfully"}
    assert client.delete(f"/api/conversation/{conv_id}", headers=auth_headers()).status_code == 404


def test_expired_conversation_is_gone(client, clock):
    conv_id = _start(client).json()["conversation_id"]
    clock.advance(days=8)
    assert client.app.state.conversations.run_sweep() == 1
    assert client.get(f"/api/conversation/{conv_id}", headers=auth_headers()).status_code == 404
    assert client.get("/api/health").json()["active_sessions"] == 0


def test_expiry_boundary_through_service(client, clock):
    conv_id = _start(client).json()["conversation_id"]
    clock.advance(days=7)
    assert client.app.state.conversations.run_sweep() == 0
    clock.advance(seconds=1)
    assert client.app.state.conversations.run_sweep() == 1
    assert client.app.state.conversations.get_session(conv_id) is None
