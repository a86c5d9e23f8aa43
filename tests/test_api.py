import uuid
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

import couplequiz.routers.couples as couples_router
import couplequiz.services.profile_service as profile_service_module
from couplequiz.main import app

API = "/api/v1"


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def login(token_for):
    """Return auth headers for a fresh (or given) principal."""

    def _login(user_id: uuid.UUID | None = None, email: str | None = None):
        user_id = user_id or uuid.uuid4()
        token = token_for(user_id, email=email or f"{user_id.hex[:8]}@example.com")
        return user_id, {"Authorization": f"Bearer {token}"}

    return _login


# ----- auth & profiles -----


def test_health(client):
    assert client.get("/").json()["status"] == "ok"


def test_missing_token_is_401(client):
    resp = client.get(f"{API}/profiles/me")
    assert resp.status_code == 401
    assert resp.json()["code"] == "not_authenticated"


def test_invalid_and_expired_tokens_are_401(client, token_for):
    resp = client.get(f"{API}/profiles/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401

    expired = token_for(uuid.uuid4(), expires_in=-60)
    resp = client.get(f"{API}/profiles/me", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "not_authenticated"


def test_profile_is_created_on_first_sight_and_editable(client, login):
    user_id, headers = login(email="alice@example.com")

    me = client.get(f"{API}/profiles/me", headers=headers).json()
    assert me == {
        "id": str(user_id),
        "email": "alice@example.com",
        "first_name": None,
        "last_name": None,
    }

    resp = client.patch(f"{API}/profiles/me", json={"first_name": "  Alice "}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["first_name"] == "Alice"
    assert resp.json()["last_name"] is None

    # Second request reuses the same row.
    assert client.get(f"{API}/profiles/me", headers=headers).json()["first_name"] == "Alice"


def test_blank_name_rejected(client, login):
    _, headers = login()
    resp = client.patch(f"{API}/profiles/me", json={"last_name": "   "}, headers=headers)
    assert resp.status_code == 422


def test_sign_out_revokes_supabase_session(client, login, monkeypatch):
    calls = []
    fake = SimpleNamespace(
        auth=SimpleNamespace(
            admin=SimpleNamespace(sign_out=lambda jwt, scope: calls.append((jwt, scope)))
        )
    )
    monkeypatch.setattr(profile_service_module, "supabase_admin", lambda: fake)
    _, headers = login()

    resp = client.post(f"{API}/auth/sign-out", headers=headers)

    assert resp.status_code == 204
    assert calls == [(headers["Authorization"].split(" ", 1)[1], "global")]


def test_sign_out_failure_is_store_unavailable(client, login, monkeypatch):
    def boom():
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY in .env")

    monkeypatch.setattr(profile_service_module, "supabase_admin", boom)
    _, headers = login()

    resp = client.post(f"{API}/auth/sign-out", headers=headers)

    assert resp.status_code == 503
    assert resp.json()["code"] == "store_unavailable"


def test_unreachable_store_is_503(client, login, monkeypatch):
    def dropped(session, user_id):
        raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

    monkeypatch.setattr(couples_router.service, "get_hydrated_couples", dropped)
    _, headers = login()

    resp = client.get(f"{API}/couples", headers=headers)

    assert resp.status_code == 503
    assert resp.json()["code"] == "store_unavailable"


# ----- couples -----


def test_linking_flow_and_error_codes(client, login):
    a_id, a = login()
    b_id, b = login()
    _, c = login()
    client.patch(f"{API}/profiles/me", json={"first_name": "Ana"}, headers=a)
    client.patch(f"{API}/profiles/me", json={"first_name": "Ben"}, headers=b)

    resp = client.post(f"{API}/couples/invite", headers=a)
    assert resp.status_code == 201
    code = resp.json()["linking_code"]
    assert len(code) == 6

    assert client.get(f"{API}/couples/invite", headers=a).json()["linking_code"] == code
    assert client.post(f"{API}/couples/invite", headers=a).json()["code"] == "pending_invite_exists"
    assert client.get(f"{API}/couples", headers=a).json() == []

    resp = client.post(f"{API}/couples/claim", json={"linking_code": code}, headers=a)
    assert (resp.status_code, resp.json()["code"]) == (400, "self_link")

    resp = client.post(f"{API}/couples/claim", json={"linking_code": code.lower()}, headers=b)
    assert resp.status_code == 200
    assert resp.json()["partner"]["id"] == str(a_id)
    assert resp.json()["partner"]["first_name"] == "Ana"

    resp = client.post(f"{API}/couples/claim", json={"linking_code": code}, headers=b)
    assert (resp.status_code, resp.json()["code"]) == (404, "code_not_found")

    resp = client.post(f"{API}/couples/claim", json={"linking_code": code}, headers=c)
    assert (resp.status_code, resp.json()["code"]) == (409, "already_claimed")

    couples = client.get(f"{API}/couples", headers=a).json()
    assert [x["partner"]["first_name"] for x in couples] == ["Ben"]
    assert client.get(f"{API}/couples/invite", headers=a).json() is None


def test_cancel_invite(client, login):
    _, a = login()
    client.post(f"{API}/couples/invite", headers=a)

    assert client.delete(f"{API}/couples/invite", headers=a).json() == {"canceled": True}
    assert client.delete(f"{API}/couples/invite", headers=a).json() == {"canceled": False}
    assert client.post(f"{API}/couples/invite", headers=a).status_code == 201


# ----- quiz -----


@pytest.fixture
def values_category(make_category, make_question):
    make_category("values")
    return [
        make_question("values", type="scale"),
        make_question("values", type="yes_no"),
        make_question("values", type="multiple_choice"),
    ]


def _answers(questions, scale=3, yes=True, choice="Beach"):
    scale_q, yes_no_q, choice_q = questions
    return [
        {"kind": "scale", "question_id": str(scale_q.id), "value": scale},
        {"kind": "yes_no", "question_id": str(yes_no_q.id), "value": yes},
        {"kind": "choice", "question_id": str(choice_q.id), "value": choice},
    ]


@pytest.fixture
def api_couple(client, login):
    a_id, a = login()
    b_id, b = login()
    code = client.post(f"{API}/couples/invite", headers=a).json()["linking_code"]
    couple_id = client.post(
        f"{API}/couples/claim", json={"linking_code": code}, headers=b
    ).json()["id"]
    return a, b, couple_id


def test_catalogue_lists_active_questions(client, login, values_category):
    _, headers = login()
    catalogue = client.get(f"{API}/quiz/categories", headers=headers).json()
    assert catalogue[0]["id"] == "values"
    assert len(catalogue[0]["questions"]) == 3


def test_solo_answers_and_progress(client, login, values_category):
    _, headers = login()

    resp = client.post(
        f"{API}/quiz/answers", json={"answers": _answers(values_category)[:2]}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["count"] == 2

    progress = client.get(f"{API}/quiz/progress", headers=headers).json()
    assert progress["values"]["questions_answered"] == 2
    assert progress["values"]["percentage"] == 67

    status = client.get(f"{API}/quiz/categories/values/status", headers=headers).json()
    assert status["status"] == "in_progress"


def test_answer_validation_errors(client, login, values_category):
    _, headers = login()

    resp = client.post(f"{API}/quiz/answers", json={"answers": []}, headers=headers)
    assert (resp.status_code, resp.json()["code"]) == (400, "empty_answer_batch")

    bad_kind = [{"kind": "emoji", "question_id": str(values_category[0].id), "value": ":)"}]
    resp = client.post(f"{API}/quiz/answers", json={"answers": bad_kind}, headers=headers)
    assert resp.status_code == 422

    mismatch = [{"kind": "text", "question_id": str(values_category[0].id), "value": "hi"}]
    resp = client.post(f"{API}/quiz/answers", json={"answers": mismatch}, headers=headers)
    assert (resp.status_code, resp.json()["code"]) == (422, "invalid_answer")


def test_couple_quiz_flow(client, api_couple, values_category):
    a, b, couple_id = api_couple
    completed_url = f"{API}/quiz/couples/{couple_id}/categories/values/completed"
    comparison_url = f"{API}/quiz/couples/{couple_id}/categories/values/comparison"

    client.post(
        f"{API}/quiz/answers",
        json={"couple_id": couple_id, "answers": _answers(values_category)},
        headers=a,
    )
    assert client.get(completed_url, headers=a).json()["completed"] is False
    status = client.get(
        f"{API}/quiz/categories/values/status", params={"couple_id": couple_id}, headers=a
    ).json()
    assert status["status"] == "awaiting_partner"

    resp = client.get(comparison_url, headers=a)
    assert (resp.status_code, resp.json()["code"]) == (409, "comparison_locked")

    client.post(
        f"{API}/quiz/answers",
        json={"couple_id": couple_id, "answers": _answers(values_category, scale=5, yes=False)},
        headers=b,
    )
    assert client.get(completed_url, headers=b).json()["completed"] is True

    items = client.get(comparison_url, headers=a).json()["items"]
    by_type = {i["question_type"]: (i["your_answer"], i["partner_answer"]) for i in items}
    assert by_type == {
        "scale": ("3", "5"),
        "yes_no": ("yes", "no"),
        "multiple_choice": ("Beach", "Beach"),
    }

    resp = client.delete(
        f"{API}/quiz/categories/values/answers", params={"couple_id": couple_id}, headers=b
    )
    assert resp.json()["deleted"] == 6
    for headers in (a, b):
        progress = client.get(
            f"{API}/quiz/progress", params={"couple_id": couple_id}, headers=headers
        ).json()
        assert progress["values"]["questions_answered"] == 0
        assert progress["values"]["total_questions"] == 3


def test_outsider_cannot_use_couple_context(client, login, api_couple, values_category):
    _, outsider = login()
    _, _, couple_id = api_couple

    resp = client.get(
        f"{API}/quiz/couples/{couple_id}/categories/values/completed", headers=outsider
    )
    assert (resp.status_code, resp.json()["code"]) == (404, "couple_not_found")

    resp = client.post(
        f"{API}/quiz/answers",
        json={"couple_id": couple_id, "answers": _answers(values_category)},
        headers=outsider,
    )
    assert resp.status_code == 404


def test_unknown_category_is_404_on_every_couple_endpoint(client, api_couple, values_category):
    a, _, couple_id = api_couple

    for suffix in ("completed", "comparison"):
        resp = client.get(f"{API}/quiz/couples/{couple_id}/categories/valuez/{suffix}", headers=a)
        assert (resp.status_code, resp.json()["code"]) == (404, "category_not_found")

    resp = client.get(
        f"{API}/quiz/categories/valuez/status", params={"couple_id": couple_id}, headers=a
    )
    assert (resp.status_code, resp.json()["code"]) == (404, "category_not_found")
