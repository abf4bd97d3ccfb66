import base64
import json
import threading

import pytest

from giftdraw import create_app
from giftdraw.models import Assignment as AssignmentRow, Participant
from giftdraw.services import draw


def _add_names(client, *names):
    for name in names:
        client.post("/setup", data={"name": name})


def _ids_by_name(app):
    with app.app_context():
        return {p.name: p.id for p in draw.list_participants()}


def test_landing_goes_to_setup_without_a_draw(client):
    resp = client.get("/")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/setup")


def test_add_and_list_participants(client):
    _add_names(client, "Ann", "Bob")
    resp = client.get("/setup")
    assert b"Ann" in resp.data and b"Bob" in resp.data


def test_duplicate_name_is_flashed(client):
    _add_names(client, "Ann")
    resp = client.post("/setup", data={"name": "ann"}, follow_redirects=True)
    assert b"already on the list" in resp.data


def test_remove_participant(client, app):
    _add_names(client, "Ann", "Bob")
    ids = _ids_by_name(app)
    client.post(f"/setup/participants/{ids['Ann']}/delete")
    assert list(_ids_by_name(app)) == ["Bob"]


def test_draw_with_one_person_is_refused(client):
    _add_names(client, "Ann")
    resp = client.post("/draw", follow_redirects=True)
    assert b"Draw failed" in resp.data


def test_full_flow(client, app):
    _add_names(client, "Ann", "Bob", "Cat")

    resp = client.post("/draw")
    assert resp.headers["Location"].endswith("/select")
    assert client.get("/").headers["Location"].endswith("/select")

    ids = _ids_by_name(app)
    with app.app_context():
        receiver = draw.receiver_for(ids["Ann"]).name

    resp = client.post(f"/reveal/{ids['Ann']}")
    assert resp.status_code == 200
    assert receiver.encode() in resp.data

    resp = client.post(f"/reveal/{ids['Ann']}", follow_redirects=True)
    assert b"already seen their match" in resp.data
    assert b"1 / 3 revealed" in resp.data


def test_setup_is_locked_after_draw(client, app):
    _add_names(client, "Ann", "Bob")
    client.post("/draw")

    resp = client.post("/setup", data={"name": "Cat"})
    assert resp.headers["Location"].endswith("/select")
    assert "Cat" not in _ids_by_name(app)


def test_select_requires_draw(client):
    resp = client.get("/select")
    assert resp.headers["Location"].endswith("/setup")


def test_share_link_round_trip(client, app):
    _add_names(client, "Ann", "Bob", "Cat")
    client.post("/draw")
    with app.app_context():
        original = draw.load_assignments()

    resp = client.get("/share")
    assert b"https://party.example/?kura=" in resp.data
    token = resp.data.split(b"?kura=")[1].split(b'"')[0].decode()

    client.post("/reset")
    resp = client.get(f"/?kura={token}")
    assert resp.headers["Location"].endswith("/select")
    with app.app_context():
        assert draw.load_assignments() == original


def test_broken_share_link(client):
    payload = {
        "participants": [{"id": "a", "name": "A"}, {"id": "b", "name": "B"}],
        "assignments": [{"giverId": "a", "receiverId": "a"}, {"giverId": "b", "receiverId": "b"}],
    }
    token = base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")

    resp = client.get(f"/?kura={token}", follow_redirects=True)
    assert b"broken or has been altered" in resp.data


def test_reset(client, app):
    _add_names(client, "Ann", "Bob")
    client.post("/draw")

    resp = client.post("/reset")
    assert resp.headers["Location"].endswith("/setup")
    with app.app_context():
        assert Participant.query.count() == 0


def test_share_page_refused_for_imported_draw(client):
    payload = {
        "participants": [{"id": "a", "name": "A"}, {"id": "b", "name": "B"}],
        "assignments": [{"giverId": "a", "receiverId": "b"}, {"giverId": "b", "receiverId": "a"}],
    }
    token = base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")
    client.get(f"/?kura={token}")

    resp = client.get("/share")
    assert resp.headers["Location"].endswith("/select")
    assert b"kura=" not in client.get("/select").data


# ---------------------
# Concurrent requests
# ---------------------

@pytest.fixture
def file_app(tmp_path):
    # Threads need separate connections, which an in-memory database cannot give.
    return create_app({
        "TESTING": True,
        "SECRET_KEY": "test",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'giftdraw.db'}",
        "WTF_CSRF_ENABLED": False,
    })


def _post_together(app, path, count=2):
    responses, errors = [], []

    def worker():
        try:
            responses.append(app.test_client().post(path))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return responses, errors


def test_double_clicked_draw_stores_one_draw(file_app, monkeypatch):
    _add_names(file_app.test_client(), "Ann", "Bob", "Cat")

    barrier = threading.Barrier(2, timeout=10)
    real_generate = draw.generate_derangement

    def generate_in_step(people, **kwargs):
        barrier.wait()
        return real_generate(people, **kwargs)

    monkeypatch.setattr(draw, "generate_derangement", generate_in_step)

    responses, errors = _post_together(file_app, "/draw")

    assert errors == []
    assert [r.status_code for r in responses] == [302, 302]
    with file_app.app_context():
        assert AssignmentRow.query.count() == 3
        assert len(draw.load_assignments()) == 3


def test_simultaneous_reveals_show_the_match_once(file_app, monkeypatch):
    client = file_app.test_client()
    _add_names(client, "Ann", "Bob", "Cat")
    client.post("/draw")
    ann_id = _ids_by_name(file_app)["Ann"]

    barrier = threading.Barrier(2, timeout=10)
    real_receiver_in = draw._receiver_in

    def lookup_in_step(assignments, giver_id):
        barrier.wait()
        return real_receiver_in(assignments, giver_id)

    monkeypatch.setattr(draw, "_receiver_in", lookup_in_step)

    responses, errors = _post_together(file_app, f"/reveal/{ann_id}")

    assert errors == []
    assert sorted(r.status_code for r in responses) == [200, 302]
    with file_app.app_context():
        assert draw.revealed_progress() == (1, 3)
