from unittest import mock

from commitlink.extensions import db
from commitlink.models import TicketHistory
from commitlink.repositories import TicketHistoryRepository
from conftest import encode, sign

REPO = "https://gitea.example.com/acme/widgets"


def _push(message="fix #7", repo=REPO):
    return {
        "ref": "refs/heads/main",
        "repository": {"html_url": repo},
        "commits": [{"id": "abc123", "message": message, "author": {"email": "a@x.com"}}],
    }


def _entries():
    return db.session.scalars(db.select(TicketHistory)).all()


def test_health(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


def test_empty_payload(client):
    resp = client.post("/hook", data=b"")
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Empty payload"


def test_invalid_json(client, make_source):
    make_source()
    assert client.post("/hook", data=b"{not json").status_code == 400
    resp = client.post("/hook", data=b"[1, 2]")
    assert resp.status_code == 400
    assert resp.get_json() == {"success": False, "message": "Invalid JSON"}


def test_commit_linked_to_existing_ticket(client, make_source, make_ticket, make_user):
    make_source(secret="")
    make_ticket(7)
    make_user(9, "a@x.com")

    resp = client.post("/hook", data=encode(_push()), content_type="application/json")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["branch"] == "main"
    assert body["commit_sha"] == "abc123"
    assert body["tickets_linked"] == [7]

    entries = _entries()
    assert len(entries) == 1
    entry = entries[0]
    assert (entry.ticket_id, entry.user_id, entry.change_type) == (7, 9, "commit")
    assert entry.change_value == f"{REPO}/commit/abc123||fix #7"


def test_unknown_ticket_still_returns_200(client, make_source, make_user):
    make_source(secret="")
    make_user(9, "a@x.com")

    resp = client.post("/hook", data=encode(_push()))

    assert resp.status_code == 200
    assert resp.get_json()["tickets_linked"] == []
    assert _entries() == []


def test_unresolved_author_recorded_as_zero(client, make_source, make_ticket):
    make_source(secret="")
    make_ticket(7)

    assert client.post("/hook", data=encode(_push())).status_code == 200
    assert _entries()[0].user_id == 0


def test_signed_delivery_matches_by_secret(client, make_source, make_ticket):
    make_source(url="https://gitea.example.com/other/repo", secret="topsecret")
    make_ticket(7)
    body = encode(_push(repo="https://mirror.example.com/x/y"))

    resp = client.post("/hook", data=body, headers={"X-Gitea-Signature": sign("topsecret", body)[7:]})

    assert resp.status_code == 200
    assert len(_entries()) == 1


def test_github_style_headers(client, make_source, make_ticket):
    make_source(secret="topsecret")
    make_ticket(7)
    body = encode(_push())
    headers = {"X-Hub-Signature": "sha1=deadbeef", "X-Hub-Signature-256": sign("topsecret", body)}

    assert client.post("/hook", data=body, headers=headers).status_code == 200


def test_no_matching_configuration(client, make_source, make_ticket):
    make_source(url="https://gitea.example.com/acme/widgets", secret="topsecret")
    make_ticket(7)
    body = encode(_push(repo="https://github.com/someone/else"))

    resp = client.post("/hook", data=body, headers={"X-Gitea-Signature": sign("wrong", body)})

    assert resp.status_code == 404
    assert resp.get_json() == {"success": False, "message": "No matching repository configuration found"}
    assert _entries() == []


def test_signature_mismatch_writes_nothing(client, make_source, make_ticket):
    make_source(secret="topsecret")
    make_ticket(7)
    body = encode(_push())

    with mock.patch("commitlink.app.TicketHistoryRepository") as ledger_cls:
        resp = client.post("/hook", data=body, headers={"X-Gitea-Signature": sign("wrong", body)})

    assert resp.status_code == 403
    assert resp.get_json() == {"success": False, "message": "Signature mismatch"}
    assert ledger_cls.return_value.add_history.call_count == 0
    assert _entries() == []


def test_linking_crash_still_acknowledged(client, make_source):
    make_source(secret="")

    with mock.patch("commitlink.app.process_push", side_effect=RuntimeError("boom")):
        resp = client.post("/hook", data=encode(_push()))

    assert resp.status_code == 200
    assert resp.get_json() == {"success": True}


def test_partial_failure_reported(client, make_source, make_ticket):
    make_source(secret="")
    make_ticket(1)
    make_ticket(2)
    real_add = TicketHistoryRepository.add_history

    def flaky(self, ticket_id, *args):
        if ticket_id == 1:
            raise RuntimeError("insert failed")
        return real_add(self, ticket_id, *args)

    with mock.patch("commitlink.repositories.TicketHistoryRepository.add_history", flaky):
        resp = client.post("/hook", data=encode(_push(message="#1 then #2")))

    body = resp.get_json()
    assert resp.status_code == 200
    assert body["tickets_linked"] == [2]
    assert body["ticket_errors"][0]["ticket_id"] == 1
    assert [e.ticket_id for e in _entries()] == [2]


def test_lone_sha1_signature_is_rejected(client, make_source, make_ticket):
    make_source(secret="topsecret")
    make_ticket(7)

    resp = client.post("/hook", data=encode(_push()), headers={"X-Hub-Signature": "sha1=forged"})

    assert resp.status_code == 403
    assert resp.get_json() == {"success": False, "message": "Signature mismatch"}
    assert _entries() == []


def test_whitespace_body_is_invalid_json(client):
    resp = client.post("/hook", data=b"   \n")

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Invalid JSON"


def test_multiline_message_stored_verbatim(client, make_source, make_ticket):
    make_source(secret="")
    make_ticket(7)

    assert client.post("/hook", data=encode(_push(message="fix #7\n\nbody\n"))).status_code == 200
    assert _entries()[0].change_value == f"{REPO}/commit/abc123||fix #7\n\nbody\n"
