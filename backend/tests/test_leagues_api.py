"""League endpoints: scales, attachments, entity links, recompute."""
from fastapi.testclient import TestClient

from tests.api_helpers import by_label, complete_match, play_groups, setup_category


def _finished_tournament(client: TestClient):
    """Group + knockout category played to the end; winner is ids[0], runner-up ids[1]."""
    tournament_id, category_id, ids = setup_category(client)
    play_groups(client, category_id, ids)
    client.post(f"/api/categories/{category_id}/knockout")
    stored = by_label(client, tournament_id, category_id)
    complete_match(client, tournament_id, stored["SF1"]["id"], "6-1 6-1")
    complete_match(client, tournament_id, stored["SF2"]["id"], "2-6 2-6")
    stored = by_label(client, tournament_id, category_id)
    complete_match(client, tournament_id, stored["F"]["id"], "6-4 6-4")
    complete_match(client, tournament_id, stored["3P"]["id"], "3-6 3-6")
    return tournament_id, ids


def _league(client: TestClient, name="Club League"):
    resp = client.post("/api/leagues", json={"name": name, "scoring_system": {"1": 10, "2": 6, "3": 4}})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_league(client: TestClient):
    league = _league(client)
    assert league["scoring_system"] == {"1": 10, "2": 6, "3": 4}
    assert client.get(f"/api/leagues/{league['id']}").json()["name"] == "Club League"
    assert client.post("/api/leagues", json={"name": "Club League", "scoring_system": {}}).status_code == 409


def test_invalid_scale_rejected(client: TestClient):
    resp = client.post("/api/leagues", json={"name": "Bad", "scoring_system": {"0": 5}})
    assert resp.status_code == 422
    resp = client.post("/api/leagues", json={"name": "Bad", "scoring_system": {"1": -1}})
    assert resp.status_code == 422


def test_recompute_from_finished_tournament(client: TestClient):
    tournament_id, ids = _finished_tournament(client)
    league = _league(client)
    resp = client.post(f"/api/leagues/{league['id']}/tournaments", json={"tournament_id": tournament_id})
    assert resp.status_code == 201
    assert (
        client.post(f"/api/leagues/{league['id']}/tournaments", json={"tournament_id": tournament_id}).status_code
        == 409
    )

    alice = client.post("/api/entities", json={"name": "Alice"}).json()
    bob = client.post("/api/entities", json={"name": "Bob"}).json()
    assert client.post(f"/api/entities/{alice['id']}/links", json={"participant_id": ids[0]}).status_code == 201
    assert client.post(f"/api/entities/{alice['id']}/links", json={"participant_id": ids[0]}).status_code == 201
    client.post(f"/api/entities/{bob['id']}/links", json={"participant_id": ids[3]})

    resp = client.post(f"/api/leagues/{league['id']}/recompute")
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert [(r["entity_id"], r["total_points"], r["best_position"], r["rank"]) for r in body["standings"]] == [
        (alice["id"], 10, 1, 1),
        (bob["id"], 4, 3, 2),
    ]
    # Runner-up and 4th place have no entity link
    assert sorted(u["participant_id"] for u in body["unresolved"]) == [ids[1], ids[4]]
    assert body["skipped_tournament_ids"] == []

    stored = client.get(f"/api/leagues/{league['id']}/standings").json()
    assert stored == body["standings"]

    again = client.post(f"/api/leagues/{league['id']}/recompute").json()
    assert again["standings"] == body["standings"]
    assert client.get(f"/api/leagues/{league['id']}/standings").json() == stored

    strict = client.post(f"/api/leagues/{league['id']}/recompute", params={"strict": True})
    assert strict.status_code == 422
    assert "UnresolvedEntityError" in strict.json()["detail"]
    assert client.get(f"/api/leagues/{league['id']}/standings").json() == stored


def test_unfinished_tournament_is_skipped(client: TestClient):
    tournament_id, category_id, ids = setup_category(client)
    play_groups(client, category_id, ids)
    league = _league(client)
    client.post(f"/api/leagues/{league['id']}/tournaments", json={"tournament_id": tournament_id})

    body = client.post(f"/api/leagues/{league['id']}/recompute").json()
    assert body["standings"] == []
    assert body["skipped_tournament_ids"] == [tournament_id]


def test_link_requires_existing_rows(client: TestClient):
    entity = client.post("/api/entities", json={"name": "Carol"}).json()
    assert client.post(f"/api/entities/{entity['id']}/links", json={"participant_id": 999}).status_code == 404
    assert client.post("/api/entities/999/links", json={"participant_id": 1}).status_code == 404


def test_last_completion_recomputes_attached_leagues(client: TestClient):
    tournament_id, category_id, ids = setup_category(client)
    play_groups(client, category_id, ids)
    client.post(f"/api/categories/{category_id}/knockout")
    league = _league(client)
    client.post(f"/api/leagues/{league['id']}/tournaments", json={"tournament_id": tournament_id})
    alice = client.post("/api/entities", json={"name": "Alice"}).json()
    client.post(f"/api/entities/{alice['id']}/links", json={"participant_id": ids[0]})

    stored = by_label(client, tournament_id, category_id)
    complete_match(client, tournament_id, stored["SF1"]["id"], "6-1 6-1")
    complete_match(client, tournament_id, stored["SF2"]["id"], "2-6 2-6")
    stored = by_label(client, tournament_id, category_id)
    body = complete_match(client, tournament_id, stored["F"]["id"], "6-4 6-4")
    assert body["recomputed_league_ids"] == []
    assert client.get(f"/api/leagues/{league['id']}/standings").json() == []

    body = complete_match(client, tournament_id, stored["3P"]["id"], "3-6 3-6")
    assert body["recomputed_league_ids"] == [league["id"]]
    standings = client.get(f"/api/leagues/{league['id']}/standings").json()
    assert [(r["entity_id"], r["total_points"], r["rank"]) for r in standings] == [(alice["id"], 10, 1)]


def test_recompute_zeroes_rows_it_no_longer_earns(client: TestClient):
    tournament_id, ids = _finished_tournament(client)
    league = _league(client)
    client.post(f"/api/leagues/{league['id']}/tournaments", json={"tournament_id": tournament_id})
    alice = client.post("/api/entities", json={"name": "Alice"}).json()
    bob = client.post("/api/entities", json={"name": "Bob"}).json()
    client.post(f"/api/entities/{alice['id']}/links", json={"participant_id": ids[0]})
    client.post(f"/api/entities/{bob['id']}/links", json={"participant_id": ids[3]})
    assert len(client.post(f"/api/leagues/{league['id']}/recompute").json()["standings"]) == 2

    # An unplayed category reopens the tournament, so it stops counting
    resp = client.post(
        f"/api/tournaments/{tournament_id}/categories",
        json={"name": "Juniors", "format": "group_knockout", "number_of_groups": 2, "qualifiers_per_group": 2},
    )
    assert resp.status_code == 201
    body = client.post(f"/api/leagues/{league['id']}/recompute").json()
    assert body["standings"] == []
    assert body["skipped_tournament_ids"] == [tournament_id]

    stored = client.get(f"/api/leagues/{league['id']}/standings").json()
    rows = [(r["entity_id"], r["total_points"], r["tournaments_played"], r["best_position"], r["rank"]) for r in stored]
    assert rows == [
        (alice["id"], 0, 0, None, 1),
        (bob["id"], 0, 0, None, 2),
    ]

    assert client.delete(f"/api/leagues/{league['id']}/standings/{bob['id']}").status_code == 204
    assert [r["entity_id"] for r in client.get(f"/api/leagues/{league['id']}/standings").json()] == [alice["id"]]
    assert client.delete(f"/api/leagues/{league['id']}/standings/{bob['id']}").status_code == 404
