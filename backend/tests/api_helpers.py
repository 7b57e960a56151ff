"""HTTP helpers shared by the API tests."""
from fastapi.testclient import TestClient


def setup_category(client: TestClient, fmt="group_knockout", **category):
    tournament = client.post(
        "/api/tournaments",
        json={"name": "Spring Open", "start_time": "2026-05-01T09:00:00", "court_names": ["1", "2"]},
    ).json()
    payload = {"name": "Open", "format": fmt, "number_of_groups": 2, "qualifiers_per_group": 2}
    payload.update(category)
    category = client.post(f"/api/tournaments/{tournament['id']}/categories", json=payload).json()
    participants = client.post(
        f"/api/categories/{category['id']}/participants",
        json=[{"name": f"Team {i}"} for i in range(1, 7)],
    ).json()
    ids = [p["id"] for p in participants]
    resp = client.put(f"/api/categories/{category['id']}/groups", json={"A": ids[:3], "B": ids[3:]})
    assert resp.status_code == 200
    return tournament["id"], category["id"], ids


def play_groups(client: TestClient, category_id: int, ids, complete=True):
    """Round robin in both groups; the lower id always wins 6-2 6-3."""
    matches = []
    for group, members in (("A", ids[:3]), ("B", ids[3:])):
        for i in range(3):
            for j in range(i + 1, 3):
                resp = client.post(
                    f"/api/categories/{category_id}/matches",
                    json={"side_a": [members[i]], "side_b": [members[j]], "group_name": group},
                )
                assert resp.status_code == 201
                matches.append(resp.json())
    if complete:
        for m in matches:
            complete_match(client, m["tournament_id"], m["id"], "6-2 6-3")
    return matches


def complete_match(client: TestClient, tournament_id: int, match_id: int, sets: str):
    resp = client.patch(
        f"/api/tournaments/{tournament_id}/matches/{match_id}",
        json={"status": "completed", "sets": sets},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def by_label(client: TestClient, tournament_id: int, category_id: int):
    matches = client.get(f"/api/tournaments/{tournament_id}/matches", params={"category_id": category_id}).json()
    return {m["label"]: m for m in matches if m["label"]}
