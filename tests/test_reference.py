# tests/test_reference.py
def test_sections_and_facilities(client, seed):
    r = client.get("/sections/")
    assert r.status_code == 200
    assert [s["name"] for s in r.json()] == ["Electrical", "Plumbing"]

    r = client.get("/facilities/")
    assert r.status_code == 200
    assert r.json()[0] == {"id": seed.north.id, "name": "North Wing", "location": "Block A"}


def test_technicians_only_lists_technicians(client, seed):
    r = client.get("/technicians/")
    assert r.status_code == 200
    assert [u["username"] for u in r.json()] == ["tom", "tina"]
    assert {u["role"] for u in r.json()} == {"technician"}


def test_users_skip_inactive_and_filter_by_role(client, db, seed):
    seed.bob.is_active = False
    db.commit()

    r = client.get("/users/")
    assert [u["username"] for u in r.json()] == ["admin", "alice", "tom", "tina"]

    r = client.get("/users/", params={"role": "user"})
    assert [u["username"] for u in r.json()] == ["alice"]

    assert client.get("/users/", params={"role": "superuser"}).status_code == 422
