from nine_worlds.config import AUTH_COOKIE_NAME
from nine_worlds.models.user_model import AUTHOR_ROLE_ID


async def test_register_login_me(client):
    resp = await client.post("/auth/register", json={
        "username": "sigrid",
        "email": "Sigrid@Example.com",
        "password": "long-enough-pw",
    })
    assert resp.status_code == 201, resp.text
    assert resp.json()["user"]["role"] == "reader"

    dup = await client.post("/auth/register", json={
        "username": "sigrid",
        "email": "other@example.com",
        "password": "long-enough-pw",
    })
    assert dup.status_code == 409

    login = await client.post("/auth/login", json={"identifier": "sigrid@example.com", "password": "long-enough-pw"})
    assert login.status_code == 200
    assert AUTH_COOKIE_NAME in login.cookies

    # the cookie alone authenticates
    me = await client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["username"] == "sigrid"

    await client.post("/auth/logout")
    client.cookies.clear()
    assert (await client.get("/auth/me")).status_code == 401


async def test_bad_credentials(client, reader):
    resp = await client.post("/auth/login", json={"identifier": "reader", "password": "nope-nope"})
    assert resp.status_code == 401


async def test_novel_chapter_reaction_flow(client, login, author, reader):
    author_h = await login("author")
    reader_h = await login("reader")

    resp = await client.post("/novels", json={"title": "Midgard", "summary": "Home"}, headers=author_h)
    assert resp.status_code == 201, resp.text
    novel_id = resp.json()["id"]

    resp = await client.post(f"/novels/{novel_id}/chapters", json={"title": "One", "content": "..."}, headers=author_h)
    assert resp.status_code == 201
    chapter = resp.json()
    assert chapter["chapter_number"] == 1

    for expected in (True, False):
        resp = await client.post(
            "/reactions",
            json={"target_type": "chapter", "target_id": chapter["id"], "reaction_type": "like"},
            headers=reader_h,
        )
        assert resp.status_code == 200
        assert resp.json()["reacted"] is expected

    stats = (await client.get(f"/novels/{novel_id}/statistics")).json()
    assert stats["total_reactions"] == 0
    assert stats["total_chapters"] == 1

    viewed = await client.get(f"/novels/{novel_id}")
    assert viewed.status_code == 200
    assert viewed.json()["views"] == 1


async def test_reader_is_forbidden_to_create_novel(client, login, reader):
    headers = await login("reader")
    resp = await client.post("/novels", json={"title": "Mine", "summary": "..."}, headers=headers)
    assert resp.status_code == 403


async def test_profane_comment_is_rejected(client, login, author, reader):
    author_h = await login("author")
    novel_id = (await client.post("/novels", json={"title": "Clean", "summary": "..."}, headers=author_h)).json()["id"]

    reader_h = await login("reader")
    resp = await client.post(
        "/comments",
        json={"target_type": "novel", "target_id": novel_id, "content": "well shit"},
        headers=reader_h,
    )
    assert resp.status_code == 400

    ok = await client.post(
        "/comments",
        json={"target_type": "novel", "target_id": novel_id, "content": "a classic"},
        headers=reader_h,
    )
    assert ok.status_code == 201
    listed = await client.get(f"/novels/{novel_id}/comments")
    assert [c["content"] for c in listed.json()] == ["a classic"]


async def test_owner_console_ban_flow(client, login, owner, reader, admin):
    owner_h = await login("owner")
    reader_h = await login("reader")

    resp = await client.post(
        f"/admin/users/{reader.id}/ban", json={"reason": "spam", "duration": "7 days"}, headers=owner_h
    )
    assert resp.status_code == 200

    # the old token stops working
    assert (await client.get("/auth/me", headers=reader_h)).status_code == 403
    blocked = await client.post("/auth/login", json={"identifier": "reader", "password": "correct-horse-battery"})
    assert blocked.status_code == 403

    details = (await client.get(f"/admin/users/{reader.id}", headers=owner_h)).json()
    assert details["is_banned"] is True

    assert (await client.post(f"/admin/users/{reader.id}/unban", headers=owner_h)).status_code == 200
    assert (await client.get("/auth/me", headers=reader_h)).status_code == 200

    logs = (await client.get("/admin/logs", headers=owner_h)).json()
    assert [entry["action"] for entry in logs["logs"]] == ["unban_user", "ban_user"]


async def test_admin_is_not_owner(client, login, owner, admin, reader):
    admin_h = await login("admin")
    assert (await client.get("/admin/users", headers=admin_h)).status_code == 403
    resp = await client.post(f"/admin/users/{owner.id}/ban", json={"reason": "coup"}, headers=admin_h)
    assert resp.status_code == 403
    resp = await client.patch(f"/admin/users/{owner.id}/role", json={"role_id": AUTHOR_ROLE_ID}, headers=admin_h)
    assert resp.status_code == 403

    # admin-level routes are open to admins
    assert (await client.get("/admin/logs", headers=admin_h)).status_code == 200


async def test_bad_ban_duration_is_422(client, login, owner, reader):
    owner_h = await login("owner")
    resp = await client.post(
        f"/admin/users/{reader.id}/ban", json={"reason": "spam", "duration": "a while"}, headers=owner_h
    )
    assert resp.status_code == 422


async def test_library_and_history_routes(client, login, author, reader):
    author_h = await login("author")
    novel_id = (await client.post("/novels", json={"title": "Lib", "summary": "..."}, headers=author_h)).json()["id"]
    chapter_id = (
        await client.post(f"/novels/{novel_id}/chapters", json={"title": "One", "content": "..."}, headers=author_h)
    ).json()["id"]

    reader_h = await login("reader")
    assert (await client.post(f"/library/{novel_id}", headers=reader_h)).json()["in_library"] is True
    assert [n["id"] for n in (await client.get("/library", headers=reader_h)).json()] == [novel_id]

    resp = await client.post(
        "/reading-history", json={"novel_id": novel_id, "chapter_id": chapter_id, "position": 4}, headers=reader_h
    )
    assert resp.status_code == 200
    progress = (await client.get(f"/reading-history/{novel_id}", headers=reader_h)).json()
    assert progress["position"] == 4

    assert (await client.delete(f"/library/{novel_id}", headers=reader_h)).status_code == 204
    assert (await client.get(f"/library/{novel_id}", headers=reader_h)).json()["in_library"] is False


async def test_search_routes(client, login, author):
    headers = await login("author")
    await client.post("/novels", json={"title": "Valhalla Rising", "summary": "..."}, headers=headers)

    found = (await client.get("/search", params={"q": "valhalla"})).json()
    assert [n["title"] for n in found] == ["Valhalla Rising"]

    ranked = await client.get("/rankings/novels", params={"by": "comments"})
    assert ranked.status_code == 200
    assert (await client.get("/rankings/novels", params={"by": "likes"})).status_code == 422
