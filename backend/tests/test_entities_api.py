"""
Tests for the generic CRUD surface served for every registered entity.
"""

import uuid

import pytest


ITEMS = "/api/v1/items"


def create(client, path, payload, headers):
    response = client.post(path, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def assert_error(response, status_code, code):
    assert response.status_code == status_code, response.text
    body = response.json()
    assert set(body) == {"error"}
    assert body["error"]["code"] == code
    assert "message" in body["error"]
    assert isinstance(body["error"]["details"], dict)
    return body["error"]


class TestRoundTrip:
    """Create, read, update and delete through HTTP."""

    def test_course_round_trip(self, client, user_headers):
        created = create(client, "/api/v1/courses", {"name": "X", "title": "Y"}, user_headers)

        assert created["id"]
        assert created["name"] == "X"
        assert created["title"] == "Y"
        assert created["ownerIds"] == ["user-1"]

        fetched = client.get(f"/api/v1/courses/{created['id']}", headers=user_headers).json()
        for key in ("id", "name", "title", "description", "category", "ownerIds", "deletedAt"):
            assert fetched[key] == created[key]

    def test_create_then_get(self, client, user_headers):
        created = create(client, ITEMS, {"name": "Widget", "sku": "W-1", "quantity": 3}, user_headers)

        assert uuid.UUID(created["id"]).version == 7
        assert created["ownerIds"] == ["user-1"]
        assert created["deletedAt"] is None
        assert "createdAt" in created and "updatedAt" in created

        response = client.get(f"{ITEMS}/{created['id']}", headers=user_headers)
        assert response.status_code == 200
        fetched = response.json()
        assert fetched["name"] == "Widget"
        assert fetched["sku"] == "W-1"
        assert fetched["quantity"] == 3
        assert fetched["id"] == created["id"]

    def test_snake_case_input_is_accepted(self, client, admin_headers):
        plan = create(
            client,
            "/api/v1/subscription-plans",
            {"name": "Pro", "price_amount": 1900, "features": ["sso"]},
            admin_headers,
        )
        assert plan["priceAmount"] == 1900
        assert plan["features"] == ["sso"]
        assert plan["isActive"] is True

    def test_sparse_update(self, client, user_headers):
        created = create(client, ITEMS, {"name": "Widget", "sku": "W-1", "quantity": 3}, user_headers)

        response = client.patch(f"{ITEMS}/{created['id']}", json={"quantity": 9}, headers=user_headers)
        assert response.status_code == 204
        assert response.content == b""

        fetched = client.get(f"{ITEMS}/{created['id']}", headers=user_headers).json()
        assert fetched["quantity"] == 9
        assert fetched["name"] == "Widget"
        assert fetched["sku"] == "W-1"

    def test_hard_delete_is_default(self, client, user_headers):
        created = create(client, ITEMS, {"name": "Widget"}, user_headers)

        response = client.delete(f"{ITEMS}/{created['id']}", headers=user_headers)
        assert response.status_code == 204

        assert_error(client.get(f"{ITEMS}/{created['id']}", headers=user_headers), 404, "ENT001")

    def test_scoped_delete_hides_entity(self, client, user_headers):
        kept = create(client, ITEMS, {"name": "Kept"}, user_headers)
        gone = create(client, ITEMS, {"name": "Gone"}, user_headers)

        response = client.delete(f"{ITEMS}/{gone['id']}?scoped=true", headers=user_headers)
        assert response.status_code == 204

        assert_error(client.get(f"{ITEMS}/{gone['id']}", headers=user_headers), 404, "ENT001")
        listing = client.get(ITEMS, headers=user_headers).json()
        assert [item["id"] for item in listing["data"]] == [kept["id"]]
        assert listing["pagination"]["total"] == 1


class TestListing:
    def test_offset_envelope(self, client, user_headers):
        for i in range(5):
            create(client, ITEMS, {"name": f"item-{i}"}, user_headers)

        body = client.get(f"{ITEMS}?page=2&pageSize=2", headers=user_headers).json()

        assert len(body["data"]) == 2
        assert body["pagination"] == {
            "page": 2,
            "pageSize": 2,
            "total": 5,
            "totalPages": 3,
            "hasNextPage": True,
            "hasPreviousPage": True,
        }

    def test_cursor_traversal(self, client, user_headers):
        created = [create(client, ITEMS, {"name": f"item-{i}"}, user_headers)["id"] for i in range(15)]

        seen = []
        sizes = []
        url = f"{ITEMS}?cursor=&limit=4"
        while True:
            body = client.get(url, headers=user_headers).json()
            seen.extend(item["id"] for item in body["data"])
            sizes.append(len(body["data"]))
            assert body["limit"] == 4
            assert body["total"] == 15
            if not body["hasMore"]:
                assert body["nextCursor"] == ""
                break
            url = f"{ITEMS}?cursor={body['nextCursor']}&limit=4"

        assert sizes == [4, 4, 4, 3]
        assert seen == sorted(created, key=uuid.UUID)
        assert len(set(seen)) == 15

    def test_limit_with_page_selects_offset_mode(self, client, user_headers):
        create(client, ITEMS, {"name": "only"}, user_headers)
        body = client.get(f"{ITEMS}?limit=4&page=1", headers=user_headers).json()
        assert "pagination" in body
        assert "nextCursor" not in body

    def test_unknown_parameters_are_ignored(self, client, user_headers):
        create(client, ITEMS, {"name": "a"}, user_headers)
        create(client, ITEMS, {"name": "b"}, user_headers)

        body = client.get(f"{ITEMS}?color=red&shape=round", headers=user_headers).json()
        assert body["pagination"]["total"] == 2

    def test_filters_through_http(self, client, user_headers):
        create(client, "/api/v1/courses", {"name": "Algebra", "title": "A", "category": "math"}, user_headers)
        create(client, "/api/v1/courses", {"name": "Drawing", "title": "D", "category": "art"}, user_headers)
        create(client, "/api/v1/courses", {"name": "Music", "title": "M", "category": "sound"}, user_headers)

        body = client.get("/api/v1/courses?category=math,art", headers=user_headers).json()
        assert sorted(c["name"] for c in body["data"]) == ["Algebra", "Drawing"]

        body = client.get("/api/v1/courses?category=math&category=sound", headers=user_headers).json()
        assert sorted(c["name"] for c in body["data"]) == ["Algebra", "Music"]

    @pytest.mark.parametrize(
        "query",
        ["page=0", "pageSize=0", "pageSize=1000", "page=abc", "limit=0", "limit=1000"],
    )
    def test_bad_pagination(self, client, user_headers, query):
        assert_error(client.get(f"{ITEMS}?{query}", headers=user_headers), 400, "ENT009")

    def test_bad_cursor(self, client, user_headers):
        error = assert_error(client.get(f"{ITEMS}?cursor=@@@", headers=user_headers), 400, "ENT010")
        assert error["details"]["cursor"] == "@@@"

    def test_cursor_of_wrong_length(self, client, user_headers):
        assert_error(client.get(f"{ITEMS}?cursor=not-base64&limit=5", headers=user_headers), 400, "ENT010")


class TestIncludes:
    @pytest.fixture
    def course(self, client, user_headers):
        section = create(client, "/api/v1/sections", {"title": "Intro"}, user_headers)
        chapter = create(
            client, "/api/v1/chapters", {"title": "Basics", "sectionIds": [section["id"]]}, user_headers
        )
        course = create(
            client,
            "/api/v1/courses",
            {"name": "Math", "title": "Math", "chapterIds": [chapter["id"]]},
            user_headers,
        )
        return {"course": course, "chapter": chapter, "section": section}

    def test_no_include_returns_scalars_only(self, client, user_headers, course):
        body = client.get(f"/api/v1/courses/{course['course']['id']}", headers=user_headers).json()
        assert body["name"] == "Math"
        assert "chapters" not in body

    def test_explicit_include(self, client, user_headers, course):
        body = client.get(
            f"/api/v1/courses/{course['course']['id']}?include=chapters", headers=user_headers
        ).json()
        assert [c["id"] for c in body["chapters"]] == [course["chapter"]["id"]]

    def test_nested_include(self, client, user_headers, course):
        body = client.get(
            f"/api/v1/courses/{course['course']['id']}?include=Chapters.Sections", headers=user_headers
        ).json()
        chapter = body["chapters"][0]
        assert [s["id"] for s in chapter["sections"]] == [course["section"]["id"]]

    def test_include_all_on_list(self, client, user_headers, course):
        body = client.get("/api/v1/courses?include=*", headers=user_headers).json()
        assert [c["id"] for c in body["data"][0]["chapters"]] == [course["chapter"]["id"]]

    def test_unknown_include(self, client, user_headers, course):
        error = assert_error(
            client.get(f"/api/v1/courses/{course['course']['id']}?include=students", headers=user_headers),
            400,
            "ENT008",
        )
        assert error["details"]["field"] == "include"


class TestAuthorization:
    def test_missing_token(self, client):
        assert_error(client.get(ITEMS), 401, "HTTP401")

    def test_malformed_token(self, client):
        assert_error(client.get(ITEMS, headers={"Authorization": "Bearer nope"}), 401, "HTTP401")

    def test_other_users_resource_is_forbidden(self, client, user_headers, auth_headers_for):
        created = create(client, ITEMS, {"name": "Mine"}, user_headers)
        stranger = auth_headers_for("user-2", ["user"])

        # Reading is a role default; changing is reserved to the owner
        assert client.get(f"{ITEMS}/{created['id']}", headers=stranger).status_code == 200
        error = assert_error(
            client.patch(f"{ITEMS}/{created['id']}", json={"name": "Theirs"}, headers=stranger),
            403,
            "ENT006",
        )
        assert error["details"]["userId"] == "user-2"
        assert_error(client.delete(f"{ITEMS}/{created['id']}", headers=stranger), 403, "ENT006")

    def test_read_only_role(self, client, user_headers, admin_headers):
        create(client, "/api/v1/subscription-plans", {"name": "Pro"}, admin_headers)

        assert client.get("/api/v1/subscription-plans", headers=user_headers).status_code == 200
        assert_error(
            client.post("/api/v1/subscription-plans", json={"name": "Free"}, headers=user_headers),
            403,
            "ENT006",
        )

    def test_administrator_can_change_anything(self, client, user_headers, admin_headers):
        created = create(client, ITEMS, {"name": "Mine"}, user_headers)

        response = client.patch(f"{ITEMS}/{created['id']}", json={"name": "Admin's"}, headers=admin_headers)
        assert response.status_code == 204

    def test_owner_policies_are_isolated(self, client, kernel, auth_headers_for):
        first = create(client, ITEMS, {"name": "E1"}, auth_headers_for("u1", ["user"]))
        second = create(client, ITEMS, {"name": "E2"}, auth_headers_for("u2", ["user"]))

        assert kernel.enforcer.get_filtered_policy(subject="u1") == [("u1", f"{ITEMS}/{first['id']}", "*")]
        assert kernel.enforcer.get_filtered_policy(subject="u2") == [("u2", f"{ITEMS}/{second['id']}", "*")]

    def test_no_roles_no_access(self, client, auth_headers_for):
        assert_error(client.get(ITEMS, headers=auth_headers_for("nobody", [])), 403, "ENT006")

    def test_delete_revokes_owner_policy(self, client, user_headers, kernel):
        created = create(client, ITEMS, {"name": "Mine"}, user_headers)
        resource = f"{ITEMS}/{created['id']}"
        assert kernel.enforcer.has_policy("user-1", resource, "*")

        client.delete(resource, headers=user_headers)

        assert not kernel.enforcer.get_filtered_policy(obj=resource)


class TestErrors:
    def test_invalid_id(self, client, user_headers):
        error = assert_error(client.get(f"{ITEMS}/not-a-uuid", headers=user_headers), 400, "ENT008")
        assert error["details"]["field"] == "id"

    def test_missing_entity(self, client, user_headers):
        error = assert_error(client.get(f"{ITEMS}/{uuid.uuid4()}", headers=user_headers), 404, "ENT001")
        assert error["details"]["entityName"] == "Item"

    def test_body_validation(self, client, user_headers):
        error = assert_error(client.post(ITEMS, json={"quantity": -1}, headers=user_headers), 400, "ENT004")
        assert error["details"]["errors"]

    def test_null_for_required_field_is_rejected(self, client, user_headers):
        item = create(client, ITEMS, {"name": "Widget", "sku": "W-1"}, user_headers)

        response = client.patch(f"{ITEMS}/{item['id']}", json={"name": None}, headers=user_headers)

        error = assert_error(response, 400, "ENT004")
        assert error["details"]["field"] == "name"
        assert "SQL" not in response.text
        assert client.get(f"{ITEMS}/{item['id']}", headers=user_headers).json()["name"] == "Widget"

    def test_null_for_optional_field_clears_it(self, client, user_headers):
        item = create(client, ITEMS, {"name": "Widget", "sku": "W-2"}, user_headers)

        response = client.patch(f"{ITEMS}/{item['id']}", json={"sku": None}, headers=user_headers)

        assert response.status_code == 204
        assert client.get(f"{ITEMS}/{item['id']}", headers=user_headers).json().get("sku") is None

    def test_unknown_related_id(self, client, user_headers):
        assert_error(
            client.post("/api/v1/children", json={"name": "c", "parentId": str(uuid.uuid4())}, headers=user_headers),
            400,
            "ENT008",
        )

    def test_referenced_parent_conflict(self, client, user_headers):
        parent = create(client, "/api/v1/parents", {"name": "P"}, user_headers)
        create(client, "/api/v1/children", {"name": "C", "parentId": parent["id"]}, user_headers)

        error = assert_error(client.delete(f"/api/v1/parents/{parent['id']}", headers=user_headers), 409, "ENT011")
        assert "fix" in error["details"]

        assert client.get(f"/api/v1/parents/{parent['id']}", headers=user_headers).status_code == 200

    def test_unknown_route(self, client, user_headers):
        assert_error(client.get("/api/v1/widgets", headers=user_headers), 404, "HTTP404")

    def test_elapsed_deadline(self, client, user_headers):
        response = client.get(ITEMS, headers={**user_headers, "X-Request-Timeout": "0.000000001"})
        assert_error(response, 499, "ENT012")

    def test_request_id_is_echoed(self, client, user_headers):
        response = client.get(ITEMS, headers={**user_headers, "X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"


class TestRegistryFreeze:
    def test_first_request_freezes_registry(self, client, kernel, user_headers):
        assert not kernel.registry.is_frozen
        client.get(ITEMS, headers=user_headers)
        assert kernel.registry.is_frozen
