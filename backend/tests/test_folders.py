from __future__ import annotations

import io

API = "/api/v1"


def _create_folder(client, name: str, parent_id: int | None = None) -> dict:
    response = client.post(f"{API}/folders", json={"name": name, "parentId": parent_id})
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def _get_folder(client, folder_id: int) -> dict:
    response = client.get(f"{API}/folders/{folder_id}")
    assert response.status_code == 200
    return response.get_json()["data"]


def test_create_builds_materialized_path(client):
    docs = _create_folder(client, "Docs")
    reports = _create_folder(client, "Reports", docs["id"])

    assert docs["path"] == "/Docs"
    assert docs["parentId"] is None
    assert docs["isExpanded"] is False
    assert reports["path"] == "/Docs/Reports"
    assert reports["parentId"] == docs["id"]


def test_create_response_envelope(client):
    response = client.post(f"{API}/folders", json={"name": "Inbox"})
    body = response.get_json()

    assert response.status_code == 201
    assert body["success"] is True
    assert body["message"] == "Folder created successfully"
    assert body["data"]["name"] == "Inbox"


def test_sibling_names_are_unique_per_parent(client):
    parent_p = _create_folder(client, "P")
    parent_q = _create_folder(client, "Q")

    _create_folder(client, "X", parent_p["id"])
    duplicate = client.post(f"{API}/folders", json={"name": "X", "parentId": parent_p["id"]})
    assert duplicate.status_code == 400
    assert duplicate.get_json()["success"] is False
    assert duplicate.get_json()["error"] == "DUPLICATE_SIBLING"

    other_parent = client.post(f"{API}/folders", json={"name": "X", "parentId": parent_q["id"]})
    assert other_parent.status_code == 201


def test_root_folders_are_unique_by_name(client):
    _create_folder(client, "Shared")
    duplicate = client.post(f"{API}/folders", json={"name": "Shared", "parentId": None})
    assert duplicate.status_code == 400


def test_create_with_missing_parent_is_not_found(client):
    response = client.post(f"{API}/folders", json={"name": "Orphan", "parentId": 999})
    assert response.status_code == 404
    assert response.get_json()["error"] == "PARENT_NOT_FOUND"


def test_name_validation_happens_at_the_boundary(client):
    assert client.post(f"{API}/folders", json={"name": "   "}).status_code == 400
    assert client.post(f"{API}/folders", json={}).status_code == 400
    assert client.post(f"{API}/folders", json={"name": "a/b"}).status_code == 400
    assert client.post(f"{API}/folders", json={"name": "a\\b"}).status_code == 400

    trimmed = client.post(f"{API}/folders", json={"name": "  Spaced  "})
    assert trimmed.status_code == 201
    assert trimmed.get_json()["data"]["path"] == "/Spaced"


def test_moving_a_folder_under_its_descendant_is_rejected(client):
    folder_a = _create_folder(client, "A")
    folder_b = _create_folder(client, "B", folder_a["id"])
    folder_c = _create_folder(client, "C", folder_b["id"])

    into_grandchild = client.put(f"{API}/folders/{folder_a['id']}", json={"parentId": folder_c["id"]})
    assert into_grandchild.status_code == 400
    assert into_grandchild.get_json()["error"] == "CIRCULAR_REFERENCE"

    into_itself = client.patch(f"{API}/folders/{folder_a['id']}/move", json={"parentId": folder_a["id"]})
    assert into_itself.status_code == 400
    assert into_itself.get_json()["error"] == "CIRCULAR_REFERENCE"

    assert _get_folder(client, folder_a["id"])["parentId"] is None


def test_rename_cascades_to_every_descendant(client):
    folder_a = _create_folder(client, "A")
    folder_b = _create_folder(client, "B", folder_a["id"])
    folder_c = _create_folder(client, "C", folder_b["id"])

    response = client.put(f"{API}/folders/{folder_a['id']}", json={"name": "A2"})
    assert response.status_code == 200
    assert response.get_json()["data"]["path"] == "/A2"

    assert _get_folder(client, folder_b["id"])["path"] == "/A2/B"
    assert _get_folder(client, folder_c["id"])["path"] == "/A2/B/C"


def test_move_to_root_and_into_other_branch(client):
    folder_a = _create_folder(client, "A")
    folder_b = _create_folder(client, "B", folder_a["id"])
    folder_c = _create_folder(client, "C", folder_b["id"])
    folder_z = _create_folder(client, "Z")

    to_root = client.patch(f"{API}/folders/{folder_b['id']}/move", json={"parentId": None})
    assert to_root.status_code == 200
    assert to_root.get_json()["data"]["path"] == "/B"
    assert _get_folder(client, folder_c["id"])["path"] == "/B/C"

    under_z = client.patch(f"{API}/folders/{folder_b['id']}/move", json={"parentId": folder_z["id"]})
    assert under_z.status_code == 200
    assert under_z.get_json()["data"]["path"] == "/Z/B"
    assert _get_folder(client, folder_c["id"])["path"] == "/Z/B/C"


def test_move_into_occupied_name_is_rejected(client):
    target = _create_folder(client, "Target")
    _create_folder(client, "Same", target["id"])
    mover = _create_folder(client, "Same")

    response = client.patch(f"{API}/folders/{mover['id']}/move", json={"parentId": target["id"]})
    assert response.status_code == 400
    assert response.get_json()["error"] == "DUPLICATE_SIBLING"


def test_move_to_missing_parent_is_not_found(client):
    folder = _create_folder(client, "Lonely")
    response = client.patch(f"{API}/folders/{folder['id']}/move", json={"parentId": 4242})
    assert response.status_code == 404


def test_move_requires_parent_key(client):
    folder = _create_folder(client, "Stay")
    response = client.patch(f"{API}/folders/{folder['id']}/move", json={})
    assert response.status_code == 400


def test_rename_onto_existing_sibling_is_rejected(client):
    parent = _create_folder(client, "Parent")
    _create_folder(client, "Alpha", parent["id"])
    beta = _create_folder(client, "Beta", parent["id"])

    clash = client.put(f"{API}/folders/{beta['id']}", json={"name": "Alpha"})
    assert clash.status_code == 400
    assert clash.get_json()["error"] == "DUPLICATE_SIBLING"

    same_name = client.put(f"{API}/folders/{beta['id']}", json={"name": "Beta"})
    assert same_name.status_code == 200


def test_empty_update_changes_nothing(client):
    folder = _create_folder(client, "Quiet")

    response = client.put(f"{API}/folders/{folder['id']}", json={})
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["path"] == folder["path"]
    assert data["updatedAt"] == folder["updatedAt"]


def test_update_missing_folder_is_not_found(client):
    assert client.put(f"{API}/folders/999", json={"name": "Ghost"}).status_code == 404
    assert client.patch(f"{API}/folders/999/toggle-expand").status_code == 404
    assert client.get(f"{API}/folders/999").status_code == 404
    assert client.get(f"{API}/folders/999/children").status_code == 404


def test_toggle_expand_flips_state(client):
    folder = _create_folder(client, "Tree")

    first = client.patch(f"{API}/folders/{folder['id']}/toggle-expand")
    assert first.status_code == 200
    assert first.get_json()["data"]["isExpanded"] is True

    second = client.patch(f"{API}/folders/{folder['id']}/toggle-expand")
    assert second.get_json()["data"]["isExpanded"] is False


def test_update_expansion_flag_only(client):
    folder = _create_folder(client, "Panel")
    response = client.put(f"{API}/folders/{folder['id']}", json={"isExpanded": True})
    assert response.status_code == 200
    assert response.get_json()["data"]["isExpanded"] is True
    assert response.get_json()["data"]["path"] == "/Panel"

    invalid = client.put(f"{API}/folders/{folder['id']}", json={"isExpanded": "yes"})
    assert invalid.status_code == 400


def test_listings_are_ordered(client):
    zeta = _create_folder(client, "zeta")
    _create_folder(client, "alpha")
    _create_folder(client, "beta", zeta["id"])
    _create_folder(client, "alpha", zeta["id"])

    everything = client.get(f"{API}/folders").get_json()["data"]
    assert [item["path"] for item in everything] == ["/alpha", "/zeta", "/zeta/alpha", "/zeta/beta"]

    roots = client.get(f"{API}/folders/roots").get_json()["data"]
    assert [item["name"] for item in roots] == ["alpha", "zeta"]

    children = client.get(f"{API}/folders/{zeta['id']}/children").get_json()["data"]
    assert [item["name"] for item in children] == ["alpha", "beta"]


def test_tree_nests_children_and_counts_subfolders(client):
    docs = _create_folder(client, "Docs")
    reports = _create_folder(client, "Reports", docs["id"])
    _create_folder(client, "2026", reports["id"])
    _create_folder(client, "Music")

    tree = client.get(f"{API}/folders/tree").get_json()["data"]
    assert [node["name"] for node in tree] == ["Docs", "Music"]

    docs_node, music_node = tree
    assert docs_node["subfolderCount"] == 1
    assert music_node["subfolderCount"] == 0
    assert "children" not in music_node

    reports_node = docs_node["children"][0]
    assert reports_node["path"] == "/Docs/Reports"
    assert reports_node["subfolderCount"] == 1
    leaf = reports_node["children"][0]
    assert leaf["name"] == "2026"
    assert "children" not in leaf

    subtree = client.get(f"{API}/folders/tree?parentId={docs['id']}").get_json()["data"]
    assert [node["name"] for node in subtree] == ["Reports"]


def test_tree_rejects_non_integer_parent(client):
    assert client.get(f"{API}/folders/tree?parentId=abc").status_code == 400


def test_delete_cascades_to_subfolders_and_files(client, storage_root):
    top = _create_folder(client, "Top")
    inner = _create_folder(client, "Inner", top["id"])
    keep = _create_folder(client, "Keep")

    upload = client.post(
        f"{API}/files/upload",
        data={"folderId": str(inner["id"]), "file": (io.BytesIO(b"nested bytes"), "nested.txt")},
        content_type="multipart/form-data",
    )
    assert upload.status_code == 201
    file_id = upload.get_json()["data"]["id"]
    assert len(list(storage_root.iterdir())) == 1

    response = client.delete(f"{API}/folders/{top['id']}")
    assert response.status_code == 200
    assert response.get_json()["data"] is None

    assert client.get(f"{API}/folders/{top['id']}").status_code == 404
    assert client.get(f"{API}/folders/{inner['id']}").status_code == 404
    assert client.get(f"{API}/files/{file_id}").status_code == 404
    assert client.get(f"{API}/folders/{keep['id']}").status_code == 200
    assert list(storage_root.iterdir()) == []

    assert client.delete(f"{API}/folders/{top['id']}").status_code == 404


def test_delete_cascade_keeps_cleaning_after_a_blob_failure(client, app, storage_root, monkeypatch):
    top = _create_folder(client, "Top")
    for filename in ("one.txt", "two.txt", "three.txt"):
        upload = client.post(
            f"{API}/files/upload",
            data={"folderId": str(top["id"]), "file": (io.BytesIO(b"data"), filename)},
            content_type="multipart/form-data",
        )
        assert upload.status_code == 201
    assert len(list(storage_root.iterdir())) == 3

    store = app.extensions["blob_store"]
    original_delete = store.delete
    calls: list[str] = []

    def flaky_delete(storage_path):
        calls.append(storage_path)
        if len(calls) == 1:
            raise RuntimeError("blob backend unavailable")
        original_delete(storage_path)

    monkeypatch.setattr(store, "delete", flaky_delete)

    response = client.delete(f"{API}/folders/{top['id']}")
    assert response.status_code == 200
    assert len(calls) == 3
    assert len(list(storage_root.iterdir())) == 1
    assert client.get(f"{API}/folders/{top['id']}").status_code == 404


def test_parent_id_must_be_an_exact_integer(client):
    parent = _create_folder(client, "A")

    fractional = client.post(f"{API}/folders", json={"name": "B", "parentId": parent["id"] + 0.9})
    assert fractional.status_code == 400
    assert fractional.get_json()["error"] == "INVALID_PARAMETER"

    huge = client.post(f"{API}/folders", json={"name": "B", "parentId": 10**30})
    assert huge.status_code == 400

    assert client.get(f"{API}/folders/{parent['id']}/children").get_json()["data"] == []
