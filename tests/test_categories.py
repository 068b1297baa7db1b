def _add(client, headers, name, type_):
    return client.post("/categories", json={"name": name, "type": type_}, headers=headers)


def test_create_and_list_categories(client, alice):
    headers, user_id = alice
    r = _add(client, headers, "Salary", "income")
    assert r.status_code == 201
    salary_id = r.json()["categoryId"]
    rent_id = _add(client, headers, "Rent", "expense").json()["categoryId"]

    r = client.get("/categories", headers=headers)
    assert r.status_code == 200
    assert r.json() == [
        {"id": salary_id, "user_id": user_id, "name": "Salary", "type": "income"},
        {"id": rent_id, "user_id": user_id, "name": "Rent", "type": "expense"},
    ]


def test_invalid_or_missing_fields(client, alice):
    headers, _ = alice
    assert _add(client, headers, "Salary", "savings").status_code == 400
    assert client.post("/categories", json={"type": "income"}, headers=headers).status_code == 400
    assert _add(client, headers, "", "income").status_code == 400


def test_duplicate_for_same_user_conflicts(client, alice):
    headers, _ = alice
    assert _add(client, headers, "Salary", "income").status_code == 201
    r = _add(client, headers, "Salary", "income")
    assert r.status_code == 409
    assert "already exists" in r.json()["message"]
    # same name with the other type is a different category
    assert _add(client, headers, "Salary", "expense").status_code == 201


def test_same_pair_allowed_across_users(client, alice, bob):
    assert _add(client, alice[0], "Salary", "income").status_code == 201
    assert _add(client, bob[0], "Salary", "income").status_code == 201


def test_lists_are_owner_scoped(client, alice, bob):
    _add(client, alice[0], "Salary", "income")
    assert client.get("/categories", headers=bob[0]).json() == []


def test_update_category(client, alice):
    headers, _ = alice
    cat_id = _add(client, headers, "Food", "expense").json()["categoryId"]

    r = client.put(f"/categories/{cat_id}", json={"name": "Groceries", "type": "expense"}, headers=headers)
    assert r.status_code == 200
    assert client.get("/categories", headers=headers).json()[0]["name"] == "Groceries"


def test_update_into_duplicate_conflicts(client, alice):
    headers, _ = alice
    _add(client, headers, "Food", "expense")
    other = _add(client, headers, "Fun", "expense").json()["categoryId"]

    r = client.put(f"/categories/{other}", json={"name": "Food", "type": "expense"}, headers=headers)
    assert r.status_code == 409


def test_other_users_category_is_not_found(client, alice, bob):
    cat_id = _add(client, alice[0], "Salary", "income").json()["categoryId"]

    r = client.put(f"/categories/{cat_id}", json={"name": "Mine", "type": "income"}, headers=bob[0])
    assert r.status_code == 404
    r = client.delete(f"/categories/{cat_id}", headers=bob[0])
    assert r.status_code == 404

    # untouched for the owner
    assert client.get("/categories", headers=alice[0]).json()[0]["name"] == "Salary"


def test_missing_category_is_not_found(client, alice):
    headers, _ = alice
    assert client.put("/categories/999", json={"name": "X", "type": "income"}, headers=headers).status_code == 404
    assert client.delete("/categories/999", headers=headers).status_code == 404


def test_delete_category_keeps_transactions_uncategorized(client, alice):
    headers, _ = alice
    cat_id = _add(client, headers, "Rent", "expense").json()["categoryId"]
    tx = {"amount": 800, "type": "expense", "transaction_date": "2024-03-01", "category_id": cat_id}
    assert client.post("/transactions", json=tx, headers=headers).status_code == 201

    r = client.delete(f"/categories/{cat_id}", headers=headers)
    assert r.status_code == 200
    assert client.get("/categories", headers=headers).json() == []

    txs = client.get("/transactions", headers=headers).json()
    assert len(txs) == 1
    assert txs[0]["category_id"] is None
    assert txs[0]["category_name"] is None
