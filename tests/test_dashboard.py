def _tx(client, headers, amount, type_, day, category_id=None):
    body = {"amount": amount, "type": type_, "transaction_date": day, "category_id": category_id}
    r = client.post("/transactions", json=body, headers=headers)
    assert r.status_code == 201, r.text


def _category(client, headers, name, type_="expense"):
    return client.post("/categories", json={"name": name, "type": type_}, headers=headers).json()["categoryId"]


def test_summary_without_transactions_is_zero(client, alice):
    r = client.get("/dashboard/summary", headers=alice[0])
    assert r.status_code == 200
    assert r.json() == {"totalIncome": 0, "totalExpense": 0, "netBalance": 0}


def test_end_to_end_alice(client):
    r = client.post("/auth/register", json={"username": "alice", "email": "alice@x.com", "password": "pw12345"})
    assert r.status_code == 201
    token = client.post("/auth/login", json={"email": "alice@x.com", "password": "pw12345"}).json()["token"]
    headers = {"Authorization": f"Bearer {token}"}

    r = client.post("/categories", json={"name": "Salary", "type": "income"}, headers=headers)
    salary = r.json()["categoryId"]
    r = client.post(
        "/transactions",
        json={"amount": 1000, "type": "income", "transaction_date": "2024-01-15", "category_id": salary},
        headers=headers,
    )
    assert r.status_code == 201

    r = client.get("/dashboard/summary", headers=headers)
    assert r.json() == {"totalIncome": 1000, "totalExpense": 0, "netBalance": 1000}


def test_summary_is_owner_scoped(client, alice, bob):
    _tx(client, alice[0], 300, "income", "2024-01-01")
    _tx(client, alice[0], 120.25, "expense", "2024-01-02")
    _tx(client, bob[0], 5000, "income", "2024-01-03")

    assert client.get("/dashboard/summary", headers=alice[0]).json() == {
        "totalIncome": 300, "totalExpense": 120.25, "netBalance": 179.75,
    }


def test_monthly_trends(client, alice):
    headers, _ = alice
    _tx(client, headers, 1000, "income", "2024-01-15")
    _tx(client, headers, 200, "expense", "2024-01-20")
    _tx(client, headers, 50, "expense", "2024-01-31")
    _tx(client, headers, 75, "expense", "2024-02-03")
    _tx(client, headers, 10, "expense", "2023-12-24")

    r = client.get("/dashboard/monthly-trends", headers=headers)
    assert r.status_code == 200
    assert r.json() == {
        "incomeTrends": [{"month": "2024-01", "total_amount": 1000}],
        "expenseTrends": [
            {"month": "2023-12", "total_amount": 10},
            {"month": "2024-01", "total_amount": 250},
            {"month": "2024-02", "total_amount": 75},
        ],
    }


def test_monthly_trends_empty(client, alice):
    assert client.get("/dashboard/monthly-trends", headers=alice[0]).json() == {
        "incomeTrends": [], "expenseTrends": [],
    }


def test_category_spending(client, alice, bob):
    headers, _ = alice
    rent = _category(client, headers, "Rent")
    food = _category(client, headers, "Food")
    salary = _category(client, headers, "Salary", "income")
    _tx(client, headers, 40, "expense", "2024-01-01", food)
    _tx(client, headers, 35, "expense", "2024-01-05", food)
    _tx(client, headers, 800, "expense", "2024-01-02", rent)
    _tx(client, headers, 3000, "income", "2024-01-03", salary)
    _tx(client, headers, 99, "expense", "2024-01-04")
    _tx(client, bob[0], 1, "expense", "2024-01-04")

    r = client.get("/dashboard/category-spending", headers=headers)
    assert r.status_code == 200
    assert r.json() == [
        {"category_name": "Rent", "total_spent": 800},
        {"category_name": "Food", "total_spent": 75},
    ]


def test_dashboard_requires_token(client):
    for path in ("/dashboard/summary", "/dashboard/monthly-trends", "/dashboard/category-spending"):
        assert client.get(path).status_code == 401
