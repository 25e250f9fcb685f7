from conftest import PASSWORD


def test_logs_are_admin_only_and_filterable(client, admin, customer, auth):
    client.post("/auth/login", json={"email": customer.email, "password": PASSWORD})
    client.post("/auth/login", json={"email": customer.email, "password": "wrong-pass"})

    assert client.get("/logs", headers=auth(customer)).status_code == 403

    page = client.get("/logs", params={"action": "LOGIN"}, headers=auth(admin)).json()["data"]
    assert page["total"] == 2
    assert {item["status"] for item in page["items"]} == {"SUCCESS", "FAIL"}

    failed = client.get("/logs", params={"status": "fail"}, headers=auth(admin)).json()["data"]
    assert failed["total"] == 1
    assert failed["items"][0]["user_id"] == str(customer.id)


def test_logs_reject_malformed_dates(client, admin, auth):
    resp = client.get("/logs", params={"date_from": "yesterday"}, headers=auth(admin))
    assert resp.status_code == 400
    assert resp.json() == {"error": "invalid date_from"}


def test_user_admin(client, admin, customer, auth):
    page = client.get("/users", params={"role": "customer"}, headers=auth(admin)).json()["data"]
    assert [u["email"] for u in page["items"]] == [customer.email]

    assert client.get(f"/users/{customer.id}", headers=auth(customer)).status_code == 403
    assert client.delete(f"/users/{admin.id}", headers=auth(admin)).status_code == 400


def test_user_with_orders_cannot_be_deleted(client, admin, order, customer, auth):
    resp = client.delete(f"/users/{customer.id}", headers=auth(admin))
    assert resp.status_code == 409

    assert client.get(f"/users/{customer.id}", headers=auth(admin)).status_code == 200
