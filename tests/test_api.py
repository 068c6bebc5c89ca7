from decimal import Decimal
from uuid import uuid4

from fastapi import status

from spaceledger.core.config import settings

API = settings.api_v1_str


def _create_customer(client) -> str:
    response = client.post(f"{API}/customers", json={"name": "Nimbus Labs", "email": "Ops@Nimbus.test"})
    assert response.status_code == status.HTTP_201_CREATED, response.json()
    assert response.json()["email"] == "ops@nimbus.test"
    return response.json()["id"]


def _create_plan(client, price: str = "9000.00") -> str:
    response = client.post(f"{API}/catalog/plans", json={"name": "Virtual Office", "price": price, "tag": "VO"})
    assert response.status_code == status.HTTP_201_CREATED, response.json()
    return response.json()["id"]


def _create_subscription(client, **extra) -> dict:
    payload = {
        "customer_id": _create_customer(client),
        "plan_id": _create_plan(client),
        "purchased_date": "2025-05-10",
        "suite_number": "C-12",
        **extra,
    }
    response = client.post(f"{API}/subscriptions", json=payload)
    assert response.status_code == status.HTTP_201_CREATED, response.json()
    return response.json()


def test_health_endpoints(client):
    assert client.get("/health/live").json() == {"status": "ok"}
    response = client.get("/health/ready")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ready"}


def test_customer_listing_and_lookup(client):
    customer_id = _create_customer(client)

    listed = client.get(f"{API}/customers", params={"q": "nimbus"})
    assert [c["id"] for c in listed.json()] == [customer_id]
    assert client.get(f"{API}/customers/{customer_id}").json()["name"] == "Nimbus Labs"

    missing = client.get(f"{API}/customers/{uuid4()}")
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json()["error"] == "not_found"
    assert missing.json()["context"]["entity"] == "Customer"


def test_subscription_lifecycle_over_http(client):
    actor = str(uuid4())
    subscription = _create_subscription(client, advance_amount="2500.00")
    sub_id = subscription["id"]

    assert subscription["status"] == "Advance Received"
    assert Decimal(subscription["received_amount"]) == Decimal("2500.00")

    skipped = client.post(f"{API}/subscriptions/{sub_id}/status", json={"status": "Completed"})
    assert skipped.status_code == status.HTTP_409_CONFLICT
    body = skipped.json()
    assert body["error"] == "invalid_transition"
    assert body["context"]["current_status"] == "Advance Received"
    assert body["context"]["attempted_status"] == "Completed"

    moved = client.post(
        f"{API}/subscriptions/{sub_id}/status",
        json={"status": "Paper Collected"},
        headers={"X-Actor-Id": actor},
    )
    assert moved.status_code == status.HTTP_200_OK, moved.json()
    assert moved.json()["status"] == "Paper Collected"

    history = client.get(f"{API}/subscriptions/{sub_id}/history").json()
    assert [(h["old_status"], h["new_status"]) for h in history] == [
        (None, "Advance Received"),
        ("Advance Received", "Paper Collected"),
    ]
    assert history[1]["changed_by"] == actor

    items = client.get(f"{API}/subscriptions/{sub_id}/items").json()
    assert [(i["item_type"], Decimal(i["amount"])) for i in items] == [("plan", Decimal("9000.00"))]


def test_invalid_actor_header(client):
    sub_id = _create_subscription(client)["id"]

    response = client.post(
        f"{API}/subscriptions/{sub_id}/status",
        json={"status": "Paper Collected"},
        headers={"X-Actor-Id": "front-desk"},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert client.get(f"{API}/subscriptions/{sub_id}").json()["status"] == "Advance Received"


def test_payments_over_http(client):
    sub_id = _create_subscription(client)["id"]

    rejected = client.post(
        f"{API}/subscriptions/{sub_id}/payments", json={"amount": "0", "payment_date": "2025-05-12"}
    )
    assert rejected.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert rejected.json()["error"] == "invalid_amount"

    created = client.post(
        f"{API}/subscriptions/{sub_id}/payments",
        json={"amount": "4000", "payment_date": "2025-05-12", "payment_method": "Cash"},
    )
    assert created.status_code == status.HTTP_201_CREATED, created.json()
    payment_id = created.json()["id"]

    updated = client.patch(f"{API}/payments/{payment_id}", json={"amount": "4200.00"})
    assert Decimal(updated.json()["amount"]) == Decimal("4200.00")
    assert Decimal(client.get(f"{API}/subscriptions/{sub_id}").json()["received_amount"]) == Decimal("4200.00")

    voided = client.post(f"{API}/payments/{payment_id}/void")
    assert voided.json()["voided_at"] is not None
    assert client.get(f"{API}/subscriptions/{sub_id}/payments").json() == []
    assert len(client.get(f"{API}/subscriptions/{sub_id}/payments", params={"include_voided": True}).json()) == 1
    assert Decimal(client.get(f"{API}/subscriptions/{sub_id}").json()["received_amount"]) == Decimal("0.00")


def test_bundle_pricing_endpoint(client):
    plan_id = _create_plan(client)
    service = client.post(f"{API}/catalog/services", json={"name": "Mail Handling", "price": "500.00"}).json()
    bundle = client.post(f"{API}/catalog/bundles", json={"name": "Starter", "price": "9450.00"}).json()

    first = client.post(
        f"{API}/catalog/bundles/{bundle['id']}/items",
        json={"item_type": "service", "item_id": service["id"], "override_price": "450.00"},
    )
    assert first.status_code == status.HTTP_201_CREATED, first.json()
    client.post(f"{API}/catalog/bundles/{bundle['id']}/items", json={"item_type": "plan", "item_id": plan_id})

    pricing = client.get(f"{API}/catalog/bundles/{bundle['id']}/pricing").json()
    assert [(p["item_type"], Decimal(p["effective_price"])) for p in pricing] == [
        ("service", Decimal("450.00")),
        ("plan", Decimal("9000.00")),
    ]

    dangling = client.post(
        f"{API}/catalog/bundles/{bundle['id']}/items", json={"item_type": "consumable", "item_id": str(uuid4())}
    )
    assert dangling.status_code == status.HTTP_404_NOT_FOUND


def test_invoice_flow_over_http(client):
    sub_id = _create_subscription(client)["id"]

    draft = client.post(
        f"{API}/subscriptions/{sub_id}/invoices",
        json={"invoice_date": "2025-06-02", "copy_subscription_items": True},
    )
    assert draft.status_code == status.HTTP_201_CREATED, draft.json()
    invoice_id = draft.json()["id"]

    added = client.post(
        f"{API}/invoices/{invoice_id}/items",
        json={"description": "Meeting room", "unit_price": "1000.00", "quantity": "2", "tax_rate": "18"},
    )
    assert added.status_code == status.HTTP_201_CREATED, added.json()

    preview = client.get(f"{API}/invoices/next-number", params={"invoice_date": "2025-06-02"}).json()
    assert preview["invoice_number"] == "KS/2025-26/0001"

    issued = client.post(f"{API}/invoices/{invoice_id}/issue", json={})
    assert issued.status_code == status.HTTP_200_OK, issued.json()
    body = issued.json()
    assert body["status"] == "ISSUED"
    assert body["invoice_number"] == preview["invoice_number"]
    assert Decimal(body["subtotal"]) == Decimal("11000.00")
    assert Decimal(body["tax_amount"]) == Decimal("360.00")
    assert Decimal(body["total_amount"]) == Decimal("11360.00")
    assert len(body["items"]) == 2
    assert client.get(f"{API}/invoices/{invoice_id}/verify").json() == {"consistent": True}

    frozen = client.post(f"{API}/invoices/{invoice_id}/items", json={"description": "Late fee", "unit_price": "50"})
    assert frozen.status_code == status.HTTP_409_CONFLICT
    assert frozen.json()["error"] == "invoice_not_editable"

    cancelled = client.post(f"{API}/invoices/{invoice_id}/cancel")
    assert cancelled.json()["status"] == "CANCELLED"
    assert cancelled.json()["invoice_number"] == "KS/2025-26/0001"
    again = client.post(f"{API}/invoices/{invoice_id}/cancel")
    assert again.status_code == status.HTTP_409_CONFLICT

    listed = client.get(f"{API}/subscriptions/{sub_id}/invoices").json()
    assert [i["id"] for i in listed] == [invoice_id]
    next_preview = client.get(f"{API}/invoices/next-number", params={"invoice_date": "2025-06-02"}).json()
    assert next_preview["invoice_number"] == "KS/2025-26/0002"


def test_issue_conflict_over_http(client):
    sub_id = _create_subscription(client)["id"]
    first = client.post(f"{API}/subscriptions/{sub_id}/invoices", json={"invoice_date": "2025-06-02"}).json()
    second = client.post(f"{API}/subscriptions/{sub_id}/invoices", json={"invoice_date": "2025-06-02"}).json()
    client.post(f"{API}/invoices/{first['id']}/issue", json={"invoice_number": "1"})

    response = client.post(f"{API}/invoices/{second['id']}/issue", json={"invoice_number": "1"})

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error"] == "sequence_conflict"
    assert response.json()["context"]["fiscal_year"] == "2025-26"
    assert client.get(f"{API}/invoices/{second['id']}").json()["status"] == "DRAFT"


def test_rubber_stamp_endpoints(client):
    sub_id = _create_subscription(client)["id"]
    for step in ("Paper Collected", "Documents Ready", "Signed and Uploaded", "Completed"):
        assert client.post(f"{API}/subscriptions/{sub_id}/status", json={"status": step}).status_code == 200

    updated = client.put(f"{API}/subscriptions/{sub_id}/rubber-stamp", json={"rubber_stamp": "With Client"})
    assert updated.json()["rubber_stamp"] == "With Client"

    listed = client.get(f"{API}/subscriptions/rubber-stamp", params={"rubber_stamp": "With Client"}).json()
    assert [s["id"] for s in listed] == [sub_id]
    assert client.get(f"{API}/subscriptions/rubber-stamp", params={"rubber_stamp": "Available"}).json() == []


def test_invalid_subscription_payload(client):
    customer_id = _create_customer(client)

    response = client.post(f"{API}/subscriptions", json={"customer_id": customer_id, "purchased_date": "2025-05-10"})

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["error"] == "invalid_subscription"


def test_issue_accepts_a_bare_integer_number(client):
    sub_id = _create_subscription(client)["id"]
    draft = client.post(f"{API}/subscriptions/{sub_id}/invoices", json={"invoice_date": "2025-06-02"}).json()

    response = client.post(f"{API}/invoices/{draft['id']}/issue", json={"invoice_number": 1})

    assert response.status_code == status.HTTP_200_OK, response.json()
    assert response.json()["invoice_number"] == "KS/2025-26/0001"


def test_voided_payment_edit_is_a_conflict(client):
    sub_id = _create_subscription(client)["id"]
    payment = client.post(
        f"{API}/subscriptions/{sub_id}/payments", json={"amount": "1500", "payment_date": "2025-05-12"}
    ).json()
    client.post(f"{API}/payments/{payment['id']}/void")

    response = client.patch(f"{API}/payments/{payment['id']}", json={"amount": "1600"})

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error"] == "payment_not_editable"


def test_subscription_details_and_items_over_http(client):
    subscription = _create_subscription(client, advance_amount="1000.00")
    sub_id = subscription["id"]

    patched = client.patch(
        f"{API}/subscriptions/{sub_id}",
        json={
            "suite_number": "D-7",
            "renewal_amount": "9500.00",
            "signatory_name": "Meera Rao",
            "signatory_designation": "Director",
            "status": "Completed",
            "received_amount": "0",
        },
    )
    assert patched.status_code == status.HTTP_200_OK, patched.json()
    body = patched.json()
    assert body["suite_number"] == "D-7"
    assert Decimal(body["renewal_amount"]) == Decimal("9500.00")
    assert body["signatory_name"] == "Meera Rao"
    assert body["status"] == "Advance Received"
    assert Decimal(body["received_amount"]) == Decimal("1000.00")

    inverted = client.patch(
        f"{API}/subscriptions/{sub_id}", json={"start_date": "2025-06-01", "expiry_date": "2025-05-01"}
    )
    assert inverted.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    added = client.post(
        f"{API}/subscriptions/{sub_id}/items",
        json={"item_type": "consumable", "description": "Courier", "amount": "240.00", "revenue_nature": "PASSTHROUGH"},
    )
    assert added.status_code == status.HTTP_201_CREATED, added.json()
    item_id = added.json()["id"]
    assert added.json()["position"] == 1

    edited = client.patch(f"{API}/subscriptions/{sub_id}/items/{item_id}", json={"amount": "300.00"})
    assert Decimal(edited.json()["amount"]) == Decimal("300.00")
    assert edited.json()["description"] == "Courier"

    missing = client.patch(f"{API}/subscriptions/{sub_id}/items/{uuid4()}", json={"amount": "1"})
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_catalog_price_updates_over_http(client):
    plan_id = _create_plan(client)
    service = client.post(f"{API}/catalog/services", json={"name": "Mail Handling", "price": "500.00"}).json()
    consumable = client.post(f"{API}/catalog/consumables", json={"name": "Courier", "price": "120.00"}).json()

    plan = client.patch(f"{API}/catalog/plans/{plan_id}", json={"price": "9900.00"})
    assert plan.status_code == status.HTTP_200_OK, plan.json()
    assert Decimal(plan.json()["price"]) == Decimal("9900.00")
    assert plan.json()["name"] == "Virtual Office"

    retired = client.patch(f"{API}/catalog/services/{service['id']}", json={"is_active": False})
    assert retired.json()["is_active"] is False
    assert client.get(f"{API}/catalog/services").json() == []

    priced = client.patch(f"{API}/catalog/consumables/{consumable['id']}", json={"price": "150", "unit": "parcel"})
    assert Decimal(priced.json()["price"]) == Decimal("150.00")
    assert priced.json()["unit"] == "parcel"

    rejected = client.patch(f"{API}/catalog/plans/{plan_id}", json={"price": "-1"})
    assert rejected.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert client.patch(f"{API}/catalog/plans/{uuid4()}", json={"price": "1"}).status_code == 404
