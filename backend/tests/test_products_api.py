import uuid

from app.models.audit_log import AuditLog
from app.services.credentials import credential_issuer
from conftest import listing_fields


def new_product_id() -> str:
    return str(uuid.uuid4())


def create_draft(client, headers, product_id=None, **overrides):
    product_id = product_id or new_product_id()
    otp = client.post(f"/products/{product_id}/otp", headers=headers)
    assert otp.status_code == 200
    body = listing_fields(product_id=product_id, code=otp.json()["code"], **overrides)
    resp = client.post("/products", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_requires_bearer_token(client):
    assert client.get("/products").status_code == 401
    assert client.post(f"/products/{new_product_id()}/otp").status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert client.get("/products", headers=bad).status_code == 401


def test_admin_token_is_not_a_seller(client, admin_headers):
    assert client.get("/products", headers=admin_headers).status_code == 403


def test_issue_otp(client, seller_headers):
    product_id = new_product_id()
    resp = client.post(f"/products/{product_id}/otp", headers=seller_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["product_id"] == product_id
    assert len(data["code"]) == 6 and data["code"].isdigit()
    assert data["remaining_seconds"] == 900
    assert "RWF 2,000" in data["message"]

    display = client.get(f"/products/{product_id}/otp", headers=seller_headers).json()
    assert display["code"] == data["code"]
    assert 0 < display["remaining_seconds"] <= 900


def test_create_draft_consumes_otp(client, db_session, seller_headers):
    product_id = new_product_id()
    product = create_draft(client, seller_headers, product_id=product_id)

    assert product["id"] == product_id
    assert product["status"] == "draft"
    assert product["seller_id"] == "seller-1"
    assert product["price"] == "150000.00"
    assert product["image_url_2"] is None
    assert product["capabilities"]["can_submit_for_review"] is True
    assert credential_issuer.current_code(product_id) is None
    assert client.get(f"/products/{product_id}/otp", headers=seller_headers).status_code == 404

    audit = db_session.query(AuditLog).filter(AuditLog.product_id == product_id).all()
    assert [(a.action, a.from_status, a.to_status) for a in audit] == [("product.create", None, "draft")]


def test_create_with_wrong_code_is_rejected(client, seller_headers):
    product_id = new_product_id()
    code = client.post(f"/products/{product_id}/otp", headers=seller_headers).json()["code"]
    wrong = "000000" if code != "000000" else "111111"

    resp = client.post("/products", json=listing_fields(product_id=product_id, code=wrong), headers=seller_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == {"code": "credential_invalid", "message": "Incorrect or expired code"}
    assert client.get(f"/products/{product_id}", headers=seller_headers).status_code == 404

    # Still usable with the right code
    resp = client.post("/products", json=listing_fields(product_id=product_id, code=code), headers=seller_headers)
    assert resp.status_code == 201


def test_otp_is_single_use(client, seller_headers):
    product_id = new_product_id()
    code = client.post(f"/products/{product_id}/otp", headers=seller_headers).json()["code"]
    body = listing_fields(product_id=product_id, code=code)
    assert client.post("/products", json=body, headers=seller_headers).status_code == 201

    again = dict(body, product_id=new_product_id())
    resp = client.post("/products", json=again, headers=seller_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "credential_invalid"


def test_no_otp_for_existing_product(client, seller_headers):
    product = create_draft(client, seller_headers)
    assert client.post(f"/products/{product['id']}/otp", headers=seller_headers).status_code == 409


def test_otp_of_another_seller_is_not_usable(client, seller_headers, other_seller_headers):
    product_id = new_product_id()
    code = client.post(f"/products/{product_id}/otp", headers=seller_headers).json()["code"]

    assert client.post(f"/products/{product_id}/otp", headers=other_seller_headers).status_code == 409
    assert client.get(f"/products/{product_id}/otp", headers=other_seller_headers).status_code == 404
    resp = client.post(
        "/products",
        json=listing_fields(product_id=product_id, code=code),
        headers=other_seller_headers,
    )
    assert resp.status_code == 400


def test_discard_otp(client, seller_headers):
    product_id = new_product_id()
    code = client.post(f"/products/{product_id}/otp", headers=seller_headers).json()["code"]
    assert client.delete(f"/products/{product_id}/otp", headers=seller_headers).status_code == 204

    resp = client.post("/products", json=listing_fields(product_id=product_id, code=code), headers=seller_headers)
    assert resp.status_code == 400


def test_invalid_fields_are_rejected_before_the_code_is_spent(client, seller_headers):
    product_id = new_product_id()
    code = client.post(f"/products/{product_id}/otp", headers=seller_headers).json()["code"]

    bad = listing_fields(product_id=product_id, code=code, sub_category="iPhone", primary_category="Laptops & PCs")
    assert client.post("/products", json=bad, headers=seller_headers).status_code == 422
    assert credential_issuer.current_code(product_id) == code


def test_delete_active_needs_unpublish(client, seller_headers, admin_headers):
    product = create_draft(client, seller_headers)
    pid = product["id"]

    assert client.patch(f"/products/{pid}/submit-review", headers=seller_headers).json()["status"] == "pending_review"
    approved = client.patch(f"/admin/products/{pid}/approve", headers=admin_headers).json()
    assert approved["status"] == "active"
    assert approved["capabilities"]["can_delete"] is False

    resp = client.delete(f"/products/{pid}", headers=seller_headers)
    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["code"] == "illegal_transition"
    assert detail["required_action"] == "unpublish"
    assert detail["message"] == "Active listings cannot be deleted. Unpublish the listing first."

    assert client.patch(f"/products/{pid}/unpublish", headers=seller_headers).json()["status"] == "draft"
    assert client.delete(f"/products/{pid}", headers=seller_headers).status_code == 204
    assert client.get(f"/products/{pid}", headers=seller_headers).status_code == 404


def test_edit_active_is_refused(client, seller_headers, admin_headers):
    pid = create_draft(client, seller_headers)["id"]
    client.patch(f"/products/{pid}/submit-review", headers=seller_headers)
    client.patch(f"/admin/products/{pid}/approve", headers=admin_headers)

    resp = client.patch(f"/products/{pid}", json={"stock": 5}, headers=seller_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"]["required_action"] == "unpublish"


def test_edit_while_pending_reverts_to_draft(client, seller_headers):
    pid = create_draft(client, seller_headers)["id"]
    client.patch(f"/products/{pid}/submit-review", headers=seller_headers)

    resp = client.patch(f"/products/{pid}", json={"price": "140000"}, headers=seller_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "draft"
    assert resp.json()["price"] == "140000.00"


def test_edit_validates_against_merged_listing(client, seller_headers):
    pid = create_draft(client, seller_headers)["id"]

    resp = client.patch(f"/products/{pid}", json={"primary_category": "Laptops & PCs"}, headers=seller_headers)
    assert resp.status_code == 422

    resp = client.patch(
        f"/products/{pid}",
        json={"primary_category": "Laptops & PCs", "sub_category": "MacBooks"},
        headers=seller_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["sub_category"] == "MacBooks"


def test_submit_twice_is_refused(client, seller_headers):
    pid = create_draft(client, seller_headers)["id"]
    assert client.patch(f"/products/{pid}/submit-review", headers=seller_headers).status_code == 200
    resp = client.patch(f"/products/{pid}/submit-review", headers=seller_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == "Listing is already pending review."


def test_reject_then_resubmit(client, seller_headers, admin_headers):
    pid = create_draft(client, seller_headers)["id"]
    client.patch(f"/products/{pid}/submit-review", headers=seller_headers)

    queue = client.get("/admin/products", headers=admin_headers).json()
    assert [p["id"] for p in queue] == [pid]

    rejected = client.patch(
        f"/admin/products/{pid}/reject", json={"note": "Add a photo of the screen"}, headers=admin_headers
    ).json()
    assert rejected["status"] == "rejected"
    assert rejected["review_note"] == "Add a photo of the screen"

    resubmitted = client.patch(f"/products/{pid}/submit-review", headers=seller_headers).json()
    assert resubmitted["status"] == "pending_review"
    assert resubmitted["review_note"] is None


def test_admin_routes_need_admin(client, seller_headers):
    assert client.get("/admin/products", headers=seller_headers).status_code == 403


def test_archive(client, seller_headers):
    pid = create_draft(client, seller_headers)["id"]
    archived = client.patch(f"/products/{pid}/archive", headers=seller_headers).json()
    assert archived["status"] == "archived"
    assert archived["capabilities"]["can_submit_for_review"] is False


def test_sellers_only_see_their_own_listings(client, seller_headers, other_seller_headers):
    pid = create_draft(client, seller_headers)["id"]
    assert client.get("/products", headers=other_seller_headers).json() == []
    assert client.get(f"/products/{pid}", headers=other_seller_headers).status_code == 404
    assert client.delete(f"/products/{pid}", headers=other_seller_headers).status_code == 404


def test_list_filter_and_summary(client, seller_headers):
    first = create_draft(client, seller_headers)["id"]
    create_draft(client, seller_headers, ai_enabled=False)
    client.patch(f"/products/{first}/submit-review", headers=seller_headers)

    pending = client.get("/products", params={"status": "pending_review"}, headers=seller_headers).json()
    assert [p["id"] for p in pending] == [first]

    summary = client.get("/products/summary", headers=seller_headers).json()
    assert summary["total"] == 2
    assert summary["draft"] == 1
    assert summary["pending_review"] == 1
    assert summary["ai_enabled"] == 1


def test_categories_and_health(client):
    categories = client.get("/categories").json()
    assert categories[0]["name"] == "Mobile Phones"
    assert "iPhone" in categories[0]["sub_categories"]

    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["database"] == "connected"


def test_malformed_codes_are_credential_invalid(client, seller_headers):
    product_id = new_product_id()
    code = client.post(f"/products/{product_id}/otp", headers=seller_headers).json()["code"]

    padded = f"{code[:3]}a{code[3:]}"
    for supplied in (padded, "١٢٣٤٥٦", "12345²", f"{code[:3]} {code[3:]}"):
        resp = client.post("/products", json=listing_fields(product_id=product_id, code=supplied), headers=seller_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "credential_invalid"

    assert credential_issuer.current_code(product_id) == code
    resp = client.post("/products", json=listing_fields(product_id=product_id, code=code), headers=seller_headers)
    assert resp.status_code == 201
