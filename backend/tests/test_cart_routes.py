from bson import ObjectId


def test_add_and_view_cart(client, seller, buyer, auth_headers, make_listing):
    listing = make_listing(seller, price=12.5)
    headers = auth_headers(buyer)

    res = client.post("/api/cart", json={"listingId": str(listing["_id"]), "quantity": 2}, headers=headers)
    assert res.status_code == 201
    assert res.json()["data"]["subtotal"] == 25.0

    cart = client.get("/api/cart", headers=headers).json()["data"]
    assert len(cart["items"]) == 1
    assert cart["items"][0]["listing"]["seller"]["username"] == "seller"
    assert cart["summary"] == {"itemCount": 2, "total": 25.0, "formattedTotal": "$25.00"}
    assert cart["removedUnavailableItems"] == 0


def test_add_own_listing_is_rejected(client, db, seller, auth_headers, make_listing):
    listing = make_listing(seller)

    res = client.post("/api/cart", json={"listingId": str(listing["_id"])}, headers=auth_headers(seller))

    assert res.status_code == 400
    assert res.json()["message"] == "You cannot add your own product to cart"
    assert db.cart_items.docs == []


def test_add_quantity_out_of_range(client, seller, buyer, auth_headers, make_listing):
    listing = make_listing(seller)

    res = client.post(
        "/api/cart",
        json={"listingId": str(listing["_id"]), "quantity": 11},
        headers=auth_headers(buyer),
    )

    assert res.status_code == 400


def test_add_with_malformed_listing_id(client, buyer, auth_headers):
    res = client.post("/api/cart", json={"listingId": "xyz"}, headers=auth_headers(buyer))

    assert res.status_code == 400
    assert res.json()["message"] == "Invalid product ID format"


def test_update_entry(client, seller, buyer, auth_headers, make_listing, make_cart_entry):
    entry = make_cart_entry(buyer, make_listing(seller, price=3.0))

    res = client.put(f"/api/cart/{entry['_id']}", json={"quantity": 4}, headers=auth_headers(buyer))

    assert res.status_code == 200
    assert res.json()["data"]["cartItem"]["quantity"] == 4
    assert res.json()["data"]["subtotal"] == 12.0


def test_update_someone_elses_entry(client, seller, buyer, auth_headers, make_listing, make_cart_entry):
    entry = make_cart_entry(buyer, make_listing(seller))

    res = client.put(f"/api/cart/{entry['_id']}", json={"quantity": 2}, headers=auth_headers(seller))

    assert res.status_code == 403


def test_remove_missing_entry_succeeds(client, buyer, auth_headers):
    res = client.delete(f"/api/cart/{ObjectId()}", headers=auth_headers(buyer))

    assert res.status_code == 200
    assert res.json()["data"] == {"removed": False}


def test_clear_cart(client, seller, buyer, auth_headers, make_listing, make_cart_entry):
    make_cart_entry(buyer, make_listing(seller, title="One"))
    make_cart_entry(buyer, make_listing(seller, title="Two"))

    res = client.delete("/api/cart", headers=auth_headers(buyer))

    assert res.json()["data"] == {"deletedCount": 2}
