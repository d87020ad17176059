import pytest

from cart import CartOwner

ADD = {"productId": "P1", "selectedSize": "M", "selectedColor": "Red", "quantity": 1}


def add(client, user="user-1", **overrides):
    return client.post(f"/api/cart/{user}/add", json={**ADD, **overrides})


def test_add_creates_line_with_product_snapshot(client, make_product):
    make_product(quantity=5)

    resp = add(client, quantity=2)

    assert resp.status_code == 200
    cart = resp.json()["cart"]
    assert cart["userId"] == "user-1"
    assert cart["items"][0]["title"] == "Silk Saree P1"
    assert cart["items"][0]["price"] == 999
    assert cart["items"][0]["image"] == "P1-Red.jpg"
    assert cart["totalItems"] == 2
    assert cart["totalPrice"] == 1998


def test_adding_same_line_merges_quantities(client, make_product):
    make_product(quantity=5)
    add(client, quantity=2)

    cart = add(client, quantity=2).json()["cart"]

    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 4


def test_merge_beyond_stock_is_refused(client, make_product):
    make_product(quantity=3)
    add(client, quantity=2)

    resp = add(client, quantity=2)

    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Cannot add more items. Stock limit reached"
    assert body["availableStock"] == 3
    assert body["currentCartQuantity"] == 2


def test_add_unknown_selection(client, make_product):
    make_product(quantity=3)
    resp = add(client, selectedColor="Blue")
    assert resp.status_code == 400
    assert resp.json()["availableStock"] == 0


def test_add_requires_fields(client):
    resp = add(client, productId=None)
    assert resp.status_code == 400
    assert resp.json()["message"].startswith("Missing required fields")


def test_update_remove_clear_and_count(client, make_product):
    make_product("P1", quantity=5)
    make_product("P2", quantity=5)
    add(client)
    add(client, productId="P2")

    assert client.put("/api/cart/user-1/update/0", json={"quantity": 3}).json()["cart"]["totalItems"] == 4
    assert client.put("/api/cart/user-1/update/0", json={"quantity": 9}).status_code == 400
    assert client.put("/api/cart/user-1/update/7", json={"quantity": 1}).json()["message"] == "Invalid item index"
    assert client.get("/api/cart/user-1/count").json() == {"count": 4}

    cart = client.delete("/api/cart/user-1/remove/1").json()["cart"]
    assert [i["productId"] for i in cart["items"]] == ["P1"]

    assert client.delete("/api/cart/user-1/clear").json()["cart"]["items"] == []
    assert client.get("/api/cart/user-1/count").json() == {"count": 0}


def test_missing_cart_for_mutations(client):
    assert client.delete("/api/cart/nobody/clear").status_code == 404
    assert client.get("/api/cart/nobody/count").json() == {"count": 0}


def test_guest_aliases_share_one_cart(client, make_product):
    make_product(quantity=5)
    add(client, user="undefined")

    cart = client.get("/api/cart/null").json()["cart"]

    assert cart["userId"] == "guest"
    assert cart["totalItems"] == 1


@pytest.mark.parametrize("raw", [None, "", "guest", "NULL", " undefined ", "none"])
def test_guest_resolution(raw):
    assert CartOwner.resolve(raw).is_guest


def test_real_user_is_not_guest():
    owner = CartOwner.resolve(" user-9 ")
    assert not owner.is_guest
    assert owner.key == "user-9"
