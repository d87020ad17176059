from conftest import cell_quantity

NEW_PRODUCT = {
    "id": "SAR-001",
    "collection": "Home Textiles",
    "title": "Cotton Bedsheet",
    "description": "King size",
    "price": 800,
    "sellingPrice": 450,
    "stockDetails": {"King": {"White": {"quantity": 2, "images": ["w.jpg"]}}},
    "colors": "White",
}


def test_create_product_derives_stock_label(client, db):
    resp = client.post("/api/products", json=NEW_PRODUCT)

    assert resp.status_code == 201
    product = resp.json()["product"]
    assert product["stock"] == "Low Stock"
    assert product["isActive"] is True
    assert product["stockDetails"]["King"]["White"]["quantity"] == 2
    assert db["product"].count_documents({"id": "SAR-001"}) == 1


def test_duplicate_product_id_conflicts(client):
    client.post("/api/products", json=NEW_PRODUCT)
    assert client.post("/api/products", json=NEW_PRODUCT).status_code == 409


def test_negative_cell_quantity_is_rejected(client):
    body = dict(NEW_PRODUCT, stockDetails={"King": {"White": {"quantity": -1}}})
    assert client.post("/api/products", json=body).status_code == 400


def test_get_and_missing_product(client, make_product):
    make_product()
    assert client.get("/api/products/P1").json()["product"]["title"] == "Silk Saree P1"
    missing = client.get("/api/products/NOPE")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "message": "Product not found"}


def test_list_filters_and_paging(client, make_product):
    make_product("P1", collection="Womens")
    make_product("P2", collection="Mens")
    make_product("P3", collection="womens", isActive=False)

    data = client.get("/api/products", params={"collection": "Womens"}).json()
    assert data["totalCount"] == 2
    active = client.get("/api/products", params={"collection": "Womens", "isActive": "true"}).json()
    assert [p["id"] for p in active["products"]] == ["P1"]
    paged = client.get("/api/products", params={"limit": 1, "skip": 1, "sortBy": "id", "sortOrder": "asc"}).json()
    assert [p["id"] for p in paged["products"]] == ["P2"]
    assert paged["currentPage"] == 2


def test_collection_route_matches_hyphenated_names(client, make_product):
    make_product("P1", collection="Home Textiles")
    make_product("P2", collection="Mens")

    data = client.get("/api/products/collection/home-textiles").json()

    assert data["collection"] == "home textiles"
    assert [p["id"] for p in data["products"]] == ["P1"]


def test_price_range_and_budget_listing(client, make_product):
    make_product("P1", sellingPrice=299)
    make_product("P2", sellingPrice=499)
    make_product("P3", sellingPrice=1299)

    ranged = client.get("/api/products/price/range", params={"min": 300, "max": 1500}).json()
    assert [p["id"] for p in ranged["products"]] == ["P2", "P3"]
    budget = client.get("/api/products/below499").json()
    assert [p["id"] for p in budget["products"]] == ["P1", "P2"]


def test_search_requires_query_and_escapes_it(client, make_product):
    make_product("P1", title="Kanchi (Silk) Saree")
    make_product("P2", title="Cotton Towel")

    assert client.get("/api/products/search/query").status_code == 400
    found = client.get("/api/products/search/query", params={"query": "(silk)"}).json()
    assert [p["id"] for p in found["products"]] == ["P1"]


def test_batch_lookup(client, make_product):
    make_product("P1")
    make_product("P2", isActive=False)

    assert [p["id"] for p in client.post("/api/products/batch", json={"ids": ["P1", "P2"]}).json()] == ["P1"]
    assert client.post("/api/products/batch", json={"ids": []}).status_code == 400
    assert client.post("/api/products/batch", json={"ids": ["P9"]}).status_code == 404


def test_update_product_recomputes_label_and_protects_id(client, db, make_product):
    make_product(quantity=3)

    resp = client.put(
        "/api/products/P1",
        json={"id": "HIJACK", "title": "Renamed", "stockDetails": {"M": {"Red": {"quantity": 20}}}},
    )

    product = resp.json()["product"]
    assert product["id"] == "P1"
    assert product["title"] == "Renamed"
    assert product["stock"] == "In Stock"
    bad = client.put("/api/products/P1", json={"stockDetails": {"M": {"Red": {"quantity": -3}}}})
    assert bad.status_code == 400
    assert cell_quantity(db) == 20


def test_update_rejects_dotted_and_operator_keys(client, db, make_product):
    make_product(quantity=3)

    dotted = client.put("/api/products/P1", json={"stockDetails.M.Red.quantity": -5})
    operator = client.put("/api/products/P1", json={"$where": "1"})

    assert dotted.status_code == 400
    assert operator.status_code == 400
    assert operator.json()["success"] is False
    assert cell_quantity(db) == 3


def test_update_ignores_requested_stock_label(client, db, make_product):
    make_product(quantity=0, stock="Out of Stock")

    resp = client.put("/api/products/P1", json={"stock": "In Stock", "description": "Restyled"})

    assert resp.status_code == 200
    assert resp.json()["product"]["stock"] == "Out of Stock"
    assert resp.json()["product"]["description"] == "Restyled"
    assert db["product"].find_one({"id": "P1"})["stock"] == "Out of Stock"


def test_update_keeps_cells_it_does_not_touch(client, db, make_product):
    make_product(quantity=7)

    client.put("/api/products/P1", json={"title": "Renamed"})

    assert cell_quantity(db) == 7
    assert db["product"].find_one({"id": "P1"})["stock"] == "In Stock"


def test_stock_patch_sets_cell_and_label(client, db, make_product):
    make_product(quantity=10)

    resp = client.patch("/api/products/P1/stock", json={"size": "M", "color": "Red", "quantity": 0})

    assert resp.status_code == 200
    assert resp.json()["product"]["stock"] == "Out of Stock"
    assert cell_quantity(db) == 0
    assert client.patch("/api/products/P1/stock", json={"size": "M", "color": "Red", "quantity": -1}).status_code == 400
    assert client.patch("/api/products/P1/stock", json={"size": "M.x", "color": "Red", "quantity": 1}).status_code == 400


def test_stock_patch_on_missing_product_is_not_found(client, db):
    resp = client.patch("/api/products/GONE/stock", json={"size": "M", "color": "Red", "quantity": 4})

    assert resp.status_code == 404
    assert resp.json()["message"] == "Product not found"
    assert db["product"].count_documents({}) == 0


def test_soft_and_permanent_delete(client, db, make_product):
    make_product()

    assert client.delete("/api/products/P1").json()["product"]["isActive"] is False
    assert client.get("/api/products/newarrivals/all").json()["count"] == 0
    assert client.delete("/api/products/P1/permanent").status_code == 200
    assert db["product"].count_documents({}) == 0
    assert client.delete("/api/products/P1/permanent").status_code == 404
