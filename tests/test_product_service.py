import json

import pytest
from pymongo.errors import DuplicateKeyError

from store_pos.utils.errors import NotFoundError, ValidationFailure


def _product_data(**overrides):
    data = {
        "name": "Milk 1L",
        "barcode": "MAIN001",
        "cost_price": 2.5,
        "price": 3.0,
        "stock": 40,
        "units": [{"unit_name": "Crate", "barcode": "SUB001", "selling_price": 33.0, "conversion_factor": 12}],
    }
    data.update(overrides)
    return data


def test_create_then_lookup_returns_new_product(services):
    assert services.cache.lookup("s1", "MAIN001") is None

    created = services.products.create_product("S1", _product_data())

    assert created["store_id"] == "s1"
    assert services.cache.lookup("s1", "MAIN001")["_id"] == created["_id"]
    assert services.cache.lookup("s1", "SUB001")["_id"] == created["_id"]


def test_duplicate_barcode_is_rejected_by_unique_index(services):
    services.products.create_product("s1", _product_data())

    with pytest.raises(DuplicateKeyError):
        services.products.create_product("s1", _product_data(name="Other"))

    # same barcode in another store is fine
    assert services.products.create_product("s2", _product_data())["store_id"] == "s2"


def test_update_invalidates_old_and_new_barcodes(services, fake_redis):
    created = services.products.create_product("s1", _product_data())
    services.cache.lookup("s1", "MAIN001")
    services.cache.lookup("s1", "SUB001")
    fake_redis.store["product:s1:MAIN002"] = json.dumps({"stale": True})

    updated = services.products.update_product("s1", created["_id"], {"barcode": "MAIN002", "price": 3.5})

    assert updated["barcode"] == "MAIN002"
    assert fake_redis.store == {}
    assert services.cache.lookup("s1", "MAIN001") is None
    assert services.cache.lookup("s1", "MAIN002")["price"] == 3.5
    assert services.cache.lookup("s1", "SUB001")["price"] == 3.5


def test_update_cannot_move_product_to_another_store(services, fake_db):
    created = services.products.create_product("s1", _product_data())

    services.products.update_product("s1", created["_id"], {"store_id": "s2", "name": "Renamed"})

    stored = fake_db["products"].find_one({"barcode": "MAIN001"})
    assert stored["store_id"] == "s1"
    assert stored["name"] == "Renamed"


def test_update_in_wrong_store_is_not_found(services):
    created = services.products.create_product("s1", _product_data())

    with pytest.raises(NotFoundError):
        services.products.update_product("s2", created["_id"], {"name": "x"})
    with pytest.raises(NotFoundError):
        services.products.update_product("s1", "not-an-id", {"name": "x"})


def test_delete_invalidates_every_barcode(services, fake_redis):
    created = services.products.create_product("s1", _product_data())
    services.cache.lookup("s1", "MAIN001")
    services.cache.lookup("s1", "SUB001")
    assert len(fake_redis.store) == 2

    services.products.delete_product("s1", created["_id"])

    assert fake_redis.store == {}
    assert services.cache.lookup("s1", "MAIN001") is None
    assert services.cache.lookup("s1", "SUB001") is None
    with pytest.raises(NotFoundError):
        services.products.delete_product("s1", created["_id"])


def test_get_by_barcode_reports_matched_unit(services):
    services.products.create_product("s1", _product_data())

    by_unit = services.products.get_by_barcode("s1", " SUB001 ")
    by_primary = services.products.get_by_barcode("s1", "MAIN001")

    assert by_unit["matched_unit"]["unit_name"] == "Crate"
    assert by_unit["matched_barcode"] == "SUB001"
    assert by_primary["matched_unit"] is None
    with pytest.raises(NotFoundError):
        services.products.get_by_barcode("s1", "NOPE")


def test_list_products_search_is_escaped_and_paginated(services):
    for i in range(5):
        services.products.create_product("s1", _product_data(name=f"Soap (x{i})", barcode=f"SOAP{i}", units=[]))
    services.products.create_product("s1", _product_data(name="Bread", barcode="BRD1", units=[]))
    services.products.create_product("s2", _product_data(name="Soap (x9)", barcode="SOAP9", units=[]))

    page = services.products.list_products("s1", search="soap (x", page=1, per_page=2)

    assert page["total_count"] == 5
    assert page["total_pages"] == 3
    assert len(page["products"]) == 2
    assert services.products.list_products("s1", search="brd")["total_count"] == 1


def test_list_products_clamps_limit(services):
    page = services.products.list_products("s1", page=0, per_page=1000)

    assert page["current_page"] == 1
    assert page["per_page"] == 100


def test_create_multi_unit_product_persists_chain(services, fake_db):
    result = services.products.create_multi_unit_product("s1", {
        "name": "Water",
        "initial_quantity_highest_unit": 10,
        "total_purchase_price": 100,
        "unit_levels": [
            {"unit_name": "Box", "barcode": "BOX1", "sub_units_per_this_unit": 12, "selling_price": 15},
            {"unit_name": "Piece", "barcode": "PC1", "sub_units_per_this_unit": 0, "selling_price": 1.5},
        ],
    })

    product = result["product"]
    assert product["barcode"] == "BOX1"
    assert product["stock"] == 10
    assert product["price"] == 15
    assert product["cost_price"] == 10
    assert [(u["barcode"], u["conversion_factor"]) for u in product["units"]] == [("BOX1", 1), ("PC1", 12)]
    assert services.cache.lookup("s1", "PC1")["_id"] == product["_id"]


def test_multi_unit_rejects_barcodes_already_in_store(services):
    services.products.create_product("s1", _product_data())

    with pytest.raises(ValidationFailure) as exc:
        services.products.create_multi_unit_product("s1", {
            "name": "Water",
            "initial_quantity_highest_unit": 1,
            "total_purchase_price": 1,
            "unit_levels": [
                {"unit_name": "Box", "barcode": "SUB001", "sub_units_per_this_unit": 2, "selling_price": 2},
                {"unit_name": "Piece", "barcode": "PC9", "selling_price": 1},
            ],
        })

    assert list(exc.value.errors["units"]) == [0]


def test_import_upsert_invalidates_store_cache(services, fake_redis):
    services.products.create_product("s1", _product_data(units=[]))
    services.cache.lookup("s1", "MAIN001")
    fake_redis.store["product:s2:MAIN001"] = "{}"

    result = services.products.import_products("s1", [
        {"name": "Milk 1L", "barcode": "MAIN001", "cost_price": 2.5, "price": 4.0},
        {"name": "Eggs", "barcode": "EGG1", "cost_price": 1, "price": 2},
        {"name": "No barcode", "barcode": "", "cost_price": 1, "price": 2},
    ])

    assert (result["inserted"], result["updated"]) == (1, 1)
    assert result["errors"] == [{"row": 3, "error": "BARCODE_REQUIRED"}]
    assert list(fake_redis.store) == ["product:s2:MAIN001"]
    assert services.cache.lookup("s1", "MAIN001")["price"] == 4.0


def test_import_create_mode_reports_duplicates(services):
    services.products.create_product("s1", _product_data(units=[]))

    result = services.products.import_products("s1", [
        {"name": "Milk", "barcode": "MAIN001", "cost_price": 1, "price": 1},
        {"name": "Eggs", "barcode": "EGG1", "cost_price": 1, "price": 2},
    ], mode="create")

    assert result["inserted"] == 1
    assert result["errors"] == [{"row": 1, "error": "DUPLICATE_BARCODE"}]


def test_import_dry_run_writes_nothing(services, fake_db):
    services.products.create_product("s1", _product_data(units=[]))

    preview = services.products.import_products("s1", [
        {"name": "Milk", "barcode": "MAIN001", "cost_price": 1, "price": 1},
        {"name": "Eggs", "barcode": "EGG1", "cost_price": 1, "price": 2},
    ], dry_run=True)

    assert preview == {"would_insert": 1, "would_update": 1, "errors": [], "dry_run": True}
    assert fake_db["products"].count_documents({}) == 1


def test_barcode_endpoint(client, auth_headers, make_store, services):
    make_store("s1")
    services.products.create_product("s1", _product_data())

    found = client.get("/v1/products/barcode/SUB001", headers=auth_headers())
    missing = client.get("/v1/products/barcode/NOPE", headers=auth_headers())

    assert found.status_code == 200
    assert found.get_json()["data"]["matched_unit"]["barcode"] == "SUB001"
    assert missing.status_code == 404


def test_create_endpoint_reports_conflict(client, auth_headers, make_store):
    make_store("s1")
    payload = _product_data()

    first = client.post("/v1/products", json=payload, headers=auth_headers())
    second = client.post("/v1/products", json=payload, headers=auth_headers())

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.get_json()["message"] == "Product with this barcode already exists"


def test_multi_unit_endpoint_returns_field_errors(client, auth_headers, make_store):
    make_store("s1")

    response = client.post("/v1/products/multi-unit", json={
        "name": "Water",
        "initial_quantity_highest_unit": 10,
        "total_purchase_price": 100,
        "unit_levels": [
            {"unit_name": "Box", "barcode": "B1", "sub_units_per_this_unit": 0, "selling_price": 5},
            {"unit_name": "Piece", "barcode": "B1", "selling_price": 1},
        ],
    }, headers=auth_headers())

    body = response.get_json()
    assert response.status_code == 400
    assert body["code"] == "VALIDATION_FAILED"
    assert set(body["errors"]["units"]) == {"0", "1"}


def test_import_rejects_rows_breaking_field_rules(services, fake_db):
    result = services.products.import_products("s1", [
        {"name": "Bad", "barcode": "IMP1", "cost_price": 1, "price": -9, "stock": -3,
         "status": "bogus", "vat_percentage": 250},
        {"name": "Good", "barcode": "IMP2", "cost_price": 1, "price": 2},
    ])

    assert result["inserted"] == 1
    [error] = result["errors"]
    assert error["row"] == 1
    assert set(error["error"]) == {"price", "stock", "status", "vat_percentage"}
    assert fake_db["products"].find_one({"barcode": "IMP1"}) is None


def test_import_reports_barcode_repeated_in_file(services, fake_db):
    result = services.products.import_products("s1", [
        {"name": "First", "barcode": "DUP", "cost_price": 1, "price": 2},
        {"name": "Second", "barcode": " DUP ", "cost_price": 1, "price": 2},
    ])

    assert (result["inserted"], result["updated"]) == (1, 0)
    assert [(e["row"], e["error"]) for e in result["errors"]] == [(2, "DUPLICATE_BARCODE_IN_FILE")]
    assert fake_db["products"].find_one({"barcode": "DUP"})["name"] == "First"


def test_import_dry_run_agrees_with_real_import(services):
    items = [
        {"barcode": "NONAME", "price": 1},
        {"name": "Eggs", "barcode": "EGG1", "cost_price": 1, "price": 2},
        {"name": "Eggs again", "barcode": "EGG1", "cost_price": 1, "price": 2},
    ]

    preview = services.products.import_products("s1", items, dry_run=True)
    result = services.products.import_products("s1", items)

    assert (preview["would_insert"], preview["would_update"]) == (result["inserted"], result["updated"]) == (1, 0)
    assert preview["errors"] == result["errors"]
    assert set(preview["errors"][0]["error"]) == {"name", "cost_price"}


def test_multi_unit_rejects_fractional_sub_units_and_quantity(services, fake_db):
    with pytest.raises(ValidationFailure) as exc:
        services.products.create_multi_unit_product("s1", {
            "name": "Tape",
            "initial_quantity_highest_unit": 2.5,
            "total_purchase_price": 10,
            "unit_levels": [
                {"unit_name": "Box", "barcode": "TB1", "sub_units_per_this_unit": 4, "selling_price": 8},
                {"unit_name": "Roll", "barcode": "TR1", "sub_units_per_this_unit": 0.5, "selling_price": 2},
                {"unit_name": "Strip", "barcode": "TS1", "selling_price": 1},
            ],
        })

    errors = exc.value.errors
    assert "initial_quantity_highest_unit" in errors
    assert list(errors["units"]) == [1]
    assert "sub_units_per_this_unit" in errors["units"][1]
    assert fake_db["products"].count_documents({}) == 0


def test_create_endpoint_rejects_blank_barcodes(client, auth_headers, make_store, fake_db):
    make_store("s1")

    blank_main = client.post("/v1/products", json=_product_data(barcode="   "), headers=auth_headers())
    blank_unit = client.post(
        "/v1/products",
        json=_product_data(units=[{"unit_name": "Crate", "barcode": "  ", "selling_price": 1}]),
        headers=auth_headers(),
    )

    assert blank_main.status_code == 422
    assert blank_unit.status_code == 422
    assert fake_db["products"].count_documents({}) == 0


def test_update_endpoint_rejects_blank_barcode(client, auth_headers, make_store, services):
    make_store("s1")
    created = services.products.create_product("s1", _product_data())

    response = client.patch(f"/v1/products/{created['_id']}", json={"barcode": " "}, headers=auth_headers())

    assert response.status_code == 422
    assert services.products.get_product("s1", created["_id"])["barcode"] == "MAIN001"
