import pytest

import stock
from conftest import cell_quantity
from errors import InsufficientStock, InvalidSelection, NotFound
from stock import LineRequest, Reservation, label_after_decrement, parse_quantity, release_stock, reserve_stock


def test_reserve_decrements_cell_and_sets_low_stock(db, make_product):
    make_product(quantity=3)

    reserve_stock(db, [LineRequest(product_id="P1", size="M", color="Red", quantity=2, title="Silk Saree")])

    product = db["product"].find_one({"id": "P1"})
    assert product["stockDetails"]["M"]["Red"]["quantity"] == 1
    assert product["stock"] == "Low Stock"


def test_reserve_to_zero_marks_out_of_stock(db, make_product):
    make_product(quantity=2)
    reserve_stock(db, [LineRequest(product_id="P1", size="M", color="Red", quantity=2)])
    assert db["product"].find_one({"id": "P1"})["stock"] == "Out of Stock"


def test_insufficient_stock_reports_available_and_writes_nothing(db, make_product):
    make_product(quantity=1)

    with pytest.raises(InsufficientStock) as exc:
        reserve_stock(db, [LineRequest(product_id="P1", size="M", color="Red", quantity=2, title="Silk Saree")])

    assert exc.value.available == 1
    assert "Available: 1, Requested: 2" in exc.value.message
    assert cell_quantity(db) == 1


def test_failure_on_later_line_leaves_earlier_cells_untouched(db, make_product):
    make_product("P1", quantity=5)
    make_product("P2", quantity=1)

    with pytest.raises(InsufficientStock):
        reserve_stock(
            db,
            [
                LineRequest(product_id="P1", size="M", color="Red", quantity=2),
                LineRequest(product_id="P2", size="M", color="Red", quantity=3),
            ],
        )

    assert cell_quantity(db, "P1") == 5
    assert cell_quantity(db, "P2") == 1


def test_lines_for_the_same_cell_are_checked_together(db, make_product):
    make_product(quantity=3)

    with pytest.raises(InsufficientStock) as exc:
        reserve_stock(
            db,
            [
                LineRequest(product_id="P1", size="M", color="Red", quantity=2),
                LineRequest(product_id="P1", size="M", color="Red", quantity=2),
            ],
        )

    assert exc.value.available == 1
    assert cell_quantity(db) == 3


def test_unknown_product_size_and_color(db, make_product):
    make_product()

    with pytest.raises(NotFound):
        reserve_stock(db, [LineRequest(product_id="NOPE", size="M", color="Red", quantity=1, title="Ghost")])
    with pytest.raises(InvalidSelection, match="Size XL"):
        reserve_stock(db, [LineRequest(product_id="P1", size="XL", color="Red", quantity=1)])
    with pytest.raises(InvalidSelection, match="Color Blue"):
        reserve_stock(db, [LineRequest(product_id="P1", size="M", color="Blue", quantity=1)])


def test_dotted_selection_is_rejected(db, make_product):
    make_product()
    with pytest.raises(InvalidSelection):
        reserve_stock(db, [LineRequest(product_id="P1", size="M.Red", color="quantity", quantity=1)])


def test_lost_race_releases_committed_decrements(db, make_product, monkeypatch):
    make_product("P1", quantity=5)
    make_product("P2", quantity=1)
    # pretend validation passed, then P2 got sold out underneath us
    planned = [
        Reservation(product_id="P1", size="M", color="Red", quantity=2),
        Reservation(product_id="P2", size="M", color="Red", quantity=3),
    ]
    monkeypatch.setattr(stock, "plan_reservations", lambda db, lines: planned)

    with pytest.raises(InsufficientStock):
        reserve_stock(db, [])

    assert cell_quantity(db, "P1") == 5
    assert cell_quantity(db, "P2") == 1


def test_string_quantity_is_normalized_before_reserving(db, make_product):
    make_product(quantity="4")

    reserve_stock(db, [LineRequest(product_id="P1", size="M", color="Red", quantity=1)])

    assert cell_quantity(db) == 3


def test_fractional_quantity_is_truncated_before_reserving(db, make_product):
    make_product(quantity=2.5)

    reserve_stock(db, [LineRequest(product_id="P1", size="M", color="Red", quantity=1)])

    assert cell_quantity(db) == 1
    assert isinstance(cell_quantity(db), int)


def test_release_restores_and_skips_missing(db, make_product):
    make_product(quantity=0, stock="Out of Stock")

    restored = release_stock(
        db,
        [
            Reservation(product_id="P1", size="M", color="Red", quantity=2),
            Reservation(product_id="GONE", size="M", color="Red", quantity=1),
            Reservation(product_id="P1", size="S", color="Red", quantity=1),
        ],
    )

    assert restored == 1
    product = db["product"].find_one({"id": "P1"})
    assert product["stockDetails"]["M"]["Red"]["quantity"] == 2
    assert product["stock"] == "Low Stock"
    assert "S" not in product["stockDetails"]


@pytest.mark.parametrize(
    "value, expected",
    [(None, 0), ("7", 7), ("2.0", 2), ("abc", 0), (3.9, 3), (True, 0)],
)
def test_parse_quantity(value, expected):
    assert parse_quantity(value) == expected


def test_label_after_decrement_keeps_current_label_above_threshold():
    assert label_after_decrement(10, "Low Stock") == "Low Stock"
    assert label_after_decrement(10, None) == "In Stock"
    assert label_after_decrement(4, "In Stock") == "Low Stock"
    assert label_after_decrement(0, "In Stock") == "Out of Stock"
