import pytest

from billing.errors import ValidationError
from billing.inventory import inventory_to_csv, parse_inventory_csv
from billing.models import InventoryItem

PRICE_LIST = (
    "SKU,Name,Description,Unit,Type,VAT,Buy Price,Price,Discounted Price,Stock,Category,Brand\n"
    'GL-12,"Glass, 12mm clear",Tempered,sqft,Supply,5,80,120,110,40,Glass,Saint-Gobain\n'
    '\n'
    ',Fitting labour,,job,service,0,0,"1,500",,,Labor,\n'
)


def test_parse_maps_headers_and_values():
    first, second = parse_inventory_csv(PRICE_LIST)

    assert first == {
        "sku": "GL-12",
        "name": "Glass, 12mm clear",
        "details": "Tempered",
        "unit": "sqft",
        "item_type": "Supply",
        "category": "Glass",
        "brand": "Saint-Gobain",
        "vat_rate": 5.0,
        "buy_price": 80.0,
        "standard_price": 120.0,
        "discounted_price": 110.0,
        "stock_quantity": 40.0,
    }
    assert second["sku"] == "SKU-0002"
    assert second["item_type"] == "Service"
    assert second["standard_price"] == 1500
    assert second["discounted_price"] == 0
    assert second["brand"] is None


def test_parse_alternative_headers_and_fallbacks():
    rows = parse_inventory_csv("Item,Cost,Rate,VAT%\nHinge,20,35,7.5\nBracket,n/a,,\n")

    assert [row["name"] for row in rows] == ["Hinge", "Bracket"]
    assert [row["sku"] for row in rows] == ["SKU-0001", "SKU-0002"]
    assert rows[0]["buy_price"] == 20
    assert rows[0]["standard_price"] == 35
    assert rows[0]["vat_rate"] == 7.5
    assert rows[0]["unit"] == "nos"
    assert rows[1]["buy_price"] == 0


@pytest.mark.parametrize("text", ["", "   ", "sku,name,price\nA,Anchor,1\n", "sku,name,unit,price\n"])
def test_parse_without_usable_rows(text):
    assert parse_inventory_csv(text) == []


def test_parse_rejects_broken_csv():
    with pytest.raises(ValidationError):
        parse_inventory_csv("sku,name,unit,price\nA,Anchor,nos,1\nB,Bolt,nos,2,extra,fields\n")


def test_export_is_readable_by_import():
    items = [
        InventoryItem(
            sku="LK-01", name="Door lock", details=None, unit="nos", item_type="Supply",
            vat_rate=0, buy_price=150, standard_price=250, discounted_price=0, stock_quantity=3,
            category=None, brand="Union",
        ),
    ]
    text = inventory_to_csv(items)

    assert text.splitlines()[0] == "SKU,Name,Details,Unit,Type,VAT,Buy Price,Price,Discounted Price,Stock,Category,Brand"
    [row] = parse_inventory_csv(text)
    assert (row["sku"], row["name"], row["standard_price"], row["brand"]) == ("LK-01", "Door lock", 250, "Union")
