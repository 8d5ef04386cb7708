import pytest
from feedgen.feeds.pricing import PriceFields, format_money, is_on_sale, resolve_price


def test_format_money():
    assert format_money(19.9, "USD") == "19.90 USD"
    assert format_money(5, "EUR") == "5.00 EUR"


def test_format_money_defaults_to_brl():
    assert format_money(10, None) == "10.00 BRL"


def test_resolve_price_on_sale():
    fields = resolve_price(100, 150, "XXX")
    assert fields == PriceFields(price="150.00 XXX", sale_price="100.00 XXX")
    assert fields.on_sale


@pytest.mark.parametrize("compare_at", [None, 100, 50])
def test_resolve_price_not_on_sale(compare_at):
    fields = resolve_price(100, compare_at, "BRL")
    assert fields.price == "100.00 BRL"
    assert fields.sale_price is None
    assert not fields.on_sale


def test_is_on_sale():
    assert is_on_sale(10, 12)
    assert not is_on_sale(10, 10)
    assert not is_on_sale(10, None)
