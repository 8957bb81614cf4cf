import pytest

from nfe_landed_cost.core.allocation import allocate_invoice
from nfe_landed_cost.core.conversion import UnitConversionAdapter, converted_cost, parse_conversion_factor
from nfe_landed_cost.core.models import Invoice, InvoiceHeader, LineItem


def make_allocated():
    header = InvoiceHeader(
        emitter_name="ALFA",
        emitter_cnpj="11111111000111",
        invoice_number="1001",
        total_products=1000.0,
        total_freight=100.0,
    )
    items = [
        LineItem(item_number=1, code="001", description="CAIXA PARAFUSO", quantity=10.0, unit_cost=100.0, total_cost=1000.0, ipi=50.0),
    ]
    return allocate_invoice(Invoice(invoice_id="NF1", header=header, items=items))


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("5", 5.0),
        (12, 12.0),
        ("2,5", 2.5),
        (" 4 ", 4.0),
        ("", 1.0),
        (None, 1.0),
        ("abc", 1.0),
        ("0", 1.0),
        (-3, 1.0),
        ("nan", 1.0),
        ("inf", 1.0),
    ],
)
def test_parse_conversion_factor(raw, expected):
    assert parse_conversion_factor(raw) == expected


def test_conversion_scenario():
    line = make_allocated().lines[0]
    converted = UnitConversionAdapter().apply(line, "5")
    assert converted.final_unit_cost == 115.0
    assert converted.conversion_factor == 5.0
    assert converted.converted_unit_cost == 23.0


def test_factor_one_keeps_final_unit_cost():
    line = make_allocated().lines[0]
    converted = UnitConversionAdapter().apply(line, 1)
    assert converted.converted_unit_cost == converted.final_unit_cost


def test_conversion_does_not_touch_allocation():
    line = make_allocated().lines[0]
    converted = UnitConversionAdapter().apply(line, "12")
    assert line.converted_unit_cost == 115.0
    assert converted.item is line.item
    assert (converted.freight, converted.final_total_cost, converted.final_unit_cost) == (
        line.freight,
        line.final_total_cost,
        line.final_unit_cost,
    )


def test_conversion_is_repeatable_with_other_factors():
    adapter = UnitConversionAdapter()
    line = make_allocated().lines[0]
    once = adapter.apply(line, "5")
    again = adapter.apply(adapter.apply(once, "2"), "5")
    assert again == once
    assert adapter.apply(once, "invalid").converted_unit_cost == 115.0


def test_apply_to_invoice_replaces_one_line():
    invoice = make_allocated()
    updated = UnitConversionAdapter().apply_to_invoice(invoice, 1, "5")
    assert updated.line(1).converted_unit_cost == 23.0
    assert updated.totals is invoice.totals
    assert invoice.line(1).converted_unit_cost == 115.0
    with pytest.raises(KeyError):
        UnitConversionAdapter().apply_to_invoice(invoice, 99, "5")


def test_converted_cost_helper():
    assert converted_cost(115.0, "5") == 23.0
    assert converted_cost(115.0, "0") == 115.0
