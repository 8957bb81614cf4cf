import pytest

from nfe_landed_cost.core.grouping import ProductGroup, ProductInput, SimilarDescriptionGrouper, group_from_products


def make_product(code, description, invoice_id, quantity=1.0, unit_cost=1.0):
    return ProductInput(
        code=code,
        description=description,
        quantity=quantity,
        unit_cost=unit_cost,
        invoice_id=invoice_id,
        invoice_number=invoice_id,
        emitter_name="EMITENTE",
    )


def test_similar_descriptions_share_a_group():
    products = [
        make_product("001", "PARAFUSO SEXTAVADO 1/4", "A"),
        make_product("010", "PARAF SEXTAVADO 1/4", "B"),
        make_product("003", "ARRUELA LISA 1/4", "B"),
        make_product("001", "PARAFUSO SEXT", "C"),
    ]
    groups = SimilarDescriptionGrouper(threshold=0.85)(products)

    assert len(groups) == 2
    screws, washers = groups
    assert screws.canonical_description == "PARAFUSO SEXTAVADO 1/4"
    assert [(item.code, item.invoice_id) for item in screws.items] == [("001", "A"), ("010", "B"), ("001", "C")]
    assert [item.code for item in washers.items] == ["003"]


def test_accents_and_punctuation_are_ignored():
    products = [
        make_product("1", "Café Torrado 500g", "A"),
        make_product("2", "CAFE TORRADO - 500G", "B"),
    ]
    groups = SimilarDescriptionGrouper()(products)
    assert len(groups) == 1


def test_empty_input_yields_no_groups():
    assert SimilarDescriptionGrouper()([]) == []


def test_invalid_threshold_is_rejected():
    with pytest.raises(ValueError):
        SimilarDescriptionGrouper(threshold=0)
    with pytest.raises(ValueError):
        SimilarDescriptionGrouper(threshold=1.5)


def test_group_from_products_builds_comparison_group():
    group = group_from_products(
        ProductGroup(
            canonical_description="Parafuso Sextavado 1/4",
            items=[make_product("001", "PARAFUSO", "A", quantity=10.0), make_product("010", "PARAF", "B", quantity=5.0)],
        )
    )
    assert group.code == "001"
    assert group.description == "Parafuso Sextavado 1/4"
    assert group.total_quantity == 15.0
    assert group.codes == ["001", "010"]
    assert group.is_reportable


def test_group_without_canonical_description_uses_first_item():
    group = group_from_products(ProductGroup(canonical_description="", items=[make_product("001", "PARAFUSO", "A")]))
    assert group.description == "PARAFUSO"
    assert not group.is_reportable
