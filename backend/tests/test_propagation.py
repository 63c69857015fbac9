"""Tests for address and product propagation rules."""

import pytest

from booking_agent.correction_engine.propagation import (
    DutyLookupRequest,
    DutyLookupResult,
    PropagationContext,
    PropagationKind,
    address_targets,
    apply_duty_result,
    build_product_patch,
    matching_items,
    propagate,
)
from booking_agent.schemas.shipment import (
    ProductDetail,
    ShipmentAddress,
    ShipmentBox,
    ShipmentBoxItem,
    TariffScenario,
)

X = ShipmentAddress(name="Widget Co", address="1 Main St", city="Allentown", zip="18031")
Y = ShipmentAddress(name="Widget Co", address="500 Hamilton St", city="Allentown", zip="18101")
Z = ShipmentAddress(name="Zed Retail", address="9 Oak Ave", city="Austin", zip="73301")


def _boxes(*addresses: ShipmentAddress) -> list[ShipmentBox]:
    return [ShipmentBox(box_id=str(i + 1), receiver_address=a) for i, a in enumerate(addresses)]


def _item_box(*descriptions: str, ihsn: str = "1111111111") -> ShipmentBox:
    return ShipmentBox(
        shipment_box_items=[
            ShipmentBoxItem(description=d, quantity=1, unit_price=2.0, ehsn="847130", ihsn=ihsn)
            for d in descriptions
        ]
    )


# ── Address propagation ──


class TestAddressPropagation:
    def test_shared_mode_updates_every_box(self):
        context = PropagationContext(boxes=_boxes(X, X, X), multi_address=False)
        result = propagate(PropagationKind.ADDRESS, X, Y, context)

        assert [b.receiver_address.address for b in result.boxes] == ["500 Hamilton St"] * 3
        assert result.touched_boxes == [0, 1, 2]

    def test_multi_mode_updates_only_the_group(self):
        context = PropagationContext(boxes=_boxes(X, X, Z), multi_address=True, box_index=0)
        result = propagate(PropagationKind.ADDRESS, X, Y, context)

        addresses = [b.receiver_address.address for b in result.boxes]
        assert addresses == ["500 Hamilton St", "500 Hamilton St", "9 Oak Ave"]
        assert result.touched_boxes == [0, 1]

    def test_multi_mode_group_uses_pre_edit_key(self):
        # Editing box 2 (Z) must not pull the X boxes along
        context = PropagationContext(boxes=_boxes(X, X, Z), multi_address=True, box_index=2)
        result = propagate(PropagationKind.ADDRESS, Z, Y, context)
        assert [b.receiver_address.address for b in result.boxes] == ["1 Main St", "1 Main St", "500 Hamilton St"]

    def test_input_boxes_not_mutated(self):
        boxes = _boxes(X, X)
        propagate(PropagationKind.ADDRESS, X, Y, PropagationContext(boxes=boxes))
        assert boxes[0].receiver_address.address == "1 Main St"

    def test_boxes_do_not_share_one_address_object(self):
        result = propagate(PropagationKind.ADDRESS, X, Y, PropagationContext(boxes=_boxes(X, X)))
        result.boxes[0].receiver_address.city = "Bethlehem"
        assert result.boxes[1].receiver_address.city == "Allentown"

    def test_idempotent(self):
        context = PropagationContext(boxes=_boxes(X, X, Z), multi_address=True, box_index=0)
        once = propagate(PropagationKind.ADDRESS, X, Y, context)
        twice = propagate(
            PropagationKind.ADDRESS, Y, Y,
            PropagationContext(boxes=once.boxes, multi_address=True, box_index=0),
        )
        assert [b.model_dump() for b in twice.boxes] == [b.model_dump() for b in once.boxes]

    def test_multi_mode_needs_box_index(self):
        with pytest.raises(ValueError):
            address_targets(_boxes(X), None, multi_address=True)
        with pytest.raises(ValueError):
            address_targets(_boxes(X), 4, multi_address=True)


# ── Product propagation ──


class TestProductPropagation:
    @pytest.fixture
    def context(self):
        widget = ProductDetail(product_description="Widget", hsn_code="847130", ihsn="1111111111", value=10)
        gadget = ProductDetail(product_description="Gadget", hsn_code="850440", ihsn="3333333333", value=5)
        return PropagationContext(
            boxes=[_item_box("Widget", "Gadget"), _item_box(" widget ")],
            products=[widget, gadget],
            product_index=0,
            destination_country="US",
            origin_country="IN",
        )

    def test_ihsn_change_reaches_matching_items_and_requests_one_lookup(self, context):
        old = context.products[0]
        new = old.model_copy(update={"ihsn": "2222222222"})
        result = propagate(PropagationKind.PRODUCT, old, new, context)

        assert result.boxes[0].shipment_box_items[0].ihsn == "2222222222"
        assert result.boxes[1].shipment_box_items[0].ihsn == "2222222222"
        # Gadget untouched
        assert result.boxes[0].shipment_box_items[1].ihsn == "1111111111"
        assert result.touched_items == [(0, 0), (1, 0)]
        assert result.products[0].ihsn == "2222222222"
        assert result.duty_lookup == DutyLookupRequest(
            tariff_code="2222222222", destination_country="US", origin_country="IN"
        )

    def test_lookup_uses_product_origin(self, context):
        old = context.products[0]
        new = old.model_copy(update={"ihsn": "2222.22.2222", "country_of_origin": "CN"})
        result = propagate(PropagationKind.PRODUCT, old, new, context)
        assert result.duty_lookup.tariff_code == "2222222222"
        assert result.duty_lookup.origin_country == "CN"

    def test_no_lookup_when_code_unchanged_after_normalizing(self, context):
        old = context.products[0]
        new = old.model_copy(update={"ihsn": "1111.11.1111", "value": 99})
        result = propagate(PropagationKind.PRODUCT, old, new, context)
        assert result.duty_lookup is None

    def test_no_lookup_when_code_cleared(self, context):
        old = context.products[0]
        result = propagate(PropagationKind.PRODUCT, old, old.model_copy(update={"ihsn": ""}), context)
        assert result.duty_lookup is None

    def test_description_rename_matches_on_old_description(self, context):
        old = context.products[0]
        new = old.model_copy(update={"product_description": "Blue Widget"})
        result = propagate(PropagationKind.PRODUCT, old, new, context)

        assert result.boxes[0].shipment_box_items[0].description == "Blue Widget"
        assert result.boxes[1].shipment_box_items[0].description == "Blue Widget"

    def test_unmapped_fields_do_not_touch_items(self, context):
        old = context.products[0]
        result = propagate(PropagationKind.PRODUCT, old, old.model_copy(update={"value": 99}), context)
        assert result.touched_items == []
        assert result.products[0].value == 99

    def test_igst_maps_to_item_igst_amount(self):
        old = ProductDetail(product_description="Widget", igst_percent=12)
        new = old.model_copy(update={"igst_percent": 18})
        assert build_product_patch(old, new) == {"igst_amount": 18}

    def test_matching_items_blank_description(self):
        assert matching_items([_item_box("Widget")], "  ") == []

    def test_product_index_out_of_range(self, context):
        context.product_index = 7
        old = context.products[0]
        with pytest.raises(ValueError):
            propagate(PropagationKind.PRODUCT, old, old, context)


class TestDutyResult:
    def test_duty_fields_merged_into_product_and_items(self):
        products = [ProductDetail(product_description="Widget", ihsn="2222222222")]
        boxes = [_item_box("Widget", "Gadget", ihsn="2222222222")]
        result = DutyLookupResult(
            duty_rate=7.5,
            base_duty_rate=2.5,
            tariff_scenarios=[TariffScenario(name="Section 301", value=5.0, is_additional=True)],
        )

        outcome = apply_duty_result(result, 0, boxes, products)

        assert outcome.duty_lookup is None
        assert outcome.products[0].duty_rate == 7.5
        item = outcome.boxes[0].shipment_box_items[0]
        assert item.duty_rate == 7.5
        assert item.base_duty_rate == 2.5
        assert item.tariff_scenarios[0].name == "Section 301"
        assert outcome.boxes[0].shipment_box_items[1].duty_rate is None
