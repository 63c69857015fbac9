"""Tests for DraftSession: staging, flushing, address/product edits and duty lookups."""

import asyncio
import copy
import uuid

import pytest
from unittest.mock import AsyncMock

from factories import RECEIVER_X, RECEIVER_Z, SHIPPER, build_shipment, make_box, make_draft
from booking_agent.correction_engine.fields import address_field, item_field
from booking_agent.correction_engine.propagation import DutyLookupResult
from booking_agent.correction_engine.session import DraftSession
from booking_agent.errors import DraftsServiceError
from booking_agent.schemas.draft import CorrectionItem, SellerProfile
from booking_agent.services.drafts_service import DraftsServiceClient
from booking_agent.services.duty_lookup import DutyLookupError


class FakeDutyLookup:
    """Duty lookup stand-in: rates keyed by tariff code, optionally held on a gate."""

    def __init__(self, rates=None, error=None, gate: asyncio.Event | None = None):
        self.rates = rates or {}
        self.error = error
        self.gate = gate
        self.calls = []

    async def lookup(self, request):
        self.calls.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return DutyLookupResult(duty_rate=self.rates.get(request.tariff_code), base_duty_rate=0.0)


def _session(draft=None, duty_lookup=None) -> tuple[DraftSession, AsyncMock]:
    client = AsyncMock(spec=DraftsServiceClient)
    session = DraftSession(client, duty_lookup)
    session.open(draft or make_draft())
    return session, client


# ── Staging ──


class TestStaging:
    def test_no_op_edit_not_staged(self):
        session, _ = _session()
        assert session.stage_field("shipper_address.city", "Mumbai") is False
        assert session.stage_field("shipper_address.city", " Mumbai ") is False
        assert session.pending_count() == 0

    def test_leading_zero_zip_edit_staged(self):
        data = build_shipment(shipper_address={**SHIPPER, "zip": "07030"})
        session, _ = _session(make_draft(data))

        assert session.stage_field("shipper_address.zip", "7030") is True
        assert session.build_patch()[0].new_value == "7030"

    def test_phone_prefix_edit_staged(self):
        data = build_shipment(shipper_address={**SHIPPER, "phone": "+15551234567"})
        session, _ = _session(make_draft(data))

        assert session.stage_field("shipper_address.phone", "15551234567") is True
        assert session.pending_count() == 1

    def test_edit_visible_in_effective_view_only(self):
        session, _ = _session()
        session.stage_field(address_field("shipper_address", "city"), "Pune")

        assert session.effective_value("shipper_address.city") == "Pune"
        assert session.saved_data()["shipper_address"]["city"] == "Mumbai"
        assert session.pending_count() == 1

    def test_repeated_edits_collapse_to_one_correction(self):
        session, _ = _session()
        session.stage_field("invoice_number", "INV-2")
        session.stage_field("invoice_number", "INV-3")

        (item,) = session.build_patch()
        assert item.field_path == "invoice_number"
        assert item.old_value == "INV-2024-001"
        assert item.new_value == "INV-3"

    def test_old_value_comes_from_saved_draft(self):
        session, _ = _session()
        session.stage(CorrectionItem(field_path="invoice_number", old_value="something else", new_value="INV-9"))
        assert session.build_patch()[0].old_value == "INV-2024-001"

    def test_unknown_path_rejected(self):
        session, _ = _session()
        with pytest.raises(ValueError):
            session.stage(CorrectionItem(field_path="shipper_address.postcode", new_value="1"))

    def test_index_past_end_rejected(self):
        session, _ = _session()
        with pytest.raises(ValueError, match="out of range"):
            session.stage_field("shipment_boxes.4.weight", 12)
        assert session.pending_count() == 0

    def test_wire_collection_correction_is_a_bulk_replace(self, shipment_data):
        session, _ = _session()
        products = copy.deepcopy(shipment_data["product_details"])
        products[0]["value"] = 80

        assert session.stage(CorrectionItem(field_path="product_details", new_value=products)) is True
        assert session.effective_shipment().product_details[0].value == 80
        assert [c.field_path for c in session.build_patch()] == ["product_details"]

    def test_item_edit_after_box_replace_folds_in(self):
        session, _ = _session()
        session.add_receiver_box()
        session.stage_field(item_field(0, 0, "ihsn"), "9999999999")

        paths = [c.field_path for c in session.build_patch()]
        assert paths.count("shipment_boxes") == 1
        assert "shipment_boxes.0.shipment_box_items.0.ihsn" not in paths
        assert session.effective_value("shipment_boxes.0.shipment_box_items.0.ihsn") == "9999999999"

    def test_stage_all_counts_changes(self):
        session, _ = _session()
        staged = session.stage_all(
            [
                CorrectionItem(field_path="invoice_number", new_value="INV-2024-001"),
                CorrectionItem(field_path="invoice_number", new_value="INV-7"),
                CorrectionItem(field_path="shipper_address.city", new_value="Pune"),
            ]
        )
        assert staged == 2

    def test_no_draft_open(self):
        session = DraftSession(AsyncMock(spec=DraftsServiceClient))
        with pytest.raises(ValueError, match="No draft"):
            session.effective_data()


# ── Lifecycle ──


class TestLifecycle:
    def test_opening_another_draft_discards_pending(self):
        session, _ = _session()
        session.stage_field("invoice_number", "INV-2")

        other = make_draft()
        session.open(other)
        assert session.pending_count() == 0
        assert session.draft is other

    def test_close(self):
        session, _ = _session()
        session.stage_field("invoice_number", "INV-2")
        session.close()
        assert not session.is_open
        assert session.pending_count() == 0

    def test_discard_keeps_draft_open(self):
        session, _ = _session()
        session.stage_field("invoice_number", "INV-2")
        session.discard()
        assert session.is_open
        assert session.effective_value("invoice_number") == "INV-2024-001"


# ── Flush ──


class TestFlush:
    @pytest.mark.asyncio
    async def test_single_patch_and_adopt_returned_draft(self, draft):
        session, client = _session(draft)
        session.stage_field("invoice_number", "INV-2")
        session.stage_field("invoice_number", "INV-3")
        session.stage_field("shipper_address.city", "Pune")

        saved = make_draft(build_shipment(invoice_number="INV-3"), id=draft.id)
        client.apply_corrections.return_value = saved

        result = await session.flush()

        assert result is saved
        assert client.apply_corrections.await_count == 1
        draft_id, patch = client.apply_corrections.await_args.args
        assert draft_id == draft.id
        assert [c.field_path for c in patch] == ["invoice_number", "shipper_address.city"]
        assert session.pending_count() == 0
        assert session.draft is saved

    @pytest.mark.asyncio
    async def test_nothing_pending_sends_nothing(self, draft):
        session, client = _session(draft)
        assert await session.flush() is draft
        client.apply_corrections.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_keeps_pending_edits(self):
        session, client = _session()
        session.stage_field("invoice_number", "INV-2")
        client.apply_corrections.side_effect = DraftsServiceError(500, "database unavailable")

        with pytest.raises(DraftsServiceError):
            await session.flush()

        assert session.pending_count() == 1
        assert session.effective_value("invoice_number") == "INV-2"

    @pytest.mark.asyncio
    async def test_duty_result_arriving_during_flush_stays_pending(self, draft):
        lookup_gate = asyncio.Event()
        lookup = FakeDutyLookup(rates={"2222222222": 7.5}, gate=lookup_gate)
        session, client = _session(draft, duty_lookup=lookup)

        product = session.effective_shipment().product_details[0].model_dump()
        product["ihsn"] = "2222222222"
        session.edit_product(0, product)
        sent_data = session.effective_data()

        patch_gate = asyncio.Event()

        async def apply_corrections(draft_id, patch):
            await patch_gate.wait()
            return make_draft(copy.deepcopy(sent_data), id=draft_id)

        client.apply_corrections.side_effect = apply_corrections

        flushing = asyncio.create_task(session.flush())
        await asyncio.sleep(0)
        lookup_gate.set()
        await session.wait_for_lookups()
        patch_gate.set()
        await flushing

        shipment = session.effective_shipment()
        assert shipment.product_details[0].ihsn == "2222222222"
        assert shipment.product_details[0].duty_rate == 7.5
        assert shipment.shipment_boxes[0].shipment_box_items[0].duty_rate == 7.5
        assert sorted(c.field_path for c in session.build_patch()) == ["product_details", "shipment_boxes"]
        assert session.saved_data()["product_details"][0].get("duty_rate") is None

    @pytest.mark.asyncio
    async def test_edit_made_during_flush_stays_pending(self, draft):
        session, client = _session(draft)
        session.stage_field("invoice_number", "INV-2")

        async def apply_corrections(draft_id, patch):
            session.stage_field("invoice_number", "INV-5")
            session.stage_field("shipper_address.city", "Pune")
            return make_draft(build_shipment(invoice_number="INV-2"), id=draft_id)

        client.apply_corrections.side_effect = apply_corrections
        await session.flush()

        patch = {c.field_path: c for c in session.build_patch()}
        assert set(patch) == {"invoice_number", "shipper_address.city"}
        assert (patch["invoice_number"].old_value, patch["invoice_number"].new_value) == ("INV-2", "INV-5")
        assert session.effective_value("invoice_number") == "INV-5"


# ── Receiver addresses ──


class TestReceiverAddresses:
    def _new_receiver(self) -> dict:
        return {**RECEIVER_X, "address": "500 Hamilton St", "zip": "18101"}

    def test_shared_mode_edit_updates_all_boxes_and_top_level(self):
        data = build_shipment(shipment_boxes=[make_box(RECEIVER_X) for _ in range(3)])
        session, _ = _session(make_draft(data))

        session.edit_receiver_address(0, self._new_receiver())

        shipment = session.effective_shipment()
        assert [b.receiver_address.address for b in shipment.shipment_boxes] == ["500 Hamilton St"] * 3
        assert shipment.receiver_address.address == "500 Hamilton St"
        paths = {c.field_path for c in session.build_patch()}
        assert {"shipment_boxes", "receiver_address.address", "receiver_address.zip"} <= paths

    def test_multi_mode_edit_updates_only_matching_boxes(self):
        data = build_shipment(
            multi_address_destination_delivery=True,
            shipment_boxes=[make_box(RECEIVER_X), make_box(RECEIVER_X), make_box(RECEIVER_Z)],
        )
        session, _ = _session(make_draft(data))

        result = session.edit_receiver_address(1, self._new_receiver())

        shipment = session.effective_shipment()
        assert [b.receiver_address.address for b in shipment.shipment_boxes] == [
            "500 Hamilton St",
            "500 Hamilton St",
            "9 Oak Ave",
        ]
        assert result.touched_boxes == [0, 1]
        assert shipment.receiver_address.address == "1 Main St"

    def test_identical_address_edit_is_a_no_op(self):
        data = build_shipment(shipment_boxes=[make_box(RECEIVER_X) for _ in range(2)])
        session, _ = _session(make_draft(data))

        session.edit_receiver_address(0, RECEIVER_X)

        assert session.pending_count() == 0
        assert session.build_patch() == []

    def test_identical_multi_mode_address_edit_is_a_no_op(self):
        data = build_shipment(
            multi_address_destination_delivery=True,
            shipment_boxes=[make_box(RECEIVER_X), make_box(RECEIVER_Z)],
        )
        session, _ = _session(make_draft(data))

        session.edit_receiver_address(1, RECEIVER_Z)

        assert session.pending_count() == 0

    def test_add_receiver_box_switches_to_multi_mode(self):
        session, _ = _session()
        index = session.add_receiver_box()

        shipment = session.effective_shipment()
        assert index == 1
        assert shipment.multi_address_destination_delivery is True
        assert len(shipment.shipment_boxes) == 2
        assert shipment.shipment_boxes[1].box_id == "2"
        assert shipment.shipment_boxes[1].receiver_address.address == ""

    def test_removing_a_group_down_to_one_receiver_returns_to_shared_mode(self):
        data = build_shipment(
            multi_address_destination_delivery=True,
            shipment_boxes=[make_box(RECEIVER_X), make_box(RECEIVER_Z), make_box(RECEIVER_X)],
        )
        session, _ = _session(make_draft(data))

        remaining = session.remove_receiver_group(1)

        shipment = session.effective_shipment()
        assert remaining == 2
        assert shipment.multi_address_destination_delivery is False
        assert {b.receiver_address.city for b in shipment.shipment_boxes} == {"Allentown"}

    def test_removing_a_group_keeps_multi_mode_with_two_receivers_left(self):
        third = {**RECEIVER_Z, "address": "77 Elm Rd", "zip": "73344"}
        data = build_shipment(
            multi_address_destination_delivery=True,
            shipment_boxes=[make_box(RECEIVER_X), make_box(RECEIVER_Z), make_box(third)],
        )
        session, _ = _session(make_draft(data))

        assert session.remove_receiver_group(0) == 2
        assert session.effective_shipment().multi_address_destination_delivery is True

    def test_remove_unknown_group(self):
        session, _ = _session()
        with pytest.raises(ValueError):
            session.remove_receiver_group(3)

    def test_seller_defaults_applied_to_shipper(self):
        draft = make_draft(
            seller=SellerProfile(id=uuid.uuid4(), name="Acme Exports", shipper_address={"city": "Pune", "name": ""})
        )
        session, _ = _session(draft)

        assert session.apply_seller_defaults() == 1
        assert session.effective_value("shipper_address.city") == "Pune"
        assert session.effective_value("shipper_address.name") == "Acme Exports"

    def test_seller_defaults_without_seller(self):
        session, _ = _session()
        assert session.apply_seller_defaults() == 0

    def test_seller_profile_defaults_staged(self):
        seller = SellerProfile(
            id=uuid.uuid4(),
            name="Acme Exports",
            defaults={
                "destination_clearance_type": "Informal",
                "terms_of_trade": "DDP",
                "billing_address": {"name": "Acme Accounts", "city": "Pune"},
                "ior_address": {"name": "US Importer LLC"},
            },
        )
        session, _ = _session(make_draft(seller=seller))

        assert session.apply_seller_defaults() == 5
        shipment = session.effective_shipment()
        assert shipment.destination_clearance_type == "Informal"
        assert shipment.terms_of_trade == "DDP"
        assert shipment.billing_address.name == "Acme Accounts"
        assert shipment.billing_address.city == "Pune"
        assert shipment.ior_address.name == "US Importer LLC"
        assert session.apply_seller_defaults() == 0


# ── Products and duty lookups ──


class TestProductEdits:
    def _with_ihsn(self, session: DraftSession, code: str) -> dict:
        product = session.effective_shipment().product_details[0].model_dump()
        product["ihsn"] = code
        return product

    @pytest.mark.asyncio
    async def test_ihsn_change_propagates_and_triggers_one_lookup(self):
        lookup = FakeDutyLookup(rates={"2222222222": 6.5})
        session, _ = _session(duty_lookup=lookup)

        session.edit_product(0, self._with_ihsn(session, "2222222222"))
        assert session.effective_value("shipment_boxes.0.shipment_box_items.0.ihsn") == "2222222222"

        await session.wait_for_lookups()

        assert len(lookup.calls) == 1
        request = lookup.calls[0]
        assert request.tariff_code == "2222222222"
        assert request.destination_country == "US"
        shipment = session.effective_shipment()
        assert shipment.product_details[0].duty_rate == 6.5
        assert shipment.shipment_boxes[0].shipment_box_items[0].duty_rate == 6.5
        assert sorted(c.field_path for c in session.build_patch()) == ["product_details", "shipment_boxes"]
        assert not session.has_pending_lookups

    @pytest.mark.asyncio
    async def test_stale_lookup_dropped_after_code_changes_again(self):
        gate = asyncio.Event()
        lookup = FakeDutyLookup(rates={"2222222222": 6.5, "3333333333": 9.0}, gate=gate)
        session, _ = _session(duty_lookup=lookup)

        session.edit_product(0, self._with_ihsn(session, "2222222222"))
        session.edit_product(0, self._with_ihsn(session, "3333333333"))
        gate.set()
        await session.wait_for_lookups()

        assert len(lookup.calls) == 2
        assert session.effective_shipment().product_details[0].duty_rate == 9.0

    @pytest.mark.asyncio
    async def test_lookup_dropped_when_session_resets(self):
        gate = asyncio.Event()
        lookup = FakeDutyLookup(rates={"2222222222": 6.5}, gate=gate)
        session, _ = _session(duty_lookup=lookup)

        session.edit_product(0, self._with_ihsn(session, "2222222222"))
        await asyncio.sleep(0)
        session.open(make_draft())
        gate.set()
        await session.wait_for_lookups()

        assert session.pending_count() == 0
        assert session.effective_shipment().product_details[0].duty_rate is None

    @pytest.mark.asyncio
    async def test_failed_lookup_keeps_the_edit(self):
        lookup = FakeDutyLookup(error=DutyLookupError("tariff service down"))
        session, _ = _session(duty_lookup=lookup)

        session.edit_product(0, self._with_ihsn(session, "2222222222"))
        await session.wait_for_lookups()

        shipment = session.effective_shipment()
        assert shipment.product_details[0].ihsn == "2222222222"
        assert shipment.product_details[0].duty_rate is None

    def test_edit_without_lookup_client(self):
        session, _ = _session()
        result = session.edit_product(0, self._with_ihsn(session, "2222222222"))
        assert result.duty_lookup is not None
        assert not session.has_pending_lookups

    def test_value_only_edit_leaves_boxes_alone(self):
        session, _ = _session()
        product = session.effective_shipment().product_details[0].model_dump()
        product["value"] = 99
        session.edit_product(0, product)
        assert [c.field_path for c in session.build_patch()] == ["product_details"]

    def test_identical_product_edit_is_a_no_op(self):
        lookup = FakeDutyLookup(rates={"1111111111": 3.2})
        session, _ = _session(duty_lookup=lookup)

        result = session.edit_product(0, session.effective_shipment().product_details[0])

        assert result.duty_lookup is None
        assert session.pending_count() == 0
        assert not session.has_pending_lookups

    def test_remove_product(self):
        session, _ = _session()
        session.remove_product(0)
        assert session.effective_shipment().product_details == []
        with pytest.raises(ValueError):
            session.remove_product(0)

    @pytest.mark.asyncio
    async def test_recalculate_duty(self):
        lookup = FakeDutyLookup(rates={"1111111111": 3.2})
        session, _ = _session(duty_lookup=lookup)

        await session.recalculate_duty(0)

        assert lookup.calls[0].tariff_code == "1111111111"
        assert session.effective_shipment().shipment_boxes[0].shipment_box_items[0].duty_rate == 3.2

    @pytest.mark.asyncio
    async def test_recalculate_duty_requires_client(self):
        session, _ = _session()
        with pytest.raises(ValueError, match="not configured"):
            await session.recalculate_duty(0)
