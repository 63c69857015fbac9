"""DraftSession — one draft's saved data plus an overlay of unsaved edits.

The session is the only writer of corrections: callers stage edits, read the
effective view back, and ``flush()`` sends everything as a single PATCH to the
Drafts Service. Nothing touches the network before ``flush()`` except duty
lookups scheduled by product edits, whose results are staged as a second pass.
"""

import asyncio
import logging
from typing import Any

from pydantic import BaseModel

from booking_agent.correction_engine.corrections import CorrectionSet, seller_profile_corrections, values_equal
from booking_agent.correction_engine.fields import FieldPath, collection, get_value, set_value, shipment_field
from booking_agent.correction_engine.keys import address_key, normalize_hsn, receiver_groups
from booking_agent.correction_engine.propagation import (
    DutyLookupRequest,
    DutyLookupResult,
    PropagationContext,
    PropagationKind,
    PropagationResult,
    apply_duty_result,
    propagate,
)
from booking_agent.schemas.draft import CorrectionItem, Draft
from booking_agent.schemas.shipment import ProductDetail, ShipmentAddress, ShipmentBox, ShipmentData
from booking_agent.services.drafts_service import DraftsServiceClient
from booking_agent.services.duty_lookup import DutyLookupClient, DutyLookupError
from booking_agent.xindus.normalizers import normalize_country

logger = logging.getLogger("booking_agent.session")


_COLLECTION_MODELS: dict[str, type[BaseModel]] = {
    "shipment_boxes": ShipmentBox,
    "product_details": ProductDetail,
}


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value


def _normalized(name: str, items: list[Any]) -> list[Any]:
    """Collection items as their schema dumps them, so defaults and coercions compare equal."""
    model = _COLLECTION_MODELS.get(name)
    if model is None:
        return [_dump(item) for item in items]
    return [model.model_validate(_dump(item)).model_dump() for item in items]


class DraftSession:
    """Editing state for the draft currently open in the review surface."""

    def __init__(
        self,
        client: DraftsServiceClient,
        duty_lookup: DutyLookupClient | None = None,
        *,
        origin_country: str = "IN",
        destination_country: str = "US",
    ):
        self.client = client
        self.duty_lookup = duty_lookup
        self.origin_country = origin_country
        self.destination_country = destination_country

        self._draft: Draft | None = None
        self._pending = CorrectionSet()
        self._generation = 0
        self._lookups: set[asyncio.Task] = set()

    # ── Lifecycle ──

    @property
    def draft(self) -> Draft | None:
        return self._draft

    @property
    def is_open(self) -> bool:
        return self._draft is not None

    def open(self, draft: Draft) -> None:
        """Make ``draft`` the active draft, dropping edits staged against any other."""
        if self._draft is not None and self._pending:
            logger.info(
                "Discarding %d unsaved corrections on draft %s (switched to %s)",
                len(self._pending), self._draft.id, draft.id,
            )
        self._reset()
        self._draft = draft

    def close(self) -> None:
        if self._draft is not None and self._pending:
            logger.info("Discarding %d unsaved corrections on draft %s (closed)", len(self._pending), self._draft.id)
        self._reset()
        self._draft = None

    def discard(self) -> None:
        """Drop all pending edits; the draft stays open."""
        self._reset()

    def _reset(self) -> None:
        self._pending.clear()
        self._generation += 1
        for task in self._lookups:
            task.cancel()
        self._lookups.clear()

    def _require_draft(self) -> Draft:
        if self._draft is None:
            raise ValueError("No draft is open")
        return self._draft

    # ── Reading ──

    def saved_data(self) -> dict[str, Any]:
        return self._require_draft().effective_data

    def effective_data(self) -> dict[str, Any]:
        """Saved data with pending edits applied; a fresh copy every call."""
        return self._pending.apply_to(self.saved_data())

    def effective_shipment(self) -> ShipmentData:
        return ShipmentData.model_validate(self.effective_data())

    def effective_value(self, path: "str | FieldPath") -> Any:
        return get_value(self.effective_data(), path)

    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def has_pending_lookups(self) -> bool:
        return bool(self._lookups)

    # ── Staging ──

    def stage(self, correction: CorrectionItem) -> bool:
        """Stage a wire-shaped correction. Returns False when it was a no-op.

        The recorded ``old_value`` comes from the saved draft, whatever the
        caller sent.
        """
        path = FieldPath.parse(correction.field_path)
        if path.is_collection:
            return self.stage_bulk_replace(path, correction.new_value)
        return self.stage_field(path, correction.new_value)

    def stage_field(self, path: "str | FieldPath", new_value: Any) -> bool:
        path = FieldPath.parse(path)
        if path.is_collection:
            raise ValueError(f"{path} is a collection; use stage_bulk_replace")

        effective = self.effective_data()
        if values_equal(get_value(effective, path), new_value):
            return False
        # Fails here, not at flush time, if the path points past a list.
        set_value(effective, path, new_value)

        self._pending.stage_field(path, get_value(self.saved_data(), path), new_value)
        return True

    def stage_bulk_replace(self, path: "str | FieldPath", new_value: list[Any]) -> bool:
        path = FieldPath.parse(path)
        if not path.is_collection:
            raise ValueError(f"{path} is not a replaceable collection")
        if not isinstance(new_value, list):
            raise ValueError(f"Replacement for {path} must be a list")

        items = [_dump(v) for v in new_value]
        if _normalized(path.root, items) == _normalized(path.root, self.effective_value(path) or []):
            return False
        self._pending.replace_collection(path.root, self.saved_data().get(path.root) or [], items)
        return True

    def stage_all(self, corrections: list[CorrectionItem]) -> int:
        return sum(1 for c in corrections if self.stage(c))

    # ── Flush ──

    def build_patch(self) -> list[CorrectionItem]:
        return self._pending.to_patch()

    async def flush(self) -> Draft:
        """Send all pending edits as one patch and adopt the returned draft.

        On failure nothing is cleared and the error propagates. Edits staged
        while the request is in flight (duty lookups finishing, for one) stay
        pending on top of the returned draft.
        """
        draft = self._require_draft()
        submitted = self._pending.snapshot()
        patch = submitted.to_patch()
        if not patch:
            return draft

        updated = await self.client.apply_corrections(draft.id, patch)
        logger.info("Flushed %d corrections to draft %s", len(patch), draft.id)
        if self._draft is None or self._draft.id != draft.id:
            return updated

        self._draft = updated
        self._pending.remove_submitted(submitted, updated.effective_data)
        if self._pending:
            logger.info("%d corrections staged during flush remain pending on draft %s", len(self._pending), draft.id)
        return updated

    # ── Addresses ──

    def apply_seller_defaults(self) -> int:
        """Stage the linked seller's defaults; returns how many fields changed."""
        draft = self._require_draft()
        if draft.seller is None:
            return 0
        return self.stage_all(seller_profile_corrections(self.effective_shipment(), draft.seller))

    def edit_receiver_address(
        self, box_index: int | None, address: ShipmentAddress | dict[str, Any]
    ) -> PropagationResult:
        """Apply a receiver address edit to the box at ``box_index`` and the boxes that share it."""
        new = ShipmentAddress.model_validate(_dump(address))
        shipment = self.effective_shipment()
        multi = shipment.multi_address_destination_delivery

        context = PropagationContext(boxes=shipment.shipment_boxes, multi_address=multi, box_index=box_index)
        old = shipment.shipment_boxes[box_index].receiver_address if box_index is not None else shipment.receiver_address
        result = propagate(PropagationKind.ADDRESS, old, new, context)

        self.stage_bulk_replace(collection("shipment_boxes"), result.boxes or [])
        if not multi:
            self._stage_model("receiver_address", shipment.receiver_address, new)
        return result

    def add_receiver_box(self) -> int:
        """Append an empty box with a blank receiver and switch to multi-address mode."""
        shipment = self.effective_shipment()
        boxes = list(shipment.shipment_boxes)
        boxes.append(ShipmentBox(box_id=str(len(boxes) + 1)))
        self.stage_bulk_replace(collection("shipment_boxes"), boxes)
        self.stage_field(shipment_field("multi_address_destination_delivery"), True)
        return len(boxes) - 1

    def remove_receiver_group(self, group_index: int) -> int:
        """Remove every box of one receiver group; returns how many boxes remain.

        When at most one receiver remains the shipment falls back to shared mode.
        """
        shipment = self.effective_shipment()
        groups = receiver_groups(shipment.shipment_boxes)
        if not 0 <= group_index < len(groups):
            raise ValueError(f"Receiver group {group_index} out of range ({len(groups)} groups)")

        removed = set(groups[group_index].box_indices)
        remaining = [box for idx, box in enumerate(shipment.shipment_boxes) if idx not in removed]

        if len({address_key(box.receiver_address) for box in remaining}) <= 1:
            if remaining:
                shared = remaining[0].receiver_address
                remaining = [box.model_copy(update={"receiver_address": shared.model_copy()}) for box in remaining]
            self.stage_field(shipment_field("multi_address_destination_delivery"), False)

        self.stage_bulk_replace(collection("shipment_boxes"), remaining)
        return len(remaining)

    def _stage_model(self, root: str, old: BaseModel, new: BaseModel) -> None:
        for name in type(new).model_fields:
            before, after = getattr(old, name), getattr(new, name)
            if not values_equal(before, after):
                self.stage_field(FieldPath((root, name)), after)

    # ── Products ──

    def _destination(self, shipment: ShipmentData) -> str:
        raw = shipment.country or shipment.receiver_address.country
        return normalize_country(raw) or self.destination_country

    def edit_product(self, product_index: int, product: ProductDetail | dict[str, Any]) -> PropagationResult:
        """Replace one customs product and carry the change into its matching box items."""
        shipment = self.effective_shipment()
        if not 0 <= product_index < len(shipment.product_details):
            raise ValueError(f"Product index {product_index} out of range ({len(shipment.product_details)} products)")

        old = shipment.product_details[product_index]
        new = ProductDetail.model_validate(_dump(product))
        context = PropagationContext(
            boxes=shipment.shipment_boxes,
            products=shipment.product_details,
            product_index=product_index,
            destination_country=self._destination(shipment),
            origin_country=self.origin_country,
        )
        result = propagate(PropagationKind.PRODUCT, old, new, context)

        self.stage_bulk_replace(collection("product_details"), result.products or [])
        if result.touched_items:
            self.stage_bulk_replace(collection("shipment_boxes"), result.boxes or [])
        if result.duty_lookup is not None:
            self._schedule_lookup(result.duty_lookup, product_index)
        return result

    def remove_product(self, product_index: int) -> None:
        products = self.effective_shipment().product_details
        if not 0 <= product_index < len(products):
            raise ValueError(f"Product index {product_index} out of range ({len(products)} products)")
        self.stage_bulk_replace(
            collection("product_details"), [p for i, p in enumerate(products) if i != product_index]
        )

    async def recalculate_duty(self, product_index: int) -> PropagationResult | None:
        """Look up duty for the product's current import code and stage the result."""
        if self.duty_lookup is None:
            raise ValueError("Duty lookup is not configured")
        shipment = self.effective_shipment()
        if not 0 <= product_index < len(shipment.product_details):
            raise ValueError(f"Product index {product_index} out of range ({len(shipment.product_details)} products)")

        product = shipment.product_details[product_index]
        code = normalize_hsn(product.ihsn)
        if not code:
            raise ValueError("Product has no import HSN code")
        request = DutyLookupRequest(
            tariff_code=code,
            destination_country=self._destination(shipment),
            origin_country=product.country_of_origin or self.origin_country,
        )
        result = await self.duty_lookup.lookup(request)
        return self._apply_lookup(request, product_index, result)

    # ── Duty lookups ──

    def _schedule_lookup(self, request: DutyLookupRequest, product_index: int) -> None:
        if self.duty_lookup is None:
            logger.debug("No duty lookup configured; %s left unpriced", request.tariff_code)
            return
        task = asyncio.create_task(self._run_lookup(request, product_index, self._generation))
        self._lookups.add(task)
        task.add_done_callback(self._lookups.discard)

    async def _run_lookup(self, request: DutyLookupRequest, product_index: int, generation: int) -> None:
        try:
            result = await self.duty_lookup.lookup(request)
        except DutyLookupError as e:
            logger.warning("Duty lookup for %s failed: %s", request.tariff_code, e)
            return
        if generation != self._generation:
            logger.debug("Dropping duty lookup for %s: session moved on", request.tariff_code)
            return
        self._apply_lookup(request, product_index, result)

    def _apply_lookup(
        self, request: DutyLookupRequest, product_index: int, result: DutyLookupResult
    ) -> PropagationResult | None:
        shipment = self.effective_shipment()
        products = shipment.product_details
        if product_index >= len(products) or normalize_hsn(products[product_index].ihsn) != request.tariff_code:
            logger.debug("Dropping duty lookup for %s: product changed", request.tariff_code)
            return None

        outcome = apply_duty_result(result, product_index, shipment.shipment_boxes, products)
        self.stage_bulk_replace(collection("product_details"), outcome.products or [])
        if outcome.touched_items:
            self.stage_bulk_replace(collection("shipment_boxes"), outcome.boxes or [])
        logger.info(
            "Duty for %s → %s%% applied to product %d and %d items",
            request.tariff_code, result.duty_rate, product_index, len(outcome.touched_items),
        )
        return outcome

    async def wait_for_lookups(self) -> None:
        """Wait for in-flight duty lookups scheduled by product edits."""
        while self._lookups:
            await asyncio.gather(*list(self._lookups), return_exceptions=True)
