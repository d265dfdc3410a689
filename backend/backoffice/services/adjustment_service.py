# Overview: Inventory adjustment workflow (returns, damages, losses, expiries, corrections, reversals).

"""
Inventory Adjustment Service

WHY: Stock corrections need a second pair of eyes. Front-counter staff record
returns and damage reports; an approver decides whether the stock change is
real. Cost impact is fixed when the report is made so the write-off value
cannot drift when the catalog's cost price changes later.

DESIGN PRINCIPLES:
- Validation happens before any write; every bad field is reported at once
- Stock is mutated at most once per adjustment, exactly at pending -> approved
- The stock write and the status write commit in ONE transaction
- The pending -> approved/rejected transition is a conditional UPDATE
  (WHERE status = 'pending'), so concurrent reviewers cannot both succeed
- Approved/rejected records are never edited; undoing an approval is a new
  'reversal' adjustment

LIFECYCLE:
1. Create (PENDING) - cost impact computed and frozen, no stock change
2. Approve (PENDING -> APPROVED) - stock effect applied per type
   or Reject (PENDING -> REJECTED) - stock untouched
3. Optional: reverse an APPROVED adjustment (new PENDING 'reversal' record)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy import case, func, or_

from ..extensions import db
from ..models import InventoryAdjustment, InventoryItem
from ..notifications import mark_changed
from ..validation import ValidationError, MAX_AMOUNT_CENTS, coerce_bool, coerce_int
from backoffice.time_utils import utcnow, start_of_day, day_after
from .audit_service import append_audit_event, CATEGORY_ADJUSTMENTS
from .concurrency import lock_for_update, run_with_retry
from .permission_service import is_approver, log_security_event, APPROVER_PERMISSION
from .stock_service import adjust_stock, get_item, StockError


# =============================================================================
# ERRORS
# =============================================================================

class AdjustmentError(Exception):
    """Base class for adjustment workflow errors."""
    pass


class AdjustmentValidationError(AdjustmentError, ValidationError):
    """Input rejected before any write. ``fields`` maps field -> message."""
    pass


class AdjustmentNotFoundError(AdjustmentError):
    """Adjustment (or its inventory item) does not exist for this tenant."""
    pass


class AdjustmentAuthorizationError(AdjustmentError):
    """Actor is not allowed to review this adjustment."""
    pass


class AdjustmentStateError(AdjustmentError):
    """Adjustment is not in a state that allows the requested transition."""
    pass


# =============================================================================
# CONSTANTS
# =============================================================================

TYPE_RETURN = "return"
TYPE_DAMAGE = "damage"
TYPE_LOSS = "loss"
TYPE_EXPIRED = "expired"
TYPE_CORRECTION = "correction"
TYPE_REVERSAL = "reversal"

# Types a user may create directly; reversals come from reverse_adjustment()
CREATABLE_TYPES = (TYPE_RETURN, TYPE_DAMAGE, TYPE_LOSS, TYPE_EXPIRED, TYPE_CORRECTION)
ALL_TYPES = CREATABLE_TYPES + (TYPE_REVERSAL,)

# Stock leaves the shelf for good; counted as "damages" in summaries
WRITE_OFF_TYPES = (TYPE_DAMAGE, TYPE_LOSS, TYPE_EXPIRED)

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
ALL_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

# Stock effect names reported by approve_adjustment()
EFFECT_RESTOCK = "restock"
EFFECT_WRITE_DOWN = "write_down"
EFFECT_NONE = "none"
EFFECT_REVERSAL = "reversal"

MAX_TEXT_LENGTH = 255
# Upper bound on units in one adjustment
MAX_ADJUSTMENT_QUANTITY = 1_000_000
DEFAULT_LIST_LIMIT = 200
MAX_LIST_LIMIT = 1000

# (code, label). A known code is stored as its label.
RETURN_REASONS = [
    ("defective", "Defective Product"),
    ("wrong_item", "Wrong Item Delivered"),
    ("customer_changed_mind", "Customer Changed Mind"),
    ("damaged_in_transit", "Damaged in Transit"),
    ("not_as_described", "Not as Described"),
    ("warranty_claim", "Warranty Claim"),
    ("other", "Other"),
]

DAMAGE_REASONS = [
    ("shipping_damage", "Shipping/Transit Damage"),
    ("handling_damage", "Handling Damage"),
    ("storage_damage", "Storage Damage"),
    ("manufacturing_defect", "Manufacturing Defect"),
    ("water_damage", "Water Damage"),
    ("expired_product", "Product Expired"),
    ("theft_suspected", "Theft Suspected"),
    ("inventory_count", "Inventory Count Discrepancy"),
    ("other", "Other"),
]


def reason_catalog() -> dict:
    return {
        "return": [{"code": c, "label": l} for c, l in RETURN_REASONS],
        "damage": [{"code": c, "label": l} for c, l in DAMAGE_REASONS],
    }


def resolve_reason(adjustment_type: str, reason: str) -> str:
    """Map a known reason code to its label; other text passes through."""
    catalog = RETURN_REASONS if adjustment_type == TYPE_RETURN else DAMAGE_REASONS
    return dict(catalog).get(reason, reason)


# =============================================================================
# PURE RULES
# =============================================================================

def compute_cost_impact_cents(
    adjustment_type: str,
    quantity: int,
    cost_price_cents: int | None,
    *,
    return_to_stock: bool = False,
    supplied_cents: int | None = None,
) -> int:
    """
    Cost impact at creation time.

    return + restocked      -> 0
    return + not restocked  -> cost_price * quantity
    damage / loss / expired -> cost_price * quantity
    correction              -> supplied value, else 0

    A missing catalog cost price counts as 0.
    """
    unit_cost = cost_price_cents or 0
    if adjustment_type == TYPE_RETURN:
        return 0 if return_to_stock else unit_cost * quantity
    if adjustment_type in WRITE_OFF_TYPES:
        return unit_cost * quantity
    if adjustment_type == TYPE_CORRECTION:
        return supplied_cents or 0
    raise ValueError(f"No cost rule for adjustment type {adjustment_type!r}")


def stock_delta_for(adjustment: InventoryAdjustment) -> tuple[str, int]:
    """
    Stock effect of approving ``adjustment`` as (effect name, signed delta).

    Write-downs and reversals are floored at 0 by adjust_stock().
    """
    kind = adjustment.adjustment_type
    if kind == TYPE_RETURN:
        if adjustment.return_to_stock:
            return EFFECT_RESTOCK, adjustment.quantity
        return EFFECT_NONE, 0
    if kind in WRITE_OFF_TYPES:
        return EFFECT_WRITE_DOWN, -adjustment.quantity
    if kind == TYPE_CORRECTION:
        return EFFECT_NONE, 0
    if kind == TYPE_REVERSAL:
        original = adjustment.reverses
        if original is None or not original.stock_delta_applied:
            return EFFECT_NONE, 0
        return EFFECT_REVERSAL, -original.stock_delta_applied
    raise ValueError(f"Unknown adjustment type {kind!r}")


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class ApprovalResult:
    adjustment: InventoryAdjustment
    stock_effect: str
    stock_before: int | None
    stock_after: int | None
    message: str

    def to_dict(self) -> dict:
        return {
            "adjustment": self.adjustment.to_dict(),
            "stock_effect": self.stock_effect,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "message": self.message,
        }


def _approval_message(adjustment: InventoryAdjustment, effect: str, before, after) -> str:
    if effect == EFFECT_RESTOCK:
        return f"Approved: {adjustment.quantity} unit(s) returned to stock ({before} -> {after})"
    if effect == EFFECT_WRITE_DOWN:
        return f"Approved: stock written down by {before - after} unit(s) ({before} -> {after})"
    if effect == EFFECT_REVERSAL:
        return f"Approved: reversal applied to stock ({before} -> {after})"
    if adjustment.adjustment_type == TYPE_RETURN:
        return "Approved: item not returned to stock, no stock change"
    return "Approved: no stock change"


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _clean_text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _load(org_id: int, adjustment_id: int, *, lock: bool = False) -> InventoryAdjustment:
    query = db.session.query(InventoryAdjustment).filter_by(id=adjustment_id, org_id=org_id)
    if lock:
        query = lock_for_update(query)
    adjustment = query.first()
    if adjustment is None:
        raise AdjustmentNotFoundError(f"Adjustment {adjustment_id} not found")
    return adjustment


def _check_reviewer(
    adjustment: InventoryAdjustment,
    user_id: int,
    action: str,
    *,
    require_distinct_reviewer: bool,
) -> None:
    if not is_approver(user_id):
        log_security_event(
            user_id=user_id,
            org_id=adjustment.org_id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=f"inventory_adjustment:{adjustment.id}",
            action=APPROVER_PERMISSION,
            reason=f"Non-approver attempted to {action} adjustment",
        )
        raise AdjustmentAuthorizationError(f"Only approvers can {action} adjustments")

    if require_distinct_reviewer and adjustment.processed_by_user_id == user_id:
        raise AdjustmentAuthorizationError(
            f"Adjustment {adjustment.id} was recorded by this user and must be reviewed by someone else"
        )


def _transition(adjustment_id: int, user_id: int, new_status: str, now) -> None:
    """
    Claim a pending adjustment: UPDATE ... WHERE status = 'pending'.

    Raises AdjustmentStateError if another reviewer got there first.
    """
    rows = (
        db.session.query(InventoryAdjustment)
        .filter(
            InventoryAdjustment.id == adjustment_id,
            InventoryAdjustment.status == STATUS_PENDING,
        )
        .update(
            {
                InventoryAdjustment.status: new_status,
                InventoryAdjustment.approved_by_user_id: user_id,
                InventoryAdjustment.resolved_at: now,
            },
            synchronize_session=False,
        )
    )
    if rows != 1:
        raise AdjustmentStateError(f"Adjustment {adjustment_id} is no longer pending")


# =============================================================================
# CREATE
# =============================================================================

def create_adjustment(
    *,
    org_id: int,
    user_id: int,
    inventory_item_id,
    adjustment_type,
    quantity,
    reason,
    customer_name=None,
    notes=None,
    return_to_stock=None,
    cost_impact_cents=None,
) -> InventoryAdjustment:
    """
    Record a pending adjustment.

    WHY: Staff report a return or a write-off; nothing happens to stock until
    an approver confirms it.

    Args:
        org_id: Tenant
        user_id: Creator (stored as processed_by)
        inventory_item_id: Catalog item the adjustment refers to
        adjustment_type: return | damage | loss | expired | correction
        quantity: Units affected, at least 1
        reason: Reason code or free text (required)
        customer_name: Returns only
        notes: Free text
        return_to_stock: Returns only, defaults to True
        cost_impact_cents: Corrections only

    Returns:
        InventoryAdjustment with status 'pending'

    Raises:
        AdjustmentValidationError: One message per bad field; nothing is written
    """
    errors: dict[str, str] = {}

    kind = _clean_text(adjustment_type)
    if kind is None:
        errors["adjustment_type"] = "is required"
    elif kind not in CREATABLE_TYPES:
        errors["adjustment_type"] = f"must be one of: {', '.join(CREATABLE_TYPES)}"
        kind = None

    qty = None
    if quantity is None or (isinstance(quantity, str) and not quantity.strip()):
        errors["quantity"] = "is required"
    else:
        try:
            qty = coerce_int(quantity, "quantity")
        except ValidationError as exc:
            errors.update(exc.fields)
        else:
            if qty < 1:
                errors["quantity"] = "must be at least 1"
            elif qty > MAX_ADJUSTMENT_QUANTITY:
                errors["quantity"] = f"cannot exceed {MAX_ADJUSTMENT_QUANTITY}"

    reason_text = _clean_text(reason)
    if reason_text is None:
        errors["reason"] = "is required"
    else:
        if kind is not None:
            reason_text = resolve_reason(kind, reason_text)
        if len(reason_text) > MAX_TEXT_LENGTH:
            errors["reason"] = f"exceeds max length {MAX_TEXT_LENGTH}"

    item = None
    if inventory_item_id is None or (isinstance(inventory_item_id, str) and not inventory_item_id.strip()):
        errors["inventory_item_id"] = "is required"
    else:
        try:
            item_id = coerce_int(inventory_item_id, "inventory_item_id")
        except ValidationError as exc:
            errors.update(exc.fields)
        else:
            item = get_item(org_id, item_id)
            if item is None:
                errors["inventory_item_id"] = "inventory item not found"

    customer = _clean_text(customer_name)
    if customer is not None:
        if kind is not None and kind != TYPE_RETURN:
            errors["customer_name"] = "only applies to returns"
        elif len(customer) > MAX_TEXT_LENGTH:
            errors["customer_name"] = f"exceeds max length {MAX_TEXT_LENGTH}"

    restock = False
    if kind == TYPE_RETURN:
        restock = True
        if return_to_stock is not None:
            try:
                restock = coerce_bool(return_to_stock, "return_to_stock")
            except ValidationError as exc:
                errors.update(exc.fields)
    elif kind is not None and return_to_stock is not None:
        try:
            if coerce_bool(return_to_stock, "return_to_stock"):
                errors["return_to_stock"] = "only applies to returns"
        except ValidationError as exc:
            errors.update(exc.fields)

    supplied = None
    if cost_impact_cents is not None:
        if kind is not None and kind != TYPE_CORRECTION:
            errors["cost_impact_cents"] = "is computed from the catalog cost price for this type"
        else:
            try:
                supplied = coerce_int(cost_impact_cents, "cost_impact_cents")
            except ValidationError as exc:
                errors.update(exc.fields)
            else:
                if abs(supplied) > MAX_AMOUNT_CENTS:
                    errors["cost_impact_cents"] = f"cannot exceed {MAX_AMOUNT_CENTS}"

    if errors:
        raise AdjustmentValidationError(fields=errors)

    cost_impact = compute_cost_impact_cents(
        kind,
        qty,
        item.cost_price_cents,
        return_to_stock=restock,
        supplied_cents=supplied,
    )
    if abs(cost_impact) > MAX_AMOUNT_CENTS:
        raise AdjustmentValidationError(fields={
            "quantity": f"cost impact of {cost_impact} cents exceeds {MAX_AMOUNT_CENTS}; split the adjustment",
        })

    def _op():
        adjustment = InventoryAdjustment(
            org_id=org_id,
            inventory_item_id=item.id,
            adjustment_type=kind,
            quantity=qty,
            reason=reason_text,
            customer_name=customer,
            notes=_clean_text(notes),
            return_to_stock=restock,
            cost_impact_cents=cost_impact,
            status=STATUS_PENDING,
            processed_by_user_id=user_id,
            created_at=utcnow(),
        )
        db.session.add(adjustment)
        db.session.flush()

        append_audit_event(
            org_id=org_id,
            event_type="adjustment.created",
            event_category=CATEGORY_ADJUSTMENTS,
            entity_type="inventory_adjustment",
            entity_id=adjustment.id,
            actor_user_id=user_id,
            adjustment_id=adjustment.id,
            inventory_item_id=item.id,
            note=reason_text,
            payload={
                "adjustment_type": kind,
                "quantity": qty,
                "return_to_stock": restock,
                "cost_impact_cents": cost_impact,
            },
        )
        db.session.commit()
        return adjustment

    return run_with_retry(_op)


# =============================================================================
# REVIEW (APPROVE / REJECT)
# =============================================================================

def approve_adjustment(
    adjustment_id: int,
    user_id: int,
    *,
    org_id: int,
    require_distinct_reviewer: bool = False,
) -> ApprovalResult:
    """
    Approve a pending adjustment and apply its stock effect.

    WHY: This is the only place stock moves because of an adjustment. The
    status claim, the stock UPDATE and the audit rows commit together; if any
    part fails none of it is kept.

    Stock effect:
        return + restocked      -> stock + quantity
        damage / loss / expired -> max(0, stock - quantity)
        return, not restocked   -> none
        correction              -> none
        reversal                -> minus the original's applied delta, floored

    Args:
        adjustment_id: Adjustment to approve
        user_id: Approver
        org_id: Tenant
        require_distinct_reviewer: Creator may not approve their own record

    Returns:
        ApprovalResult naming the stock effect that was applied

    Raises:
        AdjustmentNotFoundError: Unknown adjustment or item vanished
        AdjustmentAuthorizationError: Caller is not an approver
        AdjustmentStateError: Adjustment is not pending
    """
    def _op():
        adjustment = _load(org_id, adjustment_id, lock=True)
        _check_reviewer(adjustment, user_id, "approve", require_distinct_reviewer=require_distinct_reviewer)

        if adjustment.status != STATUS_PENDING:
            raise AdjustmentStateError(
                f"Can only approve pending adjustments. Adjustment {adjustment_id} is {adjustment.status}"
            )

        effect, delta = stock_delta_for(adjustment)
        now = utcnow()
        _transition(adjustment.id, user_id, STATUS_APPROVED, now)

        before = after = None
        applied = 0
        if delta != 0:
            try:
                change = adjust_stock(
                    adjustment.inventory_item_id,
                    delta,
                    org_id=org_id,
                    floor_at_zero=True,
                    actor_user_id=user_id,
                    adjustment_id=adjustment.id,
                    note=f"{adjustment.adjustment_type} approved",
                )
            except StockError as exc:
                raise AdjustmentNotFoundError(str(exc)) from exc
            before, after, applied = change.before, change.after, change.delta_applied
        else:
            item = db.session.get(InventoryItem, adjustment.inventory_item_id)
            if item is not None:
                before = after = item.current_stock

        db.session.query(InventoryAdjustment).filter_by(id=adjustment.id).update(
            {InventoryAdjustment.stock_delta_applied: applied},
            synchronize_session=False,
        )
        mark_changed(InventoryAdjustment.__tablename__, org_id)

        append_audit_event(
            org_id=org_id,
            event_type="adjustment.approved",
            event_category=CATEGORY_ADJUSTMENTS,
            entity_type="inventory_adjustment",
            entity_id=adjustment.id,
            actor_user_id=user_id,
            adjustment_id=adjustment.id,
            inventory_item_id=adjustment.inventory_item_id,
            occurred_at=now,
            payload={
                "stock_effect": effect,
                "stock_before": before,
                "stock_after": after,
                "delta_applied": applied,
            },
        )
        db.session.commit()

        adjustment = db.session.get(InventoryAdjustment, adjustment.id, populate_existing=True)
        return ApprovalResult(
            adjustment=adjustment,
            stock_effect=effect,
            stock_before=before,
            stock_after=after,
            message=_approval_message(adjustment, effect, before, after),
        )

    try:
        return run_with_retry(_op)
    except AdjustmentError:
        db.session.rollback()
        raise


def reject_adjustment(
    adjustment_id: int,
    user_id: int,
    *,
    org_id: int,
    note: str | None = None,
    require_distinct_reviewer: bool = False,
) -> InventoryAdjustment:
    """
    Reject a pending adjustment. Stock is never touched.

    Raises:
        AdjustmentNotFoundError: Unknown adjustment
        AdjustmentAuthorizationError: Caller is not an approver
        AdjustmentStateError: Adjustment is not pending
    """
    def _op():
        adjustment = _load(org_id, adjustment_id, lock=True)
        _check_reviewer(adjustment, user_id, "reject", require_distinct_reviewer=require_distinct_reviewer)

        if adjustment.status != STATUS_PENDING:
            raise AdjustmentStateError(
                f"Can only reject pending adjustments. Adjustment {adjustment_id} is {adjustment.status}"
            )

        now = utcnow()
        _transition(adjustment.id, user_id, STATUS_REJECTED, now)
        mark_changed(InventoryAdjustment.__tablename__, org_id)

        append_audit_event(
            org_id=org_id,
            event_type="adjustment.rejected",
            event_category=CATEGORY_ADJUSTMENTS,
            entity_type="inventory_adjustment",
            entity_id=adjustment.id,
            actor_user_id=user_id,
            adjustment_id=adjustment.id,
            inventory_item_id=adjustment.inventory_item_id,
            occurred_at=now,
            note=_clean_text(note),
        )
        db.session.commit()
        return db.session.get(InventoryAdjustment, adjustment.id, populate_existing=True)

    try:
        return run_with_retry(_op)
    except AdjustmentError:
        db.session.rollback()
        raise


# =============================================================================
# REVERSAL
# =============================================================================

def reverse_adjustment(
    adjustment_id: int,
    user_id: int,
    *,
    org_id: int,
    reason,
    notes=None,
) -> InventoryAdjustment:
    """
    Request a reversal of an approved adjustment.

    WHY: Approved records are terminal. Undoing one is a new pending
    'reversal' adjustment that goes through the same review; approving it
    applies the opposite of the original's recorded stock delta.

    Returns:
        New InventoryAdjustment (type 'reversal', status 'pending')

    Raises:
        AdjustmentValidationError: Missing reason
        AdjustmentNotFoundError: Unknown adjustment
        AdjustmentStateError: Original not approved, applied no stock change,
            is itself a reversal, or already has an open/approved reversal
    """
    reason_text = _clean_text(reason)
    if reason_text is None:
        raise AdjustmentValidationError(fields={"reason": "is required"})
    if len(reason_text) > MAX_TEXT_LENGTH:
        raise AdjustmentValidationError(fields={"reason": f"exceeds max length {MAX_TEXT_LENGTH}"})

    def _op():
        original = _load(org_id, adjustment_id, lock=True)

        if original.adjustment_type == TYPE_REVERSAL:
            raise AdjustmentStateError("A reversal cannot itself be reversed")
        if original.status != STATUS_APPROVED:
            raise AdjustmentStateError(
                f"Can only reverse approved adjustments. Adjustment {adjustment_id} is {original.status}"
            )
        if not original.stock_delta_applied:
            raise AdjustmentStateError(
                f"Adjustment {adjustment_id} did not change stock; there is nothing to reverse"
            )

        existing = db.session.query(InventoryAdjustment).filter(
            InventoryAdjustment.reverses_adjustment_id == original.id,
            InventoryAdjustment.status != STATUS_REJECTED,
        ).first()
        if existing is not None:
            raise AdjustmentStateError(
                f"Adjustment {adjustment_id} already has reversal {existing.id} ({existing.status})"
            )

        reversal = InventoryAdjustment(
            org_id=org_id,
            inventory_item_id=original.inventory_item_id,
            adjustment_type=TYPE_REVERSAL,
            quantity=abs(original.stock_delta_applied),
            reason=reason_text,
            notes=_clean_text(notes),
            return_to_stock=False,
            cost_impact_cents=-original.cost_impact_cents,
            status=STATUS_PENDING,
            processed_by_user_id=user_id,
            reverses_adjustment_id=original.id,
            created_at=utcnow(),
        )
        db.session.add(reversal)
        db.session.flush()

        append_audit_event(
            org_id=org_id,
            event_type="adjustment.reversal_requested",
            event_category=CATEGORY_ADJUSTMENTS,
            entity_type="inventory_adjustment",
            entity_id=reversal.id,
            actor_user_id=user_id,
            adjustment_id=reversal.id,
            inventory_item_id=original.inventory_item_id,
            note=reason_text,
            payload={
                "reverses_adjustment_id": original.id,
                "original_delta_applied": original.stock_delta_applied,
            },
        )
        db.session.commit()
        return reversal

    try:
        return run_with_retry(_op)
    except AdjustmentError:
        db.session.rollback()
        raise


# =============================================================================
# QUERIES
# =============================================================================

def get_adjustment(org_id: int, adjustment_id: int) -> InventoryAdjustment | None:
    return db.session.query(InventoryAdjustment).filter_by(id=adjustment_id, org_id=org_id).first()


def _filtered_query(
    org_id: int,
    *,
    adjustment_type: str | None = None,
    status: str | None = None,
    start: date | None = None,
    end: date | None = None,
    search: str | None = None,
):
    errors = {}
    if adjustment_type and adjustment_type not in ALL_TYPES:
        errors["type"] = f"must be one of: {', '.join(ALL_TYPES)}"
    if status and status not in ALL_STATUSES:
        errors["status"] = f"must be one of: {', '.join(ALL_STATUSES)}"
    if start and end and start > end:
        errors["start"] = "must be on or before end"
    if errors:
        raise AdjustmentValidationError(fields=errors)

    q = (
        db.session.query(InventoryAdjustment)
        .join(InventoryItem, InventoryItem.id == InventoryAdjustment.inventory_item_id)
        .filter(InventoryAdjustment.org_id == org_id)
    )
    if adjustment_type:
        q = q.filter(InventoryAdjustment.adjustment_type == adjustment_type)
    if status:
        q = q.filter(InventoryAdjustment.status == status)
    if start:
        q = q.filter(InventoryAdjustment.created_at >= start_of_day(start))
    if end:
        q = q.filter(InventoryAdjustment.created_at < day_after(end))

    term = _clean_text(search)
    if term:
        pattern = f"%{term.lower()}%"
        q = q.filter(or_(
            func.lower(InventoryItem.name).like(pattern),
            func.lower(InventoryItem.sku).like(pattern),
            func.lower(func.coalesce(InventoryAdjustment.customer_name, "")).like(pattern),
            func.lower(InventoryAdjustment.reason).like(pattern),
        ))
    return q


def list_adjustments(
    org_id: int,
    *,
    adjustment_type: str | None = None,
    status: str | None = None,
    start: date | None = None,
    end: date | None = None,
    search: str | None = None,
    limit: int = DEFAULT_LIST_LIMIT,
) -> list[InventoryAdjustment]:
    """Newest first. Date bounds are inclusive whole days."""
    q = _filtered_query(
        org_id,
        adjustment_type=adjustment_type,
        status=status,
        start=start,
        end=end,
        search=search,
    )
    limit = max(1, min(limit, MAX_LIST_LIMIT))
    return (
        q.order_by(InventoryAdjustment.created_at.desc(), InventoryAdjustment.id.desc())
        .limit(limit)
        .all()
    )


def get_adjustment_summary(
    org_id: int,
    *,
    adjustment_type: str | None = None,
    status: str | None = None,
    start: date | None = None,
    end: date | None = None,
    search: str | None = None,
) -> dict:
    """Counts and cost totals over the same filters as list_adjustments()."""
    q = _filtered_query(
        org_id,
        adjustment_type=adjustment_type,
        status=status,
        start=start,
        end=end,
        search=search,
    )

    def _count_where(condition):
        return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

    def _cost_where(condition):
        return func.coalesce(
            func.sum(case((condition, InventoryAdjustment.cost_impact_cents), else_=0)), 0
        )

    row = q.with_entities(
        func.count(InventoryAdjustment.id).label("total"),
        _count_where(InventoryAdjustment.status == STATUS_PENDING).label("pending"),
        _count_where(InventoryAdjustment.adjustment_type == TYPE_RETURN).label("returns"),
        _count_where(InventoryAdjustment.adjustment_type.in_(WRITE_OFF_TYPES)).label("damages"),
        _cost_where(InventoryAdjustment.status == STATUS_APPROVED).label("approved_cost"),
        _cost_where(InventoryAdjustment.status == STATUS_PENDING).label("pending_cost"),
    ).one()

    return {
        "total": int(row.total or 0),
        "pending": int(row.pending or 0),
        "returns": int(row.returns or 0),
        "damages": int(row.damages or 0),
        "approved_cost_impact_cents": int(row.approved_cost or 0),
        "pending_cost_impact_cents": int(row.pending_cost or 0),
    }


def get_pending_adjustments(org_id: int) -> list[InventoryAdjustment]:
    return list_adjustments(org_id, status=STATUS_PENDING, limit=MAX_LIST_LIMIT)
