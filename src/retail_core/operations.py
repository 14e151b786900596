"""Business operations backed by stored procedures.

Each operation validates its input, builds the procedure payload and makes
exactly one call. The store performs the work (and its own consistency
checks) atomically; this module never retries.

Failure modes:

- ``ValidationError``: input rejected locally, nothing was sent.
- ``StoreError``: transport or database failure.
- ``ProcedureError``: the procedure ran and answered ``status: "error"``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

from retail_core.exceptions import ProcedureError, ValidationError
from retail_core.utils import coerce_date

if TYPE_CHECKING:
    from retail_core.store import StoreClient

logger = logging.getLogger(__name__)

PURCHASE_PROCEDURE = "process_purchase_transaction"
AUDIT_PROCEDURE = "process_stock_audit"

AUDIT_STATUSES = ("approved", "rejected")


@dataclass(frozen=True)
class ProcedureResult:
    """Outcome of a stored-procedure call.

    Attributes:
        status: "success" unless the procedure reported otherwise.
        message: Server-provided message, if any.
        data: Remaining response payload.
    """

    status: str
    message: str | None = None
    data: Any = None

    @classmethod
    def from_response(cls, response: Any) -> ProcedureResult:
        """Interpret a procedure response.

        Procedures that return nothing succeeded. A mapping carrying
        ``status == "error"`` is a business failure.

        Raises:
            ProcedureError: If the response reports an error.

        """
        if not isinstance(response, dict):
            return cls(status="success", data=response)

        status = str(response.get("status") or "success")
        message = response.get("message")
        if status == "error":
            raise ProcedureError(message or "Stored procedure reported an error", details=response)
        data = {k: v for k, v in response.items() if k not in ("status", "message")}
        return cls(status=status, message=message, data=data or None)


# ----------------------------------------------------------------------
# Purchases
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class PurchaseItem:
    """One purchased product line."""

    product_id: str
    quantity: float
    unit_purchase_price: float

    @property
    def total_cost(self) -> float:
        return self.quantity * self.unit_purchase_price


@dataclass(frozen=True)
class PurchaseRequest:
    """A purchase to record into a warehouse.

    Attributes:
        warehouse_id: Receiving warehouse.
        purchase_date: Date of the purchase (``date`` or ISO string).
        registered_by_user_id: User recording the purchase.
        items: Purchased lines, at least one.
    """

    warehouse_id: str | None
    purchase_date: date | str | None
    registered_by_user_id: str | None
    items: list[PurchaseItem] = field(default_factory=list)

    @property
    def total_cost(self) -> float:
        return sum(item.total_cost for item in self.items)

    def validate(self) -> None:
        """Check the request.

        Raises:
            ValidationError: Listing every failed rule.

        """
        errors = []
        if not self.warehouse_id:
            errors.append("Warehouse must be selected.")
        if not self.purchase_date:
            errors.append("Purchase date is required.")
        elif coerce_date(self.purchase_date) is None:
            errors.append(f"Invalid purchase date: {self.purchase_date!r}")
        if not self.items:
            errors.append("At least one item is required for a purchase.")
        for i, item in enumerate(self.items, start=1):
            if not item.product_id:
                errors.append(f"Item {i}: product must be selected.")
            if item.quantity is None or item.quantity < 1:
                errors.append(f"Item {i}: quantity must be at least 1.")
            if item.unit_purchase_price is None or item.unit_purchase_price < 0:
                errors.append(f"Item {i}: unit price must be non-negative.")
        if errors:
            raise ValidationError(errors)

    def to_payload(self) -> dict[str, Any]:
        """Build the ``purchase_data`` argument of the procedure."""
        purchase_date = coerce_date(self.purchase_date)
        items = [
            {
                "product_id": item.product_id,
                "quantity": item.quantity,
                "unit_purchase_price": item.unit_purchase_price,
                "total_cost": item.total_cost,
            }
            for item in self.items
        ]
        return {
            "warehouse_id": self.warehouse_id,
            "purchase_date": purchase_date.isoformat() if purchase_date else None,
            "registered_by_user_id": self.registered_by_user_id,
            "total_cost": sum(item["total_cost"] for item in items),
            "items": items,
        }


def record_purchase(client: StoreClient, request: PurchaseRequest) -> ProcedureResult:
    """Record a purchase and increase warehouse stock.

    Args:
        client: Data store client.
        request: Purchase to record.

    Returns:
        ProcedureResult of ``process_purchase_transaction``.

    Raises:
        ValidationError: If the request is invalid (no call is made).
        StoreError: On transport or database failure.
        ProcedureError: If the procedure reports an error.

    """
    request.validate()
    payload = request.to_payload()
    logger.info(
        "Recording purchase into warehouse %s: %d item(s), total %.2f",
        request.warehouse_id,
        len(request.items),
        payload["total_cost"],
    )
    response = client.call(PURCHASE_PROCEDURE, {"purchase_data": payload})
    return ProcedureResult.from_response(response)


# ----------------------------------------------------------------------
# Stock audits
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class AuditedProduct:
    """A product line of a stock-audit submission as reviewed by a manager."""

    product_name: str
    product_ref: str
    quantity: float
    product_unit_abbreviation: str | None = None
    category_id: str | None = None
    purchase_price: float | None = None
    sale_price: float | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "product_name": self.product_name,
            "product_ref": self.product_ref,
            "quantity": self.quantity,
            "product_unit_abbreviation": self.product_unit_abbreviation or None,
            "category_id": self.category_id or None,
            "purchase_price": self.purchase_price,
            "sale_price": self.sale_price,
        }


@dataclass(frozen=True)
class AuditDecision:
    """Manager decision on a stock-audit submission.

    Attributes:
        audit_id: Submission being processed.
        auditor_id: Manager deciding.
        status: "approved" or "rejected".
        products: Audited product lines, at least one.
        auditor_branch_id: Branch of the deciding manager.
        manager_notes: Free-text notes.
    """

    audit_id: str | None
    auditor_id: str | None
    status: str
    products: list[AuditedProduct] = field(default_factory=list)
    auditor_branch_id: str | None = None
    manager_notes: str | None = None

    def validate(self) -> None:
        """Check the decision.

        Approving requires a purchase and a sale price on every product;
        rejecting does not.

        Raises:
            ValidationError: Listing every failed rule.

        """
        errors = []
        if not self.audit_id:
            errors.append("Audit ID is missing or invalid.")
        if self.status not in AUDIT_STATUSES:
            errors.append(f"Status must be one of {', '.join(AUDIT_STATUSES)}, got {self.status!r}.")
        if not self.products:
            errors.append("At least one product must be audited.")
        for i, product in enumerate(self.products, start=1):
            if product.purchase_price is not None and product.purchase_price < 0:
                errors.append(f"Product {i}: purchase price must be 0 or more.")
            if product.sale_price is not None and product.sale_price < 0:
                errors.append(f"Product {i}: sale price must be 0 or more.")
        if self.status == "approved" and any(
            p.purchase_price is None or p.sale_price is None for p in self.products
        ):
            errors.append("Purchase and sale prices are required for all products when approving.")
        if errors:
            raise ValidationError(errors)

    def to_payload(self) -> dict[str, Any]:
        """Build the procedure arguments."""
        return {
            "p_audit_id": self.audit_id,
            "p_auditor_id": self.auditor_id,
            "p_manager_notes": self.manager_notes or None,
            "p_audited_products_details": [p.to_payload() for p in self.products],
            "p_status": self.status,
            "p_auditor_branch_id": self.auditor_branch_id,
        }


def process_stock_audit(client: StoreClient, decision: AuditDecision) -> ProcedureResult:
    """Approve or reject a stock-audit submission.

    Raises:
        ValidationError: If the decision is invalid (no call is made).
        StoreError: On transport or database failure.
        ProcedureError: If the procedure answers ``status: "error"``.

    """
    decision.validate()
    logger.info(
        "Processing stock audit %s: %s with %d product(s)",
        decision.audit_id,
        decision.status,
        len(decision.products),
    )
    response = client.call(AUDIT_PROCEDURE, decision.to_payload())
    result = ProcedureResult.from_response(response)
    logger.info("Stock audit %s %s", decision.audit_id, decision.status)
    return result
