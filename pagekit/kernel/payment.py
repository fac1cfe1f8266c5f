"""
PageKit Kernel — Multi-tender payment flow

Opened by a filters header after a successful apply when the configured
total field holds a positive number. Collects tender rows until they add
up exactly to the total, then posts the payment.

Invariants:
  - the sum of row amounts never exceeds the total (entries are clamped
    to the remaining balance, not rejected)
  - a row can only be added when every existing row is valid
  - submit requires sum == total and every row valid

Row validity:
  cash         amount > 0
  card/ticket  amount > 0, 14-digit ticket confirmed by the ticket endpoint
  pix          amount > 0, key and timestamp present
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from pagekit.kernel.datasource import interpret_ack
from pagekit.kernel.fetcher import FetchError, HttpJsonClient
from pagekit.kernel.formatting import parse_amount
from pagekit.kernel.types import TENDER_METHODS, TICKET_METHODS, TICKET_NUMBER_LENGTH

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# keys a ticket validation response may use to carry the authorized amount
TICKET_AMOUNT_KEYS = ("amount", "valor", "value_amount", "total")


@dataclass
class TenderRow:
    method: str = "cash"
    amount: Decimal = ZERO
    ticket: str = ""
    ticket_status: str = "idle"  # idle | validating | valid | invalid
    ticket_message: str | None = None
    pix_key: str = ""
    pix_timestamp: str = ""

    @property
    def needs_ticket(self) -> bool:
        return self.method in TICKET_METHODS

    def is_valid(self) -> bool:
        if self.amount <= 0:
            return False
        if self.needs_ticket:
            return len(self.ticket) == TICKET_NUMBER_LENGTH and self.ticket_status == "valid"
        if self.method == "pix":
            return bool(self.pix_key.strip()) and bool(self.pix_timestamp.strip())
        return self.method == "cash"

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"method": self.method, "amount": float(self.amount)}
        if self.needs_ticket:
            payload["ticket"] = self.ticket
        if self.method == "pix":
            payload["pixKey"] = self.pix_key
            payload["pixTimestamp"] = self.pix_timestamp
        return payload


class PaymentFlow:
    """
    State of one payment dialog.

    Usage:
        flow = PaymentFlow(Decimal("100.00"), fields, client, ...)
        flow.add_row("cash"); flow.set_amount(0, "60")
        flow.add_row("pix");  flow.set_amount(1, "40"); flow.set_pix(1, key, ts)
        if flow.can_submit:
            await flow.submit()
    """

    def __init__(
        self,
        total: Decimal,
        fields: dict[str, Any],
        client: HttpJsonClient,
        submit_endpoint: str = "",
        ticket_endpoint: str = "",
        context: dict[str, Any] | None = None,
    ) -> None:
        self.total = total.quantize(Decimal("0.01"))
        self.fields = dict(fields)
        self.client = client
        self.submit_endpoint = submit_endpoint
        self.ticket_endpoint = ticket_endpoint
        self.context = context or {}
        self.rows: list[TenderRow] = []
        self.status = "open"  # open | submitting | submitted | error
        self.error: str | None = None
        self.response: Any = None

    # -- balances --

    @property
    def paid(self) -> Decimal:
        return sum((row.amount for row in self.rows), ZERO)

    @property
    def remaining(self) -> Decimal:
        return max(ZERO, self.total - self.paid)

    @property
    def can_add_row(self) -> bool:
        return self.remaining > 0 and all(row.is_valid() for row in self.rows)

    @property
    def can_submit(self) -> bool:
        return (
            bool(self.rows)
            and self.status != "submitting"
            and self.paid == self.total
            and all(row.is_valid() for row in self.rows)
        )

    # -- row editing --

    def add_row(self, method: str = "cash") -> bool:
        """Append a tender row prefilled with the remaining balance."""
        if method not in TENDER_METHODS:
            self.error = f"Forma de pagamento inválida: {method}"
            return False
        if not all(row.is_valid() for row in self.rows):
            self.error = "Complete a forma de pagamento atual antes de adicionar outra"
            return False
        if self.remaining <= 0:
            self.error = "O total já foi atingido"
            return False
        self.rows.append(TenderRow(method=method, amount=self.remaining))
        self.error = None
        return True

    def remove_row(self, index: int) -> None:
        del self.rows[index]
        self.error = None

    def set_method(self, index: int, method: str) -> None:
        if method not in TENDER_METHODS:
            raise ValueError(f"Unknown tender method: {method}")
        row = self.rows[index]
        row.method = method
        row.ticket_status = "idle"
        row.ticket_message = None

    def set_amount(self, index: int, value: Any) -> Decimal:
        """
        Set a row's amount, clamped to [0, total - other rows].
        Returns the amount actually stored.
        """
        amount = parse_amount(value) or ZERO
        others = sum((r.amount for i, r in enumerate(self.rows) if i != index), ZERO)
        ceiling = max(ZERO, self.total - others)
        amount = min(max(amount, ZERO), ceiling)
        self.rows[index].amount = amount
        return amount

    def set_ticket(self, index: int, ticket: str) -> None:
        row = self.rows[index]
        digits = "".join(ch for ch in str(ticket) if ch.isdigit())[:TICKET_NUMBER_LENGTH]
        if digits != row.ticket:
            row.ticket = digits
            row.ticket_status = "idle"
            row.ticket_message = None

    def set_pix(self, index: int, key: str, timestamp: str) -> None:
        row = self.rows[index]
        row.pix_key = key
        row.pix_timestamp = timestamp

    # -- async operations --

    async def validate_ticket(self, index: int) -> bool:
        """
        Confirm a card/ticket number with the ticket endpoint
        (GET ?ticket=<number>). Only an explicit yes confirms it; an empty
        body does not. A confirmed response may carry the authorized
        amount, which replaces the row's amount (clamped).
        """
        row = self.rows[index]
        if len(row.ticket) != TICKET_NUMBER_LENGTH:
            row.ticket_status = "invalid"
            row.ticket_message = f"O ticket deve ter {TICKET_NUMBER_LENGTH} dígitos"
            return False
        if not self.ticket_endpoint:
            row.ticket_status = "invalid"
            row.ticket_message = "Endpoint de validação de ticket não configurado"
            return False

        row.ticket_status = "validating"
        ticket = row.ticket
        try:
            response = await self.client.fetch_json(self.ticket_endpoint, "GET", params={"ticket": ticket})
        except FetchError as e:
            row.ticket_status = "invalid"
            row.ticket_message = str(e)
            return False

        current = next((i for i, r in enumerate(self.rows) if r is row), None)
        if current is None or row.ticket != ticket:
            # row removed or number changed while validating
            return False
        ok, message = interpret_ack(response, strict=True)
        if not ok:
            row.ticket_status = "invalid"
            row.ticket_message = message or "Ticket inválido"
            return False

        row.ticket_status = "valid"
        row.ticket_message = message
        if isinstance(response, dict):
            for key in TICKET_AMOUNT_KEYS:
                if response.get(key) is not None and parse_amount(response[key]) is not None:
                    self.set_amount(current, response[key])
                    break
        return True

    def payload(self) -> dict[str, Any]:
        return {
            "total": float(self.total),
            "fields": self.fields,
            "payments": [row.to_payload() for row in self.rows],
            "context": self.context,
        }

    async def submit(self) -> bool:
        if not self.submit_endpoint:
            self.error = "Endpoint de pagamento não configurado"
            return False
        if not self.can_submit:
            if self.paid != self.total:
                self.error = "A soma dos pagamentos deve ser igual ao total"
            else:
                self.error = "Existem formas de pagamento incompletas"
            return False

        self.status = "submitting"
        self.error = None
        try:
            response = await self.client.fetch_json(self.submit_endpoint, "POST", self.payload())
        except FetchError as e:
            self.status = "error"
            self.error = str(e)
            return False

        ok, message = interpret_ack(response)
        self.response = response
        if not ok:
            self.status = "error"
            self.error = message or "Pagamento recusado"
            return False
        self.status = "submitted"
        logger.info("payment of %s submitted with %d tender(s)", self.total, len(self.rows))
        return True
