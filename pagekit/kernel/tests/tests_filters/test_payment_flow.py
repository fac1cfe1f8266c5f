"""
PageKit Filters Header — Multi-tender Payment Flow

Tender rows must add up exactly to the total. Amounts are clamped to the
remaining balance rather than rejected.
"""

import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from pagekit.kernel.document import create_widget
from pagekit.kernel.filter_context import FilterContext
from pagekit.kernel.filters_header import FiltersHeader
from pagekit.kernel.payment import PaymentFlow

TICKET = "12345678901234"


def _flow(client=None, total="100.00", **kwargs):
    return PaymentFlow(Decimal(total), {"pedido": "42"}, client, **kwargs)


class TestBalances:
    def test_cash_and_pix_split(self):
        flow = _flow()
        assert flow.add_row("cash")
        assert flow.rows[0].amount == Decimal("100.00")
        flow.set_amount(0, "60")
        assert flow.remaining == Decimal("40.00")

        assert flow.add_row("pix")
        assert flow.rows[1].amount == Decimal("40.00")
        assert not flow.can_submit
        flow.set_pix(1, "chave@pix", "2026-03-15T10:00:00")
        assert flow.paid == Decimal("100.00")
        assert flow.can_submit

    def test_amount_clamped_to_remaining(self):
        flow = _flow()
        flow.add_row("cash")
        flow.set_amount(0, "60")
        flow.add_row("cash")
        stored = flow.set_amount(1, "50")
        assert stored == Decimal("40.00")
        assert flow.paid == Decimal("100.00")

    def test_negative_amount_clamped_to_zero(self):
        flow = _flow()
        flow.add_row("cash")
        assert flow.set_amount(0, "-5") == Decimal("0.00")

    def test_cannot_add_row_while_current_is_invalid(self):
        flow = _flow()
        flow.add_row("card")
        assert not flow.can_add_row
        assert not flow.add_row("cash")
        assert flow.error == "Complete a forma de pagamento atual antes de adicionar outra"

    def test_cannot_add_row_when_total_reached(self):
        flow = _flow()
        flow.add_row("cash")
        assert not flow.add_row("cash")
        assert flow.error == "O total já foi atingido"

    def test_unknown_method(self):
        flow = _flow()
        assert not flow.add_row("cheque")
        flow.add_row("cash")
        with pytest.raises(ValueError):
            flow.set_method(0, "cheque")

    def test_ticket_keeps_digits_only(self):
        flow = _flow()
        flow.add_row("ticket")
        flow.set_ticket(0, "1234-5678-9012-3456")
        assert flow.rows[0].ticket == "12345678901234"


class TestTicketValidation:
    async def test_valid_ticket_fills_amount(self, mock_client):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"valid": True, "valor": "35,50"})

        flow = _flow(mock_client(handler), ticket_endpoint="https://api.test/ticket")
        flow.add_row("card")
        flow.set_ticket(0, TICKET)
        assert await flow.validate_ticket(0)
        assert seen[0].url.params["ticket"] == TICKET
        assert flow.rows[0].ticket_status == "valid"
        assert flow.rows[0].amount == Decimal("35.50")
        assert flow.rows[0].is_valid()

    async def test_rejected_ticket(self, mock_client):
        client = mock_client(lambda r: httpx.Response(200, json={"valid": False, "message": "Ticket expirado"}))
        flow = _flow(client, ticket_endpoint="https://api.test/ticket")
        flow.add_row("ticket")
        flow.set_ticket(0, TICKET)
        assert not await flow.validate_ticket(0)
        assert flow.rows[0].ticket_status == "invalid"
        assert flow.rows[0].ticket_message == "Ticket expirado"

    async def test_empty_response_does_not_confirm(self, mock_client):
        for body in (None, {}):
            client = mock_client(lambda r, body=body: httpx.Response(200, json=body))
            flow = _flow(client, ticket_endpoint="https://api.test/ticket")
            flow.add_row("ticket")
            flow.set_ticket(0, TICKET)
            assert not await flow.validate_ticket(0)
            assert flow.rows[0].ticket_status == "invalid"
            assert flow.rows[0].ticket_message == "Ticket inválido"

    async def test_row_removed_while_validating(self, mock_client):
        async def handler(request):
            flow.remove_row(0)
            return httpx.Response(200, json={"valid": True, "valor": "30"})

        flow = _flow(mock_client(handler), ticket_endpoint="https://api.test/ticket")
        flow.add_row("cash")
        flow.set_amount(0, "60")
        flow.add_row("card")
        flow.set_ticket(1, TICKET)
        assert await flow.validate_ticket(1)
        assert [r.method for r in flow.rows] == ["card"]
        assert flow.rows[0].amount == Decimal("30")

    async def test_short_ticket(self):
        flow = _flow(ticket_endpoint="https://api.test/ticket")
        flow.add_row("card")
        flow.set_ticket(0, "123")
        assert not await flow.validate_ticket(0)
        assert flow.rows[0].ticket_message == "O ticket deve ter 14 dígitos"


class TestSubmit:
    async def test_submit_posts_payload(self, mock_client):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True})

        flow = _flow(mock_client(handler), submit_endpoint="https://api.test/pay", context={"page_id": "p"})
        flow.add_row("cash")
        assert await flow.submit()
        assert flow.status == "submitted"
        assert seen[0] == {
            "total": 100.0,
            "fields": {"pedido": "42"},
            "payments": [{"method": "cash", "amount": 100.0}],
            "context": {"page_id": "p"},
        }

    async def test_submit_requires_exact_total(self, mock_client):
        flow = _flow(mock_client(lambda r: httpx.Response(200)), submit_endpoint="https://api.test/pay")
        flow.add_row("cash")
        flow.set_amount(0, "10")
        assert not await flow.submit()
        assert flow.error == "A soma dos pagamentos deve ser igual ao total"

    async def test_submit_refused(self, mock_client):
        flow = _flow(mock_client(lambda r: httpx.Response(200, json={"ok": False})),
                     submit_endpoint="https://api.test/pay")
        flow.add_row("cash")
        assert not await flow.submit()
        assert flow.status == "error"
        assert flow.error == "Pagamento recusado"


class TestOpenedByHeader:
    async def test_positive_total_opens_payment(self, view_context, mock_client):
        client = mock_client(lambda r: httpx.Response(200, json={"total": "250,00"}))
        widget = create_widget("filters_header")
        widget["settings"].update({
            "filtersEndpoint": "https://api.test/filters",
            "filterFields": [{"key": "pedido", "label": "Pedido"}],
            "filtersPaymentPopup": True,
            "filtersPaymentTotalKey": "total",
            "filtersPaymentSubmitEndpoint": "https://api.test/pay",
        })
        header = FiltersHeader(widget, client, FilterContext(), view_context, today=date(2026, 3, 15))
        await header.set_value("pedido", "42")
        assert await header.apply()
        assert header.payment is not None
        assert header.payment.total == Decimal("250.00")
        assert header.payment.fields == {"pedido": "42"}
        assert header.payment.context["page_id"] == "page_1"

    async def test_zero_total_keeps_payment_closed(self, view_context, mock_client):
        client = mock_client(lambda r: httpx.Response(200, json={"total": 0}))
        widget = create_widget("filters_header")
        widget["settings"].update({
            "filtersEndpoint": "https://api.test/filters",
            "filterFields": [],
            "filtersPaymentPopup": True,
            "filtersPaymentTotalKey": "total",
        })
        header = FiltersHeader(widget, client, FilterContext(), view_context)
        assert await header.apply()
        assert header.payment is None
