# tests/services/test_rfqs.py
from datetime import timedelta

import pytest

from factory_pulse.models import QuoteStatus
from factory_pulse.schemas.rfq import QuoteSubmission, RFQCreate
from factory_pulse.services.rfqs import can_transition_quote, readiness_color, rfq_service
from factory_pulse.utils.dates import utcnow

@pytest.fixture
def sent_quotes(db_session, sample_project, sample_supplier, second_supplier):
    rfq = rfq_service.create_rfq(db_session, RFQCreate(project_id=sample_project.id, title="Brackets"))
    deadline = utcnow() + timedelta(days=3)
    rfq_service.send(db_session, rfq.id, [sample_supplier.id, second_supplier.id], quote_deadline=deadline)
    return rfq_service.list_project_quotes(db_session, sample_project.id), deadline

@pytest.mark.parametrize("total,percentage,overdue,color", [
    (0, 0.0, 0, "gray"),
    (2, 100.0, 0, "green"),
    (2, 100.0, 1, "green"),
    (4, 75.0, 1, "red"),
    (4, 75.0, 0, "yellow"),
    (4, 50.0, 0, "yellow"),
    (4, 25.0, 0, "orange"),
])
def test_readiness_color(total, percentage, overdue, color):
    assert readiness_color(total, percentage, overdue) == color

def test_quote_transitions():
    assert can_transition_quote(QuoteStatus.SENT, QuoteStatus.RECEIVED)
    assert can_transition_quote(QuoteStatus.RECEIVED, QuoteStatus.ACCEPTED)
    assert not can_transition_quote(QuoteStatus.SENT, QuoteStatus.ACCEPTED)
    assert not can_transition_quote(QuoteStatus.ACCEPTED, QuoteStatus.REJECTED)

def test_readiness_turns_red_after_deadline(db_session, sample_project, sent_quotes):
    quotes, deadline = sent_quotes
    rfq_service.submit_quote(db_session, quotes[0].id, QuoteSubmission(quote_amount=1200))

    before = rfq_service.quote_readiness(db_session, sample_project.id, now=deadline - timedelta(days=1))
    assert before.color_code == "yellow"
    assert before.overdue_quotes == 0

    after = rfq_service.quote_readiness(db_session, sample_project.id, now=deadline + timedelta(days=1))
    assert after.color_code == "red"
    assert after.overdue_quotes == 1
    assert after.readiness_percentage == 50.0

def test_submitted_quote_records_response_time(db_session, sent_quotes):
    quotes, _ = sent_quotes
    quote = rfq_service.submit_quote(
        db_session, quotes[0].id,
        QuoteSubmission(quote_amount=980.5, currency="EUR", lead_time_days=21)
    )
    assert quote.status == QuoteStatus.RECEIVED
    assert quote.quote_received_at is not None
    assert quote.response_time_hours >= 0
    assert quote.currency == "EUR"

def test_expire_overdue_quotes(db_session, sent_quotes):
    quotes, deadline = sent_quotes
    rfq_service.submit_quote(db_session, quotes[0].id, QuoteSubmission(quote_amount=500))

    assert rfq_service.expire_overdue_quotes(db_session, now=deadline - timedelta(hours=1)) == 0
    assert rfq_service.expire_overdue_quotes(db_session, now=deadline + timedelta(hours=1)) == 1

    db_session.refresh(quotes[1])
    assert quotes[1].status == QuoteStatus.EXPIRED
    history = rfq_service.quote_history(db_session, quotes[1].id)
    assert [h.new_status for h in history] == [QuoteStatus.SENT, QuoteStatus.EXPIRED]
