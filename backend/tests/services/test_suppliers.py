# tests/services/test_suppliers.py
from datetime import timedelta

import pytest

from factory_pulse.models import QuoteStatus
from factory_pulse.schemas.rfq import QuoteSubmission, RFQCreate
from factory_pulse.schemas.supplier import PerformanceMetrics
from factory_pulse.services.rfqs import rfq_service
from factory_pulse.services.suppliers import calculate_grade, calculate_performance_score, supplier_service
from factory_pulse.utils.dates import utcnow

def test_score_without_orders_is_zero():
    assert calculate_performance_score(PerformanceMetrics(responsiveness_rating=5)) == 0

def test_weighted_score():
    metrics = PerformanceMetrics(
        total_orders=10,
        on_time_deliveries=9,
        quality_incidents=1,
        average_lead_time=15,
        average_cost_variance=0.2,
        responsiveness_rating=4
    )
    # 27 on time + 20 quality + 10 lead time + 12 cost + 8 responsiveness
    assert calculate_performance_score(metrics) == 77

def test_perfect_score():
    metrics = PerformanceMetrics(total_orders=5, on_time_deliveries=5, responsiveness_rating=5)
    assert calculate_performance_score(metrics) == 100

def test_score_components_do_not_go_negative():
    metrics = PerformanceMetrics(
        total_orders=4,
        on_time_deliveries=0,
        quality_incidents=12,
        average_lead_time=90,
        average_cost_variance=-1.5,
        responsiveness_rating=0
    )
    assert calculate_performance_score(metrics) == 0

def test_on_time_ratio_is_capped():
    metrics = PerformanceMetrics(total_orders=2, on_time_deliveries=10, responsiveness_rating=5)
    assert calculate_performance_score(metrics) == 100

@pytest.mark.parametrize("score,grade", [
    (100, "A"), (90, "A"), (89, "B"), (80, "B"), (79, "C"),
    (70, "C"), (69, "D"), (60, "D"), (59, "F"), (0, "F"),
])
def test_grade_bands(score, grade):
    assert calculate_grade(score) == grade

def test_half_point_score_rounds_up():
    metrics = PerformanceMetrics(
        total_orders=2,
        on_time_deliveries=1,
        quality_incidents=5,
        average_lead_time=30,
        average_cost_variance=0.5,
        responsiveness_rating=0
    )
    # 15 on time + 7.5 cost
    assert calculate_performance_score(metrics) == 23

def send_rfq(db_session, project, supplier, title, deadline=None):
    rfq = rfq_service.create_rfq(db_session, RFQCreate(project_id=project.id, title=title))
    rfq_service.send(db_session, rfq.id, [supplier.id], quote_deadline=deadline)
    return rfq.quotes[0]

def test_analytics_counts_quote_outcomes(db_session, sample_project, sample_supplier, second_supplier):
    deadline = utcnow() + timedelta(days=2)
    won = send_rfq(db_session, sample_project, sample_supplier, "Brackets")
    answered = send_rfq(db_session, sample_project, sample_supplier, "Hinges")
    lapsed = send_rfq(db_session, sample_project, sample_supplier, "Covers", deadline=deadline)
    send_rfq(db_session, sample_project, sample_supplier, "Gaskets")
    send_rfq(db_session, sample_project, second_supplier, "Castings")

    rfq_service.submit_quote(db_session, won.id, QuoteSubmission(quote_amount=1500))
    rfq_service.submit_quote(db_session, answered.id, QuoteSubmission(quote_amount=900))
    rfq_service.update_quote_status(db_session, won.id, QuoteStatus.ACCEPTED)
    assert rfq_service.expire_overdue_quotes(db_session, now=deadline + timedelta(hours=1)) == 1

    last_answer = utcnow() + timedelta(days=1)
    won.response_time_hours = 10.0
    answered.response_time_hours = 15.0
    answered.quote_received_at = last_answer
    db_session.commit()

    analytics = supplier_service.analytics(db_session, sample_supplier.id)
    assert analytics.supplier_name == "Precision Parts"
    assert analytics.total_quotes == 4
    assert analytics.quotes_received == 2
    assert analytics.quotes_accepted == 1
    assert analytics.quotes_expired == 1
    assert analytics.response_rate_percent == 50.0
    assert analytics.win_rate_percent == 50.0
    assert analytics.avg_response_time_hours == 12.5
    assert analytics.last_activity_date == last_answer
    db_session.refresh(lapsed)
    assert lapsed.status == QuoteStatus.EXPIRED

def test_analytics_without_quotes(db_session, sample_supplier):
    analytics = supplier_service.analytics(db_session, sample_supplier.id)
    assert analytics.total_quotes == 0
    assert analytics.response_rate_percent == 0.0
    assert analytics.win_rate_percent == 0.0
    assert analytics.avg_response_time_hours is None
    assert analytics.last_activity_date is None
