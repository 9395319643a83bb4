import pytest

from medclaim.core.states import ClaimStatus, PaymentStatus, ReviewDecision


@pytest.mark.parametrize("raw", ["approved", "APPROVED", " Approved "])
def test_claim_status_accepts_legacy_spellings(raw):
    assert ClaimStatus.parse(raw) is ClaimStatus.APPROVED


@pytest.mark.parametrize("raw", ["under_review", "UNDER_REVIEW", "under-review", "Under Review"])
def test_under_review_spellings(raw):
    assert ClaimStatus.parse(raw) is ClaimStatus.UNDER_REVIEW


def test_unknown_status_raises():
    with pytest.raises(ValueError):
        ClaimStatus.parse("archived")
    with pytest.raises(ValueError):
        PaymentStatus.parse("processing")


def test_terminal_statuses():
    assert {s for s in ClaimStatus if s.is_terminal} == {ClaimStatus.REJECTED, ClaimStatus.PAID}
    assert {s for s in PaymentStatus if s.is_terminal} == {PaymentStatus.COMPLETED, PaymentStatus.REJECTED}


def test_only_rejected_payments_are_inactive():
    assert [s for s in PaymentStatus if not s.is_active] == [PaymentStatus.REJECTED]


def test_review_decision_values_match_claim_statuses():
    for decision in ReviewDecision:
        assert ClaimStatus(decision.value).value == decision.value
