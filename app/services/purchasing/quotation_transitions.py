from app.models.enums.quotation_status import QuotationStatus
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode

S = QuotationStatus

ALLOWED_TRANSITIONS: dict[QuotationStatus, frozenset[QuotationStatus]] = {
    S.draft: frozenset({S.pending, S.cancelled}),
    S.pending: frozenset({S.awaiting, S.quoted, S.cancelled, S.expired}),
    S.awaiting: frozenset({S.awaiting, S.quoted, S.cancelled, S.expired}),
    S.quoted: frozenset({S.awaiting, S.quoted, S.ordered, S.cancelled, S.expired}),
    S.ordered: frozenset({S.shipped, S.received, S.cancelled}),
    S.shipped: frozenset({S.received}),
    S.received: frozenset(),
    S.cancelled: frozenset(),
    S.expired: frozenset(),
}


def can_transition(current: QuotationStatus, target: QuotationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(QuotationStatus(current), frozenset())


def ensure_transition(current: QuotationStatus, target: QuotationStatus) -> None:
    if not can_transition(current, target):
        current = QuotationStatus(current)
        target = QuotationStatus(target)
        raise AppException(
            409,
            f"Cannot move quotation from {current.value} to {target.value}",
            ErrorCode.QUOTATION_INVALID_TRANSITION,
            details={
                "current_status": current.value,
                "target_status": target.value,
                "allowed": sorted(s.value for s in ALLOWED_TRANSITIONS[current]),
            },
        )
