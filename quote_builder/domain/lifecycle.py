from typing import Dict, FrozenSet, Optional
import logging

from quote_builder.core.exceptions import LifecycleError
from quote_builder.domain.persistence import DraftPersistenceClient
from quote_builder.domain.records import transition_payload
from quote_builder.models.quote import QuoteDraft, QuoteStatus, SaveResult, Signature

logger = logging.getLogger(__name__)


TRANSITIONS: Dict[QuoteStatus, FrozenSet[QuoteStatus]] = {
    QuoteStatus.DRAFT: frozenset({QuoteStatus.SENT}),
    QuoteStatus.SENT: frozenset({QuoteStatus.ACCEPTED, QuoteStatus.REJECTED}),
    QuoteStatus.REJECTED: frozenset({QuoteStatus.REVISED}),
    QuoteStatus.ACCEPTED: frozenset(),
    QuoteStatus.REVISED: frozenset(),
}

EDITABLE_STATUSES: FrozenSet[QuoteStatus] = frozenset({QuoteStatus.DRAFT, QuoteStatus.REVISED})


def allowed_transitions(status: QuoteStatus) -> FrozenSet[QuoteStatus]:
    return TRANSITIONS.get(QuoteStatus(status), frozenset())


def is_editable(status: QuoteStatus) -> bool:
    return QuoteStatus(status) in EDITABLE_STATUSES


def check_transition(
    current: QuoteStatus,
    target: QuoteStatus,
    signature: Optional[Signature] = None,
) -> None:
    current = QuoteStatus(current)
    target = QuoteStatus(target)
    if target not in allowed_transitions(current):
        raise LifecycleError(
            f"Cannot move quote from {current.value} to {target.value}",
            current=current,
            target=target,
        )
    if target == QuoteStatus.ACCEPTED and (signature is None or not signature.data):
        raise LifecycleError(
            "Accepting a quote requires a captured signature",
            current=current,
            target=target,
            code="signature_required",
        )


class QuoteLifecycleController:
    """Status transitions, persisted through the draft's own persistence client."""

    def __init__(self, persistence: DraftPersistenceClient) -> None:
        self._persistence = persistence

    async def apply(
        self,
        draft: QuoteDraft,
        target: QuoteStatus,
        signature: Optional[Signature] = None,
    ) -> SaveResult:
        check_transition(draft.status, target, signature)
        if self._persistence.server_id is None:
            raise LifecycleError(
                "Quote must be saved before its status can change",
                current=draft.status,
                target=target,
                code="not_persisted",
            )
        logger.info(
            "quote %s: %s -> %s", self._persistence.server_id, draft.status.value, QuoteStatus(target).value
        )
        # status and signature travel in the same request
        return await self._persistence.save(transition_payload(QuoteStatus(target), signature))
