from typing import Any, Dict, List
import logging

from fastapi import APIRouter, Depends

from quote_builder.core.exceptions import NotFoundError
from quote_builder.deps import get_quote_repository
from quote_builder.domain.lifecycle import check_transition
from quote_builder.models.quote import QuoteStatus
from quote_builder.repositories.quotes import QuoteRepository
from quote_builder.schemas.quote import QuoteRecordSchema, QuoteWrite

router = APIRouter(prefix="/quotes", tags=["quotes"])
logger = logging.getLogger(__name__)


def _body(payload: QuoteWrite) -> Dict[str, Any]:
    return payload.model_dump(mode="json", exclude_unset=True)


@router.get("", response_model=List[QuoteRecordSchema])
async def list_quotes(repo: QuoteRepository = Depends(get_quote_repository)):
    return await repo.list()


@router.get("/{quote_id}", response_model=QuoteRecordSchema)
async def get_quote(quote_id: int, repo: QuoteRepository = Depends(get_quote_repository)):
    row = await repo.get(quote_id)
    if row is None:
        raise NotFoundError("Quote not found")
    return row


@router.post("", response_model=QuoteRecordSchema, status_code=201)
async def create_quote(payload: QuoteWrite, repo: QuoteRepository = Depends(get_quote_repository)):
    body = _body(payload)
    body["status"] = QuoteStatus.DRAFT.value
    row = await repo.create(body)
    logger.info("created quote %s (%s)", row["id"], row["number"])
    return row


@router.put("/{quote_id}", response_model=QuoteRecordSchema)
async def update_quote(
    quote_id: int,
    payload: QuoteWrite,
    repo: QuoteRepository = Depends(get_quote_repository),
):
    current = await repo.get(quote_id)
    if current is None:
        raise NotFoundError("Quote not found")

    body = _body(payload)
    target = payload.status
    if target is not None and target.value != current["status"]:
        # raises LifecycleError -> 409 via ExceptionMiddleware
        check_transition(QuoteStatus(current["status"]), target, payload.signature)
        logger.info("quote %s: %s -> %s", quote_id, current["status"], target.value)

    row = await repo.update(quote_id, body)
    return row
