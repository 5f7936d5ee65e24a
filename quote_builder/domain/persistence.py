from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from quote_builder.adapters.quote_store import QuoteStorePort
from quote_builder.core.exceptions import (
    IdentityInvariantViolation,
    PersistenceError,
    QuoteEngineError,
    QuoteStoreError,
)
from quote_builder.models.quote import SaveResult

logger = logging.getLogger(__name__)


def _record_id(record: Dict[str, Any]) -> Optional[int]:
    try:
        return int(record["id"])
    except (KeyError, TypeError, ValueError):
        return None


def _as_persistence_error(e: Exception) -> QuoteEngineError:
    if isinstance(e, (PersistenceError, IdentityInvariantViolation)):
        return e
    if isinstance(e, QuoteStoreError):
        return PersistenceError(e.message, status_code=e.upstream_status)
    return PersistenceError(f"Failed to save quote: {e}")


class DraftPersistenceClient:
    """
    Create-or-update against the Quote Store for a single draft.

    At most one create is ever in flight; saves issued while it is pending
    wait for it and then update the identifier it produced. Responses are
    ordered by dispatch sequence: a response for an older dispatch that lands
    after a newer one has been applied comes back marked ``stale``.
    """

    def __init__(self, store: QuoteStorePort, server_id: Optional[int] = None) -> None:
        self._store = store
        self._server_id: Optional[int] = None
        self._create_pending: Optional[asyncio.Future] = None
        self._dispatched = 0
        self._applied = 0
        if server_id is not None:
            self.adopt(server_id)

    @property
    def server_id(self) -> Optional[int]:
        return self._server_id

    @property
    def create_in_flight(self) -> bool:
        return self._create_pending is not None

    def adopt(self, server_id: int) -> None:
        if self._server_id is not None and self._server_id != server_id:
            raise IdentityInvariantViolation(
                f"draft already bound to quote {self._server_id}, refusing {server_id}"
            )
        self._server_id = int(server_id)

    async def save(self, payload: Dict[str, Any]) -> SaveResult:
        self._dispatched += 1
        seq = self._dispatched

        while self._server_id is None and self._create_pending is not None:
            await asyncio.shield(self._create_pending)

        if self._server_id is None:
            return await self._create(seq, payload)
        return await self._update(seq, payload)

    async def _create(self, seq: int, payload: Dict[str, Any]) -> SaveResult:
        gate = asyncio.get_running_loop().create_future()
        self._create_pending = gate
        try:
            logger.info("creating quote (dispatch #%s)", seq)
            record = await self._store.create_quote(payload)
        except Exception as e:
            err = _as_persistence_error(e)
            logger.warning("quote create failed (dispatch #%s): %s", seq, err.message)
            return SaveResult(ok=False, sequence=seq, error=err)
        finally:
            self._create_pending = None
            if not gate.done():
                gate.set_result(None)

        new_id = _record_id(record)
        if new_id is None:
            err = PersistenceError("Quote store response is missing an id", retryable=True)
            logger.warning("quote create returned no id (dispatch #%s)", seq)
            return SaveResult(ok=False, sequence=seq, error=err, record=record)

        if self._server_id is not None and self._server_id != new_id:
            err = IdentityInvariantViolation(
                f"create returned quote {new_id} but draft is already bound to {self._server_id}"
            )
            logger.error("%s; discarding create result", err.message)
            return SaveResult(ok=False, sequence=seq, error=err, record=record)

        self._server_id = new_id
        logger.info("quote %s created (dispatch #%s)", new_id, seq)
        return self._finish(seq, record, created=True)

    async def _update(self, seq: int, payload: Dict[str, Any]) -> SaveResult:
        quote_id = self._server_id
        if quote_id is None:
            err = IdentityInvariantViolation("update dispatched for a draft with no server id")
            logger.error(err.message)
            return SaveResult(ok=False, sequence=seq, error=err)
        try:
            record = await self._store.update_quote(quote_id, payload)
        except Exception as e:
            err = _as_persistence_error(e)
            logger.warning("quote %s update failed (dispatch #%s): %s", quote_id, seq, err.message)
            return SaveResult(ok=False, sequence=seq, serverId=quote_id, error=err)

        returned = _record_id(record)
        if returned is not None and returned != quote_id:
            logger.error("update of quote %s answered for quote %s", quote_id, returned)
        logger.info("quote %s updated (dispatch #%s)", quote_id, seq)
        return self._finish(seq, record, created=False)

    def _finish(self, seq: int, record: Dict[str, Any], *, created: bool) -> SaveResult:
        stale = seq < self._applied
        if stale:
            logger.warning(
                "ignoring stale response for dispatch #%s (already applied #%s)", seq, self._applied
            )
        else:
            self._applied = seq
        number = record.get("number")
        return SaveResult(
            ok=True,
            created=created,
            stale=stale,
            serverId=self._server_id,
            number=str(number) if number is not None else None,
            savedAt=datetime.now(timezone.utc),
            sequence=seq,
            record=record,
        )
