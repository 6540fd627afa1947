"""
Conversation State Store.

Durable per-user record of {stage, draft}. Every message handling call loads
it, and writes the next state back; nothing is kept in process memory.

Contract:
- set_state replaces stage and data wholesale (no deep merge). Callers pass
  the full draft forward.
- Every write bumps `version`. With expected_version the write only lands if
  nobody else wrote in between (0 = "no record yet"); otherwise
  StaleConversationError is raised and nothing changes.
- clear_state is idempotent.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from invoice_bot.agent.conversation_state import Stage
from invoice_bot.core.exceptions import InvalidDraftError, StaleConversationError
from invoice_bot.db.base import utc_now
from invoice_bot.models.conversation_state import ConversationState
from invoice_bot.schemas.draft import InvoiceDraft

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(hours=24)


@dataclass(frozen=True)
class ConversationRecord:
    user_id: int
    stage: Stage
    data: InvoiceDraft
    version: int
    created_at: datetime
    updated_at: datetime


def _to_record(row: ConversationState) -> ConversationRecord:
    try:
        stage = Stage(row.stage)
        draft = InvoiceDraft.load(row.data)
    except (ValueError, ValidationError) as e:
        logger.error(f"[StateStore] Unreadable state for user_id={row.user_id}: {e}")
        raise InvalidDraftError(message=f"Stored conversation for user {row.user_id} is unreadable") from e
    return ConversationRecord(
        user_id=row.user_id,
        stage=stage,
        data=draft,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def get_state(db: Session, user_id: int) -> Optional[ConversationRecord]:
    """Current record or None. None means AWAITING_CUSTOMER_INFO with an empty draft."""
    row = db.execute(
        select(ConversationState).where(ConversationState.user_id == user_id)
    ).scalar_one_or_none()
    if row is None:
        return None
    return _to_record(row)


def set_state(
    db: Session,
    user_id: int,
    stage: Stage,
    data: InvoiceDraft,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ConversationRecord:
    """
    Upsert the conversation record.

    Raises:
        StaleConversationError: expected_version given and the stored version differs
    """
    now = now or utc_now()
    payload = data.dump()
    stage_value = Stage(stage).value

    if expected_version is None or expected_version > 0:
        conditions = [ConversationState.user_id == user_id]
        if expected_version is not None:
            conditions.append(ConversationState.version == expected_version)
        result = db.execute(
            update(ConversationState)
            .where(*conditions)
            .values(
                stage=stage_value,
                data=payload,
                version=ConversationState.version + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            db.commit()
            logger.info(f"[StateStore] user_id={user_id} stage={stage_value}")
            return get_state(db, user_id)
        if expected_version is not None:
            db.rollback()
            raise StaleConversationError(user_id, expected_version)

    # No record yet: create it
    db.add(
        ConversationState(
            user_id=user_id,
            stage=stage_value,
            data=payload,
            version=1,
            created_at=now,
            updated_at=now,
        )
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if expected_version is not None:
            raise StaleConversationError(user_id, expected_version)
        # Lost the insert race to another writer; plain upsert falls back to replace
        return set_state(db, user_id, stage, data, now=now)

    logger.info(f"[StateStore] user_id={user_id} created at stage={stage_value}")
    return get_state(db, user_id)


def clear_state(db: Session, user_id: int) -> bool:
    """Delete the record if present. Returns True when something was deleted."""
    result = db.execute(
        delete(ConversationState)
        .where(ConversationState.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    deleted = result.rowcount > 0
    if deleted:
        logger.info(f"[StateStore] user_id={user_id} cleared")
    return deleted


def claim_state(db: Session, user_id: int, expected_version: int) -> None:
    """
    Delete the record at exactly expected_version without committing.

    Used by finalize inside the invoice transaction, so only one handler of a
    confirmed conversation gets to create its invoice.

    Raises:
        StaleConversationError: record gone or written by someone else
    """
    result = db.execute(
        delete(ConversationState)
        .where(
            ConversationState.user_id == user_id,
            ConversationState.version == expected_version,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise StaleConversationError(user_id, expected_version)


def cleanup(db: Session, now: Optional[datetime] = None, max_age: timedelta = DEFAULT_MAX_AGE) -> int:
    """Delete every record not updated within max_age. Returns the number deleted."""
    cutoff = (now or utc_now()) - max_age
    result = db.execute(
        delete(ConversationState)
        .where(ConversationState.updated_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount:
        logger.info(f"[StateStore] Cleanup removed {result.rowcount} stale conversations")
    return result.rowcount
