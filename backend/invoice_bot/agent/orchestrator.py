"""
Conversation Orchestrator

Single entry point for operator messages:

    handle_message(user_id, text) -> list[Reply]

FLOW (per message):
1. Authorization: only AUTHORIZED_USER_ID is served. Others get a fixed
   rejection, no state is read or written.
2. Global commands (/start, /new, /cancel, /help) before stage dispatch.
3. Load {stage, draft} from the state store; check the stage's preconditions.
4. Stage handler parses the text and returns an Outcome: save the next
   {stage, draft}, clear the conversation, or keep it unchanged (re-prompt).
5. The outcome is written with the version that was loaded. If another
   writer got in between, the message is handled again from a fresh load.
   "ok" at confirmation finalizes: the invoice INSERT and the deletion of
   the conversation at the loaded version commit together.

Invalid input never mutates state. A draft missing data an earlier stage
should have produced is unrecoverable: state is cleared and the operator is
asked to start over.
"""
import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from invoice_bot.agent import messages
from invoice_bot.agent.conversation_state import Command, STAGE_REQUIREMENTS, Stage, parse_command
from invoice_bot.core.audit import AuditLog
from invoice_bot.core.config import settings
from invoice_bot.core.exceptions import (
    CatalogError,
    InvalidDraftError,
    InvoiceNumberCollisionError,
    InvoicePersistenceError,
    StaleConversationError,
)
from invoice_bot.db.session import SessionLocal
from invoice_bot.schemas.draft import InvoiceDraft
from invoice_bot.services.catalog import search_many
from invoice_bot.services.conversation_store import claim_state, clear_state, get_state, set_state
from invoice_bot.services.invoice_service import attach_pdf_reference, create_invoice
from invoice_bot.services.parsers import (
    DELIVERY_INSIDE,
    parse_customer_info,
    parse_delivery_choice,
    parse_flat_discount,
    parse_price_edit,
    parse_quantity_directives,
    tokenize_product_query,
    validate_phone,
)
from invoice_bot.services.pdf_service import (
    PdfRenderer,
    build_pdf_request,
    get_pdf_renderer,
    invoice_filename,
    store_pdf,
)
from invoice_bot.services.pricing import Totals, compute_totals, reprice_product

logger = logging.getLogger(__name__)

# Re-handling attempts after losing a conditional state write
MAX_STATE_CONFLICT_RETRIES = 3

CONFIRM_WORD = "ok"


@dataclass(frozen=True)
class Reply:
    """One outbound message: plain text, or a document with a caption."""
    text: str = ""
    document: Optional[bytes] = None
    filename: Optional[str] = None
    caption: Optional[str] = None

    @property
    def is_document(self) -> bool:
        return self.document is not None


@dataclass
class Outcome:
    """What a stage handler decided. Applied by the orchestrator, never by handlers."""
    action: str
    replies: List[Reply] = field(default_factory=list)
    stage: Optional[Stage] = None
    draft: Optional[InvoiceDraft] = None

    KEEP = "keep"
    SAVE = "save"
    CLEAR = "clear"
    FINALIZE = "finalize"

    @classmethod
    def keep(cls, *texts: str) -> "Outcome":
        return cls(cls.KEEP, [Reply(text) for text in texts])

    @classmethod
    def save(cls, stage: Stage, draft: InvoiceDraft, *texts: str) -> "Outcome":
        return cls(cls.SAVE, [Reply(text) for text in texts], stage=stage, draft=draft)

    @classmethod
    def clear(cls, *replies: Reply) -> "Outcome":
        return cls(cls.CLEAR, list(replies))

    @classmethod
    def finalize(cls, draft: InvoiceDraft) -> "Outcome":
        return cls(cls.FINALIZE, draft=draft)


class ConversationOrchestrator:
    """Drives the invoice dialogue for the single configured operator."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        renderer: Optional[PdfRenderer] = None,
        authorized_user_id: Optional[int] = None,
        tax_rate: Optional[float] = None,
        delivery_inside: Optional[float] = None,
        delivery_outside: Optional[float] = None,
        pdf_storage_dir: Optional[str] = None,
    ):
        self.session_factory = session_factory
        self.renderer = renderer or get_pdf_renderer()
        self.authorized_user_id = (
            settings.AUTHORIZED_USER_ID if authorized_user_id is None else authorized_user_id
        )
        self.tax_rate = settings.TAX_RATE if tax_rate is None else tax_rate
        self.delivery_inside = settings.DELIVERY_CHARGE_INSIDE if delivery_inside is None else delivery_inside
        self.delivery_outside = settings.DELIVERY_CHARGE_OUTSIDE if delivery_outside is None else delivery_outside
        self.pdf_storage_dir = pdf_storage_dir
        self._locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

        self._handlers = {
            Stage.AWAITING_CUSTOMER_INFO: self._on_customer_info,
            Stage.AWAITING_PRODUCTS: self._on_products,
            Stage.AWAITING_QUANTITY: self._on_quantity,
            Stage.AWAITING_DELIVERY_CHARGE: self._on_delivery_charge,
            Stage.AWAITING_DISCOUNT: self._on_discount,
            Stage.AWAITING_CONFIRMATION: self._on_confirmation,
        }

    def is_authorized(self, user_id: int) -> bool:
        return bool(self.authorized_user_id) and user_id == self.authorized_user_id

    # ==========================================================================
    # ENTRY POINT
    # ==========================================================================

    async def handle_message(self, user_id: int, text: str) -> List[Reply]:
        if not self.is_authorized(user_id):
            AuditLog.log_access_denied(user_id)
            return [Reply(messages.UNAUTHORIZED)]

        text = (text or "").strip()
        logger.info(f"[Conversation] user_id={user_id} message received ({len(text)} chars)")

        # Messages from one user are handled strictly one at a time
        async with self._locks[user_id]:
            db = self.session_factory()
            try:
                for attempt in range(1, MAX_STATE_CONFLICT_RETRIES + 1):
                    try:
                        return await self._handle(db, user_id, text)
                    except StaleConversationError as e:
                        logger.warning(
                            f"[Conversation] {e}; re-handling "
                            f"(attempt {attempt}/{MAX_STATE_CONFLICT_RETRIES})"
                        )
                return [Reply(messages.BUSY)]
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"[Conversation] Database error for user_id={user_id}: {e}", exc_info=True)
                return [Reply(messages.UNEXPECTED_ERROR)]
            finally:
                db.close()

    async def _handle(self, db: Session, user_id: int, text: str) -> List[Reply]:
        command = parse_command(text)
        if command:
            return self._on_command(db, user_id, command)

        try:
            record = get_state(db, user_id)
        except InvalidDraftError:
            clear_state(db, user_id)
            return [Reply(messages.START_OVER)]

        if record is None:
            stage, draft, version = Stage.AWAITING_CUSTOMER_INFO, InvoiceDraft(), 0
        else:
            stage, draft, version = record.stage, record.data, record.version

        try:
            draft.require(*STAGE_REQUIREMENTS[stage])
            outcome = await self._handlers[stage](db, user_id, draft, text)
            if outcome.action == Outcome.FINALIZE:
                outcome = await self._finalize(db, user_id, outcome.draft, version)
        except InvalidDraftError as e:
            logger.warning(f"[Conversation] user_id={user_id} stage={stage.value}: {e}; starting over")
            clear_state(db, user_id)
            return [Reply(messages.START_OVER)]

        if outcome.action == Outcome.SAVE:
            set_state(db, user_id, outcome.stage, outcome.draft, expected_version=version)
        elif outcome.action == Outcome.CLEAR:
            clear_state(db, user_id)
        elif record is None:
            # First message from this user: the conversation exists from now on
            set_state(db, user_id, Stage.AWAITING_CUSTOMER_INFO, InvoiceDraft(), expected_version=0)

        return outcome.replies

    def _on_command(self, db: Session, user_id: int, command: str) -> List[Reply]:
        logger.info(f"[Conversation] user_id={user_id} command={command}")
        if command in (Command.START, Command.NEW):
            set_state(db, user_id, Stage.AWAITING_CUSTOMER_INFO, InvoiceDraft())
            return [Reply(messages.WELCOME)]
        if command == Command.CANCEL:
            clear_state(db, user_id)
            return [Reply(messages.CANCELLED)]
        return [Reply(messages.HELP)]

    # ==========================================================================
    # STAGE HANDLERS
    # ==========================================================================

    async def _on_customer_info(self, db, user_id, draft: InvoiceDraft, text: str) -> Outcome:
        customer = parse_customer_info(text)
        if customer is None:
            return Outcome.keep(messages.INVALID_CUSTOMER_FORMAT)
        if not validate_phone(customer.phone):
            return Outcome.keep(messages.INVALID_PHONE)

        return Outcome.save(
            Stage.AWAITING_PRODUCTS,
            InvoiceDraft(customer_info=customer),
            messages.customer_saved(customer),
        )

    async def _on_products(self, db, user_id, draft: InvoiceDraft, text: str) -> Outcome:
        queries = tokenize_product_query(text)
        if not queries:
            return Outcome.keep(messages.NO_PRODUCT_NAMES)

        try:
            found = search_many(db, queries)
        except CatalogError as e:
            logger.error(f"[Conversation] Product search failed: {e}", exc_info=True)
            return Outcome.keep(messages.SEARCH_FAILED)

        if not found:
            return Outcome.keep(messages.NO_PRODUCTS_FOUND)

        # New search results invalidate anything computed from older ones
        next_draft = InvoiceDraft(customer_info=draft.customer_info, found_products=found)
        return Outcome.save(Stage.AWAITING_QUANTITY, next_draft, messages.found_products(found))

    async def _on_quantity(self, db, user_id, draft: InvoiceDraft, text: str) -> Outcome:
        product_count = len(draft.found_products)
        lines = parse_quantity_directives(text, product_count)
        if lines is None:
            return Outcome.keep(messages.INVALID_QUANTITY)
        if any(not 0 <= line.product_index < product_count for line in lines):
            return Outcome.keep(messages.invalid_product_number(product_count))
        if any(line.quantity < 1 for line in lines):
            return Outcome.keep(messages.INVALID_QUANTITY_VALUE)
        if any(line.discount_percent > 100 for line in lines):
            return Outcome.keep(messages.INVALID_ROW_DISCOUNT)

        totals = compute_totals(draft.found_products, lines, tax_rate=self.tax_rate)
        next_draft = draft.evolve(
            quantities=lines,
            subtotal=totals.subtotal,
            total=totals.grand_total,
        )
        return Outcome.save(
            Stage.AWAITING_DELIVERY_CHARGE,
            next_draft,
            messages.quantities_summary(totals),
            messages.delivery_prompt(self.delivery_inside, self.delivery_outside),
        )

    async def _on_delivery_charge(self, db, user_id, draft: InvoiceDraft, text: str) -> Outcome:
        choice = parse_delivery_choice(text)
        if choice is None:
            return Outcome.keep(messages.invalid_delivery(self.delivery_inside, self.delivery_outside))

        charge = self.delivery_inside if choice == DELIVERY_INSIDE else self.delivery_outside
        return Outcome.save(
            Stage.AWAITING_DISCOUNT,
            draft.evolve(delivery_charge=charge),
            messages.discount_prompt(charge),
        )

    async def _on_discount(self, db, user_id, draft: InvoiceDraft, text: str) -> Outcome:
        amount = parse_flat_discount(text)
        if amount is None:
            return Outcome.keep(messages.INVALID_DISCOUNT)

        next_draft = draft.evolve(discount_net=amount)
        totals = self.compute_totals(next_draft)
        next_draft = next_draft.evolve(subtotal=totals.subtotal, total=totals.grand_total)
        return Outcome.save(Stage.AWAITING_CONFIRMATION, next_draft, messages.invoice_summary(totals))

    async def _on_confirmation(self, db, user_id, draft: InvoiceDraft, text: str) -> Outcome:
        if text.lower() == CONFIRM_WORD:
            return Outcome.finalize(draft)

        edit = parse_price_edit(text)
        if edit is None:
            return Outcome.keep(messages.INVALID_CONFIRMATION)

        item_index, new_price = edit
        if not 0 <= item_index < len(draft.quantities):
            return Outcome.keep(messages.INVALID_ITEM_NUMBER)

        # Item numbers follow the summary (quantity lines), prices live on found products
        product_index = draft.quantities[item_index].product_index
        next_draft = draft.evolve(
            found_products=reprice_product(draft.found_products, product_index, new_price)
        )
        totals = self.compute_totals(next_draft)
        next_draft = next_draft.evolve(subtotal=totals.subtotal, total=totals.grand_total)
        logger.info(
            f"[Conversation] user_id={user_id} item {item_index + 1} repriced to {new_price:.2f}"
        )
        return Outcome.save(Stage.AWAITING_CONFIRMATION, next_draft, messages.price_updated(totals))

    # ==========================================================================
    # FINALIZE
    # ==========================================================================

    def compute_totals(self, draft: InvoiceDraft) -> Totals:
        """Totals from scratch. Stored subtotal/total are display values only."""
        return compute_totals(
            draft.found_products,
            draft.quantities,
            delivery_charge=draft.delivery_charge or 0.0,
            discount_net=draft.discount_net or 0.0,
            tax_rate=self.tax_rate,
        )

    async def _finalize(self, db: Session, user_id: int, draft: InvoiceDraft, version: int) -> Outcome:
        """
        Persist the invoice, then deliver its PDF.

        The conversation is deleted at the loaded version in the same
        transaction as the invoice INSERT. A second "ok" handled concurrently
        loses that claim (StaleConversationError) and is re-handled against
        the cleared conversation, so one confirmation yields one invoice.
        """
        totals = self.compute_totals(draft)

        try:
            invoice = create_invoice(
                db,
                draft.customer_info,
                totals,
                claim=lambda session: claim_state(session, user_id, version),
            )
        except (InvoiceNumberCollisionError, InvoicePersistenceError) as e:
            # State stays at confirmation, "ok" can be sent again
            logger.error(f"[Conversation] Invoice persistence failed: {e}", exc_info=True)
            return Outcome.keep(messages.INVOICE_SAVE_FAILED)

        AuditLog.log_invoice_created(invoice.invoice_number, user_id, invoice.total)
        replies = [Reply(messages.GENERATING)]

        try:
            pdf_bytes = await self.renderer.render(build_pdf_request(invoice))
        except Exception as e:
            # Invoice is already stored: any renderer failure is reported, never re-raised
            logger.error(f"[Conversation] PDF failed for {invoice.invoice_number}: {e}", exc_info=True)
            replies.append(Reply(messages.pdf_failed(invoice)))
            return Outcome.clear(*replies)

        try:
            path = store_pdf(invoice.invoice_number, pdf_bytes, self.pdf_storage_dir)
            attach_pdf_reference(db, invoice.id, path)
        except (OSError, SQLAlchemyError) as e:
            db.rollback()
            logger.error(f"[Conversation] Could not store PDF for {invoice.invoice_number}: {e}", exc_info=True)

        replies.append(
            Reply(
                document=pdf_bytes,
                filename=invoice_filename(invoice.invoice_number),
                caption=messages.invoice_caption(invoice),
            )
        )
        return Outcome.clear(*replies)


_orchestrator: Optional[ConversationOrchestrator] = None


def get_orchestrator() -> ConversationOrchestrator:
    """Process-wide orchestrator shared by the webhook route and the polling bot."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ConversationOrchestrator()
    return _orchestrator
