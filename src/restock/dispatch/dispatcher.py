"""Dispatch engine: sends one order email per supplier for a session.

A run moves through::

    idle -> confirming -> sending -> all_failed | partial | all_succeeded -> idle

Confirming is side-effect free and can be cancelled. Once sending starts the
run always finishes: groups go out one at a time, in grouping order, and a
failed group never stops the ones after it. The outcome comes back as a
``DispatchResult`` rather than an exception.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from restock.database.models import SessionItem
from restock.database.repository import (
    SenderProfileRepository,
    SessionRepository,
    SupplierRepository,
)
from restock.io.validators import (
    CrossStoreReport,
    is_valid_email,
    validate_cross_store_relationships,
)
from restock.utils.constants import MAX_REASONS_IN_SUMMARY
from restock.utils.errors import (
    RestockError,
    is_retryable_error,
    user_friendly_error,
)

from .email_format import build_body, build_subject, relay_store_name
from .grouping import dispatchable_groups, group_by_destination, unassigned_items
from .relay_client import (
    NETWORK_ERROR_CODE,
    EmailRelayClient,
    SendEmailRequest,
)

logger = logging.getLogger(__name__)

MISSING_REPLY_TO_MESSAGE = (
    "A valid reply-to email is required. "
    "Add your email address in Settings before sending."
)


class DispatchState:
    IDLE = "idle"
    CONFIRMING = "confirming"
    SENDING = "sending"
    ALL_FAILED = "all_failed"
    PARTIAL = "partial"
    ALL_SUCCEEDED = "all_succeeded"


TERMINAL_STATES = (
    DispatchState.ALL_FAILED,
    DispatchState.PARTIAL,
    DispatchState.ALL_SUCCEEDED,
)


class DispatchError(RestockError):
    """A dispatch operation was requested in the wrong state."""


@dataclass
class EmailDraft:
    supplier_id: str = ""
    supplier_name: str = ""
    supplier_email: str = ""
    subject: str = ""
    body: str = ""
    items: list[SessionItem] = field(default_factory=list)

    def to_request(self, reply_to: str, store_name: str) -> SendEmailRequest:
        return SendEmailRequest(
            to=self.supplier_email,
            reply_to=reply_to,
            subject=self.subject,
            text=self.body,
            items=[
                {"productName": i.product_name, "quantity": i.quantity}
                for i in self.items
            ],
            store_name=store_name,
        )


@dataclass
class GroupOutcome:
    supplier_id: str = ""
    supplier_name: str = ""
    success: bool = False
    reason: Optional[str] = None
    message_id: Optional[str] = None
    attempted: bool = False
    retryable: bool = False


@dataclass
class DispatchResult:
    state: str = DispatchState.ALL_FAILED
    success_count: int = 0
    failure_count: int = 0
    outcomes: list[GroupOutcome] = field(default_factory=list)
    error: Optional[str] = None
    fatal: bool = False

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count

    @property
    def reasons(self) -> list[str]:
        return [o.reason for o in self.outcomes if not o.success and o.reason]

    @property
    def retryable(self) -> bool:
        """True if any failed group failed for a transient reason."""
        return any(o.retryable for o in self.outcomes if not o.success)


def summarize_failures(success_count: int, reasons: list[str]) -> Optional[str]:
    """Bounded user-facing message for a finished run, or None on success."""
    shown = ", ".join(reasons[:MAX_REASONS_IN_SUMMARY])
    failures = len(reasons)
    if success_count == 0:
        if shown:
            return f"Failed to send emails: {shown}"
        return "Failed to send emails. Please try again."
    if failures:
        noun = "email" if failures == 1 else "emails"
        return f"{failures} {noun} failed to send: {shown}"
    return None


def classify(success_count: int, failure_count: int) -> str:
    if success_count == 0:
        return DispatchState.ALL_FAILED
    if failure_count == 0:
        return DispatchState.ALL_SUCCEEDED
    return DispatchState.PARTIAL


class Dispatcher:
    """Drives one send run at a time for the sessions repository."""

    def __init__(self, sessions: SessionRepository,
                 suppliers: SupplierRepository,
                 sender_profiles: SenderProfileRepository,
                 relay: EmailRelayClient):
        self.sessions = sessions
        self.suppliers = suppliers
        self.sender_profiles = sender_profiles
        self.relay = relay
        self._reset()
        self.last_result: Optional[DispatchResult] = None

    def _reset(self):
        self._state = DispatchState.IDLE
        self._session_id: Optional[str] = None
        self._drafts: list[EmailDraft] = []
        self._unassigned: list[SessionItem] = []
        self._references = CrossStoreReport()

    @property
    def state(self) -> str:
        return self._state

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def drafts(self) -> list[EmailDraft]:
        return list(self._drafts)

    @property
    def unassigned_items(self) -> list[SessionItem]:
        """Items left out of this run because no supplier matched them."""
        return list(self._unassigned)

    @property
    def reference_report(self) -> CrossStoreReport:
        """Broken supplier references and unreachable suppliers in this run.

        Errors explain unassigned items; warnings name suppliers whose
        group will fail for lack of a usable email address.
        """
        return self._references

    # ── Confirming ──

    def request_send(self, session_id: str) -> list[EmailDraft]:
        """Prepare drafts for *session_id* and wait for confirmation."""
        if self._state in TERMINAL_STATES:
            self._reset()
        if self._state != DispatchState.IDLE:
            raise DispatchError(f"Cannot start a send while {self._state}")

        session = self.sessions.get(session_id)
        if session is None:
            raise DispatchError(f"Session {session_id} not found")
        if session.is_completed:
            raise DispatchError("This session has already been sent")

        known = self.suppliers.all()
        groups = group_by_destination(session.items, known)
        targets = dispatchable_groups(groups)
        if not targets:
            raise DispatchError("No items are assigned to a supplier")

        profile = self.sender_profiles.profile
        self._drafts = [
            EmailDraft(
                supplier_id=g.supplier_id,
                supplier_name=g.supplier_name,
                supplier_email=g.supplier_email,
                subject=build_subject(profile),
                body=build_body(g.supplier_name, g.items, profile),
                items=list(g.items),
            )
            for g in targets
        ]
        self._unassigned = unassigned_items(groups)
        self._references = validate_cross_store_relationships([session], known)
        for issue in self._references.errors + self._references.warnings:
            logger.warning(issue.message)
        self._session_id = session_id
        self._state = DispatchState.CONFIRMING
        return self.drafts

    def edit_draft(self, supplier_id: str, subject: str = None,
                   body: str = None) -> EmailDraft:
        if self._state != DispatchState.CONFIRMING:
            raise DispatchError("Drafts can only be edited before sending")
        for draft in self._drafts:
            if draft.supplier_id == supplier_id:
                if subject is not None:
                    draft.subject = subject
                if body is not None:
                    draft.body = body
                return draft
        raise DispatchError(f"No draft for supplier {supplier_id}")

    def cancel(self):
        """Abandon a run that has not started sending."""
        if self._state == DispatchState.SENDING:
            raise DispatchError("A send in progress cannot be cancelled")
        if self._state == DispatchState.CONFIRMING:
            self._reset()

    # ── Sending ──

    def confirm(self) -> DispatchResult:
        """Send every draft and return the aggregated outcome."""
        if self._state != DispatchState.CONFIRMING:
            raise DispatchError("Nothing to confirm")
        session = self.sessions.get(self._session_id)
        if session is None or session.is_completed:
            self._reset()
            raise DispatchError("Session is no longer available to send")
        self._state = DispatchState.SENDING

        profile = self.sender_profiles.profile
        reply_to = profile.email.strip() if profile and profile.email else ""
        if not is_valid_email(reply_to):
            logger.warning("Send aborted: no valid reply-to address")
            return self._finish(DispatchResult(
                state=DispatchState.ALL_FAILED,
                error=MISSING_REPLY_TO_MESSAGE,
                fatal=True,
            ))

        store_name = relay_store_name(profile)
        outcomes = []
        started = False
        for draft in self._drafts:
            outcome = GroupOutcome(
                supplier_id=draft.supplier_id,
                supplier_name=draft.supplier_name,
            )
            outcomes.append(outcome)

            if not is_valid_email(draft.supplier_email):
                outcome.reason = f"{draft.supplier_name}: Invalid supplier email"
                continue

            if not started:
                self.sessions.mark_pending(self._session_id)
                started = True

            outcome.attempted = True
            try:
                response = self.relay.send(
                    draft.to_request(reply_to, store_name)
                )
            except Exception as e:
                logger.warning(f"Send to {draft.supplier_name} raised: {e}")
                outcome.reason = f"{draft.supplier_name}: {user_friendly_error(e)}"
                outcome.retryable = is_retryable_error(e)
                continue

            if response.success:
                outcome.success = True
                outcome.message_id = response.message_id
            else:
                outcome.reason = (
                    f"{draft.supplier_name}: "
                    f"{response.message or response.error or 'Failed to send'}"
                )
                outcome.retryable = response.error == NETWORK_ERROR_CODE

        success_count = sum(1 for o in outcomes if o.success)
        failure_count = len(outcomes) - success_count
        result = DispatchResult(
            state=classify(success_count, failure_count),
            success_count=success_count,
            failure_count=failure_count,
            outcomes=outcomes,
        )
        result.error = summarize_failures(success_count, result.reasons)

        if result.state == DispatchState.ALL_FAILED:
            logger.warning(f"All {failure_count} email(s) failed to send")
        else:
            self.sessions.complete_session(self._session_id)
            logger.info(
                f"Sent {success_count} of {len(outcomes)} email(s) "
                f"for session {self._session_id}"
            )
        return self._finish(result)

    def _finish(self, result: DispatchResult) -> DispatchResult:
        self._state = result.state
        self.last_result = result
        return result

    def acknowledge(self):
        """Return a finished run to idle."""
        if self._state in TERMINAL_STATES:
            self._reset()

    def send_session(self, session_id: str) -> DispatchResult:
        """Request and immediately confirm a send."""
        self.request_send(session_id)
        return self.confirm()
