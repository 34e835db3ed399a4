"""Workflow service for approval documents.

Provides the high-level API over the approval state machine, the approval
line evaluator and the schedule conflict checker, including persistence,
per-document locking and the audit trail.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional

from releasegate.common.config import WorkflowConfig
from releasegate.core.errors import (
    NotFoundError,
    PermissionDeniedError,
    ScheduleConflictError,
    StaleStateError,
    TransitionError,
    ValidationError,
    WorkflowError,
)
from releasegate.core.schedule.bans import BanRegistry
from releasegate.core.schedule.conflicts import ScheduleConflictChecker
from releasegate.core.schedule.window import TimeWindow, parse_window_from_content, window_or_none
from releasegate.db.models import ApprovalDocument, ApprovalLine, DeploymentStatus

from .lines import ApprovalLineEvaluator, LineSpec
from .locks import DocumentLockRegistry, default_locks
from .machine import ApprovalStateMachine
from .states import (
    ACTIVE_SCHEDULE_STATES,
    DECISION_LABELS,
    DocumentStatus,
    DocumentTransition,
    DocumentType,
    LINE_TYPE_LABELS,
    LineType,
    STATUS_LABELS,
    TERMINAL_STATES,
    TYPE_LABELS,
)

logger = logging.getLogger(__name__)

# Terminal outcomes pushed to the linked deployment
DEPLOYMENT_SYNC = {
    DocumentTransition.APPROVE: DeploymentStatus.APPROVED,
    DocumentTransition.REJECT: DeploymentStatus.REJECTED,
    DocumentTransition.CANCEL: DeploymentStatus.CANCELED,
}


@dataclass
class DocumentCreateRequest:
    """A new approval document with its approval line."""

    drafter_id: int
    document_type: DocumentType
    title: str
    lines: List[LineSpec]
    project_ids: List[int]
    content: str = ""
    service: Optional[str] = None
    deployment_id: Optional[int] = None
    window: Optional[TimeWindow] = None


@dataclass
class DocumentUpdateRequest:
    """Fields to change on an existing document; None leaves a field as is."""

    title: Optional[str] = None
    content: Optional[str] = None
    service: Optional[str] = None
    project_ids: Optional[List[int]] = None
    window: Optional[TimeWindow] = None
    lines: Optional[List[LineSpec]] = None
    clear_window: bool = False


def _line_specs(lines: Iterable) -> List[LineSpec]:
    return [line if isinstance(line, LineSpec) else LineSpec.from_dict(line) for line in lines or []]


class WorkflowService:
    """
    High-level service for the release approval workflow.

    Handles:
    - Creating, editing and deleting approval documents
    - Submitting documents against the schedule
    - Recording approval line decisions
    - Canceling documents
    - Querying documents and their history

    Every mutating call runs under the document's lock, commits inside it
    and rolls back on any WorkflowError.
    """

    def __init__(
        self,
        store,
        config: Optional[WorkflowConfig] = None,
        *,
        locks: Optional[DocumentLockRegistry] = None,
        registry: Optional[BanRegistry] = None,
    ):
        """
        Initialize the workflow service.

        Args:
            store: WorkflowStore for the current unit of work
            config: Workflow policy, defaults when omitted
            locks: Lock registry, the process-wide one when omitted
            registry: Ban registry sharing ``store``
        """
        self.store = store
        self.config = config or WorkflowConfig()
        self.locks = locks or default_locks
        self.evaluator = ApprovalLineEvaluator()
        self.registry = registry or BanRegistry(store, self.config)
        self.checker = ScheduleConflictChecker(store, self.registry, self.config)

    # Document lifecycle

    def create_document(self, request: DocumentCreateRequest) -> Dict[str, Any]:
        """
        Create a DRAFT document and its approval line atomically.

        A schedule conflict does not block creation; the check result is
        returned under ``schedule_check`` and enforced at submit.

        Returns:
            Document dictionary

        Raises:
            ValidationError: If the lines, projects or title are malformed
            NotFoundError: If an account, project or deployment is unknown
        """
        try:
            document = self._build_document(request)
            check = self._advisory_check(document)
            self.store.commit()
        except WorkflowError as e:
            self.store.rollback()
            logger.warning("Document create refused for account %s: %s", request.drafter_id, e.message)
            raise

        logger.info(
            "Document %s created by account %s (%s)",
            document.id, document.drafter_id, document.document_type.value,
        )
        result = self._document_to_dict(document)
        result["schedule_check"] = check
        return result

    def create_and_submit(self, request: DocumentCreateRequest, *, comment: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a document and submit it in one transaction.

        Nothing is stored when the submit fails.
        """
        try:
            document = self._build_document(request)
            with self.locks.document(document.id):
                self._submit(document, request.drafter_id, comment)
        except WorkflowError as e:
            self.store.rollback()
            logger.warning("Document create-and-submit refused for account %s: %s", request.drafter_id, e.message)
            raise

        return self._document_to_dict(document)

    def update_document(
        self,
        document_id: int,
        request: DocumentUpdateRequest,
        *,
        actor_id: int,
        expected_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Edit a document that has not finalized.

        Lines may only be replaced while DRAFT. Outside DRAFT a changed
        window or project set is re-checked against the schedule, ignoring
        the document's own window.

        Raises:
            PermissionDeniedError: If the actor is not the drafter
            TransitionError: If the document is finalized
            ScheduleConflictError: If a submitted document's new window conflicts
        """
        try:
            with self.locks.document(document_id):
                document = self._load(document_id, expected_version)

                if actor_id != document.drafter_id:
                    raise PermissionDeniedError(
                        f"Only the drafter may edit document {document_id}",
                        details={"actor_id": actor_id, "drafter_id": document.drafter_id},
                    )
                if document.status in TERMINAL_STATES:
                    raise TransitionError(
                        f"Cannot edit a document in state {document.status.value}",
                        document.status,
                        "update",
                    )

                schedule_changed = self._apply_update(document, request)

                check = None
                if document.status != DocumentStatus.DRAFT and schedule_changed and document.window is not None:
                    with self.locks.projects(document.project_ids):
                        result = self.checker.check_window(
                            document.project_ids,
                            document.window,
                            exclude_document_id=document.id,
                        )
                        if not result.accepted:
                            raise ScheduleConflictError(result)
                        self.store.save_document(document)
                        if document.deployment_id is not None:
                            self.store.update_deployment(document.deployment_id, window=document.window)
                        self.store.commit()
                else:
                    if document.status == DocumentStatus.DRAFT:
                        check = self._advisory_check(document)
                    self.store.save_document(document)
                    self.store.commit()
        except WorkflowError as e:
            self.store.rollback()
            logger.warning("Document %s update refused: %s", document_id, e.message)
            raise

        logger.info("Document %s updated by account %s", document_id, actor_id)
        result = self._document_to_dict(document)
        result["schedule_check"] = check
        return result

    def delete_draft(self, document_id: int, *, actor_id: int) -> Dict[str, Any]:
        """
        Delete a document that was never submitted.

        Raises:
            TransitionError: If the document has left DRAFT
            PermissionDeniedError: If the actor is not the drafter
        """
        try:
            with self.locks.document(document_id):
                document = self._load(document_id)
                if document.status != DocumentStatus.DRAFT:
                    raise TransitionError(
                        f"Only DRAFT documents can be deleted, document is {document.status.value}",
                        document.status,
                        "delete",
                    )
                if actor_id != document.drafter_id:
                    raise PermissionDeniedError(
                        f"Only the drafter may delete document {document_id}",
                        details={"actor_id": actor_id, "drafter_id": document.drafter_id},
                    )
                self.store.delete_document(document)
                self.store.commit()
        except WorkflowError as e:
            self.store.rollback()
            logger.warning("Document %s delete refused: %s", document_id, e.message)
            raise

        logger.info("Document %s deleted by account %s", document_id, actor_id)
        return {"id": document_id, "deleted": True}

    # Transitions

    def submit(
        self,
        document_id: int,
        *,
        actor_id: int,
        comment: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Submit a DRAFT document for approval.

        The schedule check and the commit run under the locks of every
        affected project, so two overlapping submits cannot both succeed.

        Returns:
            Updated document, REQUESTED or (with no DRAFT line) PENDING

        Raises:
            TransitionError: If the document is not DRAFT
            PermissionDeniedError: If the actor is not the drafter
            ValidationError: If the approval line is invalid or a windowed
                document has no window
            ScheduleConflictError: If the window overlaps a ban or deployment
            StaleStateError: If another writer holds or changed the document
        """
        try:
            with self.locks.document(document_id):
                document = self._load(document_id, expected_version)
                self._submit(document, actor_id, comment)
        except WorkflowError as e:
            self.store.rollback()
            logger.warning("Document %s submit refused: %s", document_id, e.message)
            raise

        return self._document_to_dict(document)

    def record_decision(
        self,
        document_id: int,
        *,
        account_id: int,
        approved: bool,
        comment: Optional[str] = None,
        line_id: Optional[int] = None,
        expected_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Record an approval line decision.

        Args:
            document_id: Document to act on
            account_id: Account named by the line
            approved: True to approve, False to reject
            comment: Optional comment
            line_id: Line to act on when the account holds several
            expected_version: Version the caller loaded

        Returns:
            Updated document

        Raises:
            PermissionDeniedError: If the account holds no line
            OutOfOrderError: If an earlier APPROVE line has not approved
            TransitionError: If the document cannot take the decision now
            ValidationError: If the drafter rejects their own DRAFT line
        """
        comment = comment or ""
        try:
            with self.locks.document(document_id):
                document = self._load(document_id, expected_version)
                line = self._select_line(document, account_id, line_id)

                if line.decision is not None and line.decision == approved and line.comment == comment:
                    logger.debug("Document %s: repeated decision by account %s", document_id, account_id)
                    return self._document_to_dict(document)

                machine = self._machine(document)
                if line.line_type == LineType.DRAFT:
                    self._acknowledge(document, machine, line, approved, comment)
                elif line.line_type == LineType.CC:
                    self._record_cc(document, line, approved, comment)
                else:
                    self._record_evaluated(document, machine, line, approved, comment)

                self._apply(document, machine)
                self.store.save_document(document)
                self.store.commit()
        except WorkflowError as e:
            self.store.rollback()
            logger.warning(
                "Document %s decision by account %s refused: %s",
                document_id, account_id, e.message,
            )
            raise

        logger.info(
            "Document %s: account %s recorded %s on %s line",
            document_id, account_id, "approval" if approved else "rejection", line.line_type.value,
        )
        return self._document_to_dict(document)

    def cancel(
        self,
        document_id: int,
        *,
        actor_id: int,
        comment: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Cancel a DRAFT, REQUESTED or PENDING document.

        Raises:
            TransitionError: If the document already finalized
            PermissionDeniedError: If the actor is not the drafter
        """
        try:
            with self.locks.document(document_id):
                document = self._load(document_id, expected_version)
                machine = self._machine(document)
                machine.transition(DocumentTransition.CANCEL, actor_id=actor_id, comment=comment)
                self._apply(document, machine)
                self.store.save_document(document)
                self.store.commit()
        except WorkflowError as e:
            self.store.rollback()
            logger.warning("Document %s cancel refused: %s", document_id, e.message)
            raise

        return self._document_to_dict(document)

    # Queries

    def check_window(
        self,
        project_ids: Iterable[int],
        window: TimeWindow,
        exclude_document_id: Optional[int] = None,
    ):
        """Accept or Conflict for a proposed window; never mutates."""
        return self.checker.check_window(project_ids, window, exclude_document_id)

    def get_document(self, document_id: int) -> Dict[str, Any]:
        document = self.store.load_document(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)
        return self._document_to_dict(document)

    def list_documents(
        self,
        *,
        account_id: Optional[int] = None,
        status: Optional[DocumentStatus] = None,
        document_type: Optional[DocumentType] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Documents drafted by or routed to an account, newest first."""
        documents = self.store.list_documents(
            account_id=account_id,
            status=status,
            document_type=document_type,
            limit=limit,
            offset=offset,
        )
        return [self._document_to_dict(document) for document in documents]

    def list_deployment_schedules(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        project_ids: Optional[Iterable[int]] = None,
    ) -> List[Dict[str, Any]]:
        """
        List scheduled deployment windows touching a date range, for the release calendar.

        Only REQUESTED, PENDING and APPROVED documents of the scheduled
        types are listed, one entry per document with its matching projects.

        Args:
            start_date: First day, defaults to today
            end_date: Last day inclusive, defaults to the configured listing range
            project_ids: Only windows touching one of these projects

        Raises:
            ValidationError: If the range is inverted or too long
        """
        start_date, end_date = self.registry.listing_range(start_date, end_date)
        span = TimeWindow(
            datetime.combine(start_date, time.min),
            datetime.combine(end_date + timedelta(days=1), time.min),
        )

        entries: Dict[int, Dict[str, Any]] = {}
        for item in self.store.list_scheduled_windows(
            span,
            statuses=ACTIVE_SCHEDULE_STATES,
            types=self.config.scheduled_types,
            project_ids=project_ids,
        ):
            entry = entries.get(item.document_id)
            if entry is None:
                entry = item.to_dict()
                del entry["project_id"]
                entry["project_ids"] = []
                entries[item.document_id] = entry
            entry["project_ids"].append(item.project_id)

        return list(entries.values())


    def get_history(self, document_id: int) -> List[Dict[str, Any]]:
        """Get the transition history of a document."""
        if self.store.load_document(document_id) is None:
            raise NotFoundError("Document", document_id)

        return [
            {
                "id": h.id,
                "from_state": h.from_state,
                "to_state": h.to_state,
                "transition": h.transition,
                "actor_id": h.actor_id,
                "comment": h.comment,
                "metadata": h.extra_data,
                "created_at": h.created_at.isoformat() if h.created_at else None,
            }
            for h in self.store.list_history(document_id)
        ]

    # Internals

    def _load(self, document_id: int, expected_version: Optional[int] = None) -> ApprovalDocument:
        document = self.store.load_document(document_id, for_update=True)
        if document is None:
            raise NotFoundError("Document", document_id)
        if expected_version is not None and document.version != expected_version:
            raise StaleStateError(
                f"Document {document_id} is at version {document.version}, expected {expected_version}",
                details={
                    "document_id": document_id,
                    "version": document.version,
                    "expected_version": expected_version,
                },
            )
        return document

    def _build_document(self, request: DocumentCreateRequest) -> ApprovalDocument:
        if not request.title or not request.title.strip():
            raise ValidationError("Document title is required", details={"code": "INVALID_DOCUMENT", "field": "title"})

        if not self.store.account_exists(request.drafter_id):
            raise NotFoundError("Account", request.drafter_id)

        self._check_projects(request.project_ids)

        if request.deployment_id is not None and self.store.get_deployment(request.deployment_id) is None:
            raise NotFoundError("Deployment", request.deployment_id)

        specs = _line_specs(request.lines)
        self._check_lines(specs, request.drafter_id)

        document = ApprovalDocument(
            deployment_id=request.deployment_id,
            drafter_id=request.drafter_id,
            document_type=request.document_type,
            status=DocumentStatus.DRAFT,
            title=request.title.strip(),
            content=request.content or "",
            service=request.service,
        )
        document.project_ids = request.project_ids
        document.window = self._resolve_window(
            request.document_type, request.window, request.content, request.deployment_id,
        )
        document.lines = self._make_lines(specs)
        self.store.save_document(document)
        return document

    def _check_projects(self, project_ids: List[int]) -> None:
        if not project_ids:
            raise ValidationError("At least one project is required", details={"code": "EMPTY_PROJECTS"})
        if len(set(project_ids)) != len(project_ids):
            raise ValidationError(
                "Project list contains duplicates",
                details={"code": "DUPLICATE_PROJECTS", "project_ids": list(project_ids)},
            )
        missing = sorted(set(project_ids) - self.store.projects_exist(project_ids))
        if missing:
            raise NotFoundError("Project", missing[0])

    def _check_lines(self, specs: List[LineSpec], drafter_id: int) -> None:
        self.evaluator.validate(specs, drafter_id)
        for spec in specs:
            if not self.store.account_exists(spec.account_id):
                raise NotFoundError("Account", spec.account_id)

    @staticmethod
    def _make_lines(specs: List[LineSpec]) -> List[ApprovalLine]:
        return [
            ApprovalLine(
                account_id=spec.account_id,
                line_type=spec.line_type,
                position=position,
                comment=spec.comment or "",
            )
            for position, spec in enumerate(specs)
        ]

    def _resolve_window(
        self,
        document_type: DocumentType,
        window: Optional[TimeWindow],
        content: Optional[str],
        deployment_id: Optional[int] = None,
    ) -> Optional[TimeWindow]:
        """Explicit window, else one parsed from content, else the linked deployment's."""
        if not self.config.has_window(document_type):
            return None
        if window is not None:
            return window
        parsed = parse_window_from_content(content)
        if parsed is not None or deployment_id is None:
            return parsed
        deployment = self.store.get_deployment(deployment_id)
        if deployment is None:
            return None
        return window_or_none(deployment.scheduled_at, deployment.scheduled_to_ended_at)


    def _apply_update(self, document: ApprovalDocument, request: DocumentUpdateRequest) -> bool:
        """Apply edits; return True when the window or project set changed."""
        old_window = document.window
        old_projects = document.project_ids

        if request.title is not None:
            if not request.title.strip():
                raise ValidationError("Document title is required", details={"code": "INVALID_DOCUMENT", "field": "title"})
            document.title = request.title.strip()
        if request.content is not None:
            document.content = request.content
        if request.service is not None:
            document.service = request.service

        if request.project_ids is not None:
            self._check_projects(request.project_ids)
            document.project_ids = request.project_ids

        if request.lines is not None:
            if document.status != DocumentStatus.DRAFT:
                raise ValidationError(
                    "Approval line is fixed once the document is submitted",
                    details={"code": "INVALID_LINES", "status": document.status.value},
                )
            specs = _line_specs(request.lines)
            self._check_lines(specs, document.drafter_id)
            document.lines = self._make_lines(specs)

        if request.clear_window:
            document.window = None
        elif request.window is not None or request.content is not None:
            parsed = self._resolve_window(document.document_type, request.window, request.content)
            if parsed is not None:
                document.window = parsed

        if document.status != DocumentStatus.DRAFT and document.window is None and old_window is not None:
            raise ValidationError(
                "A submitted document cannot drop its schedule window",
                details={"code": "INVALID_TIME_RANGE"},
            )

        return document.window != old_window or document.project_ids != old_projects

    def _advisory_check(self, document: ApprovalDocument) -> Optional[Dict[str, Any]]:
        window = document.window
        if window is None or not self.config.has_window(document.document_type):
            return None
        return self.checker.check_window(
            document.project_ids,
            window,
            exclude_document_id=document.id,
        ).to_dict()

    def _submit(self, document: ApprovalDocument, actor_id: int, comment: Optional[str]) -> None:
        machine = self._machine(document)
        machine.check_transition(DocumentTransition.SUBMIT, actor_id)

        self.evaluator.validate(document.lines, document.drafter_id)
        if not document.project_ids:
            raise ValidationError("At least one project is required", details={"code": "EMPTY_PROJECTS"})

        window = None
        if self.config.has_window(document.document_type):
            window = document.window
            if window is None:
                raise ValidationError(
                    f"A {document.document_type.value} document needs a schedule window before submission",
                    details={"code": "INVALID_TIME_RANGE", "document_type": document.document_type.value},
                )

        with self.locks.projects(document.project_ids):
            if window is not None:
                result = self.checker.check_window(
                    document.project_ids,
                    window,
                    exclude_document_id=document.id,
                )
                if not result.accepted:
                    raise ScheduleConflictError(result)

            machine.transition(DocumentTransition.SUBMIT, actor_id=actor_id, comment=comment)
            if self.evaluator.draft_line(document.lines) is None:
                machine.transition(
                    DocumentTransition.ACKNOWLEDGE,
                    actor_id=actor_id,
                    metadata={"reason": "no_draft_line"},
                )

            self._apply(document, machine)
            self.store.save_document(document)
            if document.deployment_id is not None and window is not None:
                self.store.update_deployment(document.deployment_id, window=window)
            self.store.commit()

    def _select_line(self, document: ApprovalDocument, account_id: int, line_id: Optional[int]) -> ApprovalLine:
        if line_id is not None:
            for line in document.lines:
                if line.id == line_id:
                    if line.account_id != account_id:
                        raise PermissionDeniedError(
                            f"Line {line_id} does not belong to account {account_id}",
                            details={"line_id": line_id, "account_id": account_id},
                        )
                    return line
            raise NotFoundError("ApprovalLine", line_id)

        own = [line for line in document.lines if line.account_id == account_id]
        if not own:
            raise PermissionDeniedError(
                f"Account {account_id} holds no line on document {document.id}",
                details={"account_id": account_id, "document_id": document.id},
            )

        if document.status == DocumentStatus.REQUESTED:
            for line in own:
                if line.line_type == LineType.DRAFT:
                    return line

        for line in own:
            if line.decision is None and line.line_type != LineType.DRAFT:
                return line
        for line in own:
            if line.line_type != LineType.DRAFT:
                return line
        return own[0]

    def _acknowledge(self, document, machine, line, approved: bool, comment: str) -> None:
        if document.status != DocumentStatus.REQUESTED or line.decision is not None:
            raise TransitionError(
                f"Cannot acknowledge from state {document.status.value}",
                document.status,
                DocumentTransition.ACKNOWLEDGE,
            )
        if not approved:
            raise ValidationError(
                "The drafter cannot reject their own line; cancel the document instead",
                details={"code": "DRAFTER_REJECT"},
            )

        self._set_decision(line, approved, comment)
        machine.transition(DocumentTransition.ACKNOWLEDGE, actor_id=line.account_id, comment=comment or None)

    def _record_cc(self, document, line, approved: bool, comment: str) -> None:
        open_states = (DocumentStatus.PENDING,)
        first_after_final = (
            document.status in (DocumentStatus.APPROVED, DocumentStatus.REJECTED)
            and line.decision is None
        )
        if document.status not in open_states and not first_after_final:
            raise TransitionError(
                f"Cannot record a CC decision in state {document.status.value}",
                document.status,
                "record_decision",
            )
        self._set_decision(line, approved, comment)

    def _record_evaluated(self, document, machine, line, approved: bool, comment: str) -> None:
        attempted = DocumentTransition.APPROVE if approved else DocumentTransition.REJECT
        if document.status != DocumentStatus.PENDING:
            raise TransitionError(
                f"Cannot record a decision in state {document.status.value}",
                document.status,
                attempted,
            )

        self.evaluator.ensure_can_act(document.lines, line)
        self._set_decision(line, approved, comment)

        outcome = self.evaluator.derive_status(document.lines)
        if outcome == DocumentStatus.REJECTED:
            machine.transition(
                DocumentTransition.REJECT,
                actor_id=line.account_id,
                comment=comment or None,
                metadata={"line_id": line.id},
            )
        elif outcome == DocumentStatus.APPROVED:
            machine.transition(
                DocumentTransition.APPROVE,
                actor_id=line.account_id,
                comment=comment or None,
                metadata={"line_id": line.id},
            )

    @staticmethod
    def _set_decision(line: ApprovalLine, approved: bool, comment: str) -> None:
        line.decision = approved
        line.comment = comment
        line.decided_at = datetime.utcnow()

    def _machine(self, document: ApprovalDocument) -> ApprovalStateMachine:
        machine = ApprovalStateMachine(document.id, document.status, document.drafter_id)
        if document.deployment_id is not None and self.config.has_window(document.document_type):
            for transition, status in DEPLOYMENT_SYNC.items():
                machine.register_callback(transition, self._deployment_sync(document.deployment_id, status))
        return machine

    def _deployment_sync(self, deployment_id: int, status: DeploymentStatus):
        """
        Callback pushing a terminal outcome to the linked deployment.

        The state machine only logs a failing callback, so if the update
        raises (say the deployment row is gone) the document still commits
        in its terminal state while the deployment keeps its old status.
        """

        def callback(record: Dict[str, Any]) -> None:
            self.store.update_deployment(deployment_id, status=status)
            logger.info(
                "Deployment %s marked %s by document %s",
                deployment_id, status.value, record["document_id"],
            )
        return callback

    def _apply(self, document: ApprovalDocument, machine: ApprovalStateMachine) -> None:
        """Copy the machine's state onto the document and record history."""
        document.status = machine.state
        if machine.is_terminal and document.finalized_at is None:
            document.finalized_at = datetime.utcnow()
        if document.status == DocumentStatus.PENDING:
            document.next_approver_id = self.evaluator.next_approver(document.lines)
        else:
            document.next_approver_id = None
        for record in machine.get_history():
            self.store.add_history(document, record)

    def _document_to_dict(self, document: ApprovalDocument) -> Dict[str, Any]:
        """Convert an ApprovalDocument to a dictionary."""
        window = document.window
        return {
            "id": document.id,
            "deployment_id": document.deployment_id,
            "drafter_id": document.drafter_id,
            "next_approver_id": document.next_approver_id,
            "type": document.document_type.value,
            "type_label": TYPE_LABELS[document.document_type],
            "status": document.status.value,
            "status_label": STATUS_LABELS[document.status],
            "title": document.title,
            "content": document.content,
            "service": document.service,
            "project_ids": document.project_ids,
            "window": window.to_dict() if window else None,
            "version": document.version,
            "lines": [
                {
                    "id": line.id,
                    "account_id": line.account_id,
                    "type": line.line_type.value,
                    "type_label": LINE_TYPE_LABELS[line.line_type],
                    "position": line.position,
                    "decision": line.decision,
                    "decision_label": DECISION_LABELS[line.decision],
                    "comment": line.comment,
                    "decided_at": line.decided_at.isoformat() if line.decided_at else None,
                }
                for line in document.lines
            ],
            "finalized_at": document.finalized_at.isoformat() if document.finalized_at else None,
            "created_at": document.created_at.isoformat() if document.created_at else None,
            "updated_at": document.updated_at.isoformat() if document.updated_at else None,
        }
