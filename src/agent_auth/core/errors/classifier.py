"""Error classification and handling.

``classify`` turns any failure into a ``ClassifiedError``. ``handle_error``
drives everything around it: history, audit logging, suspicious-activity
escalation, automatic recovery and the retry/cancel/ignore decision.
"""

import logging
import traceback
import uuid
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Deque, Dict, FrozenSet, Iterable, List, Optional, Protocol

from .rules import (
    ALERT_TITLES,
    BACKEND_ERROR_RULES,
    CRITICAL_ALERT_TITLE,
    FALLBACK_RULE,
    KEYWORD_RULES,
    ErrorRule,
)
from agent_auth.core.auth.errors import BackendAuthError
from agent_auth.core.recovery.orchestrator import RecoveryOrchestrator
from agent_auth.domain.models.auth import utc_now
from agent_auth.domain.models.errors import (
    ClassifiedError,
    ErrorCategory,
    ErrorContext,
    ErrorHandlingOptions,
    ErrorHandlingResult,
    ErrorSeverity,
    UserAction,
    UserAlert,
)
from agent_auth.domain.models.recovery import RecoveryKind
from agent_auth.infrastructure.audit.logger import AuditLogger, SuspiciousActivityReporter

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 1000

# Recovery kinds that count as remediating an error of a category.
# Categories not listed accept any successful recovery.
RELEVANT_RECOVERY: Dict[ErrorCategory, FrozenSet[RecoveryKind]] = {
    ErrorCategory.NETWORK: frozenset({
        RecoveryKind.NETWORK_RECONNECTION,
        RecoveryKind.SESSION_RESTORATION,
        RecoveryKind.TOKEN_REFRESH,
        RecoveryKind.SERVICE_RESTART,
    }),
    ErrorCategory.STORAGE: frozenset({
        RecoveryKind.STORAGE_CLEANUP,
        RecoveryKind.DATA_RECOVERY,
        RecoveryKind.CACHE_CLEAR,
    }),
    ErrorCategory.AUTHENTICATION: frozenset({
        RecoveryKind.SESSION_RESTORATION,
        RecoveryKind.TOKEN_REFRESH,
    }),
    ErrorCategory.SECURITY: frozenset({
        RecoveryKind.SESSION_RESTORATION,
        RecoveryKind.SERVICE_RESTART,
    }),
}


class UserPrompt(Protocol):
    """Surface that asks the agent to resolve an alert"""

    async def present(self, alert: UserAlert) -> UserAction: ...


def find_backend_error(error: Any) -> Optional[BackendAuthError]:
    """Find a tagged backend failure on ``error`` or along its cause chain."""
    seen = set()
    current = error
    while isinstance(current, BaseException) and id(current) not in seen:
        if isinstance(current, BackendAuthError):
            return current
        seen.add(id(current))
        current = (
            getattr(current, "original_error", None)
            or current.__cause__
            or current.__context__
        )
    return None


class ErrorClassifier:
    """Classifier and handler for authentication failures.

    Example:
        classifier = ErrorClassifier(audit_logger=LoggingAuditLogger(), recovery=orchestrator)
        result = await classifier.handle_error(error, ErrorContext(operation="login"))
        if result.user_action == UserAction.RETRY:
            ...
    """

    def __init__(
        self,
        audit_logger: Optional[AuditLogger] = None,
        suspicious_reporter: Optional[SuspiciousActivityReporter] = None,
        recovery: Optional[RecoveryOrchestrator] = None,
        prompt: Optional[UserPrompt] = None,
        suspicious_threshold: int = 3,
        suspicious_window: timedelta = timedelta(minutes=5),
        history_max_age: timedelta = timedelta(hours=24),
        max_history: int = DEFAULT_MAX_HISTORY,
        alert_operations: Iterable[str] = ("login",),
        no_ignore_severities: Iterable[ErrorSeverity] = (ErrorSeverity.CRITICAL,),
        critical_recoverable_codes: Iterable[str] = (),
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize error classifier.

        Args:
            audit_logger: Sink for every handled error
            suspicious_reporter: Sink for escalated errors
            recovery: Orchestrator run for recoverable errors
            prompt: Surface presenting alerts; without one alerts resolve to cancel
            suspicious_threshold: Same-code errors within the window that escalate
            suspicious_window: Window for the repeated-error escalation
            history_max_age: Age after which history entries are pruned
            max_history: Upper bound on history length
            alert_operations: Operations that alert by default
            no_ignore_severities: Severities whose alerts never offer "ignore"
            critical_recoverable_codes: Critical codes allowed to stay recoverable
            clock: Time source
        """
        self.audit_logger = audit_logger
        self.suspicious_reporter = suspicious_reporter
        self.recovery = recovery
        self.prompt = prompt
        self.suspicious_threshold = suspicious_threshold
        self.suspicious_window = suspicious_window
        self.history_max_age = history_max_age
        self.alert_operations = frozenset(alert_operations)
        self.no_ignore_severities = frozenset(no_ignore_severities)
        self.critical_recoverable_codes = frozenset(critical_recoverable_codes)
        self._clock = clock
        self._history: Deque[ClassifiedError] = deque(maxlen=max_history)

    # Classification

    def classify(self, error: Any, context: Optional[ErrorContext] = None) -> ClassifiedError:
        """Classify a raw failure. Pure apart from reading the clock."""
        now = self._clock()
        if context is None:
            context = ErrorContext(timestamp=now)
        elif context.timestamp is None:
            context = replace(context, timestamp=now)

        backend_error = find_backend_error(error)
        if backend_error is not None:
            rule = BACKEND_ERROR_RULES.get(backend_error.error_type, FALLBACK_RULE)
            technical_message = f"{rule.message}: {backend_error.message}"
        else:
            technical_message = self._message_of(error)
            rule = self._match_keywords(technical_message)

        recoverable = rule.recoverable
        if rule.severity == ErrorSeverity.CRITICAL and rule.code not in self.critical_recoverable_codes:
            recoverable = False

        return ClassifiedError(
            id=f"err_{uuid.uuid4().hex[:12]}",
            category=rule.category,
            severity=rule.severity,
            code=rule.code,
            message=rule.message,
            technical_message=technical_message,
            user_message=rule.user_message,
            recoverable=recoverable,
            retryable=rule.retryable,
            suggested_actions=list(rule.suggested_actions),
            context=context,
            timestamp=now,
            origin_error=error if isinstance(error, BaseException) else None,
            stack_trace=self._stack_of(error),
        )

    @staticmethod
    def _message_of(error: Any) -> str:
        if isinstance(error, BaseException):
            return str(error) or type(error).__name__
        return str(error)

    @staticmethod
    def _stack_of(error: Any) -> Optional[str]:
        if isinstance(error, BaseException) and error.__traceback__ is not None:
            return "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return None

    @staticmethod
    def _match_keywords(message: str) -> ErrorRule:
        lowered = message.lower()
        for keywords, rule in KEYWORD_RULES:
            if any(keyword in lowered for keyword in keywords):
                return rule
        return FALLBACK_RULE

    # Handling

    async def handle_error(
        self,
        error: Any,
        context: Optional[ErrorContext] = None,
        options: Optional[ErrorHandlingOptions] = None,
    ) -> ErrorHandlingResult:
        """Classify, record, escalate, recover and decide.

        Never raises; a failure while handling is logged and reported as an
        unhandled cancel.
        """
        options = options or ErrorHandlingOptions()
        try:
            classified = self.classify(error, context)
            if options.custom_message:
                classified.user_message = options.custom_message

            self._history.append(classified)
            self._prune(classified.timestamp - self.history_max_age)

            if options.log_error:
                await self._audit(classified)

            suspicious = options.report_suspicious or self._is_suspicious(classified)
            if suspicious:
                await self._report_suspicious(classified)

            if options.attempt_recovery and classified.recoverable and self.recovery is not None:
                if await self._recover(classified):
                    logger.info(f"Error {classified.code} recovered automatically")
                    return ErrorHandlingResult(
                        handled=True,
                        recovered=True,
                        user_action=UserAction.RECOVERED,
                        message="Recovered automatically",
                        suspicious=suspicious,
                        error=classified,
                    )

            alert = self._build_alert(classified, options)
            if alert is None:
                return ErrorHandlingResult(
                    handled=True,
                    recovered=False,
                    user_action=UserAction.IGNORE,
                    message=classified.user_message,
                    suspicious=suspicious,
                    error=classified,
                )

            action = await self._present(alert)
            return ErrorHandlingResult(
                handled=True,
                recovered=False,
                user_action=action,
                message=classified.user_message,
                suspicious=suspicious,
                alert=alert,
                error=classified,
            )

        except Exception as e:
            logger.error(f"Error handling failed: {e}", exc_info=True)
            return ErrorHandlingResult(
                handled=False,
                recovered=False,
                user_action=UserAction.CANCEL,
                message="Error handling failed",
            )

    def _is_suspicious(self, classified: ClassifiedError) -> bool:
        if classified.category == ErrorCategory.SECURITY and classified.severity == ErrorSeverity.CRITICAL:
            return True
        cutoff = classified.timestamp - self.suspicious_window
        same_code = sum(
            1 for entry in self._history
            if entry.code == classified.code and entry.timestamp >= cutoff
        )
        return same_code >= self.suspicious_threshold

    async def _audit(self, classified: ClassifiedError) -> None:
        if self.audit_logger is None:
            return
        try:
            await self.audit_logger.log_event(
                "auth_error",
                classified.severity,
                classified.technical_message,
                {
                    "error_id": classified.id,
                    "code": classified.code,
                    "category": classified.category.value,
                    "operation": classified.context.operation,
                    "component": classified.context.component,
                },
                user_id=classified.context.user_id,
                session_id=classified.context.session_id,
            )
        except Exception as e:
            logger.error(f"Audit logging failed for {classified.id}: {e}")

    async def _report_suspicious(self, classified: ClassifiedError) -> None:
        logger.warning(f"Suspicious error pattern: {classified.code} ({classified.category.value})")
        if self.suspicious_reporter is None:
            return
        try:
            await self.suspicious_reporter.record(
                classified.category,
                classified.recoverable,
                {
                    "error_id": classified.id,
                    "code": classified.code,
                    "severity": classified.severity.value,
                    "operation": classified.context.operation,
                    "user_id": classified.context.user_id,
                },
            )
        except Exception as e:
            logger.error(f"Suspicious activity report failed for {classified.id}: {e}")

    async def _recover(self, classified: ClassifiedError) -> bool:
        results = await self.recovery.attempt_recovery(hint=classified.code)
        relevant = RELEVANT_RECOVERY.get(classified.category)
        return any(
            result.success and (relevant is None or result.kind in relevant)
            for result in results
        )

    def _build_alert(self, classified: ClassifiedError, options: ErrorHandlingOptions) -> Optional[UserAlert]:
        critical = classified.severity == ErrorSeverity.CRITICAL
        if not critical:
            show = options.show_user_alert
            if show is None:
                show = classified.context.operation in self.alert_operations
            if not show:
                return None

        allow_retry = classified.retryable if options.allow_retry is None else options.allow_retry
        buttons: List[UserAction] = []
        if allow_retry and classified.retryable:
            buttons.append(UserAction.RETRY)
        buttons.append(UserAction.CANCEL)
        if classified.severity not in self.no_ignore_severities:
            buttons.append(UserAction.IGNORE)

        message = classified.user_message
        if classified.suggested_actions:
            steps = "\n".join(
                f"{index}. {action}" for index, action in enumerate(classified.suggested_actions, 1)
            )
            message = f"{message}\n\nSuggested actions:\n{steps}"

        return UserAlert(
            title=CRITICAL_ALERT_TITLE if critical else ALERT_TITLES[classified.category],
            message=message,
            buttons=buttons,
        )

    async def _present(self, alert: UserAlert) -> UserAction:
        if self.prompt is None:
            return UserAction.CANCEL
        action = await self.prompt.present(alert)
        if action not in alert.buttons:
            logger.warning(f"Prompt answered with an action that was not offered: {action}")
            return UserAction.CANCEL
        return action

    # History

    def get_error_history(self, limit: Optional[int] = None) -> List[ClassifiedError]:
        """Classified errors, most recent first."""
        entries = list(reversed(self._history))
        return entries[:limit] if limit is not None else entries

    def get_error_stats(self) -> Dict[str, Any]:
        """Aggregate statistics over the current history."""
        hour_ago = self._clock() - timedelta(hours=1)
        by_category = {category.value: 0 for category in ErrorCategory}
        by_severity = {severity.value: 0 for severity in ErrorSeverity}
        recent = 0
        recoverable = 0
        for entry in self._history:
            by_category[entry.category.value] += 1
            by_severity[entry.severity.value] += 1
            if entry.timestamp >= hour_ago:
                recent += 1
            if entry.recoverable:
                recoverable += 1
        return {
            "total": len(self._history),
            "by_category": by_category,
            "by_severity": by_severity,
            "recent": recent,
            "recoverable": recoverable,
        }

    def cleanup_error_history(self, max_age: Optional[timedelta] = None) -> int:
        """Drop entries strictly older than ``max_age``. Returns the number dropped."""
        return self._prune(self._clock() - (max_age or self.history_max_age))

    def clear_error_history(self) -> None:
        self._history.clear()

    def _prune(self, cutoff: datetime) -> int:
        kept = [entry for entry in self._history if entry.timestamp >= cutoff]
        removed = len(self._history) - len(kept)
        if removed:
            self._history.clear()
            self._history.extend(kept)
        return removed
