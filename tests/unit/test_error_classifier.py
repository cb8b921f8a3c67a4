"""Unit tests for ErrorClassifier

Tests classification rules, escalation, recovery handoff, alert
construction and history bookkeeping.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from agent_auth.core.auth.errors import (
    AuthProviderError,
    AuthProviderErrorType,
    BackendAuthError,
    BackendErrorType,
)
from agent_auth.core.errors import ErrorClassifier, find_backend_error
from agent_auth.core.errors.rules import BACKEND_ERROR_RULES
from agent_auth.core.recovery.orchestrator import RecoveryOrchestrator
from agent_auth.domain.models.auth import AuthType
from agent_auth.domain.models.errors import (
    ErrorCategory,
    ErrorContext,
    ErrorHandlingOptions,
    ErrorSeverity,
    UserAction,
)
from agent_auth.domain.models.recovery import RecoveryKind, RecoveryResult


def login_context() -> ErrorContext:
    return ErrorContext(operation="login", component="production_provider", user_id="agent@example.com")


def wrapped_backend_error(error_type: BackendErrorType, message: str) -> AuthProviderError:
    backend = BackendAuthError(error_type, message)
    return AuthProviderError(
        AuthProviderErrorType.LOGIN_FAILED,
        f"Login failed: {message}",
        AuthType.PRODUCTION,
        original_error=backend,
    )


@pytest.fixture
def audit_logger():
    return AsyncMock()


@pytest.fixture
def reporter():
    return AsyncMock()


@pytest.fixture
def recovery():
    orchestrator = AsyncMock(spec=RecoveryOrchestrator)
    orchestrator.attempt_recovery.return_value = []
    return orchestrator


@pytest.fixture
def prompt():
    mock = AsyncMock()
    mock.present.return_value = UserAction.CANCEL
    return mock


@pytest.fixture
def classifier(audit_logger, reporter, recovery, prompt, clock):
    return ErrorClassifier(
        audit_logger=audit_logger,
        suspicious_reporter=reporter,
        recovery=recovery,
        prompt=prompt,
        clock=clock,
    )


@pytest.mark.unit
class TestClassify:
    """Test rule selection"""

    def test_backend_rules_cover_every_tag(self):
        assert set(BACKEND_ERROR_RULES) == set(BackendErrorType)

    @pytest.mark.parametrize("message", ["NETWORK unreachable", "network down", "Connection refused", "read Timeout"])
    def test_network_keywords_any_case(self, classifier, message):
        classified = classifier.classify(RuntimeError(message))

        assert classified.category == ErrorCategory.NETWORK
        assert classified.code == "NETWORK_ERROR"
        assert classified.recoverable is True
        assert classified.retryable is True

    @pytest.mark.parametrize(
        "message,category,code",
        [
            ("disk quota exceeded", ErrorCategory.STORAGE, "STORAGE_ERROR"),
            ("invalid date format", ErrorCategory.VALIDATION, "VALIDATION_ERROR"),
            ("Forbidden resource", ErrorCategory.SECURITY, "PERMISSION_ERROR"),
            ("something odd happened", ErrorCategory.SYSTEM, "UNKNOWN_ERROR"),
        ],
    )
    def test_keyword_rules(self, classifier, message, category, code):
        classified = classifier.classify(message)

        assert classified.category == category
        assert classified.code == code
        assert classified.origin_error is None

    def test_backend_tag_found_along_cause_chain(self, classifier):
        error = wrapped_backend_error(BackendErrorType.NETWORK_ERROR, "timeout")

        classified = classifier.classify(error, login_context())

        assert classified.code == "BACKEND_NETWORK_ERROR"
        assert classified.category == ErrorCategory.NETWORK
        assert classified.severity == ErrorSeverity.HIGH
        assert classified.technical_message == "Network error: timeout"
        assert classified.origin_error is error
        assert classified.context.timestamp is not None

    def test_backend_tag_beats_keywords(self, classifier):
        """A tagged failure is classified by its tag even if its text says otherwise"""
        error = BackendAuthError(BackendErrorType.INVALID_CREDENTIALS, "network timeout")

        classified = classifier.classify(error)

        assert classified.code == "BACKEND_INVALID_CREDENTIALS"
        assert classified.category == ErrorCategory.AUTHENTICATION

    def test_find_backend_error_via_implicit_context(self):
        backend = BackendAuthError(BackendErrorType.SERVER_ERROR, "HTTP 502")
        try:
            try:
                raise backend
            except BackendAuthError:
                raise RuntimeError("wrapper")
        except RuntimeError as e:
            assert find_backend_error(e) is backend

        assert find_backend_error("plain text") is None

    def test_critical_is_never_recoverable(self, classifier):
        classified = classifier.classify(
            BackendAuthError(BackendErrorType.DECRYPTION_ERROR, "bad padding")
        )

        assert classified.severity == ErrorSeverity.CRITICAL
        assert classified.recoverable is False

    def test_ids_are_unique(self, classifier):
        first = classifier.classify("oops")
        second = classifier.classify("oops")

        assert first.id != second.id
        assert first.id.startswith("err_")

    def test_reused_context_is_stamped_per_call(self, classifier, clock):
        context = login_context()

        first = classifier.classify("oops", context)
        clock.advance(minutes=1)
        second = classifier.classify("oops", context)

        assert context.timestamp is None
        assert second.context.timestamp - first.context.timestamp == timedelta(minutes=1)
        assert second.context.operation == "login"

    def test_explicit_context_timestamp_is_kept(self, classifier, clock):
        context = login_context()
        context.timestamp = clock() - timedelta(hours=1)

        classified = classifier.classify("oops", context)

        assert classified.context.timestamp == clock() - timedelta(hours=1)


@pytest.mark.unit
class TestHandleError:
    """Test the full handling pipeline"""

    @pytest.mark.asyncio
    async def test_decryption_error_alert(self, classifier, prompt, reporter, recovery):
        error = wrapped_backend_error(BackendErrorType.DECRYPTION_ERROR, "bad padding")

        result = await classifier.handle_error(error, ErrorContext(operation="token_refresh"))

        assert result.handled is True
        assert result.suspicious is True
        assert result.alert is not None
        assert result.alert.title == "Critical Error"
        assert set(result.alert.buttons) <= {UserAction.RETRY, UserAction.CANCEL}
        assert UserAction.IGNORE not in result.alert.buttons
        assert "Suggested actions:\n1. Close and reopen the application" in result.alert.message
        recovery.attempt_recovery.assert_not_awaited()
        reporter.record.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_third_same_code_error_is_suspicious(self, classifier, reporter):
        outcomes = []
        for _ in range(3):
            result = await classifier.handle_error(
                wrapped_backend_error(BackendErrorType.INVALID_CREDENTIALS, "bad password"),
                login_context(),
            )
            outcomes.append(result.suspicious)

        assert outcomes == [False, False, True]
        reporter.record.assert_awaited_once()
        category, recoverable, metadata = reporter.record.await_args.args
        assert category == ErrorCategory.AUTHENTICATION
        assert recoverable is False
        assert metadata["code"] == "BACKEND_INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_repeated_errors_outside_window_not_suspicious(self, classifier, clock):
        for _ in range(2):
            await classifier.handle_error("bad password format", login_context())
        clock.advance(minutes=6)

        result = await classifier.handle_error("bad password format", login_context())

        assert result.suspicious is False

    @pytest.mark.asyncio
    async def test_report_suspicious_option(self, classifier, reporter):
        result = await classifier.handle_error(
            "something odd", options=ErrorHandlingOptions(report_suspicious=True, attempt_recovery=False)
        )

        assert result.suspicious is True
        reporter.record.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_every_error_is_audited(self, classifier, audit_logger):
        await classifier.handle_error(
            wrapped_backend_error(BackendErrorType.SERVER_ERROR, "HTTP 503"), login_context()
        )

        audit_logger.log_event.assert_awaited_once()
        event_type, severity, message, metadata = audit_logger.log_event.await_args.args
        assert event_type == "auth_error"
        assert severity == ErrorSeverity.HIGH
        assert message == "Server error: HTTP 503"
        assert metadata["operation"] == "login"
        assert audit_logger.log_event.await_args.kwargs["user_id"] == "agent@example.com"

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_break_handling(self, classifier, audit_logger):
        audit_logger.log_event.side_effect = RuntimeError("audit sink down")

        result = await classifier.handle_error("validation failed", login_context())

        assert result.handled is True

    @pytest.mark.asyncio
    async def test_network_error_recovered(self, classifier, recovery, prompt, clock):
        recovery.attempt_recovery.return_value = [
            RecoveryResult(True, RecoveryKind.NETWORK_RECONNECTION, "Network connection restored", clock()),
        ]

        result = await classifier.handle_error(
            wrapped_backend_error(BackendErrorType.NETWORK_ERROR, "timeout"), login_context()
        )

        assert result.recovered is True
        assert result.user_action == UserAction.RECOVERED
        assert result.message == "Recovered automatically"
        recovery.attempt_recovery.assert_awaited_once_with(hint="BACKEND_NETWORK_ERROR")
        prompt.present.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_irrelevant_recovery_does_not_count(self, classifier, recovery, clock):
        recovery.attempt_recovery.return_value = [
            RecoveryResult(True, RecoveryKind.NETWORK_RECONNECTION, "Network connection restored", clock()),
        ]

        result = await classifier.handle_error("storage write failed", login_context())

        assert result.recovered is False
        assert result.user_action == UserAction.CANCEL

    @pytest.mark.asyncio
    async def test_storage_error_recovered_by_cache_clear(self, classifier, recovery, clock):
        recovery.attempt_recovery.return_value = [
            RecoveryResult(False, RecoveryKind.STORAGE_CLEANUP, "Storage still unavailable", clock()),
            RecoveryResult(True, RecoveryKind.CACHE_CLEAR, "Cache cleared", clock()),
        ]

        result = await classifier.handle_error("storage write failed", login_context())

        assert result.recovered is True

    @pytest.mark.asyncio
    async def test_prompt_answer_is_returned(self, classifier, prompt):
        prompt.present.return_value = UserAction.RETRY

        result = await classifier.handle_error(
            wrapped_backend_error(BackendErrorType.INVALID_CREDENTIALS, "bad password"),
            login_context(),
        )

        assert result.user_action == UserAction.RETRY
        alert = prompt.present.await_args.args[0]
        assert alert.title == "Authentication Error"
        assert alert.buttons == [UserAction.RETRY, UserAction.CANCEL, UserAction.IGNORE]

    @pytest.mark.asyncio
    async def test_prompt_answer_not_offered_becomes_cancel(self, classifier, prompt):
        prompt.present.return_value = UserAction.RETRY

        result = await classifier.handle_error(
            "Forbidden resource",
            login_context(),
            ErrorHandlingOptions(attempt_recovery=False),
        )

        assert UserAction.RETRY not in result.alert.buttons
        assert result.user_action == UserAction.CANCEL

    @pytest.mark.asyncio
    async def test_allow_retry_false_hides_retry(self, classifier):
        result = await classifier.handle_error(
            "validation failed", login_context(), ErrorHandlingOptions(allow_retry=False)
        )

        assert result.alert.buttons == [UserAction.CANCEL, UserAction.IGNORE]

    @pytest.mark.asyncio
    async def test_no_alert_outside_alert_operations(self, classifier, prompt):
        result = await classifier.handle_error("validation failed", ErrorContext(operation="sync"))

        assert result.alert is None
        assert result.user_action == UserAction.IGNORE
        prompt.present.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_without_prompt_alert_resolves_to_cancel(self, clock):
        classifier = ErrorClassifier(clock=clock)

        result = await classifier.handle_error("validation failed", login_context())

        assert result.alert is not None
        assert result.user_action == UserAction.CANCEL

    @pytest.mark.asyncio
    async def test_custom_message(self, classifier):
        result = await classifier.handle_error(
            "validation failed",
            login_context(),
            ErrorHandlingOptions(custom_message="Please check the form"),
        )

        assert result.message == "Please check the form"
        assert result.alert.message.startswith("Please check the form")

    @pytest.mark.asyncio
    async def test_handling_failure_resolves_to_cancel(self, classifier, recovery):
        recovery.attempt_recovery.side_effect = RuntimeError("orchestrator crashed")

        result = await classifier.handle_error("network down", login_context())

        assert result.handled is False
        assert result.user_action == UserAction.CANCEL
        assert result.message == "Error handling failed"


@pytest.mark.unit
class TestHistory:
    """Test history, statistics and pruning"""

    @pytest.mark.asyncio
    async def test_history_most_recent_first(self, classifier):
        await classifier.handle_error("network down")
        await classifier.handle_error("disk full")

        history = classifier.get_error_history()

        assert [entry.code for entry in history] == ["STORAGE_ERROR", "NETWORK_ERROR"]
        assert len(classifier.get_error_history(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_error_stats(self, classifier, clock):
        await classifier.handle_error("network down")
        clock.advance(hours=2)
        await classifier.handle_error("disk full")
        await classifier.handle_error(BackendAuthError(BackendErrorType.HTTPS_REQUIRED, "http://"))

        stats = classifier.get_error_stats()

        assert stats["total"] == 3
        assert stats["by_category"]["network"] == 1
        assert stats["by_category"]["storage"] == 1
        assert stats["by_category"]["security"] == 1
        assert stats["by_severity"]["critical"] == 1
        assert stats["recent"] == 2
        assert stats["recoverable"] == 2

    @pytest.mark.asyncio
    async def test_cleanup_error_history(self, classifier, clock):
        await classifier.handle_error("network down")
        clock.advance(hours=2)
        await classifier.handle_error("disk full")

        removed = classifier.cleanup_error_history(max_age=timedelta(hours=1))

        assert removed == 1
        assert [entry.code for entry in classifier.get_error_history()] == ["STORAGE_ERROR"]

    @pytest.mark.asyncio
    async def test_old_entries_pruned_on_handle(self, classifier, clock):
        await classifier.handle_error("network down")
        clock.advance(hours=25)

        await classifier.handle_error("disk full")

        assert classifier.get_error_stats()["total"] == 1

    @pytest.mark.asyncio
    async def test_clear_error_history(self, classifier):
        await classifier.handle_error("network down")

        classifier.clear_error_history()

        assert classifier.get_error_history() == []
