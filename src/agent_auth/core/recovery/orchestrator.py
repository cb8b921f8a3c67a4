"""Recovery orchestration.

Runs registered remediation strategies in priority order, each limited by
its own attempt budget and cooldown.
"""

import asyncio
import logging
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional

from agent_auth.domain.models.auth import utc_now
from agent_auth.domain.models.recovery import (
    RecoveryAttemptState,
    RecoveryKind,
    RecoveryResult,
    RecoveryStrategy,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 500
DEFAULT_TERMINAL_KINDS = (RecoveryKind.SESSION_RESTORATION, RecoveryKind.SERVICE_RESTART)


class RecoveryOrchestrator:
    """Executes prioritized, rate-limited recovery strategies.

    A strategy is skipped while its consecutive failures have reached
    ``max_attempts`` or while its cooldown is running. A success resets its
    counter. A successful terminal strategy ends the pass.
    """

    def __init__(
        self,
        strategies: Iterable[RecoveryStrategy] = (),
        terminal_kinds: Iterable[RecoveryKind] = DEFAULT_TERMINAL_KINDS,
        history_max_age: timedelta = timedelta(hours=24),
        max_history: int = DEFAULT_MAX_HISTORY,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.terminal_kinds = frozenset(terminal_kinds)
        self.history_max_age = history_max_age
        self._clock = clock
        self._strategies: Dict[RecoveryKind, RecoveryStrategy] = {}
        self._states: Dict[RecoveryKind, RecoveryAttemptState] = {}
        self._locks: Dict[RecoveryKind, asyncio.Lock] = {}
        self._history: Deque[RecoveryResult] = deque(maxlen=max_history)
        for strategy in strategies:
            self.register_strategy(strategy)

    def register_strategy(self, strategy: RecoveryStrategy) -> None:
        """Register or replace the strategy for ``strategy.kind``."""
        replaced = strategy.kind in self._strategies
        self._strategies[strategy.kind] = strategy
        self._states.setdefault(strategy.kind, RecoveryAttemptState())
        self._locks.setdefault(strategy.kind, asyncio.Lock())
        logger.info(
            f"{'Replaced' if replaced else 'Registered'} recovery strategy "
            f"{strategy.kind.value} (priority {strategy.priority})"
        )

    def get_strategies(self) -> List[RecoveryStrategy]:
        """Registered strategies, highest priority first (stable for ties)."""
        return sorted(self._strategies.values(), key=lambda s: -s.priority)

    async def attempt_recovery(self, hint: Optional[str] = None) -> List[RecoveryResult]:
        """Run one recovery pass.

        Args:
            hint: Error code that triggered the pass (recorded in result details)

        Returns:
            Results of the strategies that actually executed, in execution order
        """
        results: List[RecoveryResult] = []
        logger.info(f"Starting recovery pass (hint: {hint})")

        for strategy in self.get_strategies():
            result = await self._run(strategy, hint)
            if result is None:
                continue
            results.append(result)
            if result.success and strategy.kind in self.terminal_kinds:
                logger.info(f"Terminal recovery {strategy.kind.value} succeeded, ending pass")
                break

        self._prune(self._clock() - self.history_max_age)
        logger.info(
            f"Recovery pass finished: {sum(r.success for r in results)}/{len(results)} strategies succeeded"
        )
        return results

    async def _run(self, strategy: RecoveryStrategy, hint: Optional[str]) -> Optional[RecoveryResult]:
        async with self._locks[strategy.kind]:
            state = self._states[strategy.kind]
            now = self._clock()

            if state.attempts >= strategy.max_attempts:
                logger.debug(f"Skipping {strategy.kind.value}: max attempts reached")
                return None
            if state.last_attempt is not None and now - state.last_attempt < strategy.cooldown:
                logger.debug(f"Skipping {strategy.kind.value}: cooldown active")
                return None

            try:
                applicable = await strategy.condition()
            except Exception as e:
                logger.warning(f"Recovery condition for {strategy.kind.value} raised: {e}")
                result = RecoveryResult(
                    success=False,
                    kind=strategy.kind,
                    message=f"Condition check failed: {e}",
                    timestamp=now,
                    details={"hint": hint},
                )
                self._record(state, result)
                return result

            if not applicable:
                return None

            try:
                result = await strategy.execute()
            except Exception as e:
                logger.error(f"Recovery strategy {strategy.kind.value} raised: {e}")
                result = RecoveryResult(
                    success=False,
                    kind=strategy.kind,
                    message=f"Recovery failed: {e}",
                    timestamp=self._clock(),
                )

            # history pruning and recency stats run on this orchestrator's clock
            result.timestamp = self._clock()
            result.details.setdefault("hint", hint)
            self._record(state, result)
            return result

    def _record(self, state: RecoveryAttemptState, result: RecoveryResult) -> None:
        if result.success:
            state.attempts = 0
        else:
            state.attempts += 1
        state.last_attempt = self._clock()
        self._history.append(result)
        logger.info(
            f"Recovery {result.kind.value}: {'succeeded' if result.success else 'failed'} - {result.message}"
        )

    def get_recovery_history(self, limit: Optional[int] = None) -> List[RecoveryResult]:
        """Recorded results, most recent first."""
        entries = list(reversed(self._history))
        return entries[:limit] if limit is not None else entries

    def get_recovery_stats(self) -> Dict[str, Any]:
        hour_ago = self._clock() - timedelta(hours=1)
        by_kind = {
            kind.value: {"attempts": 0, "successes": 0}
            for kind in self._strategies
        }
        successful = 0
        recent = 0
        for result in self._history:
            entry = by_kind.setdefault(result.kind.value, {"attempts": 0, "successes": 0})
            entry["attempts"] += 1
            if result.success:
                entry["successes"] += 1
                successful += 1
            if result.timestamp >= hour_ago:
                recent += 1
        return {
            "total": len(self._history),
            "successful": successful,
            "failed": len(self._history) - successful,
            "by_kind": by_kind,
            "recent": recent,
        }

    def get_attempt_state(self, kind: RecoveryKind) -> Optional[RecoveryAttemptState]:
        return self._states.get(kind)

    def reset_attempt_counters(self) -> None:
        for kind in self._states:
            self._states[kind] = RecoveryAttemptState()
        logger.info("Recovery attempt counters reset")

    def cleanup_recovery_history(self, max_age: Optional[timedelta] = None) -> int:
        return self._prune(self._clock() - (max_age or self.history_max_age))

    def get_debug_info(self) -> Dict[str, Any]:
        return {
            "strategies": [
                {
                    "kind": strategy.kind.value,
                    "priority": strategy.priority,
                    "max_attempts": strategy.max_attempts,
                    "cooldown_seconds": strategy.cooldown.total_seconds(),
                    "attempts": self._states[strategy.kind].attempts,
                    "last_attempt": (
                        self._states[strategy.kind].last_attempt.isoformat()
                        if self._states[strategy.kind].last_attempt else None
                    ),
                }
                for strategy in self.get_strategies()
            ],
            "terminal_kinds": sorted(kind.value for kind in self.terminal_kinds),
            "history_size": len(self._history),
        }

    def _prune(self, cutoff: datetime) -> int:
        kept = [result for result in self._history if result.timestamp >= cutoff]
        removed = len(self._history) - len(kept)
        if removed:
            self._history.clear()
            self._history.extend(kept)
        return removed
