"""
Compensating-action sequences for multi-step mutations that span services
(storage + database) and cannot share a transaction.

    saga = Saga("avatar_upload")
    path = saga.step("upload", lambda: upload(...), lambda path: remove(path))
    saga.step("update_profile", lambda: update(...))

If a step raises, the compensations of the steps that already completed run
in reverse order and the original exception propagates. A failing
compensation is logged and does not mask the original error.
"""

import logging
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Saga:
    def __init__(self, name: str):
        self.name = name
        self._completed: List[Tuple[str, Optional[Callable[[Any], Any]], Any]] = []

    def step(self, name: str, action: Callable[[], Any],
             compensation: Optional[Callable[[Any], Any]] = None) -> Any:
        """Run `action`; remember `compensation(result)` for rollback."""
        try:
            result = action()
        except Exception as e:
            logger.warning("Saga %s failed at step %s: %s", self.name, name, e)
            self.rollback()
            raise
        self._completed.append((name, compensation, result))
        return result

    def rollback(self) -> List[str]:
        """Compensate completed steps, newest first. Returns the names compensated."""
        compensated = []
        while self._completed:
            name, compensation, result = self._completed.pop()
            if compensation is None:
                continue
            try:
                compensation(result)
                compensated.append(name)
            except Exception as e:
                logger.error("Saga %s: compensation for %s failed: %s", self.name, name, e)
        return compensated
