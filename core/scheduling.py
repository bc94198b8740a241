"""
core/scheduling.py -- Debounced per-field validation on asyncio.

Each keystroke calls schedule(field, value). Any unfired validation for the
same field is cancelled and a new one is scheduled `delay` seconds out, so
only the last value typed within the delay is validated ("last scheduled
call for a field wins"). Fields are independent: typing in the password box
never cancels a pending email check.

schedule() must be called from inside a running event loop.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Optional

from core.validation import RULE_SETS, Rule, validate_field

logger = logging.getLogger("authgate.scheduling")

ResultCallback = Callable[[str, list[str]], None]


class FieldValidationScheduler:
    def __init__(
        self,
        delay: float,
        on_result: ResultCallback,
        rule_sets: Mapping[str, Sequence[Rule]] = RULE_SETS,
    ) -> None:
        self.delay = delay
        self._on_result = on_result
        self._rule_sets = rule_sets
        self._tasks: dict[str, asyncio.Task] = {}

    def schedule(self, field: str, value: Optional[str]) -> asyncio.Task:
        """Cancel any pending validation for field and schedule a new one."""
        self.cancel(field)
        task = asyncio.get_running_loop().create_task(self._run(field, value))
        self._tasks[field] = task
        return task

    def cancel(self, field: str) -> bool:
        task = self._tasks.pop(field, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for field in list(self._tasks):
            self.cancel(field)

    def pending(self, field: str) -> bool:
        task = self._tasks.get(field)
        return task is not None and not task.done()

    async def drain(self) -> None:
        """Wait until every scheduled validation has fired or been cancelled."""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, field: str, value: Optional[str]) -> None:
        await asyncio.sleep(self.delay)
        messages = validate_field(value, self._rule_sets.get(field, ()))
        if self._tasks.get(field) is asyncio.current_task():
            del self._tasks[field]
        logger.debug("Validated %s: %d message(s)", field, len(messages))
        self._on_result(field, messages)
