from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .errors import ProvisionError
from .hook import Hook, call_hook
from .step import Step

logger = logging.getLogger(__name__)


class Runner:
    """Sequential runner for a list of steps.

    Config options:
    - fail_fast: bool (default True) – stop on first error
    """

    def __init__(self, steps: List[Step], hook: Optional[Hook] = None, config: Optional[Dict[str, Any]] = None) -> None:
        self.steps = steps
        self.hook = hook
        self.config = config or {"fail_fast": True}

    def execute(self) -> Dict[str, Dict[str, Any]]:
        results: Dict[str, Dict[str, Any]] = {}
        call_hook(self.hook, "on_run_start", self)
        for step in self.steps:
            hook = step.hook or self.hook
            call_hook(hook, "on_step_start", step)
            if not step.validate():
                results[step.id] = {"status": "skipped", "reason": "validate() returned False"}
                call_hook(hook, "on_step_end", step, results[step.id])
                continue
            try:
                res = step.run()
            except ProvisionError as e:
                res = e.to_result()
            except Exception as e:  # noqa: BLE001
                logger.exception("Step %s raised", step.id)
                call_hook(hook, "on_error", step.id, e)
                res = {"status": "error", "error": str(e)}
            results[step.id] = res
            call_hook(hook, "on_step_end", step, res)
            if res.get("status") == "error" and self.config.get("fail_fast", True):
                break
        call_hook(self.hook, "on_run_end", self, results)
        return results
