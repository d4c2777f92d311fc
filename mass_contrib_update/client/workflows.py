"""
Mass Contrib Update
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
Polling wait for asynchronous platform workflows.

Every mutating platform call hands back a Workflow. The next dependent step
may only start once the platform reports it finished, so callers block here.
Poll interval and timeout come from the "workflows" config section.
"""

import time
from typing import Any, Callable, Dict, Optional

from mass_contrib_update.client.models import Workflow, WorkflowOutcome
from mass_contrib_update.exceptions import ApiError
from mass_contrib_update.utils.index import log_message


class WorkflowWaiter:
    """Blocks until a workflow reaches a terminal state."""

    def __init__(self, client, config: Dict[str, Any],
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.client = client
        workflow_config = config.get('config', {}).get('workflows', {})
        self.poll_interval = float(workflow_config.get('poll_interval', 3))
        self.timeout = float(workflow_config.get('timeout', 1800))
        self._sleep = sleep
        self._clock = clock

    def wait(self, workflow: Workflow,
             cancel: Optional[Callable[[], bool]] = None) -> WorkflowOutcome:
        """
        Poll a workflow until it finishes, times out or is cancelled.

        Args:
            workflow: Handle returned by the mutating call
            cancel: Optional predicate checked before every poll; returning
                True stops waiting with CANCELLED

        Returns:
            WorkflowOutcome: terminal outcome of the wait
        """
        deadline = self._clock() + self.timeout
        current = workflow

        while not current.is_finished:
            if cancel is not None and cancel():
                log_message(f"Stopped waiting for workflow {workflow.id} ({workflow.type})", "WARNING")
                return WorkflowOutcome.CANCELLED
            if self._clock() >= deadline:
                log_message(f"Workflow {workflow.id} ({workflow.type}) did not finish "
                            f"within {int(self.timeout)} seconds", "ERROR")
                return WorkflowOutcome.TIMED_OUT

            self._sleep(self.poll_interval)
            try:
                current = self.client.get_workflow(current)
            except ApiError as e:
                log_message(f"Unable to poll workflow {workflow.id}: {e}", "ERROR")
                return WorkflowOutcome.FAILED

        self.log_output(current)
        return WorkflowOutcome.SUCCEEDED if current.is_successful else WorkflowOutcome.FAILED

    @staticmethod
    def log_output(workflow: Workflow) -> None:
        """Log the messages a finished workflow left behind."""
        if workflow.is_successful:
            log_message(f"{workflow.description or workflow.type} finished")
            for message in workflow.messages:
                log_message(message)
        else:
            log_message(f"{workflow.description or workflow.type} failed", "ERROR")
            for message in workflow.messages:
                log_message(message, "ERROR")
