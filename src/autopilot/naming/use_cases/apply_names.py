"""Apply Names use case.

Reconciles a set of desired names against the Autopilot directory and
applies the changes that are allowed:

STEP 1: Fetch the complete directory snapshot
└── A failed or partial fetch aborts the run before anything is classified

STEP 2: Plan
├── Detect duplicate desired names across the whole input
└── Classify every directive (DuplicateName, NoDeviceFound, NoChange, AlreadyNamed)

STEP 3: Apply (SEQUENTIAL, fixed interval between updates)
├── One updateDeviceProperties call per pending directive
└── Continue on failures; each becomes a Failed decision

STEP 4: Report
└── One row per directive, plus counts per status
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from ...api.resilience import SequentialRateLimiter
from ..domain.entities import ApplyOutcome, Decision, RunSummary
from ..domain.ports import IDeviceDirectory, INameUpdater, IReportWriter
from ..domain.reconciliation import (
    DirectiveInput,
    NameReconciler,
    duplicate_name_examples,
    find_duplicate_names,
)

logger = logging.getLogger(__name__)


@dataclass
class ApplyNamesResult:
    """Result of one apply run."""

    decisions: list[Decision] = field(default_factory=list)
    summary: RunSummary = field(default_factory=RunSummary)
    report_path: Optional[Path] = None

    # Timing
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0.0


class ApplyNamesUseCase:
    """Apply desired display names to Autopilot device identities.

    Key constraints:
    - Nothing is classified until the snapshot is complete
    - Duplicate names are known before the first directive is classified
    - Updates are issued one at a time behind the rate limiter
    - A failing device never stops the batch
    """

    def __init__(
        self,
        directory: IDeviceDirectory,
        updater: INameUpdater,
        report_writer: IReportWriter,
        force_update: bool = False,
        rate_limiter: Optional[SequentialRateLimiter] = None,
    ):
        """Initialize the use case.

        Args:
            directory: Source of the device snapshot
            updater: Boundary that applies one name
            report_writer: Sink for the per-directive report
            force_update: Overwrite names that differ from the desired one
            rate_limiter: Spacing between update calls
        """
        self.directory = directory
        self.updater = updater
        self.report_writer = report_writer
        self.force_update = force_update
        self.rate_limiter = rate_limiter or SequentialRateLimiter()

    async def execute(self, directives: DirectiveInput) -> ApplyNamesResult:
        """Run the workflow.

        Args:
            directives: serial -> desired name, or a list of Directive

        Returns:
            ApplyNamesResult with one decision per directive

        Raises:
            FetchError: If the directory snapshot could not be retrieved
            WriteError: If the report could not be written
        """
        started_at = datetime.now()

        devices = await self.directory.fetch_all_devices()
        logger.info(f"Reconciling {len(directives)} directive(s) against {len(devices):,} devices")

        reconciler = NameReconciler(devices, force_update=self.force_update)
        actions = reconciler.plan(directives)
        self._warn_duplicates(actions)

        pending = sum(1 for a in actions if a.needs_update)
        if pending:
            logger.info(
                f"{pending} update(s) to apply, estimated wait "
                f"{self.rate_limiter.estimate_time(pending):.1f}s"
            )

        decisions: list[Decision] = []
        call_index = 0
        for action in actions:
            if not action.needs_update:
                decisions.append(reconciler.resolve(action))
                continue

            await self.rate_limiter.wait_before_call(call_index)
            call_index += 1
            outcome = await self._apply(
                action.device.id,
                action.directive.desired_name,
                action.directive.serial_number,
            )
            decisions.append(reconciler.resolve(action, outcome))

        report_path = self.report_writer.write_report(decisions)
        summary = RunSummary.from_decisions(decisions, report_path=report_path)

        completed_at = datetime.now()
        result = ApplyNamesResult(
            decisions=decisions,
            summary=summary,
            report_path=report_path,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
        )

        logger.info(
            f"Run complete in {result.duration_seconds:.1f}s: "
            f"{summary.total} directive(s), {summary.failed} failed"
        )
        return result

    async def _apply(self, device_id: str, desired_name: str, serial_number: str) -> ApplyOutcome:
        try:
            return await self.updater.apply_name(device_id, desired_name, serial_number)
        except Exception as e:
            logger.error(f"Unexpected error updating {serial_number}: {e}")
            return ApplyOutcome.failed(str(e) or type(e).__name__)

    @staticmethod
    def _warn_duplicates(actions) -> None:
        pairs = [(a.directive.serial_number, a.directive.desired_name) for a in actions]
        duplicates = find_duplicate_names(pairs)
        if not duplicates:
            return

        examples = duplicate_name_examples(pairs, duplicates)
        sample = ", ".join(f"'{name}' (serial {serial})" for name, serial in list(examples.items())[:5])
        logger.warning(
            f"{len(duplicates)} desired name(s) requested by more than one serial "
            f"and will not be applied: {sample}"
        )
