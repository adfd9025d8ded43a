"""Name reconciliation rules.

Pure decision logic: given the directory snapshot and the desired names,
decide for every directive whether a name update is needed and, once the
update boundary has answered, what the final outcome is.

Rules, first match wins:
    1. DuplicateName  - desired name collides (case-insensitive) with another directive
    2. NoDeviceFound  - serial not in the snapshot
    3. AlreadyNamed   - device carries a different non-empty name and force is off
    4. NoChange       - device already carries exactly the desired name
    5. Updated / Simulated / Failed - depends on the update outcome
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence, Union

from .entities import (
    ApplyOutcome,
    ApplyStatus,
    Decision,
    DecisionStatus,
    Directive,
    RemoteDevice,
    normalize_name_key,
    normalize_serial,
)

logger = logging.getLogger(__name__)

REASON_DUPLICATE = "desired name duplicated in input; resolve duplicates and re-run."
REASON_NO_DEVICE = "serial not present in remote directory."
REASON_NO_CHANGE = "current name already matches desired name."
REASON_UPDATED = "display name updated; applied at next enrollment."
REASON_SIMULATED = "simulate-only mode; update not sent."
REASON_FAILED = "name update failed."


def already_named_reason(current_name: str) -> str:
    return (
        f"device already named '{current_name}'; "
        f"re-run with force to overwrite it."
    )


def find_duplicate_names(pairs: Iterable[tuple[str, str]]) -> set[str]:
    """Return the name keys that more than one directive asks for.

    Args:
        pairs: (serial, desired_name) in input order

    Returns:
        Set of normalized (trimmed, case-folded) names seen more than once.
        Blank names never count.
    """
    counts = Counter(
        key for key in (normalize_name_key(name) for _, name in pairs) if key
    )
    return {key for key, count in counts.items() if count > 1}


def duplicate_name_examples(
    pairs: Iterable[tuple[str, str]],
    duplicates: set[str],
) -> dict[str, str]:
    """Map each duplicated name key to the first serial requesting it."""
    examples: dict[str, str] = {}
    for serial, name in pairs:
        key = normalize_name_key(name)
        if key in duplicates and key not in examples:
            examples[key] = serial
    return examples


def build_device_index(devices: Iterable[RemoteDevice]) -> dict[str, RemoteDevice]:
    """Index devices by normalized serial; the first device seen wins."""
    index: dict[str, RemoteDevice] = {}
    for device in devices:
        serial = device.normalized_serial
        if not serial:
            continue
        if serial in index:
            logger.warning(
                f"Serial {serial} appears on more than one device identity; "
                f"using {index[serial].id}, ignoring {device.id}"
            )
            continue
        index[serial] = device
    return index


@dataclass(frozen=True)
class PlannedAction:
    """One directive after rules 1-4.

    Exactly one of decision / device is set: a decision when the
    directive is settled without calling the directory, a device when a
    name update has to be attempted against it.
    """

    directive: Directive
    decision: Optional[Decision] = None
    device: Optional[RemoteDevice] = None

    @property
    def needs_update(self) -> bool:
        return self.decision is None


DirectiveInput = Union[Mapping[str, str], Sequence[Directive]]


class NameReconciler:
    """Classify directives against one directory snapshot.

    The device index and the duplicate set are built once per run; no
    other state is kept, so plan() can be called on any ordering of the
    same directives with identical per-serial results.
    """

    def __init__(self, devices: Iterable[RemoteDevice], force_update: bool = False):
        self.force_update = force_update
        self.devices = build_device_index(devices)

    def plan(self, directives: DirectiveInput) -> list[PlannedAction]:
        """Apply rules 1-4 to every usable directive.

        One PlannedAction per directive, in input order. Directives with a
        blank serial or blank desired name are dropped with a warning and
        get no action, so the result can be shorter than the input.
        """
        items = _as_directives(directives)
        pairs = [(d.serial_number, d.desired_name) for d in items]
        duplicates = find_duplicate_names(pairs)

        return [self._classify(directive, duplicates) for directive in items]

    def _classify(self, directive: Directive, duplicates: set[str]) -> PlannedAction:
        if directive.name_key in duplicates:
            return self._settle(directive, DecisionStatus.DUPLICATE_NAME, REASON_DUPLICATE)

        device = self.devices.get(directive.serial_number)
        if device is None:
            return self._settle(directive, DecisionStatus.NO_DEVICE_FOUND, REASON_NO_DEVICE)

        current = device.trimmed_name
        if current == directive.desired_name:
            return self._settle(directive, DecisionStatus.NO_CHANGE, REASON_NO_CHANGE, device)

        if current and not self.force_update:
            return self._settle(
                directive,
                DecisionStatus.ALREADY_NAMED,
                already_named_reason(current),
                device,
            )

        return PlannedAction(directive=directive, device=device)

    @staticmethod
    def _settle(
        directive: Directive,
        status: DecisionStatus,
        reason: str,
        device: Optional[RemoteDevice] = None,
    ) -> PlannedAction:
        return PlannedAction(
            directive=directive,
            decision=Decision(
                serial_number=directive.serial_number,
                desired_name=directive.desired_name,
                status=status,
                reason=reason,
                device_id=device.id if device else "",
                current_name=device.trimmed_name if device else "",
            ),
        )

    def resolve(self, action: PlannedAction, outcome: Optional[ApplyOutcome] = None) -> Decision:
        """Turn a planned action and its update outcome into the final decision.

        Settled actions return their decision unchanged; outcome is
        ignored for them.
        """
        if action.decision is not None:
            return action.decision

        if outcome is None:
            raise ValueError(
                f"An update outcome is required for serial {action.directive.serial_number}"
            )

        device = action.device
        fields = dict(
            serial_number=action.directive.serial_number,
            desired_name=action.directive.desired_name,
            device_id=device.id,
            current_name=device.trimmed_name,
        )

        if outcome.status == ApplyStatus.APPLIED:
            return Decision(status=DecisionStatus.UPDATED, reason=REASON_UPDATED, **fields)
        if outcome.status == ApplyStatus.NOT_APPLIED:
            return Decision(status=DecisionStatus.SIMULATED, reason=REASON_SIMULATED, **fields)
        return Decision(
            status=DecisionStatus.FAILED,
            reason=REASON_FAILED,
            error=outcome.error or "unknown error",
            **fields,
        )


def _as_directives(directives: DirectiveInput) -> list[Directive]:
    if isinstance(directives, Mapping):
        items = [Directive(serial, name) for serial, name in directives.items()]
    else:
        items = list(directives)
    usable = [d for d in items if d.serial_number and d.desired_name]
    if len(usable) != len(items):
        # The loader drops blank rows; anything slipping through is not compared
        logger.warning(f"Ignoring {len(items) - len(usable)} directive(s) with a blank serial or name")
    return usable
