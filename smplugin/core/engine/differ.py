"""
State differ — actions that move the installed state to a desired snapshot.

Used by the ``reconcile`` entry point. ``update-list`` skips it: the
agent already sends the action list it wants.

Order of the produced actions:
    1. target order, with Remove(old version) before Install(new) per name
    2. removals of installed modules absent from the target, in backend order

Names are compared through the backend's canonical key, so ``PyYAML``
installed and ``pyyaml`` desired are the same pip module.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from smplugin.core.errors import MalformedInput
from smplugin.core.models.action import ActionKind, ModuleAction
from smplugin.core.models.module import SoftwareModule
from smplugin.core.models.state import CurrentState

logger = logging.getLogger(__name__)


def is_satisfied(module: SoftwareModule, installed: list[str]) -> bool:
    """Whether ``module`` is already present among ``installed`` versions.

    A module with a source file but no version cannot be compared to
    what is installed, so it is never considered satisfied.
    """
    if not installed:
        return False
    if module.version is not None:
        return module.version in installed
    return module.file is None


def compute_actions(
    current: CurrentState,
    target: list[SoftwareModule],
    canonical: Callable[[str], str] | None = None,
) -> list[ModuleAction]:
    """Compute the minimal action list reaching ``target`` from ``current``.

    Args:
        current: Freshly queried installed state.
        target: Desired modules; every other installed module is removed.
        canonical: The backend's name key (``Backend.canonical_name``);
            names are compared exactly when omitted.

    Returns:
        Ordered actions (possibly empty).

    Raises:
        MalformedInput: If the target names a module twice.
    """
    key = canonical or str

    installed_by_key: dict[str, list[tuple[str, str]]] = {}
    for name, version in current.entries():
        installed_by_key.setdefault(key(name), []).append((name, version))

    actions: list[ModuleAction] = []
    wanted: set[str] = set()

    for module in target:
        module_key = key(module.name)
        if module_key in wanted:
            raise MalformedInput(f"module {module.name!r} listed twice in desired state")
        wanted.add(module_key)

        entries = installed_by_key.get(module_key, [])
        if is_satisfied(module, [version for _, version in entries]):
            continue

        # superseded versions go first so they never race the install
        if module.version is not None:
            for name, version in entries:
                actions.append(ModuleAction.remove(name, version))
        actions.append(ModuleAction(kind=ActionKind.INSTALL, module=module))

    for name, version in current.entries():
        if key(name) not in wanted:
            actions.append(ModuleAction.remove(name, version))

    logger.info(
        "Diff: %d target modules, %d installed → %d actions",
        len(target),
        current.total,
        len(actions),
    )
    return actions
