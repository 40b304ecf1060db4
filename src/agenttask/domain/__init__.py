"""agent-task-manager Domain -- 纯策略组件"""

from .effort import (
    EFFORT_VALUES,
    NEEDS_DECOMPOSITION_LABEL,
    assert_valid_effort,
    effort_labels,
    effort_reason_advisory,
    is_valid_effort,
    needs_decomposition,
)
from .filters import filter_tasks
from .projects import ProjectResolver
from .tree import find_root_task, is_entire_tree_done
from .uncertainty import (
    count_unresolved,
    decomposition_guard,
    is_resolved,
    new_uncertainties,
    normalize_uncertainties,
    validate_for_creation,
)
from .updates import TaskUpdateApplier, plan_set_intents

__all__ = [
    # EffortPolicy
    "EFFORT_VALUES",
    "NEEDS_DECOMPOSITION_LABEL",
    "is_valid_effort",
    "needs_decomposition",
    "assert_valid_effort",
    "effort_reason_advisory",
    "effort_labels",
    # ProjectResolver
    "ProjectResolver",
    # UncertaintyPolicy
    "normalize_uncertainties",
    "is_resolved",
    "count_unresolved",
    "validate_for_creation",
    "decomposition_guard",
    "new_uncertainties",
    # TaskFilter
    "filter_tasks",
    # TaskUpdateApplier
    "TaskUpdateApplier",
    "plan_set_intents",
    # TaskTreeEvaluator
    "is_entire_tree_done",
    "find_root_task",
]
