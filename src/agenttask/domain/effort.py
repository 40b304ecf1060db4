"""EffortPolicy -- 固定序数 effort 集合的校验与解释

effort 只能取 EFFORT_VALUES 中的值，不做插值；
effort > 3 的任务必须先拆解再开始工作。
"""

from ..exceptions import InvalidEffort

EFFORT_VALUES: tuple[int, ...] = (1, 2, 3, 5, 8, 13, 21)

# 超过此值需要拆解
DECOMPOSITION_THRESHOLD = 3

NEEDS_DECOMPOSITION_LABEL = "needs-decomposition"
EFFORT_LABEL_PREFIX = "effort:"


def is_valid_effort(effort: object) -> bool:
    """精确集合成员判断（bool 不视为整数）"""
    return isinstance(effort, int) and not isinstance(effort, bool) and effort in EFFORT_VALUES


def needs_decomposition(effort: int) -> bool:
    return effort > DECOMPOSITION_THRESHOLD


def assert_valid_effort(effort: object, context: str = "") -> int:
    """校验 effort，合法时原样返回

    Raises:
        InvalidEffort: effort 不在 EFFORT_VALUES 中，消息列出合法取值
    """
    if not is_valid_effort(effort):
        raise InvalidEffort(effort, EFFORT_VALUES, context=context)
    return effort  # type: ignore[return-value]


def effort_reason_advisory(effort: int, reason: str | None) -> str | None:
    """effort > 3 却没有给出理由时返回提示文本，否则 None（纯函数，不记录日志）"""
    if needs_decomposition(effort) and not (reason and reason.strip()):
        return f"Effort {effort} task should include effort_reason to document complexity"
    return None


def low_effort_advisory(effort: int) -> str | None:
    """effort < 3 的任务提示改用会话内跟踪"""
    if effort < DECOMPOSITION_THRESHOLD:
        return f"Effort {effort} task created. Consider session-local tracking for work this small."
    return None


def is_synthetic_label(label: str) -> bool:
    """effort:N 与 needs-decomposition 由策略维护"""
    return label.startswith(EFFORT_LABEL_PREFIX) or label == NEEDS_DECOMPOSITION_LABEL


def effort_labels(effort: int) -> list[str]:
    """某个 effort 对应的合成标签"""
    labels = [f"{EFFORT_LABEL_PREFIX}{effort}"]
    if needs_decomposition(effort):
        labels.append(NEEDS_DECOMPOSITION_LABEL)
    return labels


def with_effort_labels(labels: list[str], effort: int) -> list[str]:
    """替换合成标签，保留用户标签及其顺序"""
    retained = [label for label in labels if not is_synthetic_label(label)]
    return retained + [label for label in effort_labels(effort) if label not in retained]
