"""UncertaintyPolicy -- 不确定性完整性检查

按 UncertaintyMode 分派的纯函数：
- off:   拆解前不检查
- warn:  存在未解决项时返回一条提示，允许继续
- block: 存在未解决项时抛出 UnresolvedUncertainties

提示由调用方负责记录与回传，本模块不写日志。
"""

from collections.abc import Iterable

from ..exceptions import MissingUncertainties, UnresolvedUncertainties
from ..models.enums import UncertaintyMode
from ..models.inputs import UncertaintyDraft
from ..models.task import Task, Uncertainty
from .effort import needs_decomposition


def normalize_title(title: str) -> str:
    """去重键：忽略大小写与空白差异"""
    return " ".join(title.split()).lower()


def normalize_uncertainties(
    items: Iterable[Uncertainty | UncertaintyDraft | str] | None,
) -> list[Uncertainty]:
    """把字符串/草稿统一为 Uncertainty，去除首尾空白，丢弃空标题"""
    normalized: list[Uncertainty] = []
    for item in items or ():
        if isinstance(item, str):
            title = item.strip()
            if title:
                normalized.append(Uncertainty(title=title))
            continue

        title = item.title.strip()
        if not title:
            continue
        description = (item.description or "").strip() or None
        if isinstance(item, Uncertainty):
            normalized.append(item.model_copy(update={"title": title, "description": description}))
        else:
            normalized.append(Uncertainty(title=title, description=description))
    return normalized


def is_resolved(uncertainty: Uncertainty) -> bool:
    """resolution 或 resolved_at 任一存在即已解决"""
    return bool(uncertainty.resolution or uncertainty.resolved_at)


def count_unresolved(uncertainties: Iterable[Uncertainty]) -> int:
    return sum(1 for uncertainty in uncertainties if not is_resolved(uncertainty))


def validate_for_creation(title: str, effort: int, uncertainties: list | None) -> None:
    """effort > 3 的任务至少需要一个不确定性

    Raises:
        MissingUncertainties: 需要拆解但不确定性列表为空
    """
    if not needs_decomposition(effort):
        return
    if not uncertainties:
        raise MissingUncertainties(title, effort)


def decomposition_guard(task: Task, mode: UncertaintyMode) -> str | None:
    """拆解前检查未解决的不确定性

    Returns:
        warn 模式下存在未解决项时返回提示文本，其余情况返回 None

    Raises:
        UnresolvedUncertainties: block 模式下存在未解决项
    """
    if mode == UncertaintyMode.OFF:
        return None

    unresolved = count_unresolved(task.uncertainties)
    if unresolved == 0:
        return None

    if mode == UncertaintyMode.BLOCK:
        raise UnresolvedUncertainties(task.display_key, unresolved)

    return (
        f"Task {task.display_key} has {unresolved} unresolved uncertainties. "
        "Proceeding anyway (warn mode)."
    )


def new_uncertainties(
    existing: Iterable[Uncertainty],
    incoming: Iterable[Uncertainty | UncertaintyDraft | str],
) -> list[Uncertainty]:
    """返回 incoming 中标题尚未出现过的不确定性

    与已有项及本批次内先出现的项比较，重复项静默丢弃，先出现者保留。
    """
    seen = {normalize_title(uncertainty.title) for uncertainty in existing}
    accepted: list[Uncertainty] = []
    for uncertainty in normalize_uncertainties(incoming):
        key = normalize_title(uncertainty.title)
        if key in seen:
            continue
        seen.add(key)
        accepted.append(Uncertainty(title=uncertainty.title, description=uncertainty.description))
    return accepted
