"""MetadataCodec -- issue 描述中的工作流元数据块编解码

tracker 只有自由文本描述字段，结构化元数据以固定分隔符包围的块
写在描述开头，块后空一行再接原始纯文本：

    ---WORKFLOW-METADATA---
    **Goal:** <goal | Not specified>
    **Effort:** <int>
    **Effort Reason:** <text>          (可选)
    **Complexity Bias:** <low|medium|high>  (可选)

    **Uncertainties:**
    - [x] <title>
      - Description: <text>
      - Resolution: <text>
      - Resolved By: <text>
      - Resolved At: <iso>
    - [ ] <title>

    **Lessons Learned:**
    - [category] <content>
    -  <content>                        (无分类：两个空格)
    ---END-METADATA---

    <plain text>

外部读取原始描述的程序必须按同一语法解析，字段顺序固定。
缺失或无法识别的块不报错，解码为默认元数据（effort = DEFAULT_EFFORT）。
"""

import re

from .models.enums import ComplexityBias, LessonCategory
from .models.task import IssueMetadata, LessonLearned, Uncertainty

METADATA_START = "---WORKFLOW-METADATA---"
METADATA_END = "---END-METADATA---"

# 缺少元数据块时的 effort 默认值
DEFAULT_EFFORT = 5

NOT_SPECIFIED = "Not specified"
UNRESOLVED_PLACEHOLDER = "Resolved (no details provided)"

_BLOCK_RE = re.compile(
    re.escape(METADATA_START) + r"(.*?)" + re.escape(METADATA_END),
    re.DOTALL,
)
_STRIP_RE = re.compile(
    re.escape(METADATA_START) + r".*?" + re.escape(METADATA_END) + r"(?:\n\n)?",
    re.DOTALL,
)

_GOAL_RE = re.compile(r"\*\*Goal:\*\*[ \t]*(.+)")
_EFFORT_RE = re.compile(r"\*\*Effort:\*\*[ \t]*(\d+)")
_EFFORT_REASON_RE = re.compile(r"\*\*Effort Reason:\*\*[ \t]*(.+)")
_COMPLEXITY_BIAS_RE = re.compile(r"\*\*Complexity Bias:\*\*[ \t]*(\w+)")

_UNCERTAINTIES_HEADER = "**Uncertainties:**"
_LESSONS_HEADER = "**Lessons Learned:**"

_CHECKLIST_RE = re.compile(r"^- \[([ x])\]\s*(.+)$")
_DETAIL_RE = re.compile(r"^\s*-\s+(?!\[)(.*)$")
_LESSON_RE = re.compile(r"- \[(\w+)\]\s*(.+)")

# (前缀正则, 字段名) -- 按顺序匹配，未识别的缩进文本视为 description
_DETAIL_KEYS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^Resolution:\s*", re.IGNORECASE), "resolution"),
    (re.compile(r"^Resolved By:\s*", re.IGNORECASE), "resolved_by"),
    (re.compile(r"^Resolved At:\s*", re.IGNORECASE), "resolved_at"),
    (re.compile(r"^Description:\s*", re.IGNORECASE), "description"),
)


def encode(plain_text: str, metadata: IssueMetadata) -> str:
    """将元数据块写在纯文本之前，纯文本原样保留"""
    lines = [
        METADATA_START,
        f"**Goal:** {metadata.goal or NOT_SPECIFIED}",
        f"**Effort:** {metadata.effort}",
    ]

    if metadata.effort_reason:
        lines.append(f"**Effort Reason:** {metadata.effort_reason}")

    if metadata.complexity_bias:
        lines.append(f"**Complexity Bias:** {metadata.complexity_bias.value}")

    lines.append("")
    lines.append(_UNCERTAINTIES_HEADER)

    for uncertainty in metadata.uncertainties:
        mark = "x" if uncertainty.resolution else " "
        lines.append(f"- [{mark}] {uncertainty.title}")
        if uncertainty.description:
            lines.append(f"  - Description: {uncertainty.description}")
        if uncertainty.resolution:
            lines.append(f"  - Resolution: {uncertainty.resolution}")
        if uncertainty.resolved_by:
            lines.append(f"  - Resolved By: {uncertainty.resolved_by}")
        if uncertainty.resolved_at:
            lines.append(f"  - Resolved At: {uncertainty.resolved_at}")

    lines.append("")
    lines.append(_LESSONS_HEADER)

    for lesson in metadata.lessons_learned:
        if lesson.category:
            lines.append(f"- [{lesson.category.value}] {lesson.content}")
        else:
            # 双空格使以 [token] 开头的内容不会被解码为分类
            lines.append(f"-  {lesson.content}")

    lines.append(METADATA_END)

    return "\n".join(lines) + "\n\n" + plain_text


def decode(text: str | None) -> IssueMetadata:
    """解析描述中的元数据块

    找不到块时静默返回默认元数据，不视为错误。
    """
    metadata = IssueMetadata(effort=DEFAULT_EFFORT)
    if not text:
        return metadata

    match = _BLOCK_RE.search(text)
    if not match:
        return metadata

    block = match.group(1)

    goal_match = _GOAL_RE.search(block)
    if goal_match:
        goal = goal_match.group(1).strip()
        if goal and goal != NOT_SPECIFIED:
            metadata.goal = goal

    effort_match = _EFFORT_RE.search(block)
    if effort_match:
        metadata.effort = int(effort_match.group(1))

    reason_match = _EFFORT_REASON_RE.search(block)
    if reason_match:
        reason = reason_match.group(1).strip()
        if reason:
            metadata.effort_reason = reason

    bias_match = _COMPLEXITY_BIAS_RE.search(block)
    if bias_match:
        try:
            metadata.complexity_bias = ComplexityBias(bias_match.group(1).lower())
        except ValueError:
            pass

    block_lines = block.split("\n")
    metadata.uncertainties = _parse_uncertainties(_section(block_lines, _UNCERTAINTIES_HEADER))
    metadata.lessons_learned = _parse_lessons(_section(block_lines, _LESSONS_HEADER))

    return metadata


def strip_metadata(text: str | None) -> str:
    """移除元数据块及其后紧跟的一个空行分隔，返回去除首尾空白的纯文本"""
    if not text:
        return ""
    return _STRIP_RE.sub("", text, count=1).strip()


def rewrite(text: str | None, metadata: IssueMetadata) -> str:
    """用新的元数据替换描述中的旧块，纯文本部分保持不变"""
    return encode(strip_metadata(text), metadata)


def _section(lines: list[str], header: str) -> list[str]:
    """截取 header 之后、下一个粗体标题之前的行"""
    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped.startswith(header):
            continue
        body: list[str] = []
        remainder = stripped[len(header) :].strip()
        if remainder:
            body.append(remainder)
        for following in lines[index + 1 :]:
            if following.strip().startswith("**"):
                break
            body.append(following)
        return body
    return []


def _parse_uncertainties(lines: list[str]) -> list[Uncertainty]:
    uncertainties: list[Uncertainty] = []
    current: dict[str, str] | None = None
    current_resolved = False

    def flush() -> None:
        if current is None:
            return
        if current_resolved and not current.get("resolution"):
            current["resolution"] = UNRESOLVED_PLACEHOLDER
        uncertainties.append(Uncertainty(**current))

    for raw_line in lines:
        trimmed = raw_line.strip()
        if not trimmed:
            continue

        checklist = _CHECKLIST_RE.match(trimmed)
        if checklist:
            flush()
            current = {"title": checklist.group(2).strip()}
            current_resolved = checklist.group(1) == "x"
            continue

        detail_match = _DETAIL_RE.match(raw_line)
        if detail_match is None or current is None:
            continue

        detail = detail_match.group(1).strip()
        if not detail:
            continue

        for pattern, field_name in _DETAIL_KEYS:
            if pattern.match(detail):
                current[field_name] = pattern.sub("", detail, count=1).strip()
                break
        else:
            current["description"] = detail

    flush()
    return uncertainties


def _parse_lessons(lines: list[str]) -> list[LessonLearned]:
    lessons: list[LessonLearned] = []
    for line in lines:
        stripped = line.strip()
        if not stripped.startswith("- "):
            continue

        content = stripped[2:].strip()
        if not content:
            continue

        category_match = _LESSON_RE.match(stripped)
        if category_match:
            try:
                category = LessonCategory(category_match.group(1).strip())
            except ValueError:
                # 未知分类：整行作为无分类经验
                lessons.append(LessonLearned(content=content))
                continue
            lessons.append(
                LessonLearned(content=category_match.group(2).strip(), category=category)
            )
            continue

        lessons.append(LessonLearned(content=content))
    return lessons


class MetadataCodec:
    """元数据编解码适配器

    策略代码只依赖 IssueMetadata；文本格式细节封装在此处，
    存储实现通过注入的 codec 完成读写。
    """

    start_marker = METADATA_START
    end_marker = METADATA_END
    default_effort = DEFAULT_EFFORT

    def encode(self, plain_text: str, metadata: IssueMetadata) -> str:
        return encode(plain_text, metadata)

    def decode(self, text: str | None) -> IssueMetadata:
        return decode(text)

    def strip_metadata(self, text: str | None) -> str:
        return strip_metadata(text)

    def rewrite(self, text: str | None, metadata: IssueMetadata) -> str:
        return rewrite(text, metadata)
