"""agent-task-manager Store -- 外部存储契约与内存实现"""

from .knowledge_store import InMemoryKnowledgeStore, KnowledgeEntry
from .memory_store import InMemoryTaskStore, IssueRecord
from .protocols import KnowledgeStore, TaskStore

__all__ = [
    "TaskStore",
    "KnowledgeStore",
    "InMemoryTaskStore",
    "IssueRecord",
    "InMemoryKnowledgeStore",
    "KnowledgeEntry",
]
