"""agent-task-manager -- 任务层级工作流策略引擎

在没有结构化元数据支持的外部 issue tracker 之上，
叠加 effort 分级、强制拆解、不确定性跟踪与经验沉淀等领域策略。
"""

__version__ = "0.1.0"
