"""Saga：正向步骤 + 对应的补偿步骤

没有分布式事务：某一步失败时，已完成步骤的补偿按逆序执行。
补偿只尝试一次，失败只记日志，不掩盖原始错误；
遗漏的库存预占最终由过期清理兜底回收。
"""

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Step = Callable[[Dict[str, Any]], None]


class SagaStep:
    def __init__(
        self,
        name: str,
        action: Step,
        compensation: Optional[Step] = None,
        compensate_on_failure: bool = False,
    ):
        self.name = name
        self.action = action
        self.compensation = compensation
        # 远程步骤失败时对方可能已经执行成功（例如响应超时），
        # 这种步骤自身失败也要补偿
        self.compensate_on_failure = compensate_on_failure


class Saga:
    def __init__(self, name: str):
        self.name = name
        self.steps: List[SagaStep] = []

    def add_step(
        self,
        name: str,
        action: Step,
        compensation: Optional[Step] = None,
        compensate_on_failure: bool = False,
    ) -> "Saga":
        self.steps.append(SagaStep(name, action, compensation, compensate_on_failure))
        return self

    def execute(self, ctx: Dict[str, Any]) -> Dict[str, Any]:
        """依次执行；任何一步抛错都先补偿，再原样抛出该错误"""
        executed: List[SagaStep] = []
        for step in self.steps:
            try:
                step.action(ctx)
            except Exception as e:
                logger.error(f"Saga {self.name} 在步骤 '{step.name}' 失败: {e}")
                if step.compensate_on_failure:
                    executed.append(step)
                self._compensate(executed, ctx)
                raise
            executed.append(step)
        return ctx

    def _compensate(self, executed: List[SagaStep], ctx: Dict[str, Any]) -> None:
        for step in reversed(executed):
            if step.compensation is None:
                continue
            try:
                step.compensation(ctx)
                logger.info(f"Saga {self.name} 补偿成功: '{step.name}'")
            except Exception as ce:
                # 一个补偿失败不能阻止其它补偿
                logger.error(f"Saga {self.name} 补偿失败: '{step.name}', error={ce}")
