"""Saga 单元测试"""
import logging
from unittest.mock import Mock

import pytest

from app.services.saga import Saga


class TestSaga:
    """Saga 执行与补偿测试类"""

    def test_all_steps_succeed(self):
        calls = []
        saga = (
            Saga("demo")
            .add_step("a", lambda ctx: calls.append("a"), lambda ctx: calls.append("undo a"))
            .add_step("b", lambda ctx: calls.append("b"))
        )

        ctx = saga.execute({})

        assert calls == ["a", "b"]
        assert ctx == {}

    def test_failure_compensates_in_reverse_order(self):
        """测试失败时已完成步骤按逆序补偿，并抛出原始错误"""
        calls = []

        def fail(ctx):
            raise ValueError("boom")

        saga = (
            Saga("demo")
            .add_step("a", lambda ctx: calls.append("a"), lambda ctx: calls.append("undo a"))
            .add_step("b", lambda ctx: calls.append("b"), lambda ctx: calls.append("undo b"))
            .add_step("c", fail, lambda ctx: calls.append("undo c"))
        )

        with pytest.raises(ValueError, match="boom"):
            saga.execute({})

        assert calls == ["a", "b", "undo b", "undo a"]

    def test_failed_step_compensated_when_flagged(self):
        """测试远程步骤自身失败时也执行它的补偿"""
        undo = Mock()
        saga = Saga("demo").add_step(
            "remote",
            Mock(side_effect=TimeoutError("lost response")),
            undo,
            compensate_on_failure=True,
        )

        with pytest.raises(TimeoutError):
            saga.execute({"order_id": 5})

        undo.assert_called_once_with({"order_id": 5})

    def test_compensation_failure_is_logged_not_raised(self, caplog):
        """测试补偿失败只记日志，其余补偿继续，原始错误照常抛出"""
        first_undo = Mock()
        saga = (
            Saga("demo")
            .add_step("a", Mock(), first_undo)
            .add_step("b", Mock(), Mock(side_effect=RuntimeError("release failed")))
            .add_step("c", Mock(side_effect=KeyError("original")))
        )

        with caplog.at_level(logging.ERROR, logger="app.services.saga"):
            with pytest.raises(KeyError):
                saga.execute({})

        first_undo.assert_called_once()
        assert "release failed" in caplog.text
