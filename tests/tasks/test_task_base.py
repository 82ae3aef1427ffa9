"""Tests for task base classes."""

import threading
import time

import pytest

from bucketmirror.core.errors import ScanCancelled
from bucketmirror.tasks.base import BaseTask, CancellationToken, TaskState


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_check_passes_until_cancelled(self) -> None:
        token = CancellationToken()
        token.check()
        token.cancel()
        assert token.cancelled is True
        with pytest.raises(ScanCancelled):
            token.check()

    def test_sleep_wakes_on_cancel(self) -> None:
        """A sleeping task should stop promptly when cancelled."""
        token = CancellationToken()
        threading.Timer(0.05, token.cancel).start()

        start = time.monotonic()
        with pytest.raises(ScanCancelled):
            token.sleep(30)

        assert time.monotonic() - start < 5

    def test_zero_sleep_returns(self) -> None:
        CancellationToken().sleep(0)


class TestBaseTask:
    """Tests for BaseTask."""

    def test_name_must_match_class(self) -> None:
        with pytest.raises(TypeError, match="must match the class name"):

            class WrongTask(BaseTask):
                NAME = "SomethingElse"

                @property
                def name(self) -> str:
                    return self.NAME

                def _do_run(self) -> None:
                    pass

    def test_missing_name_rejected(self) -> None:
        with pytest.raises(TypeError):

            class UnnamedTask(BaseTask):
                @property
                def name(self) -> str:
                    return "x"

                def _do_run(self) -> None:
                    pass

    def test_run_records_state(self) -> None:
        class FailingTask(BaseTask):
            NAME = "FailingTask"

            @property
            def name(self) -> str:
                return self.NAME

            def _do_run(self) -> None:
                raise RuntimeError("boom")

        task = FailingTask()
        task.run()  # Must not raise

        assert task.state == TaskState.FAILED

    def test_cancelled_state(self) -> None:
        class SleepyTask(BaseTask):
            NAME = "SleepyTask"

            @property
            def name(self) -> str:
                return self.NAME

            def _do_run(self) -> None:
                self.token.sleep(10)

        task = SleepyTask()
        task.cancel()
        task.run()

        assert task.state == TaskState.CANCELLED
