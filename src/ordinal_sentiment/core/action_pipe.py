# action_pipe.py
"""
Staged action scheduling.

An ``ActionPipe`` is an ordered list of stages, each stage a list of
independent actions (zero-argument callables):

- ``join``: add actions as siblings of the current stage; they run concurrently.
- ``pipe``: start a new stage; it runs only after every action of the previous
  stage has completed, successfully or not.

With an executor every stage is submitted as a group of futures and the last
future of a stage to finish forwards the next stage into the pool, so no
dispatching thread ever blocks. Without an executor everything runs on the
calling thread, in order, and the first failing action ends the run.

The first failing action is recorded as the pipeline's exception. The
``on_exception`` handler then decides whether to abort: aborting cancels the
stage's not-yet-started actions. Once an exception is recorded no later stage
is started.
"""
from __future__ import annotations

import os
import threading
from concurrent.futures import Executor, Future
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Union

from loguru import logger

from .errors import PipelineExecutionError, check_argument

Action = Callable[[], object]
ExceptionHandler = Callable[[BaseException], bool]


class GroupingKind(Enum):
    PIPE = "pipe"
    JOIN = "join"


def default_worker_count(cpu_count: Optional[int] = None) -> int:
    """Roughly 90% of the cores, minus one for the dispatching thread."""
    cpu = cpu_count or os.cpu_count() or 1
    return max(1, int(round(cpu * 0.9)) - 1)


class _StageRun:
    """Bookkeeping of one stage while its futures are in flight."""

    def __init__(self, index: int, size: int):
        self.index = index
        self.remaining = size
        self.aborted = False
        self.futures: List[Future] = []
        self.lock = threading.Lock()

    def abort(self) -> None:
        with self.lock:
            self.aborted = True
            futures = list(self.futures)
        for future in futures:
            future.cancel()

    def done_one(self) -> bool:
        """Returns True for the call that completes the stage."""
        with self.lock:
            self.remaining -= 1
            return self.remaining == 0


class ActionPipe:
    def __init__(
        self,
        executor: Optional[Executor] = None,
        on_exception: Optional[ExceptionHandler] = None,
    ):
        self.executor = executor
        self.on_exception = on_exception
        self.grouping_kind = GroupingKind.PIPE
        self._stages: List[List[Action]] = []
        self._exception: Optional[BaseException] = None
        self._exception_lock = threading.Lock()

    # ---------------- composition ----------------

    def join(self, actions: Optional[Iterable[Action]] = None) -> "ActionPipe":
        """Switch to join mode; with ``actions``, add them as a new concurrent stage."""
        if actions is not None:
            actions = list(actions)
            check_argument(all(callable(a) for a in actions), "actions must be callables")
            self._stages.append(actions)
        self.grouping_kind = GroupingKind.JOIN
        return self

    def pipe(self, item: Union[None, Action, Iterable[Action], "ActionPipe"] = None) -> "ActionPipe":
        """Switch to pipe mode; ``item`` is appended as one or more sequential stages.

        A single action becomes one stage, an iterable of actions becomes one
        stage per action and another pipe contributes its stages unchanged.
        """
        if isinstance(item, ActionPipe):
            self._stages.extend(list(stage) for stage in item)
        elif callable(item):
            self._stages.append([item])
        elif item is not None:
            actions = list(item)
            check_argument(all(callable(a) for a in actions), "actions must be callables")
            self._stages.extend([a] for a in actions)
        self.grouping_kind = GroupingKind.PIPE
        return self

    def add(self, item: Union[Action, Iterable[Action]]) -> "ActionPipe":
        if self.grouping_kind is GroupingKind.PIPE:
            return self.pipe(item)
        if callable(item):
            if not self._stages:
                self._stages.append([])
            self._stages[-1].append(item)
            return self
        return self.join(item)

    def __iter__(self) -> Iterator[Sequence[Action]]:
        return iter([tuple(stage) for stage in self._stages])

    def __len__(self) -> int:
        return len(self._stages)

    # ---------------- execution ----------------

    @property
    def execution_exception(self) -> Optional[BaseException]:
        return self._exception

    def _record_exception(self, exc: BaseException) -> bool:
        """Stores ``exc`` when the slot is empty and asks the handler whether to abort."""
        with self._exception_lock:
            if self._exception is None:
                self._exception = exc
        abort = False
        if self.on_exception is not None:
            abort = bool(self.on_exception(exc))
        return abort

    def execute(self) -> None:
        """Runs every stage and blocks until done.

        Raises:
            PipelineExecutionError: when any action failed; the first failure is the cause.
        """
        if self.executor is None:
            self.start_execution()
        else:
            finished = threading.Event()
            self.start_execution(finished)
            finished.wait()
        if self._exception is not None:
            raise PipelineExecutionError(
                "An error has occurred during execution. Check the cause for details."
            ) from self._exception

    def start_execution(self, wait_handle: Optional[threading.Event] = None) -> None:
        """Starts the run. With an executor this returns immediately and
        ``wait_handle`` is set once the final stage ran or the chain stopped."""
        self._exception = None
        if self.executor is None:
            self._run_sequential()
            if wait_handle is not None:
                wait_handle.set()
            return

        stages = [list(stage) for stage in self._stages]
        if wait_handle is not None:
            stages.append([wait_handle.set])
        self._start_stage(stages, 0, wait_handle)

    def _run_sequential(self) -> None:
        for stage in self._stages:
            for action in stage:
                try:
                    action()
                except Exception as e:
                    logger.exception("Action failed: {}", e)
                    self._record_exception(e)
                    return

    def _start_stage(self, stages: List[List[Action]], index: int, wait_handle: Optional[threading.Event]) -> None:
        if index >= len(stages):
            return
        if self._exception is not None:
            if wait_handle is not None:
                wait_handle.set()
            return
        actions = stages[index]
        if not actions:
            self._start_stage(stages, index + 1, wait_handle)
            return

        logger.debug("Starting stage {}/{} with {} action(s)", index + 1, len(stages), len(actions))
        run = _StageRun(index, len(actions))

        def on_done(_future: Future) -> None:
            if run.done_one():
                self._start_stage(stages, index + 1, wait_handle)

        futures = [self.executor.submit(self._guarded, run, action) for action in actions]
        with run.lock:
            run.futures.extend(futures)
            aborted = run.aborted
        if aborted:
            run.abort()
        for future in futures:
            future.add_done_callback(on_done)

    def _guarded(self, run: _StageRun, action: Action) -> None:
        if run.aborted:
            return
        try:
            action()
        except Exception as e:
            logger.exception("Action in stage {} failed: {}", run.index + 1, e)
            if self._record_exception(e):
                run.abort()
