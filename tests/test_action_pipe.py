#!filepath: tests/test_action_pipe.py
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from ordinal_sentiment.core.action_pipe import ActionPipe, default_worker_count
from ordinal_sentiment.core.errors import PipelineExecutionError


class Recorder:
    def __init__(self):
        self.events = []
        self.lock = threading.Lock()

    def action(self, name, delay=0.0, fail=False):
        def run():
            if delay:
                time.sleep(delay)
            if fail:
                raise RuntimeError(f"{name} failed")
            with self.lock:
                self.events.append(name)

        return run


@pytest.fixture
def executor():
    with ThreadPoolExecutor(max_workers=4) as ex:
        yield ex


def test_composition_shapes():
    r = Recorder()
    a, b, c, d = (r.action(n) for n in "abcd")
    pipe = ActionPipe().join([a, b]).pipe([c, d])
    assert [len(stage) for stage in pipe] == [2, 1, 1]

    nested = ActionPipe().pipe(a).pipe(b)
    outer = ActionPipe().join([c]).pipe(nested)
    assert len(outer) == 3

    joined = ActionPipe().join().add(a).add(b)
    assert [len(stage) for stage in joined] == [2]


def test_stage_barrier_with_executor(executor):
    r = Recorder()
    pipe = ActionPipe(executor)
    pipe.join([r.action("A", delay=0.05), r.action("B")])
    pipe.join([r.action("C"), r.action("D", delay=0.02)])
    pipe.execute()

    assert sorted(r.events[:2]) == ["A", "B"]
    assert sorted(r.events[2:]) == ["C", "D"]


def test_sequential_run_keeps_order():
    r = Recorder()
    ActionPipe().join([r.action("A"), r.action("B")]).pipe([r.action("C"), r.action("D")]).execute()
    assert r.events == ["A", "B", "C", "D"]


def test_abort_stops_later_stages(executor):
    r = Recorder()
    seen = []

    def on_exception(e):
        seen.append(e)
        return True

    pipe = ActionPipe(executor, on_exception=on_exception)
    pipe.join([r.action("A", fail=True), r.action("B")])
    pipe.join([r.action("C"), r.action("D")])

    with pytest.raises(PipelineExecutionError) as info:
        pipe.execute()

    assert isinstance(info.value.__cause__, RuntimeError)
    assert str(info.value.__cause__) == "A failed"
    assert len(seen) == 1
    assert "C" not in r.events and "D" not in r.events


def test_failure_without_abort_still_finishes_stage(executor):
    r = Recorder()
    pipe = ActionPipe(executor, on_exception=lambda e: False)
    pipe.join([r.action("A", fail=True), r.action("B", delay=0.02)])
    pipe.join([r.action("C")])

    with pytest.raises(PipelineExecutionError):
        pipe.execute()
    assert r.events == ["B"]
    assert isinstance(pipe.execution_exception, RuntimeError)


def test_first_exception_is_kept(executor):
    r = Recorder()
    pipe = ActionPipe(executor)
    pipe.pipe(r.action("first", fail=True))
    pipe.pipe(r.action("second", fail=True))
    with pytest.raises(PipelineExecutionError) as info:
        pipe.execute()
    assert str(info.value.__cause__) == "first failed"


def test_sequential_failure_is_wrapped():
    r = Recorder()
    pipe = ActionPipe(on_exception=lambda e: True)
    pipe.pipe([r.action("A"), r.action("B", fail=True), r.action("C")])
    with pytest.raises(PipelineExecutionError) as info:
        pipe.execute()
    assert str(info.value.__cause__) == "B failed"
    assert r.events == ["A"]


def test_sequential_run_stops_at_first_failure():
    r = Recorder()
    seen = []
    pipe = ActionPipe(on_exception=lambda e: seen.append(e) or False)
    pipe.join([r.action("A", fail=True), r.action("B")])
    pipe.pipe(r.action("C"))
    with pytest.raises(PipelineExecutionError) as info:
        pipe.execute()
    assert str(info.value.__cause__) == "A failed"
    # the handler is still told, but nothing after the failure runs
    assert len(seen) == 1
    assert r.events == []


def test_start_execution_sets_wait_handle(executor):
    r = Recorder()
    done = threading.Event()
    pipe = ActionPipe(executor).join([r.action("A"), r.action("B")]).pipe(r.action("C"))
    pipe.start_execution(done)
    assert done.wait(timeout=5)
    assert r.events[-1] == "C"
    assert pipe.execution_exception is None


def test_empty_pipe_executes(executor):
    ActionPipe(executor).execute()
    ActionPipe().execute()


def test_default_worker_count():
    assert default_worker_count(1) == 1
    assert default_worker_count(10) == 8
    assert default_worker_count(32) == 28
