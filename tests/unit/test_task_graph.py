import contextvars
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from storywriter.core.cancellation import CancellationToken, current_token
from storywriter.core.task_graph import NodeFailedError, TaskGraph, TaskGraphError, TaskNode
from storywriter.utils.error_handling import CancellationFailure

marker = contextvars.ContextVar("marker", default="unset")


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=4)
    yield pool
    pool.shutdown(wait=True, cancel_futures=True)


def test_duplicate_names_rejected():
    with pytest.raises(TaskGraphError, match="Duplicate"):
        TaskGraph([TaskNode("a", lambda up: 1), TaskNode("a", lambda up: 2)])


def test_unknown_dependency_rejected():
    with pytest.raises(TaskGraphError, match="unknown node"):
        TaskGraph([TaskNode("a", lambda up: 1, depends_on=("missing",))])


def test_cycle_rejected():
    with pytest.raises(TaskGraphError, match="cycle"):
        TaskGraph([
            TaskNode("a", lambda up: 1, depends_on=("b",)),
            TaskNode("b", lambda up: 2, depends_on=("a",)),
        ])


def test_graph_shape():
    graph = TaskGraph([
        TaskNode("a", lambda up: 1),
        TaskNode("b", lambda up: 2, depends_on=("a",)),
        TaskNode("c", lambda up: 3, depends_on=("a", "b")),
    ])

    assert len(graph) == 3
    assert "b" in graph
    assert graph.roots == ["a"]
    assert sorted(graph.dependents("a")) == ["b", "c"]


def test_values_flow_to_dependents(executor):
    graph = TaskGraph([
        TaskNode("a", lambda up: 2),
        TaskNode("b", lambda up: up["a"] * 10, depends_on=("a",)),
        TaskNode("c", lambda up: up["a"] + up["b"], depends_on=("a", "b")),
    ])

    results = graph.start(executor).wait()

    assert results["a"].value == 2
    assert results["b"].value == 20
    assert results["c"].value == 22


def test_dependent_starts_after_dependency_finished(executor):
    graph = TaskGraph([
        TaskNode("slow", lambda up: time.sleep(0.05) or "done"),
        TaskNode("next", lambda up: up["slow"], depends_on=("slow",)),
    ])

    results = graph.start(executor).wait()

    assert results["next"].started_at >= results["slow"].finished_at


def test_independent_nodes_overlap(executor):
    barrier = threading.Barrier(2, timeout=2)

    def meet(up):
        # both leaves must be running at the same time to pass the barrier
        barrier.wait()
        return True

    graph = TaskGraph([
        TaskNode("root", lambda up: None),
        TaskNode("left", meet, depends_on=("root",)),
        TaskNode("right", meet, depends_on=("root",)),
    ])

    results = graph.start(executor).wait()

    assert results["left"].value and results["right"].value


def test_total_covers_every_node(executor):
    graph = TaskGraph([
        TaskNode("a", lambda up: time.sleep(0.02)),
        TaskNode("b", lambda up: time.sleep(0.03), depends_on=("a",)),
    ])

    run = graph.start(executor)
    results = run.wait()

    assert run.total_ms >= max(r.duration_ms for r in results.values())
    assert run.total_ms >= results["a"].duration_ms + results["b"].duration_ms


def test_failure_skips_dependents(executor):
    calls = []

    def boom(up):
        raise ValueError("boom")

    graph = TaskGraph([
        TaskNode("a", boom),
        TaskNode("b", lambda up: calls.append("b"), depends_on=("a",)),
    ])

    run = graph.start(executor)
    with pytest.raises(NodeFailedError) as exc_info:
        run.wait()

    assert exc_info.value.node == "a"
    assert isinstance(exc_info.value.cause, ValueError)
    assert calls == []
    assert run.token.cancelled


def test_failure_cancels_running_sibling(executor):
    sibling_saw_cancel = threading.Event()

    def fail(up):
        raise RuntimeError("leaf failed")

    def patient(up):
        token = current_token()
        stopped = threading.Event()
        token.register(stopped.set)
        if stopped.wait(2):
            sibling_saw_cancel.set()
        return "finished"

    graph = TaskGraph([
        TaskNode("root", lambda up: None),
        TaskNode("patient", patient, depends_on=("root",)),
        TaskNode("fail", lambda up: time.sleep(0.1) or fail(up), depends_on=("root",)),
    ])

    run = graph.start(executor)
    with pytest.raises(NodeFailedError) as exc_info:
        run.wait()

    assert exc_info.value.node == "fail"
    assert sibling_saw_cancel.wait(2)
    assert "patient" not in run.results


def test_cancel_fails_run_with_cancellation(executor):
    release = threading.Event()
    graph = TaskGraph([
        TaskNode("a", lambda up: release.wait(2)),
        TaskNode("b", lambda up: "never", depends_on=("a",)),
    ])

    run = graph.start(executor)
    assert run.cancel("user abort") is True
    release.set()

    with pytest.raises(NodeFailedError) as exc_info:
        run.wait()

    assert exc_info.value.node is None
    assert isinstance(exc_info.value.cause, CancellationFailure)
    assert run.token.reason == "user abort"
    assert run.cancel() is False


def test_context_reaches_worker_threads(executor):
    marker.set("from-caller")
    graph = TaskGraph([TaskNode("a", lambda up: marker.get())])

    results = graph.start(executor).wait()

    assert results["a"].value == "from-caller"


def test_context_reaches_dependents(executor):
    marker.set("from-caller")
    graph = TaskGraph([
        TaskNode("a", lambda up: marker.get()),
        TaskNode("b", lambda up: marker.get(), depends_on=("a",)),
        TaskNode("c", lambda up: marker.get(), depends_on=("b",)),
    ])

    results = graph.start(executor).wait()

    assert [results[name].value for name in ("a", "b", "c")] == ["from-caller"] * 3


def test_token_is_bound_inside_nodes(executor):
    token = CancellationToken()
    graph = TaskGraph([TaskNode("a", lambda up: current_token())])

    results = graph.start(executor, token=token).wait()

    assert results["a"].value is token
    assert current_token() is None


def test_shutdown_executor_fails_run():
    pool = ThreadPoolExecutor(max_workers=1)
    pool.shutdown()
    graph = TaskGraph([TaskNode("a", lambda up: 1)])

    run = graph.start(pool)

    with pytest.raises(NodeFailedError) as exc_info:
        run.wait()
    assert isinstance(exc_info.value.cause, RuntimeError)


def test_empty_graph_completes_immediately(executor):
    run = TaskGraph([]).start(executor)

    assert run.wait() == {}
    assert run.total_ms == 0
