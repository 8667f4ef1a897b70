"""
Task Graph - Dependency-driven concurrent execution

Runs a fixed set of named nodes on a concurrent.futures executor. A node is
submitted exactly when every node it depends on has produced a value: each
completion callback releases its dependents, there is no polling.

Failure policy: fail fast and cancel. The first failing node completes the
run; nodes that have not started are never started, queued futures are
cancelled and the run's CancellationToken fires so in-flight work can stop.
Values produced afterwards by siblings that were already running are discarded.
"""

import contextvars
import functools
import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from storywriter.core.cancellation import CancellationToken, bind_token
from storywriter.utils.error_handling import CancellationFailure, StoryWriterError
from storywriter.utils.timing import elapsed_ms, now

logger = logging.getLogger(__name__)

NodeFunc = Callable[[Mapping[str, Any]], Any]


class TaskGraphError(StoryWriterError):
    """Raised when a graph definition is invalid."""
    pass


class NodeFailedError(StoryWriterError):
    """Raised by GraphRun.wait() when a node failed or the run was cancelled."""

    def __init__(self, node: Optional[str], cause: BaseException):
        self.node = node
        self.cause = cause
        where = f"node '{node}'" if node else "graph run"
        super().__init__(f"{where} failed: {cause}")


@dataclass(frozen=True)
class TaskNode:
    """
    A unit of work in the graph.

    func receives a mapping {dependency name: dependency value}.
    """
    name: str
    func: NodeFunc
    depends_on: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NodeResult:
    """Value of a node and the span of its own work (dependency wait excluded)."""
    name: str
    value: Any
    started_at: float
    finished_at: float

    @property
    def duration_ms(self) -> int:
        return elapsed_ms(self.started_at, self.finished_at)


class TaskGraph:
    """Immutable, validated set of nodes and their declared edges."""

    def __init__(self, nodes: Iterable[TaskNode]):
        self._nodes: Dict[str, TaskNode] = {}
        for node in nodes:
            if node.name in self._nodes:
                raise TaskGraphError(f"Duplicate node name: {node.name}")
            self._nodes[node.name] = node

        self._dependents: Dict[str, List[str]] = {name: [] for name in self._nodes}
        for node in self._nodes.values():
            for dep in node.depends_on:
                if dep not in self._nodes:
                    raise TaskGraphError(f"Node '{node.name}' depends on unknown node '{dep}'")
                self._dependents[dep].append(node.name)

        self._check_acyclic()

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, name: str) -> bool:
        return name in self._nodes

    def node(self, name: str) -> TaskNode:
        return self._nodes[name]

    @property
    def names(self) -> List[str]:
        return list(self._nodes)

    @property
    def roots(self) -> List[str]:
        return [name for name, node in self._nodes.items() if not node.depends_on]

    def dependents(self, name: str) -> List[str]:
        return list(self._dependents[name])

    def start(self, executor: Executor, token: Optional[CancellationToken] = None) -> "GraphRun":
        """Start executing the graph and return the run handle without blocking."""
        run = GraphRun(self, executor, token or CancellationToken())
        run._start()
        return run

    def _check_acyclic(self) -> None:
        # Kahn's algorithm
        in_degree = {name: len(node.depends_on) for name, node in self._nodes.items()}
        queue = [name for name, degree in in_degree.items() if degree == 0]
        visited = 0
        while queue:
            name = queue.pop()
            visited += 1
            for dependent in self._dependents[name]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)
        if visited != len(self._nodes):
            cyclic = sorted(name for name, degree in in_degree.items() if degree > 0)
            raise TaskGraphError(f"Dependency cycle between nodes: {', '.join(cyclic)}")


class GraphRun:
    """Handle on one execution of a TaskGraph."""

    def __init__(self, graph: TaskGraph, executor: Executor, token: CancellationToken):
        self.graph = graph
        self.token = token
        self._executor = executor
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._pending: Dict[str, Set[str]] = {
            name: set(graph.node(name).depends_on) for name in graph.names
        }
        self._results: Dict[str, NodeResult] = {}
        self._futures: Dict[str, Future] = {}
        self._failure: Optional[NodeFailedError] = None
        # caller's context; dependents are submitted from worker threads
        self._context: contextvars.Context = contextvars.copy_context()
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def failure(self) -> Optional[NodeFailedError]:
        return self._failure

    @property
    def total_ms(self) -> int:
        if self.started_at is None:
            return 0
        return elapsed_ms(self.started_at, self.finished_at)

    @property
    def results(self) -> Dict[str, NodeResult]:
        with self._lock:
            return dict(self._results)

    def wait(self) -> Dict[str, NodeResult]:
        """
        Block until every node completed or the run failed.

        An interrupt while waiting cancels the run.

        Raises:
            NodeFailedError: With the failing node and the original cause.
        """
        try:
            self._done.wait()
        except KeyboardInterrupt:
            self.cancel("interrupted while waiting for pipeline steps")

        if self._failure is not None:
            raise self._failure
        return self.results

    def cancel(self, reason: str = "pipeline cancelled") -> bool:
        """
        Abandon the run.

        Returns:
            False if the run had already completed or failed.
        """
        return self._fail(None, CancellationFailure(reason))

    def _start(self) -> None:
        self.started_at = now()
        if len(self.graph) == 0:
            self.finished_at = self.started_at
            self._done.set()
            return
        for name in self.graph.roots:
            self._submit(name)

    def _submit(self, name: str) -> None:
        with self._lock:
            if self._done.is_set():
                return
            ctx = self._context.copy()
            try:
                future = self._executor.submit(ctx.run, self._execute, name)
            except RuntimeError as e:
                # executor already shut down
                submit_error: Optional[RuntimeError] = e
            else:
                submit_error = None
                self._futures[name] = future

        if submit_error is not None:
            self._fail(name, submit_error)
            return
        future.add_done_callback(functools.partial(self._on_done, name))

    def _execute(self, name: str) -> NodeResult:
        with bind_token(self.token):
            self.token.raise_if_cancelled()
            node = self.graph.node(name)
            with self._lock:
                upstream = {dep: self._results[dep].value for dep in node.depends_on}
            started_at = now()
            value = node.func(upstream)
            finished_at = now()
        return NodeResult(name=name, value=value, started_at=started_at, finished_at=finished_at)

    def _on_done(self, name: str, future: Future) -> None:
        if future.cancelled():
            self._fail(name, CancellationFailure(f"step {name} was cancelled"))
            return
        error = future.exception()
        if error is not None:
            self._fail(name, error)
            return

        ready: List[str] = []
        with self._lock:
            if self._done.is_set():
                logger.debug(f"[TaskGraph] discarding result of '{name}', run already finished")
                return
            self._results[name] = future.result()
            for dependent in self.graph.dependents(name):
                waiting = self._pending[dependent]
                waiting.discard(name)
                if not waiting:
                    ready.append(dependent)
            if len(self._results) == len(self.graph):
                self.finished_at = now()
                self._done.set()

        for dependent in ready:
            self._submit(dependent)

    def _fail(self, node: Optional[str], error: BaseException) -> bool:
        with self._lock:
            if self._done.is_set():
                return False
            self._failure = NodeFailedError(node, error)
            self.finished_at = now()
            self._done.set()
            futures = list(self._futures.values())

        logger.debug(f"[TaskGraph] run failed at {node or '<caller>'}: {error}")
        for future in futures:
            future.cancel()
        self.token.cancel(f"aborted after failure of {node}" if node else str(error))
        return True
