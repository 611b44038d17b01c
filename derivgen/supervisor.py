"""
WorkerPoolSupervisor - Starts worker processes and replaces any that exit.

Replacement is immediate and unconditional: no backoff, no distinction
between crashes and clean exits, no cap on restarts.
"""

import logging
import multiprocessing
import os
from dataclasses import dataclass
from enum import Enum
from multiprocessing.connection import wait
from typing import Callable, Dict, Optional, Tuple


def worker_count(cpus: Optional[int] = None) -> int:
    """Half the available processing units, at least one."""
    if cpus is None:
        cpus = os.cpu_count() or 1
    return max(1, cpus // 2)


class WorkerState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"


@dataclass
class WorkerHandle:
    """One worker process occupying a pool slot."""
    slot: int
    process: multiprocessing.process.BaseProcess
    state: WorkerState = WorkerState.STARTING

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid

    @property
    def exitcode(self) -> Optional[int]:
        return self.process.exitcode


class WorkerPoolSupervisor:
    """
    Keeps `count` worker processes running for the lifetime of the host.
    """

    def __init__(
        self,
        target: Callable[..., None],
        args: Tuple = (),
        count: Optional[int] = None,
        context=None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize supervisor.

        Args:
            target: Picklable callable run by each worker process
            args: Arguments for `target`
            count: Worker processes to keep alive (default: half the CPUs)
            context: multiprocessing context (default: the platform default)
            logger: Optional logger instance
        """
        self.target = target
        self.args = args
        self.count = count or worker_count()
        self.context = context or multiprocessing.get_context()
        self.logger = logger or logging.getLogger(__name__)
        self.workers: Dict[int, WorkerHandle] = {}
        self.restart_count = 0
        self._shutting_down = False

    @property
    def active_count(self) -> int:
        return sum(1 for w in self.workers.values() if w.process.is_alive())

    def start(self) -> None:
        self.logger.info(f"Master process starting with PID: {os.getpid()}")
        self.logger.info(f"Starting {self.count} workers...")
        for slot in range(self.count):
            self._spawn(slot)

    def _spawn(self, slot: int) -> WorkerHandle:
        process = self.context.Process(
            target=self.target,
            args=self.args,
            name=f"derivgen-worker-{slot}",
        )
        handle = WorkerHandle(slot=slot, process=process)
        self.workers[slot] = handle
        process.start()
        handle.state = WorkerState.RUNNING
        self.logger.info(f"Worker started with PID: {process.pid} (slot {slot})")
        return handle

    def poll(self, timeout: Optional[float] = None) -> int:
        """
        Wait for worker exits and start a replacement for each.

        Args:
            timeout: Seconds to wait, None to wait until a worker exits

        Returns:
            Number of workers replaced
        """
        by_sentinel = {w.process.sentinel: w for w in self.workers.values()}
        ready = wait(list(by_sentinel), timeout)
        replaced = 0
        for sentinel in ready:
            handle = by_sentinel[sentinel]
            handle.process.join()
            handle.state = WorkerState.EXITED
            self.logger.warning(f"Worker {handle.pid} died (exit code {handle.exitcode})")
            if self._shutting_down:
                continue
            self.restart_count += 1
            self._spawn(handle.slot)
            replaced += 1
        return replaced

    def run(self) -> None:
        """Start the pool and supervise it forever."""
        if not self.workers:
            self.start()
        try:
            while True:
                self.poll()
        finally:
            self.shutdown()

    def shutdown(self, timeout: float = 10.0) -> None:
        """Terminate all workers; only used when the host itself stops."""
        self._shutting_down = True
        for handle in self.workers.values():
            if handle.process.is_alive():
                handle.process.terminate()
        for handle in self.workers.values():
            handle.process.join(timeout)
            handle.state = WorkerState.EXITED
