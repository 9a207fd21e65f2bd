"""Background driver that moves every project towards READY.

A poll thread wakes on a fixed delay, reloads the configuration if it changed
and hands each project to a single worker thread. A project already queued or
running is not queued again.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Dict, List, Optional

from refscope import config
from refscope.build import BuildInvoker
from refscope.model import ProjectDescriptor, ProjectStatus
from refscope.sources import source_for
from refscope.store import ProjectConfigStore

logger = logging.getLogger("refscope.lifecycle")


class LifecycleOrchestrator:
	def __init__(
		self,
		store: ProjectConfigStore,
		builder: Optional[BuildInvoker] = None,
		poll_interval: float = config.POLL_INTERVAL_SECONDS,
		initial_delay: float = config.INITIAL_DELAY_SECONDS,
		source_factory: Callable[[ProjectDescriptor], object] = source_for,
	):
		self.store = store
		self.builder = builder or BuildInvoker()
		self.poll_interval = poll_interval
		self.initial_delay = initial_delay
		self.source_factory = source_factory
		self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="refscope-lifecycle")
		self._in_flight: Dict[str, Future] = {}
		self._in_flight_lock = threading.Lock()
		self._stop_event = threading.Event()
		self._thread: Optional[threading.Thread] = None

	@property
	def running(self) -> bool:
		return self._thread is not None and self._thread.is_alive()

	def start(self) -> None:
		if self.running:
			logger.warning("Lifecycle orchestrator already running")
			return
		self._stop_event.clear()
		self._thread = threading.Thread(target=self._poll_loop, name="refscope-poll", daemon=True)
		self._thread.start()
		logger.info(
			f"Lifecycle orchestrator started (initial delay {self.initial_delay}s, interval {self.poll_interval}s)"
		)

	def stop(self, grace: float = config.SHUTDOWN_GRACE_SECONDS) -> bool:
		"""Stop polling and wait up to ``grace`` seconds for queued work.

		Returns False if work was still pending when the grace period ended.
		A build already running keeps its own timeout.
		"""
		logger.info("Shutting down lifecycle orchestrator...")
		deadline = time.monotonic() + grace
		self._stop_event.set()
		if self._thread is not None:
			self._thread.join(timeout=grace)
			self._thread = None

		with self._in_flight_lock:
			pending = [f for f in self._in_flight.values() if not f.done()]
		_, not_done = wait(pending, timeout=max(0.0, deadline - time.monotonic()))
		if not_done:
			logger.warning(f"{len(not_done)} lifecycle task(s) did not finish within {grace}s, cancelling")
		self._executor.shutdown(wait=False, cancel_futures=True)
		return not not_done

	def wait_stopped(self, timeout: Optional[float] = None) -> bool:
		"""Block until ``stop()`` is called; False if ``timeout`` ran out first."""
		return self._stop_event.wait(timeout)

	def tick(self) -> List[Future]:
		"""One scheduling pass. Returns the futures it queued."""
		self.store.check_and_reload()
		projects = self.store.list()
		if not projects:
			logger.debug("No projects configured")
			return []

		logger.info(f"Checking lifecycle status for {len(projects)} projects...")
		futures = []
		for descriptor in projects:
			future = self._submit(descriptor.name)
			if future is not None:
				futures.append(future)
		return futures

	def run_once(self, timeout: Optional[float] = None) -> List[ProjectDescriptor]:
		"""Run a tick and wait for the work it queued."""
		wait(self.tick(), timeout=timeout)
		return self.store.list()

	def process_project(self, name: str) -> None:
		descriptor = self.store.get(name)
		if descriptor is None:
			logger.debug(f"Project '{name}' was removed before it could be processed")
			return

		logger.debug(f"Processing project '{name}' in status {descriptor.status.value}")
		source = self.source_factory(descriptor)
		if source.needs_sync(descriptor.status):
			if source.in_progress_status is not None:
				self.store.set_status(name, source.in_progress_status)
			outcome = source.sync(descriptor.status)
			self.store.set_status(name, outcome)
			if outcome.is_failure:
				return

		current = self.store.get(name)
		if current is None:
			logger.info(f"Project '{name}' disappeared during processing")
			return
		if current.status == ProjectStatus.COMPILING:
			result = self.builder.build(name, Path(current.cache_path))
			self.store.set_status(name, result.status)

	def _submit(self, name: str) -> Optional[Future]:
		with self._in_flight_lock:
			pending = self._in_flight.get(name)
			if pending is not None and not pending.done():
				logger.debug(f"Project '{name}' is already being processed, skipping")
				return None
			try:
				future = self._executor.submit(self._process_safely, name)
			except RuntimeError:
				logger.warning(f"Lifecycle worker is shut down, not scheduling project '{name}'")
				return None
			self._in_flight[name] = future
			return future

	def _process_safely(self, name: str) -> None:
		try:
			self.process_project(name)
		except Exception as e:
			logger.error(f"Unexpected error processing project '{name}': {e}", exc_info=True)
			self.store.set_status(name, ProjectStatus.FAILED_UNEXPECTED_ERROR)

	def _poll_loop(self) -> None:
		if self._stop_event.wait(self.initial_delay):
			return
		while not self._stop_event.is_set():
			try:
				self.tick()
			except Exception:
				logger.exception("Lifecycle tick failed")
			if self._stop_event.wait(self.poll_interval):
				break
