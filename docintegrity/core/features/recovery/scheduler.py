# (c) Copyright Datacraft, 2026
"""Recurring retry-queue sweep."""
import asyncio
import logging

from .service import RecoveryOrchestrator

logger = logging.getLogger(__name__)


class RetrySweepScheduler:
	"""
	Runs ``process_retry_queue`` every ``interval`` seconds.

	Sleeps between sweeps instead of spinning; ``stop`` wakes it up early.
	"""

	def __init__(self, orchestrator: RecoveryOrchestrator, interval: float = 60.0):
		self.orchestrator = orchestrator
		self.interval = interval
		self._stop = asyncio.Event()
		self._task: asyncio.Task | None = None

	@property
	def running(self) -> bool:
		return self._task is not None and not self._task.done()

	def start(self) -> asyncio.Task:
		if self.running:
			return self._task
		self._stop.clear()
		self._task = asyncio.create_task(self._run())
		logger.info(f"Starting retry sweep scheduler (interval={self.interval}s)")
		return self._task

	async def _run(self):
		while not self._stop.is_set():
			try:
				await self.orchestrator.process_retry_queue()
			except Exception as e:
				logger.exception(f"Error in retry sweep: {e}")

			try:
				await asyncio.wait_for(self._stop.wait(), self.interval)
			except asyncio.TimeoutError:
				pass

	async def stop(self):
		"""Signal the loop and wait for the current sweep to finish."""
		self._stop.set()
		if self._task is not None:
			await self._task
			self._task = None
		logger.info("Retry sweep scheduler stopped")
