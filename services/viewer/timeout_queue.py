"""Cancellable deadline timers for the document viewer."""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional, Protocol


class TimerHandle(Protocol):
	def cancel(self) -> None: ...


class TimeoutQueue(Protocol):
	"""Schedule, cancel and reschedule callbacks independently of any UI surface."""

	def now(self) -> float: ...

	def schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

	def cancel(self, handle: Optional[TimerHandle]) -> None: ...


class AsyncioTimeoutQueue:
	"""TimeoutQueue backed by the running event loop's `call_later`."""

	def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
		self._loop = loop

	def now(self) -> float:
		return time.time()

	def schedule(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
		loop = self._loop or asyncio.get_running_loop()
		return loop.call_later(max(delay, 0.0), callback)

	def cancel(self, handle: Optional[TimerHandle]) -> None:
		if handle is not None:
			handle.cancel()
