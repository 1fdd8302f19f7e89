"""Runs the enabled strategies over each frame and notifies listeners."""

from __future__ import annotations

import logging
import threading
from typing import Protocol, runtime_checkable

from depthview.frames import FrameData, OutputDataPort
from depthview.strategy import ProcessStrategy

log = logging.getLogger(__name__)


@runtime_checkable
class ProcessEndListener(Protocol):
    """Receives the collected outputs after a frame has been processed."""

    def process(self, output_port: OutputDataPort) -> None:
        """Handle the outputs of one frame."""
        ...


class Processor:
    """Ordered set of strategies and end-of-processing listeners."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._strategies: list[ProcessStrategy] = []
        self._listeners: list[ProcessEndListener] = []

    @property
    def strategies(self) -> tuple[ProcessStrategy, ...]:
        with self._lock:
            return tuple(self._strategies)

    @property
    def listeners(self) -> tuple[ProcessEndListener, ...]:
        with self._lock:
            return tuple(self._listeners)

    def add_strategy(self, strategy: ProcessStrategy) -> None:
        """Append a strategy; adding one twice has no effect."""
        if strategy is None:
            raise ValueError("strategy is None")
        with self._lock:
            if strategy in self._strategies:
                log.warning("Already contained strategy: %r", strategy)
            else:
                self._strategies.append(strategy)

    def remove_strategy(self, strategy: ProcessStrategy) -> None:
        """Remove a strategy if present."""
        if strategy is None:
            raise ValueError("strategy is None")
        with self._lock:
            if strategy in self._strategies:
                self._strategies.remove(strategy)
            else:
                log.warning(
                    "Strategies do not contain strategy type: %s", strategy.strategy_type.name
                )

    def add_end_listener(self, listener: ProcessEndListener) -> None:
        """Append a listener; adding one twice has no effect."""
        if listener is None:
            raise ValueError("listener is None")
        with self._lock:
            if listener in self._listeners:
                log.warning("Already contained listener: %r", listener)
            else:
                self._listeners.append(listener)

    def remove_end_listener(self, listener: ProcessEndListener) -> None:
        """Remove a listener if present."""
        if listener is None:
            raise ValueError("listener is None")
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
            else:
                log.warning("Listeners do not contain listener: %r", listener)

    def process(self, frame_data: FrameData) -> OutputDataPort:
        """Run enabled strategies in order, then hand the outputs to listeners."""
        with self._lock:
            port = OutputDataPort(frame_data)
            for strategy in self._strategies:
                if strategy.enabled:
                    strategy.process(frame_data, port)
            for listener in self._listeners:
                listener.process(port)
            return port