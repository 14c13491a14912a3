"""
Tiered execution of EventBus listeners.

- CRITICAL: sequential, awaited, timeout-protected
- HIGH: sequential, awaited, timeout-protected
- NORMAL: concurrent via asyncio.gather, awaited
- LOW: fire-and-forget background tasks (tracked to avoid early GC)

Every listener runs inside its own error boundary; see
`seda_progression.core.event.errors.handle_listener_error`.
"""

from __future__ import annotations

import asyncio
import inspect
from logging import Logger
from typing import Any, Optional

from seda_progression.core.event.errors import handle_listener_error
from seda_progression.core.event.types import EventListener, EventPayload, ListenerPriority


class EventScheduler:
    """Executes listeners according to their priority tier."""

    def __init__(self) -> None:
        self._background_tasks: set[asyncio.Task[Any]] = set()

    async def execute(
        self,
        *,
        event_name: str,
        payload: EventPayload,
        listeners: list[EventListener],
        logger: Logger,
        critical_timeout: Optional[float],
        high_timeout: Optional[float],
    ) -> list[Any]:
        """
        Run listeners for one published event.

        Returns
        -------
        list[Any]
            Results of CRITICAL, HIGH and NORMAL listeners in execution order.
            LOW listeners are not awaited and contribute nothing.
        """
        by_tier: dict[ListenerPriority, list[EventListener]] = {
            priority: [] for priority in ListenerPriority
        }
        for listener in listeners:
            by_tier[listener.priority].append(listener)

        results: list[Any] = []

        for priority, timeout in (
            (ListenerPriority.CRITICAL, critical_timeout),
            (ListenerPriority.HIGH, high_timeout),
        ):
            for listener in by_tier[priority]:
                results.append(
                    await self._run_with_timeout(
                        listener=listener,
                        event_name=event_name,
                        payload=payload,
                        logger=logger,
                        timeout=timeout,
                    )
                )

        normal = by_tier[ListenerPriority.NORMAL]
        if normal:
            results.extend(
                await asyncio.gather(
                    *[
                        self._run_listener(
                            listener=lst,
                            event_name=event_name,
                            payload=payload,
                            logger=logger,
                        )
                        for lst in normal
                    ]
                )
            )

        low = by_tier[ListenerPriority.LOW]
        if low:
            loop = asyncio.get_running_loop()
            for listener in low:
                task = loop.create_task(
                    self._run_listener(
                        listener=listener,
                        event_name=event_name,
                        payload=payload,
                        logger=logger,
                    ),
                    name=f"eventbus-low-{event_name}-{listener.identifier}",
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def _run_with_timeout(
        self,
        *,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        logger: Logger,
        timeout: Optional[float],
    ) -> Any:
        if timeout is None or timeout <= 0:
            return await self._run_listener(
                listener=listener,
                event_name=event_name,
                payload=payload,
                logger=logger,
            )

        try:
            return await asyncio.wait_for(
                self._run_listener(
                    listener=listener,
                    event_name=event_name,
                    payload=payload,
                    logger=logger,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error(
                "EventBus listener timeout",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "timeout_seconds": timeout,
                },
            )
            handle_listener_error(
                logger=logger,
                event_name=event_name,
                listener=listener,
                exc=exc,
            )
            return None

    async def _run_listener(
        self,
        *,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        logger: Logger,
    ) -> Any:
        """
        Run one listener in isolation.

        Sync callbacks run in the default executor so they cannot block the loop.
        """
        try:
            if inspect.iscoroutinefunction(listener.callback):
                return await listener.callback(payload)

            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, listener.callback, payload)
        except Exception as exc:
            handle_listener_error(
                logger=logger,
                event_name=event_name,
                listener=listener,
                exc=exc,
            )
            return None

    async def drain(self) -> None:
        """Wait for outstanding LOW-tier tasks (used on shutdown and in tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def get_background_task_count(self) -> int:
        return len(self._background_tasks)


__all__ = ["EventScheduler"]
