"""Bounded handoff between the chunk producer and the chunk uploader."""

from __future__ import annotations

import threading
from collections import deque
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

POLL_INTERVAL = 0.1


class HandoffCancelled(Exception):
    """Raised by ``get`` when the handoff is cancelled while waiting."""

    pass


class BoundedHandoff(Generic[T]):
    """Blocking handoff with an explicit backpressure bound.
    
    ``capacity`` is the number of handed-off items that may be waiting for
    the consumer, counting the one whose ``put`` is still blocked. With
    capacity 1 every ``put`` blocks until the consumer has taken the item,
    so at most ``capacity + 1`` items are alive across both sides.
    """
    
    def __init__(self, capacity: int = 1):
        """Initialize the handoff.
        
        Args:
            capacity: Maximum items waiting for the consumer (>= 1).
        """
        if capacity < 1:
            raise ValueError(f"Handoff capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._items: deque[T] = deque()
        self._cond = threading.Condition()
        self._cancelled = threading.Event()
    
    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()
    
    def cancel(self) -> None:
        """Wake both sides; pending and future calls give up."""
        self._cancelled.set()
        with self._cond:
            self._cond.notify_all()
    
    def put(self, item: T) -> bool:
        """Hand an item to the consumer.
        
        Blocks until fewer than ``capacity`` items are waiting.
        
        Args:
            item: Item to hand off.
            
        Returns:
            False if the handoff was cancelled before the consumer took it.
        """
        with self._cond:
            if self.cancelled:
                return False
            self._items.append(item)
            self._cond.notify_all()
            while len(self._items) >= self.capacity and self._waiting(item):
                if self.cancelled:
                    return False
                self._cond.wait(POLL_INTERVAL)
            return True
    
    def get(self, timeout: Optional[float] = None) -> T:
        """Take the next item, blocking until one is available.
        
        Args:
            timeout: Seconds to wait; None waits until cancelled.
            
        Returns:
            The oldest waiting item.
            
        Raises:
            HandoffCancelled: If the handoff is cancelled while waiting.
            TimeoutError: If ``timeout`` elapses first.
        """
        with self._cond:
            self._cond.wait_for(
                lambda: bool(self._items) or self.cancelled, timeout
            )
            if self._items:
                item = self._items.popleft()
                self._cond.notify_all()
                return item
            if self.cancelled:
                raise HandoffCancelled("Handoff cancelled")
            raise TimeoutError("No item handed off in time")
    
    def _waiting(self, item: T) -> bool:
        return any(queued is item for queued in self._items)
    
    def __len__(self) -> int:
        with self._cond:
            return len(self._items)
