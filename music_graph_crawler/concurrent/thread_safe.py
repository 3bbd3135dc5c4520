"""
Thread-safe data structures for the concurrent crawler.
"""

import threading
from collections import deque
from typing import Generic, Hashable, Optional, Set, TypeVar

from music_graph_crawler.utils.errors import ChannelClosedError


T = TypeVar("T")


class ThreadSafeCounter:
    """Thread-safe counter with atomic operations."""
    
    def __init__(self, initial_value: int = 0):
        """
        Initialize counter with initial value.
        
        Args:
            initial_value: Starting value for the counter
        """
        self._value = initial_value
        self._lock = threading.Lock()
    
    def increment(self, amount: int = 1) -> int:
        """
        Atomically increment counter and return new value.
        
        Args:
            amount: Amount to increment by (default: 1)
            
        Returns:
            New counter value after increment
        """
        with self._lock:
            self._value += amount
            return self._value
    
    def decrement(self, amount: int = 1) -> int:
        """
        Atomically decrement counter and return new value.
        
        Args:
            amount: Amount to decrement by (default: 1)
            
        Returns:
            New counter value after decrement
        """
        with self._lock:
            self._value -= amount
            return self._value
    
    def get_value(self) -> int:
        """Get current counter value."""
        with self._lock:
            return self._value
    
    def __repr__(self) -> str:
        return f"ThreadSafeCounter(value={self.get_value()})"


class ThreadSafeSet:
    """Thread-safe set where insertion reports whether the item was new."""
    
    def __init__(self, initial_items: Optional[Set[Hashable]] = None):
        self._items: Set[Hashable] = set(initial_items or ())
        self._lock = threading.Lock()
    
    def add(self, item: Hashable) -> bool:
        """
        Add item to the set.
        
        Args:
            item: Item to add
            
        Returns:
            True if the item was not present before
        """
        with self._lock:
            if item in self._items:
                return False
            self._items.add(item)
            return True
    
    def __contains__(self, item: Hashable) -> bool:
        with self._lock:
            return item in self._items
    
    def size(self) -> int:
        with self._lock:
            return len(self._items)
    
    def __len__(self) -> int:
        return self.size()


class ThreadSafeQueue(Generic[T]):
    """
    FIFO queue that can be closed by its owner.
    
    ``put`` blocks while the queue is full (when bounded) and ``get`` blocks
    while it is empty. Closing wakes every waiter: producers get
    ``ChannelClosedError`` immediately, consumers first drain whatever is
    still buffered and then get ``ChannelClosedError``.
    """
    
    def __init__(self, maxsize: int = 0):
        """
        Initialize queue.
        
        Args:
            maxsize: Maximum queue size (0 for unlimited)
        """
        self.maxsize = maxsize
        self._items: deque = deque()
        self._closed = False
        self._mutex = threading.Lock()
        self._not_empty = threading.Condition(self._mutex)
        self._not_full = threading.Condition(self._mutex)
    
    def put(self, item: T, timeout: Optional[float] = None) -> None:
        """
        Put item into queue, blocking while it is full.
        
        Args:
            item: Item to put in queue
            timeout: Optional timeout in seconds
            
        Raises:
            ChannelClosedError: If the queue is or becomes closed
            TimeoutError: If the queue stays full for the whole timeout
        """
        with self._not_full:
            while not self._closed and self._is_full():
                if not self._not_full.wait(timeout):
                    raise TimeoutError("Timed out waiting for queue space")
            if self._closed:
                raise ChannelClosedError("Queue is closed")
            self._items.append(item)
            self._not_empty.notify()
    
    def get(self, timeout: Optional[float] = None) -> T:
        """
        Get item from queue, blocking while it is empty.
        
        Args:
            timeout: Optional timeout in seconds
            
        Returns:
            Oldest item in the queue
            
        Raises:
            ChannelClosedError: If the queue is closed and fully drained
            TimeoutError: If nothing arrives within the timeout
        """
        with self._not_empty:
            while not self._items:
                if self._closed:
                    raise ChannelClosedError("Queue is closed")
                if not self._not_empty.wait(timeout):
                    raise TimeoutError("Timed out waiting for queue item")
            item = self._items.popleft()
            self._not_full.notify()
            return item
    
    def get_nowait(self) -> Optional[T]:
        """
        Get item from queue without blocking.
        
        Returns:
            Oldest item, or None if the queue is empty
        """
        with self._mutex:
            if not self._items:
                return None
            item = self._items.popleft()
            self._not_full.notify()
            return item
    
    def close(self) -> None:
        """Close the queue and wake all blocked producers and consumers."""
        with self._mutex:
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()
    
    @property
    def closed(self) -> bool:
        with self._mutex:
            return self._closed
    
    def qsize(self) -> int:
        """Number of buffered items."""
        with self._mutex:
            return len(self._items)
    
    def _is_full(self) -> bool:
        return 0 < self.maxsize <= len(self._items)
    
    def __len__(self) -> int:
        return self.qsize()
