"""
HandlerRegistry - Explicit event handler registration

Bounded Context: Event routing for the dispatcher
Responsibilities:
  - Register one handler per event kind
  - Reject unknown kinds before execution
  - Provide introspection (available_kinds, get_help)

Threading: Thread-safe (uses lock for write operations)
Pattern: Registry with explicit registration
"""

from typing import Any, Callable, Dict, Set
import threading

from doorlock_store.errors import DoorlockError


class HandlerNotRegisteredError(DoorlockError):
    """Raised when dispatching an event kind nobody registered"""
    pass


class HandlerRegistry:
    """
    Registry of event handlers keyed by event kind.

    Key Features:
      - Fail-fast: unknown kinds rejected immediately
      - Introspection: registered kinds can be queried at runtime
      - Self-documenting: each kind has a description

    Example:
        registry = HandlerRegistry()
        registry.register('status_report', reconciler.on_status_report,
                          "Apply a device status report")
        registry.execute('status_report', report)
    """

    def __init__(self):
        self._handlers: Dict[str, Callable[[Any], None]] = {}
        self._descriptions: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, kind: str, handler: Callable[[Any], None], description: str) -> None:
        """
        Register the handler for an event kind.

        Raises:
            ValueError: If kind already registered (double registration)
        """
        with self._lock:
            if kind in self._handlers:
                raise ValueError(f"Handler for '{kind}' already registered")

            self._handlers[kind] = handler
            self._descriptions[kind] = description

    def execute(self, kind: str, payload: Any) -> None:
        """
        Run the handler for an event kind.

        Raises:
            HandlerNotRegisteredError: If kind not registered
        """
        handler = self._handlers.get(kind)
        if handler is None:
            raise HandlerNotRegisteredError(
                f"No handler for '{kind}'. "
                f"Registered: {', '.join(sorted(self.available_kinds))}"
            )
        handler(payload)

    def is_available(self, kind: str) -> bool:
        return kind in self._handlers

    @property
    def available_kinds(self) -> Set[str]:
        """Snapshot of registered kinds."""
        return set(self._handlers.keys())

    def get_help(self) -> Dict[str, str]:
        return dict(self._descriptions)

    def count(self) -> int:
        return len(self._handlers)
