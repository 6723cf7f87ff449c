"""
Per-source circuit breaker.

CLOSED: searches run normally. After `failure_threshold` consecutive failed
searches the circuit OPENs and searches fail fast without touching the
registry. Once `reset_timeout` has passed the circuit goes HALF_OPEN and
the next search is let through as a trial: success closes the circuit,
failure opens it again for another full window.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 3
DEFAULT_RESET_TIMEOUT_SECONDS = 300.0


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class _Circuit:
    state: CircuitState = CircuitState.CLOSED
    failures: int = 0
    opened_at: float = 0.0
    last_error: Optional[str] = None


class CircuitBreaker:
    def __init__(
        self,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        reset_timeout: float = DEFAULT_RESET_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._circuits: Dict[str, _Circuit] = {}

    def state(self, source: str) -> CircuitState:
        circuit = self._circuit(source)
        if circuit.state == CircuitState.OPEN and self._cooled_down(circuit):
            circuit.state = CircuitState.HALF_OPEN
            logger.info(f"[CircuitBreaker:{source}] Cooldown over, letting one search through")
        return circuit.state

    def allow(self, source: str) -> bool:
        return self.state(source) != CircuitState.OPEN

    def record_success(self, source: str) -> None:
        circuit = self._circuit(source)
        if circuit.state != CircuitState.CLOSED:
            logger.info(f"[CircuitBreaker:{source}] Recovered, circuit closed")
        circuit.state = CircuitState.CLOSED
        circuit.failures = 0
        circuit.last_error = None

    def record_failure(self, source: str, error: str) -> None:
        circuit = self._circuit(source)
        circuit.failures += 1
        circuit.last_error = error
        if circuit.state == CircuitState.HALF_OPEN or circuit.failures >= self.failure_threshold:
            if circuit.state != CircuitState.OPEN:
                logger.warning(
                    f"[CircuitBreaker:{source}] Circuit opened after {circuit.failures} "
                    f"consecutive failure(s) (last: {error})"
                )
            circuit.state = CircuitState.OPEN
            circuit.opened_at = self._clock()

    def retry_after(self, source: str) -> float:
        """Seconds until an open circuit lets a search through; 0 when not open."""
        circuit = self._circuit(source)
        if self.state(source) != CircuitState.OPEN:
            return 0.0
        return max(0.0, self.reset_timeout - (self._clock() - circuit.opened_at))

    def info(self, source: str) -> dict:
        circuit = self._circuit(source)
        return {
            "state": self.state(source).value,
            "consecutive_failures": circuit.failures,
            "last_error": circuit.last_error,
            "retry_after_seconds": round(self.retry_after(source), 1),
        }

    def _circuit(self, source: str) -> _Circuit:
        return self._circuits.setdefault(source, _Circuit())

    def _cooled_down(self, circuit: _Circuit) -> bool:
        return self._clock() - circuit.opened_at >= self.reset_timeout
