"""Explanation Cache Gate - cache and single-flight in front of the explainer.

Every request for a match explanation goes through the gate:

- cache hit: return the stored text, no explainer call
- miss: exactly one caller per key submits the generation to a bounded
  worker pool; concurrent callers for the same key wait on the same future
- failure, timeout or a rejected quota check: return deterministic fallback
  text built from the score breakdown; nothing is cached

A caller that times out does not cancel the generation. If it later
succeeds, the result is still cached for the next request.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Callable, Optional

from diskcache import Cache
from pydantic import BaseModel

from .config import ExplanationConfig, ScoringWeightsConfig, get_config
from .exceptions import ExplainerError
from .explainer import Explainer, build_explanation_input, fallback_explanation
from .schema import ExplainerResult, ExplanationInput, ExplanationResult, Match


logger = logging.getLogger(__name__)

DEFAULT_DISK_CACHE_DIR = Path.home() / ".cache" / "rnd-matcher" / "explanations"


def explanation_cache_key(match: Match, prompt_version: str) -> str:
    """Cache key for a match explanation under a prompt version."""
    return f"match:explanation:{prompt_version}:{match.organization_id}:{match.program_id}"


# =============================================================================
# Stores
# =============================================================================

class ExplanationStore(ABC):
    """
    Key-value store for generated explanations with per-entry TTL.

    Implementations must be safe to call from multiple threads.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent or expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl: int) -> None:
        """Store a value for ``ttl`` seconds."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if it was present."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""
        pass


class InMemoryExplanationStore(ExplanationStore):
    """
    Process-local store. Expired entries are dropped on read.

    Args:
        clock: Returns the current time in seconds (default: time.monotonic)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[str, float]] = {}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: int) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DiskExplanationStore(ExplanationStore):
    """Persistent store backed by diskcache, shared across processes."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = Path(directory) if directory else DEFAULT_DISK_CACHE_DIR
        self._cache = Cache(str(self.directory))
        logger.info("Explanation disk cache initialized at %s", self.directory)

    def get(self, key: str) -> Optional[str]:
        return self._cache.get(key)

    def set(self, key: str, value: str, ttl: int) -> None:
        self._cache.set(key, value, expire=ttl)

    def delete(self, key: str) -> bool:
        return bool(self._cache.delete(key))

    def clear(self) -> None:
        self._cache.clear()

    def close(self) -> None:
        self._cache.close()


def create_store(config: ExplanationConfig) -> ExplanationStore:
    """Build the store selected by ``explanation.cache_backend``."""
    if config.cache_backend == "disk":
        return DiskExplanationStore(config.cache_directory)
    return InMemoryExplanationStore()


# =============================================================================
# Gate
# =============================================================================

class GateStats(BaseModel):
    """Counters for cache gate activity."""
    hits: int = 0
    misses: int = 0
    generations: int = 0
    failures: int = 0
    fallbacks: int = 0


class ExplanationCacheGate:
    """
    Thread-safe cache gate with per-key single flight.

    State per key moves EMPTY -> GENERATING -> CACHED on success and back to
    EMPTY on failure. The in-flight map holds one Future per GENERATING key.
    The leader's task writes the cache before removing its in-flight marker,
    so a caller never sees neither.
    """

    def __init__(
        self,
        store: Optional[ExplanationStore] = None,
        config: Optional[ExplanationConfig] = None,
        weights: Optional[ScoringWeightsConfig] = None,
    ):
        cfg = get_config()
        self.config = config or cfg.explanation
        self.weights = weights or cfg.scoring_weights
        self.store = store or create_store(self.config)
        self._lock = threading.Lock()
        self._in_flight: dict[str, Future] = {}
        self._stats = GateStats()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_concurrent_generations,
            thread_name_prefix="explainer",
        )

    def cache_key(self, match: Match) -> str:
        return explanation_cache_key(match, self.config.prompt_version)

    @property
    def stats(self) -> GateStats:
        with self._lock:
            return self._stats.model_copy()

    def in_flight(self) -> int:
        """Number of generations currently running."""
        with self._lock:
            return len(self._in_flight)

    def get_or_generate(
        self,
        match: Match,
        explainer: Explainer,
        allowed: bool = True,
        explanation_input: Optional[ExplanationInput] = None,
    ) -> ExplanationResult:
        """Return a cached explanation or generate one at most once per key.

        Args:
            match: Match to explain
            explainer: External generator, called only on a miss
            allowed: Pre-checked quota decision; False skips generation
            explanation_input: Explainer input (default: built from ``match``)

        Returns:
            ExplanationResult; ``cached`` is True only for a cache hit
        """
        key = self.cache_key(match)
        if explanation_input is None:
            explanation_input = build_explanation_input(match)

        cached = self.store.get(key)
        if cached is not None:
            with self._lock:
                self._stats.hits += 1
            return ExplanationResult(explanation=cached, cached=True)

        if not allowed:
            logger.info("Explanation quota rejected for %s", key)
            return self._fallback(match, explanation_input)

        with self._lock:
            # Another caller may have finished between the first lookup and the lock
            cached = self.store.get(key)
            if cached is not None:
                self._stats.hits += 1
                return ExplanationResult(explanation=cached, cached=True)

            future = self._in_flight.get(key)
            if future is None:
                self._stats.misses += 1
                future = self._executor.submit(self._generate, key, explainer, explanation_input)
                self._in_flight[key] = future
                logger.debug("Started explanation generation for %s", key)

        try:
            result = future.result(timeout=self.config.generation_timeout_seconds)
        except ExplainerError as e:
            logger.warning("Explanation generation failed for %s (%s)", key, type(e).__name__)
            return self._fallback(match, explanation_input)
        except FutureTimeoutError:
            logger.warning(
                "Explanation generation for %s exceeded %.1fs; serving fallback",
                key, self.config.generation_timeout_seconds,
            )
            return self._fallback(match, explanation_input)
        except Exception as e:
            # Raw explainer error text never reaches the caller
            logger.warning("Explanation generator raised %s for %s", type(e).__name__, key)
            return self._fallback(match, explanation_input)

        return ExplanationResult(
            explanation=result.text,
            cached=False,
            cost_units=result.cost_units,
            latency_ms=result.latency_ms,
        )

    def invalidate(self, match: Match) -> bool:
        """Drop the cached explanation for a match."""
        return self.store.delete(self.cache_key(match))

    def clear(self) -> None:
        """Drop every cached explanation."""
        self.store.clear()

    def shutdown(self, wait: bool = True) -> None:
        """Stop the generation worker pool."""
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "ExplanationCacheGate":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def _generate(
        self,
        key: str,
        explainer: Explainer,
        explanation_input: ExplanationInput,
    ) -> ExplainerResult:
        """Leader task: call the explainer, cache on success, release the key."""
        try:
            with self._lock:
                self._stats.generations += 1
            result = explainer.generate(explanation_input)
            if not result.text.strip():
                raise ExplainerError("Explainer returned empty text")
            self.store.set(key, result.text, self.config.cache_ttl_seconds)
            return result
        except Exception:
            with self._lock:
                self._stats.failures += 1
            raise
        finally:
            with self._lock:
                self._in_flight.pop(key, None)

    def _fallback(self, match: Match, explanation_input: ExplanationInput) -> ExplanationResult:
        with self._lock:
            self._stats.fallbacks += 1
        return ExplanationResult(
            explanation=fallback_explanation(
                match.score,
                match.breakdown,
                explanation_input.organization_type,
                self.weights,
            ),
            cached=False,
        )


# Process-wide gate used by get_or_generate_explanation
_default_gate: Optional[ExplanationCacheGate] = None
_default_gate_lock = threading.Lock()


def get_default_gate() -> ExplanationCacheGate:
    """Return the shared gate, creating it from the current config on first use."""
    global _default_gate
    with _default_gate_lock:
        if _default_gate is None:
            _default_gate = ExplanationCacheGate()
        return _default_gate


def reset_default_gate() -> None:
    """Shut down and discard the shared gate."""
    global _default_gate
    with _default_gate_lock:
        if _default_gate is not None:
            _default_gate.shutdown(wait=False)
        _default_gate = None


def get_or_generate_explanation(
    match: Match,
    explainer: Explainer,
    allowed: bool = True,
    explanation_input: Optional[ExplanationInput] = None,
) -> ExplanationResult:
    """Explain a match through the shared cache gate."""
    return get_default_gate().get_or_generate(match, explainer, allowed, explanation_input)
