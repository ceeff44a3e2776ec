"""Tests for the explanation cache gate."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from rnd_matcher.cache_gate import (
    DiskExplanationStore,
    ExplanationCacheGate,
    InMemoryExplanationStore,
    create_store,
    explanation_cache_key,
    get_default_gate,
    get_or_generate_explanation,
)
from rnd_matcher.config import ExplanationConfig
from rnd_matcher.exceptions import RateLimitedError
from rnd_matcher.explainer import Explainer, RuleBasedExplainer, fallback_explanation
from rnd_matcher.schema import ExplainerResult, Match, ScoreBreakdown


def _make_match(org_id: str = "org-1", program_id: str = "prog-1") -> Match:
    breakdown = ScoreBreakdown(
        keyword=12, industry=20, trl=15, organization_type=15, rd_experience=0, deadline=12,
    )
    return Match(
        organization_id=org_id,
        program_id=program_id,
        score=breakdown.total,
        breakdown=breakdown,
        reasons=["KEYWORD_MATCH", "TRL_COMPATIBLE"],
    )


class CountingExplainer(Explainer):
    """Returns fixed text after an optional delay and counts calls."""

    def __init__(self, text: str = "생성된 설명", delay: float = 0.0):
        self.text = text
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def generate(self, explanation_input):
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        return ExplainerResult(text=self.text, cost_units=1.5, latency_ms=self.delay * 1000)


class FailingExplainer(CountingExplainer):
    """Always rate limited."""

    def generate(self, explanation_input):
        super().generate(explanation_input)
        raise RateLimitedError(retry_after=30)


class UnreachableExplainer(CountingExplainer):
    """Fails with a transport error instead of an ExplainerError."""

    def generate(self, explanation_input):
        super().generate(explanation_input)
        raise ConnectionError("upstream 10.0.0.5:443 refused: secret-token=abc")


class BlockingExplainer(CountingExplainer):
    """Blocks until released."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def generate(self, explanation_input):
        self.release.wait(timeout=5)
        return super().generate(explanation_input)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def store() -> InMemoryExplanationStore:
    return InMemoryExplanationStore()


@pytest.fixture
def gate(store):
    gate = ExplanationCacheGate(store=store, config=ExplanationConfig())
    yield gate
    gate.shutdown()


def _wait_until_idle(gate: ExplanationCacheGate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while gate.in_flight() and time.monotonic() < deadline:
        time.sleep(0.01)
    assert gate.in_flight() == 0


class TestSingleFlight:
    """Concurrent misses for one key trigger a single generation."""

    def test_concurrent_callers_share_one_generation(self, gate):
        explainer = CountingExplainer(delay=0.2)
        match = _make_match()
        barrier = threading.Barrier(50)

        def call():
            barrier.wait()
            return gate.get_or_generate(match, explainer)

        with ThreadPoolExecutor(max_workers=50) as pool:
            results = list(pool.map(lambda _: call(), range(50)))

        assert explainer.calls == 1
        assert {r.explanation for r in results} == {"생성된 설명"}
        assert gate.stats.generations == 1

    def test_different_keys_generate_independently(self, gate):
        explainer = CountingExplainer()
        gate.get_or_generate(_make_match(program_id="a"), explainer)
        gate.get_or_generate(_make_match(program_id="b"), explainer)
        assert explainer.calls == 2

    def test_second_call_is_cache_hit(self, gate):
        explainer = CountingExplainer()
        first = gate.get_or_generate(_make_match(), explainer)
        second = gate.get_or_generate(_make_match(), explainer)

        assert first.cached is False
        assert first.cost_units == 1.5
        assert second.cached is True
        assert second.explanation == first.explanation
        assert explainer.calls == 1
        stats = gate.stats
        assert (stats.hits, stats.misses, stats.generations) == (1, 1, 1)


class TestFallback:
    """Failures degrade to deterministic text and are never cached."""

    def test_failure_returns_breakdown_fallback(self, gate, store):
        match = _make_match()
        explainer = FailingExplainer()

        result = gate.get_or_generate(match, explainer)

        assert result.cached is False
        assert result.explanation == fallback_explanation(match.score, match.breakdown)
        assert len(store) == 0

    def test_failures_are_retried_on_next_request(self, gate):
        explainer = FailingExplainer()
        for _ in range(3):
            gate.get_or_generate(_make_match(), explainer)
        assert explainer.calls == 3
        assert gate.stats.failures == 3
        assert gate.stats.fallbacks == 3

    def test_unexpected_error_returns_fallback(self, gate, store):
        match = _make_match()

        result = gate.get_or_generate(match, UnreachableExplainer())

        assert result.cached is False
        assert result.explanation == fallback_explanation(match.score, match.breakdown)
        assert "secret-token" not in result.explanation
        assert len(store) == 0
        assert gate.stats.failures == 1
        assert gate.stats.fallbacks == 1

    def test_empty_text_counts_as_failure(self, gate, store):
        result = gate.get_or_generate(_make_match(), CountingExplainer(text="   "))
        assert result.explanation.startswith("귀 조직은")
        assert len(store) == 0

    def test_fallback_is_deterministic(self, gate):
        explainer = FailingExplainer()
        first = gate.get_or_generate(_make_match(), explainer)
        second = gate.get_or_generate(_make_match(), explainer)
        assert first.explanation == second.explanation
        assert "(총 74점)" in first.explanation


class TestQuotaGate:
    """The pre-checked quota decision only applies to misses."""

    def test_rejected_miss_skips_explainer(self, gate, store):
        explainer = CountingExplainer()
        result = gate.get_or_generate(_make_match(), explainer, allowed=False)
        assert explainer.calls == 0
        assert result.cached is False
        assert "세부 점수" in result.explanation
        assert len(store) == 0

    def test_cached_entry_served_even_when_rejected(self, gate):
        explainer = CountingExplainer()
        gate.get_or_generate(_make_match(), explainer)
        result = gate.get_or_generate(_make_match(), explainer, allowed=False)
        assert result.cached is True
        assert result.explanation == "생성된 설명"


class TestTimeout:
    """A slow explainer does not block callers past the configured timeout."""

    def test_timeout_serves_fallback_and_caches_late_success(self, store):
        gate = ExplanationCacheGate(store=store, config=ExplanationConfig(generation_timeout_seconds=0.05))
        explainer = BlockingExplainer()
        match = _make_match()
        try:
            result = gate.get_or_generate(match, explainer)
            assert result.cached is False
            assert result.explanation == fallback_explanation(match.score, match.breakdown)

            explainer.release.set()
            _wait_until_idle(gate)

            late = gate.get_or_generate(match, explainer)
            assert late.cached is True
            assert late.explanation == "생성된 설명"
            assert explainer.calls == 1
        finally:
            explainer.release.set()
            gate.shutdown()


class TestKeysAndExpiry:
    """Key format, prompt versions and TTL."""

    def test_key_format(self):
        assert explanation_cache_key(_make_match(), "v2") == "match:explanation:v2:org-1:prog-1"

    def test_prompt_version_bump_regenerates(self, store):
        explainer = CountingExplainer()
        with ExplanationCacheGate(store=store, config=ExplanationConfig(prompt_version="v1")) as old:
            old.get_or_generate(_make_match(), explainer)
        with ExplanationCacheGate(store=store, config=ExplanationConfig(prompt_version="v2")) as new:
            result = new.get_or_generate(_make_match(), explainer)
        assert result.cached is False
        assert explainer.calls == 2

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        store = InMemoryExplanationStore(clock=clock)
        explainer = CountingExplainer()
        with ExplanationCacheGate(store=store, config=ExplanationConfig(cache_ttl_seconds=60)) as gate:
            gate.get_or_generate(_make_match(), explainer)
            clock.now += 59
            assert gate.get_or_generate(_make_match(), explainer).cached is True
            clock.now += 1
            assert gate.get_or_generate(_make_match(), explainer).cached is False
        assert explainer.calls == 2

    def test_invalidate(self, gate):
        explainer = CountingExplainer()
        gate.get_or_generate(_make_match(), explainer)
        assert gate.invalidate(_make_match()) is True
        assert gate.invalidate(_make_match()) is False
        assert gate.get_or_generate(_make_match(), explainer).cached is False

    def test_clear(self, gate, store):
        gate.get_or_generate(_make_match(program_id="a"), CountingExplainer())
        gate.get_or_generate(_make_match(program_id="b"), CountingExplainer())
        gate.clear()
        assert len(store) == 0


class TestStores:
    """Store backends."""

    def test_disk_store(self, tmp_path):
        store = DiskExplanationStore(str(tmp_path / "cache"))
        try:
            store.set("k", "값", ttl=60)
            assert store.get("k") == "값"
            assert store.delete("k") is True
            assert store.get("k") is None
            assert store.delete("k") is False
        finally:
            store.close()

    def test_disk_store_survives_reopen(self, tmp_path):
        directory = str(tmp_path / "cache")
        first = DiskExplanationStore(directory)
        first.set("k", "값", ttl=60)
        first.close()
        second = DiskExplanationStore(directory)
        try:
            assert second.get("k") == "값"
        finally:
            second.close()

    def test_create_store(self, tmp_path):
        assert isinstance(create_store(ExplanationConfig()), InMemoryExplanationStore)
        disk = create_store(ExplanationConfig(cache_backend="disk", cache_directory=str(tmp_path)))
        try:
            assert isinstance(disk, DiskExplanationStore)
        finally:
            disk.close()

    def test_gate_with_disk_store(self, tmp_path):
        store = DiskExplanationStore(str(tmp_path))
        explainer = CountingExplainer()
        try:
            with ExplanationCacheGate(store=store, config=ExplanationConfig()) as gate:
                gate.get_or_generate(_make_match(), explainer)
                assert gate.get_or_generate(_make_match(), explainer).cached is True
        finally:
            store.close()
        assert explainer.calls == 1


class TestDefaultGate:
    """The process-wide gate behind get_or_generate_explanation."""

    def test_module_level_function_uses_shared_gate(self):
        explainer = RuleBasedExplainer()
        first = get_or_generate_explanation(_make_match(), explainer)
        second = get_or_generate_explanation(_make_match(), explainer)
        assert first.cached is False
        assert second.cached is True
        assert get_default_gate().stats.hits == 1

    def test_rule_based_text_is_cached(self):
        result = get_or_generate_explanation(_make_match(), RuleBasedExplainer())
        assert result.explanation.startswith("귀 조직은 이 프로그램 지원 자격을 충족합니다.")
