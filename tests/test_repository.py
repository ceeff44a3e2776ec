"""Tests for the in-memory repository."""

from datetime import datetime, timedelta, timezone

import pytest

from rnd_matcher.exceptions import NotFoundError
from rnd_matcher.repository import InMemoryRepository
from rnd_matcher.schema import (
    FundingProgram,
    Match,
    Organization,
    ProgramStatus,
    ScoreBreakdown,
)


AS_OF = datetime(2025, 3, 1, tzinfo=timezone.utc)


def _make_match(program_id: str, score: int) -> Match:
    return Match(
        organization_id="org-1",
        program_id=program_id,
        score=score,
        breakdown=ScoreBreakdown(keyword=score),
    )


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository(
        organizations=[Organization(id="org-1", type="COMPANY", name="테스트")],
        programs=[
            FundingProgram(id="open", agency_id="a", title="열린 공고", deadline=AS_OF + timedelta(days=3)),
            FundingProgram(id="rolling", agency_id="a", title="상시 공고"),
            FundingProgram(id="closed", agency_id="a", title="마감 공고", deadline=AS_OF - timedelta(days=1)),
            FundingProgram(id="expired", agency_id="a", title="만료 공고", status=ProgramStatus.EXPIRED),
        ],
    )


class TestEntities:
    """Organization and program lookups."""

    def test_get_organization(self, repository):
        assert repository.get_organization("org-1").name == "테스트"

    def test_list_organizations(self, repository):
        assert [o.id for o in repository.list_organizations()] == ["org-1"]

    def test_missing_entities_raise(self, repository):
        with pytest.raises(NotFoundError) as exc_info:
            repository.get_organization("nope")
        assert exc_info.value.entity == "Organization"
        with pytest.raises(NotFoundError):
            repository.get_program("nope")

    def test_returns_copies(self, repository):
        org = repository.get_organization("org-1")
        org.name = "변경됨"
        assert repository.get_organization("org-1").name == "테스트"

    def test_list_active_programs(self, repository):
        ids = {p.id for p in repository.list_active_programs(AS_OF)}
        assert ids == {"open", "rolling"}

    def test_deadline_equal_to_as_of_is_closed(self, repository):
        ids = {p.id for p in repository.list_active_programs(AS_OF + timedelta(days=3))}
        assert ids == {"rolling"}


class TestMatches:
    """Match upserts and user flags."""

    def test_save_and_list_best_first(self, repository):
        repository.save_matches([_make_match("a", 40), _make_match("b", 80)])
        assert [m.program_id for m in repository.list_matches("org-1")] == ["b", "a"]
        assert repository.list_matches("org-2") == []

    def test_save_sets_timestamps(self, repository):
        stored = repository.save_matches([_make_match("a", 40)])[0]
        assert stored.created_at is not None
        assert stored.updated_at is not None

    def test_upsert_replaces_score_and_keeps_flags(self, repository):
        first = repository.save_matches([_make_match("a", 40)])[0]
        repository.mark_saved("org-1", "a")
        repository.update_explanation("org-1", "a", "설명")

        updated = repository.save_matches([_make_match("a", 55)])[0]

        assert updated.score == 55
        assert updated.saved is True
        assert updated.explanation == "설명"
        assert updated.created_at == first.created_at

    def test_flags(self, repository):
        repository.save_matches([_make_match("a", 40)])
        assert repository.mark_viewed("org-1", "a").viewed is True
        assert repository.mark_saved("org-1", "a").saved is True
        assert repository.mark_saved("org-1", "a", saved=False).saved is False

    def test_missing_match(self, repository):
        with pytest.raises(NotFoundError):
            repository.get_match("org-1", "nope")
        with pytest.raises(NotFoundError):
            repository.mark_viewed("org-1", "nope")
