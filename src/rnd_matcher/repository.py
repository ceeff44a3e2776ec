"""
Program/Organization repository interface and an in-memory implementation.

The matcher never talks to a database directly. Callers inject a Repository;
tests and the CLI use InMemoryRepository.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
import logging
import threading
from typing import Optional

from .exceptions import NotFoundError
from .schema import FundingProgram, Match, Organization


logger = logging.getLogger(__name__)


class Repository(ABC):
    """
    Abstract source of organizations and programs, and sink for matches.

    Implementations can be swapped out for different backends:
    - InMemoryRepository: single-process, thread-safe (tests, CLI)
    - A database-backed repository owned by the host application

    Errors raised by implementations propagate to the caller unchanged;
    retry policy belongs to the implementation.
    """

    @abstractmethod
    def get_organization(self, organization_id: str) -> Organization:
        """Return an organization or raise NotFoundError."""
        pass

    @abstractmethod
    def list_organizations(self) -> list[Organization]:
        """Return all organizations."""
        pass

    @abstractmethod
    def get_program(self, program_id: str) -> FundingProgram:
        """Return a program or raise NotFoundError."""
        pass

    @abstractmethod
    def list_active_programs(self, as_of: datetime) -> list[FundingProgram]:
        """Return ACTIVE programs whose deadline is after ``as_of`` or unset."""
        pass

    @abstractmethod
    def save_matches(self, matches: list[Match]) -> list[Match]:
        """
        Upsert matches by (organization_id, program_id).

        Score fields are replaced; viewed/saved flags and any stored
        explanation are preserved from the existing record.

        Returns:
            The stored matches in the given order
        """
        pass

    @abstractmethod
    def get_match(self, organization_id: str, program_id: str) -> Match:
        """Return a stored match or raise NotFoundError."""
        pass

    @abstractmethod
    def list_matches(self, organization_id: str) -> list[Match]:
        """Return stored matches for an organization, best first."""
        pass

    @abstractmethod
    def mark_viewed(self, organization_id: str, program_id: str) -> Match:
        """Flag a match as viewed."""
        pass

    @abstractmethod
    def mark_saved(self, organization_id: str, program_id: str, saved: bool = True) -> Match:
        """Flag (or unflag) a match as saved."""
        pass

    @abstractmethod
    def update_explanation(self, organization_id: str, program_id: str, explanation: str) -> Match:
        """Store a generated explanation on a match."""
        pass


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository.

    Holds copies of the models it is given so callers cannot mutate
    stored state by accident.
    """

    def __init__(
        self,
        organizations: Optional[list[Organization]] = None,
        programs: Optional[list[FundingProgram]] = None,
    ):
        self._lock = threading.RLock()
        self._organizations: dict[str, Organization] = {}
        self._programs: dict[str, FundingProgram] = {}
        self._matches: dict[tuple[str, str], Match] = {}
        for org in organizations or []:
            self.add_organization(org)
        for program in programs or []:
            self.add_program(program)

    def add_organization(self, org: Organization) -> None:
        with self._lock:
            self._organizations[org.id] = org.model_copy(deep=True)

    def add_program(self, program: FundingProgram) -> None:
        with self._lock:
            self._programs[program.id] = program.model_copy(deep=True)

    def get_organization(self, organization_id: str) -> Organization:
        with self._lock:
            org = self._organizations.get(organization_id)
            if org is None:
                raise NotFoundError("Organization", organization_id)
            return org.model_copy(deep=True)

    def list_organizations(self) -> list[Organization]:
        with self._lock:
            return [o.model_copy(deep=True) for o in self._organizations.values()]

    def get_program(self, program_id: str) -> FundingProgram:
        with self._lock:
            program = self._programs.get(program_id)
            if program is None:
                raise NotFoundError("Program", program_id)
            return program.model_copy(deep=True)

    def list_active_programs(self, as_of: datetime) -> list[FundingProgram]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._programs.values() if p.is_open(as_of)]

    def save_matches(self, matches: list[Match]) -> list[Match]:
        now = datetime.now(timezone.utc)
        stored = []
        with self._lock:
            for match in matches:
                existing = self._matches.get(match.key)
                record = match.model_copy(deep=True)
                if existing is not None:
                    record.viewed = existing.viewed
                    record.saved = existing.saved
                    record.explanation = existing.explanation
                    record.created_at = existing.created_at
                else:
                    record.created_at = record.created_at or now
                record.updated_at = now
                self._matches[match.key] = record
                stored.append(record.model_copy(deep=True))
        logger.debug("Stored %d match(es)", len(stored))
        return stored

    def get_match(self, organization_id: str, program_id: str) -> Match:
        with self._lock:
            return self._get_match(organization_id, program_id).model_copy(deep=True)

    def list_matches(self, organization_id: str) -> list[Match]:
        with self._lock:
            matches = [m for m in self._matches.values() if m.organization_id == organization_id]
            matches.sort(key=lambda m: -m.score)
            return [m.model_copy(deep=True) for m in matches]

    def mark_viewed(self, organization_id: str, program_id: str) -> Match:
        with self._lock:
            match = self._get_match(organization_id, program_id)
            match.viewed = True
            match.updated_at = datetime.now(timezone.utc)
            return match.model_copy(deep=True)

    def mark_saved(self, organization_id: str, program_id: str, saved: bool = True) -> Match:
        with self._lock:
            match = self._get_match(organization_id, program_id)
            match.saved = saved
            match.updated_at = datetime.now(timezone.utc)
            return match.model_copy(deep=True)

    def update_explanation(self, organization_id: str, program_id: str, explanation: str) -> Match:
        with self._lock:
            match = self._get_match(organization_id, program_id)
            match.explanation = explanation
            match.updated_at = datetime.now(timezone.utc)
            return match.model_copy(deep=True)

    def _get_match(self, organization_id: str, program_id: str) -> Match:
        match = self._matches.get((organization_id, program_id))
        if match is None:
            raise NotFoundError("Match", f"{organization_id}:{program_id}")
        return match
