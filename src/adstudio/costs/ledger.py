"""Cost ledger: append-only entries plus an atomically maintained project total."""

from __future__ import annotations

from decimal import Decimal
from typing import List
from uuid import UUID

from sqlalchemy.orm import Session

from adstudio.costs.rates import to_money
from adstudio.errors import NotFoundError
from adstudio.observability.logging import get_logger
from adstudio.storage.models import CostEntry
from adstudio.storage.repositories import CostEntryRepository, ProjectRepository

logger = get_logger(__name__)

__all__ = ["CostLedger"]


class CostLedger:
    """Record billable operations against a project.

    Every charge writes a `CostEntry` and increments `projects.cost_usd` with a
    single SQL increment in the caller's transaction, so the sum of entries and
    the running total commit or roll back together.
    """

    def __init__(self, session: Session):
        self.session = session
        self.projects = ProjectRepository(session)
        self.entries = CostEntryRepository(session)

    def charge(
        self,
        project_id: UUID,
        amount: Decimal | float | str,
        reason: str,
        *,
        asset_id: UUID | None = None,
    ) -> CostEntry:
        amount_usd = to_money(amount)
        if amount_usd < 0:
            raise ValueError("Cost ledger amounts must be non-negative")
        if self.projects.get(project_id) is None:
            raise NotFoundError(f"Project {project_id} not found")

        entry = self.entries.create(project_id, amount_usd, reason, asset_id=asset_id)
        self.projects.increment_cost(project_id, amount_usd)
        logger.info(
            "cost_charged",
            project_id=str(project_id),
            asset_id=str(asset_id) if asset_id else None,
            amount_usd=str(amount_usd),
            reason=reason,
        )
        return entry

    def total(self, project_id: UUID) -> Decimal:
        project = self.projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return to_money(project.cost_usd or 0)

    def entries_for(self, project_id: UUID) -> List[CostEntry]:
        return self.entries.list_for_project(project_id)

    def reconcile_total(self, project_id: UUID) -> bool:
        """Check that the entries sum to the stored project total."""
        return to_money(self.entries.sum_for_project(project_id)) == self.total(project_id)
