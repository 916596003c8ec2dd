"""Generation job lifecycle manager.

Owns every status change of an `Asset`:

    (none) -> generating -> completed | failed
    completed -> editing -> completed | failed
    generating | editing -> cancelled
    completed -> rejected
    failed | rejected | cancelled | completed -> generating   (regenerate)

Mutations of one asset are serialized with an in-process keyed lock and
applied with a version compare-and-swap, so a late or duplicate reconciliation
can never apply a second terminal transition.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Hashable, Iterable, List, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from adstudio.config import settings
from adstudio.costs.ledger import CostLedger
from adstudio.costs.rates import EDIT_JOB_KIND, job_kind_for, price_for, to_money
from adstudio.errors import (
    AssetStateError,
    ConcurrentModification,
    DomainError,
    GenerationTimeout,
    NotFoundError,
    ProviderError,
    SlotBusy,
)
from adstudio.generation.prompts import StructuredPrompt, is_well_formed_prompt, validate_prompt
from adstudio.generation.providers import GenerationProvider, JobPoll
from adstudio.observability.logging import get_logger
from adstudio.resilience.locks import KeyedLock, asset_locks
from adstudio.storage.models import (
    IN_FLIGHT_STATUSES,
    KEYFRAME_TYPES,
    Asset,
    AssetStatus,
    AssetType,
)
from adstudio.storage.repositories import AssetRepository, ProjectRepository, ScriptRepository

logger = get_logger(__name__)

__all__ = [
    "GenerationLifecycle",
    "RegenerationResult",
    "TargetFailure",
    "latest_per_slot",
    "select_later_keyframes",
]

REGENERATABLE_STATUSES = frozenset(
    {
        AssetStatus.FAILED.value,
        AssetStatus.REJECTED.value,
        AssetStatus.CANCELLED.value,
        AssetStatus.COMPLETED.value,
    }
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class TargetFailure:
    asset_id: UUID
    error: str
    message: str

    @classmethod
    def from_failed_asset(cls, asset: Asset) -> "TargetFailure":
        """A job the provider refused, recorded on the asset as `failed`."""
        meta = asset.asset_metadata or {}
        return cls(asset.id, meta.get("errorCode") or ProviderError.error, meta.get("lastError") or "")

    def to_dict(self) -> dict[str, Any]:
        return {"asset_id": str(self.asset_id), "error": self.error, "message": self.message}


@dataclass
class RegenerationResult:
    regenerated: List[Asset] = field(default_factory=list)
    failed: List[TargetFailure] = field(default_factory=list)

    def add(self, asset: Asset) -> None:
        if asset.status == AssetStatus.FAILED.value:
            self.failed.append(TargetFailure.from_failed_asset(asset))
        else:
            self.regenerated.append(asset)

    def to_dict(self) -> dict[str, Any]:
        return {
            "regenerated": [asset.to_dict() for asset in self.regenerated],
            "failed": [f.to_dict() for f in self.failed],
        }


def latest_per_slot(rows: Iterable[tuple[Asset, int | None]]) -> List[tuple[Asset, int | None]]:
    """Keep the newest row of each (scene, type) slot, in first-seen order.

    Rows must be ordered oldest first within a slot.
    """
    latest: dict[tuple[UUID | None, str], tuple[Asset, int | None]] = {}
    for asset, segment in rows:
        latest[(asset.scene_id, asset.type)] = (asset, segment)
    return list(latest.values())


def select_later_keyframes(
    rows: Iterable[tuple[Asset, int | None]],
    source: Asset,
    source_segment: int | None,
) -> List[Asset]:
    """Keyframes downstream of `source` in segment order.

    Later segments contribute both keyframes; the source's own segment
    contributes its end keyframe when the source is a start keyframe.
    """
    if source_segment is None:
        return []
    source_is_start = source.type == AssetType.KEYFRAME_START.value
    later: List[Asset] = []
    for asset, segment in rows:
        if asset.id == source.id or asset.type not in KEYFRAME_TYPES or segment is None:
            continue
        if segment > source_segment:
            later.append(asset)
        elif (
            segment == source_segment
            and source_is_start
            and asset.type == AssetType.KEYFRAME_END.value
        ):
            later.append(asset)
    return later


class GenerationLifecycle:
    """Submit, reconcile, cancel, reject and regenerate asset generation jobs."""

    def __init__(
        self,
        session: Session,
        provider: GenerationProvider,
        *,
        ledger: CostLedger | None = None,
        locks: KeyedLock = asset_locks,
        timeout_seconds: int | None = None,
    ):
        self.session = session
        self.provider = provider
        self.ledger = ledger or CostLedger(session)
        self.locks = locks
        self.assets = AssetRepository(session)
        self.projects = ProjectRepository(session)
        self.scripts = ScriptRepository(session)
        self.timeout_seconds = int(timeout_seconds or settings.generation_timeout_seconds)

    # Helpers

    def _load(self, asset_id: UUID) -> Asset:
        asset = self.assets.get_for_update(asset_id)
        if asset is None:
            raise NotFoundError(f"Asset {asset_id} not found")
        return asset

    def _apply(self, asset: Asset, **values: Any) -> Asset:
        try:
            updated = self.assets.compare_and_set(asset.id, asset.version, **values)
        except IntegrityError as exc:
            raise SlotBusy(f"Slot for asset {asset.id} already has a job in flight") from exc
        if updated is None:
            raise ConcurrentModification(f"Asset {asset.id} was modified concurrently")
        return updated

    @staticmethod
    def _metadata(asset: Asset, **changes: Any) -> dict[str, Any]:
        meta = dict(asset.asset_metadata or {})
        for key, value in changes.items():
            if value is None:
                meta.pop(key, None)
            else:
                meta[key] = value
        return meta

    @staticmethod
    def _slot_key(project_id: UUID, scene_id: UUID | None, asset_type: str) -> Hashable:
        return ("slot", project_id, scene_id, asset_type)

    def _ensure_slot_free(
        self, project_id: UUID, scene_id: UUID | None, asset_type: str, *, owner: UUID | None = None
    ) -> None:
        busy = self.assets.find_in_flight_for_slot(project_id, scene_id, asset_type)
        if busy is not None and busy.id != owner:
            raise SlotBusy(
                f"A {asset_type} job is already in flight for this scene (asset {busy.id})",
                asset_id=busy.id,
            )

    def _build_payload(
        self, asset_type: str, scene_id: UUID | None, inputs: dict[str, Any] | None
    ) -> dict[str, Any]:
        payload = dict(inputs or {})
        if scene_id is not None:
            scene = self.scripts.get_scene(scene_id)
            if scene is None:
                raise NotFoundError(f"Scene {scene_id} not found")
            override = scene.video_prompt_override
            if asset_type == AssetType.VIDEO.value and override:
                if is_well_formed_prompt(override):
                    payload["prompt"] = override
                else:
                    logger.warning("prompt_override_ignored", scene_id=str(scene_id))
        if "prompt" in payload:
            prompt = validate_prompt(payload["prompt"])
            if isinstance(prompt, StructuredPrompt):
                payload["prompt"] = prompt.model_dump(exclude_none=True)
        return payload

    def _charge(self, asset: Asset, amount: Decimal, reason: str) -> None:
        if amount > 0:
            self.ledger.charge(asset.project_id, amount, reason, asset_id=asset.id)

    # Operations

    def submit(
        self,
        project_id: UUID,
        scene_id: UUID | None,
        asset_type: AssetType | str,
        inputs: dict[str, Any] | None = None,
    ) -> Asset:
        """Start a fresh generation job for a (scene, type) slot.

        Raises:
            SlotBusy: a job for the slot is already generating/editing
            PromptValidationError: the prompt does not match the prompt schema
        """
        type_value = AssetType(asset_type).value
        if self.projects.get(project_id) is None:
            raise NotFoundError(f"Project {project_id} not found")

        with self.locks.hold(self._slot_key(project_id, scene_id, type_value)):
            self._ensure_slot_free(project_id, scene_id, type_value)
            payload = self._build_payload(type_value, scene_id, inputs)
            kind = job_kind_for(type_value)

            try:
                handle = self.provider.submit_job(kind, payload)
            except ProviderError as exc:
                logger.warning(
                    "generation_submit_failed",
                    project_id=str(project_id),
                    asset_type=type_value,
                    error=str(exc),
                )
                return self.assets.create(
                    project_id,
                    type_value,
                    scene_id=scene_id,
                    status=AssetStatus.FAILED.value,
                    provider=self.provider.name,
                    generation_inputs=payload,
                    metadata={
                        "lastError": str(exc),
                        "errorCode": exc.error,
                        "failedDuring": "generation",
                    },
                )

            try:
                asset = self.assets.create(
                    project_id,
                    type_value,
                    scene_id=scene_id,
                    status=AssetStatus.GENERATING.value,
                    provider=self.provider.name,
                    provider_task_id=handle,
                    generation_inputs=payload,
                    submitted_at=_utc_now(),
                )
            except IntegrityError as exc:
                raise SlotBusy(f"A {type_value} job is already in flight for this scene") from exc

            price = price_for(kind)
            asset.cost_usd = price
            self.session.flush()
            self._charge(asset, price, f"generate:{type_value}")

        logger.info(
            "generation_submitted",
            asset_id=str(asset.id),
            project_id=str(project_id),
            asset_type=type_value,
            task_id=handle,
        )
        return asset

    def submit_edit(self, asset_id: UUID, instruction: str) -> Asset:
        """Apply a free-text edit to a completed asset (completed -> editing).

        The current `url` stays in place as the edit base. A failed edit that
        kept its base image may be edited again.
        """
        instruction = (instruction or "").strip()
        if not instruction:
            raise AssetStateError("Edit instruction is empty")

        with self.locks.hold(asset_id):
            asset = self._load(asset_id)
            retry_after_failed_edit = (
                asset.status == AssetStatus.FAILED.value
                and bool(asset.url)
                and (asset.asset_metadata or {}).get("failedDuring") == "edit"
            )
            if not (asset.status == AssetStatus.COMPLETED.value or retry_after_failed_edit):
                raise AssetStateError(f"Cannot edit asset in status '{asset.status}'")
            if not asset.url:
                raise AssetStateError("Asset has no completed artifact to edit")

            with self.locks.hold(self._slot_key(asset.project_id, asset.scene_id, asset.type)):
                self._ensure_slot_free(asset.project_id, asset.scene_id, asset.type, owner=asset.id)
                payload = {"images": [asset.url], "prompt": instruction}
                try:
                    handle = self.provider.submit_job(EDIT_JOB_KIND, payload)
                except ProviderError as exc:
                    logger.warning("edit_submit_failed", asset_id=str(asset_id), error=str(exc))
                    return self._apply(
                        asset,
                        status=AssetStatus.FAILED.value,
                        asset_metadata=self._metadata(
                            asset,
                            lastError=str(exc),
                            errorCode=exc.error,
                            failedDuring="edit",
                            editInstruction=instruction,
                        ),
                    )

                price = price_for(EDIT_JOB_KIND)
                updated = self._apply(
                    asset,
                    status=AssetStatus.EDITING.value,
                    provider=self.provider.name,
                    provider_task_id=handle,
                    submitted_at=_utc_now(),
                    cost_usd=to_money(asset.cost_usd or 0) + price,
                    asset_metadata=self._metadata(
                        asset,
                        editInstruction=instruction,
                        lastError=None,
                        errorCode=None,
                        failedDuring=None,
                    ),
                )
                self._charge(updated, price, f"edit:{asset.type}")

        logger.info("edit_submitted", asset_id=str(asset_id), task_id=handle)
        return updated

    def reconcile(self, asset_id: UUID, poll: JobPoll | None = None) -> Asset:
        """Apply the provider's view of an in-flight job.

        Safe to call repeatedly: settled assets and polls for a task handle the
        asset no longer owns are ignored.
        """
        with self.locks.hold(asset_id):
            asset = self._load(asset_id)
            if asset.status not in IN_FLIGHT_STATUSES:
                logger.debug("reconcile_skipped_settled", asset_id=str(asset_id), status=asset.status)
                return asset
            if poll is not None and poll.handle and poll.handle != asset.provider_task_id:
                logger.info(
                    "reconcile_stale_handle",
                    asset_id=str(asset_id),
                    handle=poll.handle,
                    current=asset.provider_task_id,
                )
                return asset

            if poll is None:
                if not asset.provider_task_id:
                    poll = JobPoll.failed("Asset has no provider task handle")
                else:
                    try:
                        poll = self.provider.poll_job(asset.provider_task_id)
                    except ProviderError as exc:
                        # Transient poll failure; the job stays in flight until the
                        # provider answers or the timeout ceiling fails it.
                        logger.warning("reconcile_poll_failed", asset_id=str(asset_id), error=str(exc))
                        return self._expire_if_overdue(asset)

            if poll.status == "pending":
                return self._expire_if_overdue(asset)

            editing = asset.status == AssetStatus.EDITING.value
            if poll.status == "done" and poll.result:
                values: dict[str, Any] = {
                    "status": AssetStatus.COMPLETED.value,
                    "url": poll.result,
                    "asset_metadata": self._metadata(
                        asset,
                        previousUrl=asset.url if editing and asset.url else None,
                        lastError=None,
                        errorCode=None,
                        failedDuring=None,
                    ),
                }
            else:
                error = poll.error or "Provider reported completion without a result"
                # url is left untouched so a failed edit keeps its base image.
                values = {
                    "status": AssetStatus.FAILED.value,
                    "asset_metadata": self._metadata(
                        asset,
                        lastError=error,
                        errorCode=ProviderError.error,
                        failedDuring="edit" if editing else "generation",
                    ),
                }

            updated = self.assets.compare_and_set(asset.id, asset.version, **values)
            if updated is None:
                # Another reconciler settled it first.
                return self._load(asset_id)

        logger.info(
            "asset_reconciled",
            asset_id=str(asset_id),
            status=updated.status,
            task_id=updated.provider_task_id,
        )
        return updated

    def reconcile_handle(self, handle: str, poll: JobPoll) -> Asset:
        """Apply a pushed provider result addressed by task handle."""
        asset = self.assets.find_by_provider_task(handle)
        if asset is None:
            raise NotFoundError(f"No asset for provider task {handle}")
        if poll.handle is None:
            poll = JobPoll(status=poll.status, result=poll.result, error=poll.error, handle=handle)
        return self.reconcile(asset.id, poll)

    def _expire_if_overdue(self, asset: Asset) -> Asset:
        submitted = asset.submitted_at or asset.updated_at or asset.created_at
        if submitted is None:
            return asset
        if _utc_now() - submitted < timedelta(seconds=self.timeout_seconds):
            return asset
        return self._fail_timeout(asset)

    def _fail_timeout(self, asset: Asset) -> Asset:
        submitted = asset.submitted_at or asset.created_at
        waited = int((_utc_now() - submitted).total_seconds()) if submitted else self.timeout_seconds
        err = GenerationTimeout(
            f"No provider response after {waited}s (ceiling {self.timeout_seconds}s)"
        )
        if asset.provider_task_id:
            self._cancel_remote(asset)
        updated = self._apply(
            asset,
            status=AssetStatus.FAILED.value,
            asset_metadata=self._metadata(
                asset,
                lastError=str(err),
                errorCode=err.error,
                failedDuring="edit" if asset.status == AssetStatus.EDITING.value else "generation",
            ),
        )
        logger.warning("generation_timed_out", asset_id=str(asset.id), waited_seconds=waited)
        return updated

    def expire(self, asset_id: UUID) -> Asset:
        """Fail an in-flight asset as timed out regardless of its age."""
        with self.locks.hold(asset_id):
            asset = self._load(asset_id)
            if asset.status not in IN_FLIGHT_STATUSES:
                return asset
            return self._fail_timeout(asset)

    def _cancel_remote(self, asset: Asset) -> bool:
        try:
            return bool(self.provider.cancel_job(asset.provider_task_id))
        except Exception:
            logger.warning(
                "provider_cancel_failed",
                asset_id=str(asset.id),
                task_id=asset.provider_task_id,
                exc_info=True,
            )
            return False

    def cancel(self, asset_id: UUID) -> Asset:
        """Cancel an in-flight job. Local state is authoritative even if the provider never acks."""
        with self.locks.hold(asset_id):
            asset = self._load(asset_id)
            if asset.status not in IN_FLIGHT_STATUSES:
                raise AssetStateError(f"Cannot cancel asset in status '{asset.status}'")
            acknowledged = self._cancel_remote(asset) if asset.provider_task_id else False
            updated = self._apply(
                asset,
                status=AssetStatus.CANCELLED.value,
                asset_metadata=self._metadata(
                    asset,
                    cancelledFrom=asset.status,
                    providerCancelAck=acknowledged,
                ),
            )
        logger.info("asset_cancelled", asset_id=str(asset_id), provider_ack=acknowledged)
        return updated

    def reject(self, asset_id: UUID, reason: str | None = None) -> Asset:
        """Mark a completed asset rejected. The artifact URL is kept."""
        with self.locks.hold(asset_id):
            asset = self._load(asset_id)
            if asset.status != AssetStatus.COMPLETED.value:
                raise AssetStateError(f"Cannot reject asset in status '{asset.status}'")
            updated = self._apply(
                asset,
                status=AssetStatus.REJECTED.value,
                asset_metadata=self._metadata(asset, rejectReason=reason),
            )
        logger.info("asset_rejected", asset_id=str(asset_id), reason=reason)
        return updated

    def grade(self, asset_id: UUID, grade: str | None) -> Asset:
        with self.locks.hold(asset_id):
            asset = self._load(asset_id)
            if asset.status not in {AssetStatus.COMPLETED.value, AssetStatus.REJECTED.value}:
                raise AssetStateError(f"Cannot grade asset in status '{asset.status}'")
            return self._apply(asset, grade=(grade or None))

    def later_keyframes(self, source: Asset) -> List[Asset]:
        """The current keyframe of every slot after `source`, in segment order."""
        rows = self.assets.list_with_segments(source.project_id, KEYFRAME_TYPES)
        segment = next((seg for a, seg in rows if a.id == source.id), None)
        return select_later_keyframes(latest_per_slot(rows), source, segment)

    def regenerate(self, asset_id: UUID, *, cascade: bool = False) -> RegenerationResult:
        """Start a fresh job for an asset, cancelling any active one first.

        With `cascade`, a keyframe regeneration also regenerates every later
        keyframe so continuity is rebuilt from the changed frame forward. A
        later keyframe that cannot be regenerated is reported in `failed`
        and the rest still go ahead.
        """
        source = self.assets.get(asset_id)
        if source is None:
            raise NotFoundError(f"Asset {asset_id} not found")

        result = RegenerationResult()
        result.add(self._regenerate_one(source.id))
        if cascade and source.is_keyframe:
            for target in self.later_keyframes(source):
                try:
                    result.add(self._regenerate_one(target.id))
                except DomainError as exc:
                    logger.warning(
                        "cascade_target_failed",
                        source_id=str(asset_id),
                        asset_id=str(target.id),
                        error=exc.error,
                    )
                    result.failed.append(TargetFailure(target.id, exc.error, str(exc)))
        logger.info(
            "regeneration_started",
            asset_id=str(asset_id),
            cascade=cascade,
            count=len(result.regenerated),
            failed=len(result.failed),
        )
        return result

    def _regenerate_one(self, asset_id: UUID) -> Asset:
        with self.locks.hold(asset_id):
            asset = self._load(asset_id)
            if asset.status in IN_FLIGHT_STATUSES:
                self.cancel(asset.id)
                asset = self._load(asset_id)
            if asset.status not in REGENERATABLE_STATUSES:
                raise AssetStateError(f"Cannot regenerate asset in status '{asset.status}'")

            with self.locks.hold(self._slot_key(asset.project_id, asset.scene_id, asset.type)):
                self._ensure_slot_free(asset.project_id, asset.scene_id, asset.type, owner=asset.id)
                kind = job_kind_for(asset.type)
                payload = dict(asset.generation_inputs or {})
                previous_handle = asset.provider_task_id
                try:
                    handle = self.provider.submit_job(kind, payload)
                except ProviderError as exc:
                    logger.warning("regenerate_submit_failed", asset_id=str(asset_id), error=str(exc))
                    return self._apply(
                        asset,
                        status=AssetStatus.FAILED.value,
                        asset_metadata=self._metadata(
                            asset,
                            lastError=str(exc),
                            errorCode=exc.error,
                            failedDuring="generation",
                        ),
                    )

                price = price_for(kind)
                updated = self._apply(
                    asset,
                    status=AssetStatus.GENERATING.value,
                    provider=self.provider.name,
                    provider_task_id=handle,
                    url=None,
                    submitted_at=_utc_now(),
                    cost_usd=to_money(asset.cost_usd or 0) + price,
                    asset_metadata=self._metadata(
                        asset,
                        previousUrl=asset.url,
                        previousTaskId=previous_handle,
                        lastError=None,
                        errorCode=None,
                        failedDuring=None,
                        rejectReason=None,
                        editInstruction=None,
                    ),
                )
                self._charge(updated, price, f"regenerate:{asset.type}")

            if updated.is_keyframe and updated.scene_id is not None:
                self._invalidate_scene_videos(updated)
        return updated

    def _invalidate_scene_videos(self, keyframe: Asset) -> None:
        """Videos rendered from an old keyframe are stale once it is regenerated."""
        videos = self.assets.list_for_project(
            keyframe.project_id,
            types=[AssetType.VIDEO.value],
            statuses=[*IN_FLIGHT_STATUSES, AssetStatus.COMPLETED.value],
            scene_ids=[keyframe.scene_id],
        )
        for video in videos:
            if video.status in IN_FLIGHT_STATUSES:
                self.cancel(video.id)
            else:
                self.reject(video.id, reason="stale_keyframe")
        if videos:
            logger.info(
                "stale_videos_invalidated",
                keyframe_id=str(keyframe.id),
                count=len(videos),
            )

    def clear_stale_assets(
        self,
        project_id: UUID,
        asset_types: Sequence[str],
        scene_ids: Sequence[UUID] | None = None,
    ) -> int:
        """Remove prior attempts before a stage generates these slots again."""
        stale = self.assets.list_for_project(project_id, types=asset_types, scene_ids=scene_ids)
        for asset in stale:
            if asset.status in IN_FLIGHT_STATUSES:
                self.cancel(asset.id)
            self.assets.delete(asset)
        if stale:
            logger.info(
                "stale_assets_cleared",
                project_id=str(project_id),
                asset_types=list(asset_types),
                count=len(stale),
            )
        return len(stale)

    def in_flight(self, project_id: UUID) -> List[Asset]:
        return self.assets.list_for_project(project_id, statuses=IN_FLIGHT_STATUSES)
