"""Deal pipeline: partition deals into stage buckets with per-bucket totals."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from contactpro.concurrency import fan_in
from contactpro.lists.controller import ListStateController, ListStatus
from contactpro.lists.lookup import UNKNOWN_CONTACT, ReferenceIndex
from contactpro.records import DealStage, Record


logger = logging.getLogger("contactpro.pipeline")

OTHER_STAGE = "other"


def deal_amount(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class StageBucket:
    stage: str
    label: str
    deals: tuple[Record, ...]

    @property
    def count(self) -> int:
        return len(self.deals)

    @property
    def total_value(self) -> float:
        return sum(deal_amount(deal.get("value")) for deal in self.deals)

    @property
    def weighted_value(self) -> float:
        return sum(
            deal_amount(deal.get("value")) * deal_amount(deal.get("probability")) / 100 for deal in self.deals
        )


@dataclass(frozen=True)
class PipelineSummary:
    buckets: tuple[StageBucket, ...]
    other: StageBucket

    @property
    def total_count(self) -> int:
        return sum(bucket.count for bucket in self.buckets) + self.other.count

    @property
    def total_value(self) -> float:
        return sum(bucket.total_value for bucket in self.buckets) + self.other.total_value

    @property
    def weighted_value(self) -> float:
        return sum(bucket.weighted_value for bucket in self.buckets) + self.other.weighted_value

    def bucket(self, stage: DealStage | str) -> StageBucket:
        key = stage.value if isinstance(stage, DealStage) else str(stage)
        if key == OTHER_STAGE:
            return self.other
        for bucket in self.buckets:
            if bucket.stage == key:
                return bucket
        raise KeyError(key)


def bucket_by_stage(deals: Iterable[Record]) -> PipelineSummary:
    """Every deal lands in exactly one bucket; unknown stages go to ``other``."""
    grouped: dict[str, list[Record]] = {stage.value: [] for stage in DealStage}
    other: list[Record] = []
    for deal in deals:
        stage = DealStage.parse(deal.get("stage"))
        if stage is None:
            other.append(deal)
        else:
            grouped[stage.value].append(deal)
    if other:
        logger.debug("pipeline.unstaged_deals", extra={"entity": "deal", "count": len(other)})
    return PipelineSummary(
        buckets=tuple(StageBucket(stage.value, stage.label, tuple(grouped[stage.value])) for stage in DealStage),
        other=StageBucket(OTHER_STAGE, "Other", tuple(other)),
    )


@dataclass(frozen=True)
class DealCard:
    deal: Record
    contact_name: str
    contact_company: str

    def to_dict(self) -> dict[str, Any]:
        return {**self.deal.to_dict(), "contact_name": self.contact_name, "contact_company": self.contact_company}


class PipelineBoard:
    """Deal pipeline screen over the deal and contact list controllers."""

    def __init__(self, deals: ListStateController, contacts: ListStateController) -> None:
        self.deals = deals
        self.contacts = contacts
        self.summary = bucket_by_stage(())
        self.error: str | None = None
        self._contacts = ReferenceIndex()
        self._unsubscribe = [deals.subscribe(self._on_deals), contacts.subscribe(self._on_contacts)]

    @property
    def ready(self) -> bool:
        return self.deals.status is ListStatus.READY and self.contacts.status is ListStatus.READY

    async def load(self) -> bool:
        deals_ok, contacts_ok = await fan_in(self.deals.load(), self.contacts.load())
        self.error = None if deals_ok and contacts_ok else "Failed to load deals"
        return deals_ok and contacts_ok

    def card(self, deal: Record) -> DealCard:
        contact_id = deal.get("contact_id")
        company = self._contacts.get(contact_id)
        return DealCard(
            deal=deal,
            contact_name=self._contacts.display(contact_id, "name", UNKNOWN_CONTACT),
            contact_company=str(company.get("company") or "") if company is not None else "",
        )

    def to_dict(self) -> dict[str, Any]:
        def bucket_payload(bucket: StageBucket) -> dict[str, Any]:
            return {
                "stage": bucket.stage,
                "label": bucket.label,
                "count": bucket.count,
                "total_value": bucket.total_value,
                "weighted_value": bucket.weighted_value,
                "deals": [self.card(deal).to_dict() for deal in bucket.deals],
            }

        return {
            "ready": self.ready,
            "error": self.error,
            "stages": [bucket_payload(bucket) for bucket in self.summary.buckets],
            "other": bucket_payload(self.summary.other),
            "total_count": self.summary.total_count,
            "total_value": self.summary.total_value,
            "weighted_value": self.summary.weighted_value,
        }

    def close(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()

    def _on_deals(self, controller: ListStateController) -> None:
        self.summary = bucket_by_stage(controller.canonical)

    def _on_contacts(self, controller: ListStateController) -> None:
        self._contacts = ReferenceIndex(controller.canonical)
