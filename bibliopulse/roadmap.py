from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import asdict, replace
from datetime import date
from typing import Dict, List, Optional

from bibliopulse.core.models import RoadmapFeature
from bibliopulse.io.files import atomic_write_text

logger = logging.getLogger(__name__)


class RoadmapError(RuntimeError):
    pass


class RoadmapStore:
    """
    Roadmap features and user proposals, persisted as one JSON document.

    All mutations are read/modify/write under a lock and written atomically.
    With no path the store lives in memory only.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._features: List[RoadmapFeature] = []
        self._proposals: List[RoadmapFeature] = []
        self._load()

    def _load(self) -> None:
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f) or {}
        except (OSError, ValueError) as e:
            raise RoadmapError(f"Failed to read roadmap file: {self.path} ({e})") from e
        self._features = [RoadmapFeature(**rec) for rec in data.get("features") or []]
        self._proposals = [RoadmapFeature(**rec) for rec in data.get("proposals") or []]
        logger.debug("roadmap: loaded | features=%s | proposals=%s", len(self._features), len(self._proposals))

    def _commit(self, features: List[RoadmapFeature], proposals: List[RoadmapFeature]) -> None:
        """Persist the new lists, then swap them in; a failed write changes nothing."""
        if self.path:
            payload: Dict[str, list] = {
                "features": [asdict(f) for f in features],
                "proposals": [asdict(p) for p in proposals],
            }
            atomic_write_text(self.path, json.dumps(payload, ensure_ascii=False, indent=2) + "\n")
        self._features = features
        self._proposals = proposals

    @staticmethod
    def _index(items: List[RoadmapFeature], name: str) -> int:
        for i, item in enumerate(items):
            if item.name.strip().lower() == name.strip().lower():
                return i
        return -1

    def add_feature(self, feature: RoadmapFeature) -> RoadmapFeature:
        with self._lock:
            if self._index(self._features, feature.name) >= 0:
                raise RoadmapError(f"Feature already on the roadmap: {feature.name}")
            feature = replace(feature, is_proposal=False)
            self._commit(self._features + [feature], self._proposals)
            return feature

    def propose(
        self,
        name: str,
        description: str,
        proposed_by: Optional[str] = None,
        proposal_date: Optional[str] = None,
    ) -> RoadmapFeature:
        name = (name or "").strip()
        if not name:
            raise RoadmapError("A proposal needs a name.")
        proposal = RoadmapFeature(
            name=name,
            description=(description or "").strip(),
            status="planned",
            is_proposal=True,
            proposed_by=proposed_by,
            proposal_date=proposal_date or date.today().isoformat(),
        )
        with self._lock:
            if self._index(self._proposals, name) >= 0 or self._index(self._features, name) >= 0:
                raise RoadmapError(f"Already proposed or planned: {name}")
            self._commit(self._features, self._proposals + [proposal])
        logger.info("roadmap: proposal added | name=%s", name)
        return proposal

    def list_features(self, status: Optional[str] = None) -> List[RoadmapFeature]:
        with self._lock:
            items = list(self._features)
        if status:
            items = [f for f in items if f.status == status]
        return items

    def list_proposals(self) -> List[RoadmapFeature]:
        with self._lock:
            return list(self._proposals)

    def approve(self, name: str, quarter: Optional[str] = None) -> RoadmapFeature:
        """Move a proposal onto the roadmap as a planned feature."""
        with self._lock:
            idx = self._index(self._proposals, name)
            if idx < 0:
                raise RoadmapError(f"No such proposal: {name}")
            proposal = self._proposals[idx]
            feature = replace(proposal, is_proposal=False, status="planned", quarter=quarter or proposal.quarter)
            proposals = self._proposals[:idx] + self._proposals[idx + 1:]
            self._commit(self._features + [feature], proposals)
        logger.info("roadmap: proposal approved | name=%s", feature.name)
        return feature

    def reject(self, name: str) -> RoadmapFeature:
        with self._lock:
            idx = self._index(self._proposals, name)
            if idx < 0:
                raise RoadmapError(f"No such proposal: {name}")
            proposal = self._proposals[idx]
            self._commit(self._features, self._proposals[:idx] + self._proposals[idx + 1:])
        logger.info("roadmap: proposal rejected | name=%s", proposal.name)
        return proposal
