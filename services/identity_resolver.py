"""
Identity resolver: finds which existing inventory items an import row
refers to.

Priority chain, first success wins:
    1. exact product_id
    2. exact SKU (records bound to another product_id are never SKU matches)
    3. fuzzy name similarity, only when the row has neither identifier

Any ambiguity (several SKU records, several fuzzy hits above threshold) is
returned as conflict candidates for a human to settle.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional, Union
import structlog

from rapidfuzz import fuzz

from config import settings
from models.inventory import InventoryItemResponse
from models.reconciliation import ImportRow, MatchCandidate, ScoredCandidate
from utils.text_utils import normalize_product_name

logger = structlog.get_logger(__name__)


@dataclass
class InventoryIndex:
    """All existing items, loaded once per run and indexed for lookups."""
    items: list[InventoryItemResponse] = field(default_factory=list)
    by_product_id: dict[str, InventoryItemResponse] = field(default_factory=dict)
    by_sku: dict[str, list[InventoryItemResponse]] = field(default_factory=dict)

    @classmethod
    def build(cls, items: list[InventoryItemResponse]) -> "InventoryIndex":
        by_product_id = {}
        by_sku = defaultdict(list)
        for item in items:
            if item.product_id:
                by_product_id[item.product_id] = item
            by_sku[item.sku].append(item)
        return cls(items=list(items), by_product_id=by_product_id, by_sku=dict(by_sku))

    def add(self, item: InventoryItemResponse) -> None:
        """Register an item created mid-run so later rows can see it."""
        self.items.append(item)
        if item.product_id:
            self.by_product_id[item.product_id] = item
        self.by_sku.setdefault(item.sku, []).append(item)

    def replace(self, item: InventoryItemResponse) -> None:
        """Swap in the updated version of an item already indexed."""
        self.remove(item.id)
        self.add(item)

    def remove(self, item_id: str) -> None:
        self.items = [i for i in self.items if i.id != item_id]
        self.by_product_id = {k: v for k, v in self.by_product_id.items() if v.id != item_id}
        for sku in list(self.by_sku):
            remaining = [i for i in self.by_sku[sku] if i.id != item_id]
            if remaining:
                self.by_sku[sku] = remaining
            else:
                del self.by_sku[sku]


def name_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Similarity of two product names in [0, 1].

    Names are case-folded, accent-stripped and whitespace-collapsed before
    comparison, so "Widget A" and "widget  a " score 1.0.
    """
    left = normalize_product_name(a)
    right = normalize_product_name(b)
    if not left or not right:
        return 0.0
    return fuzz.ratio(left, right) / 100.0


def _same_name(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and normalize_product_name(a) == normalize_product_name(b)


def resolve(
    row: ImportRow,
    existing: Union[InventoryIndex, list[InventoryItemResponse]],
    threshold: Optional[float] = None
) -> MatchCandidate:
    """
    Find the existing items an import row refers to.

    Args:
        row: Normalized import row
        existing: Prebuilt index, or a plain list of items (indexed on the fly)
        threshold: Minimum fuzzy score (defaults to settings.fuzzy_match_threshold)

    Returns:
        MatchCandidate; empty primary and empty conflicts means unmatched
    """
    index = existing if isinstance(existing, InventoryIndex) else InventoryIndex.build(existing)
    if threshold is None:
        threshold = settings.fuzzy_match_threshold

    # 1. product_id
    if row.product_id and row.product_id in index.by_product_id:
        return MatchCandidate(
            primary=index.by_product_id[row.product_id],
            score=1.0,
            matched_by="product_id"
        )

    # 2. SKU
    if row.sku:
        return _resolve_by_sku(row, index)

    # 3. Fuzzy name, only without identifiers
    if row.product_id is None and row.name:
        return _resolve_by_name(row, index, threshold)

    return MatchCandidate()


def _resolve_by_sku(row: ImportRow, index: InventoryIndex) -> MatchCandidate:
    candidates = [
        item for item in index.by_sku.get(row.sku, [])
        if not item.product_id or item.product_id == row.product_id
    ]

    if row.product_id:
        # A new productId only adopts an unbound record that is clearly the same product
        candidates = [item for item in candidates if _same_name(item.name, row.name)]
    else:
        same_name = [item for item in candidates if _same_name(item.name, row.name)]
        if same_name:
            candidates = same_name

    if not candidates:
        return MatchCandidate()

    if len(candidates) > 1:
        logger.info(
            "ambiguous_sku_match",
            row_index=row.row_index,
            sku=row.sku,
            candidates=len(candidates)
        )
        return MatchCandidate(
            primary=candidates[0],
            conflicts=[ScoredCandidate(item=c, score=1.0) for c in candidates[1:]],
            score=1.0,
            matched_by="sku"
        )

    return MatchCandidate(primary=candidates[0], score=1.0, matched_by="sku")


def _resolve_by_name(row: ImportRow, index: InventoryIndex, threshold: float) -> MatchCandidate:
    scored = []
    for item in index.items:
        score = name_similarity(row.name, item.name)
        if score >= threshold:
            scored.append(ScoredCandidate(item=item, score=round(score, 4)))

    if not scored:
        return MatchCandidate()

    # Stable sort keeps inventory order among equal scores
    scored.sort(key=lambda c: c.score, reverse=True)
    best, others = scored[0], scored[1:]

    if others:
        logger.info(
            "ambiguous_name_match",
            row_index=row.row_index,
            name=row.name,
            candidates=len(scored),
            best_score=best.score
        )

    return MatchCandidate(
        primary=best.item,
        conflicts=others,
        score=best.score,
        matched_by="name"
    )
