"""
Conflict detector: classifies one import row, given its identity match,
as a clean update, a new item, a conflict needing review, or unmatched.
"""

import structlog

from models.reconciliation import (
    ConflictCandidate,
    ConflictedRow,
    ConflictType,
    ImportRow,
    MatchCandidate,
    MatchedRow,
    NewRow,
    RowOutcome,
    UnmatchedRow,
)
from services.record_fields import (
    build_create_record,
    compare_fields,
    merge_metadata,
    only_dimensions,
    supplied_fields,
    values_equal,
)

logger = structlog.get_logger(__name__)

NO_PRODUCT_NAME = "No product name"
NO_MATCH_FOUND = "No match found"
MISSING_SKU = "Missing SKU"
ZERO_QUANTITY = "Zero quantity"


def classify(row: ImportRow, match: MatchCandidate) -> RowOutcome:
    """
    Classify a row against its identity match.

    Order of checks:
        1. several candidates -> conflict (multiple_candidates)
        2. productId match with a different SKU -> conflict (duplicate_item_id)
        3. differing allow-listed fields -> conflict (field or dimension mismatch)
        4. primary, nothing differs -> matched, metadata merged
        5. no match -> new item, or unmatched with a reason

    Args:
        row: Normalized import row
        match: Identity Resolver result for the row

    Returns:
        MatchedRow | NewRow | ConflictedRow | UnmatchedRow
    """
    key = row.product_id or row.sku or row.name

    if match.conflicts:
        candidates = [ConflictCandidate(
            item=match.primary,
            score=match.score,
            differences=compare_fields(row, match.primary)
        )] + [
            ConflictCandidate(
                item=c.item,
                score=c.score,
                differences=compare_fields(row, c.item)
            )
            for c in match.conflicts
        ]
        return ConflictedRow(
            row=row,
            conflict_type=ConflictType.MULTIPLE_CANDIDATES,
            key=key,
            candidates=candidates,
            proposed_update=supplied_fields(row)
        )

    if match.primary is not None:
        item = match.primary
        differences = compare_fields(row, item)

        if (
            match.matched_by == "product_id"
            and row.has("sku")
            and not values_equal("sku", item.sku, row.sku)
        ):
            conflict_type = ConflictType.DUPLICATE_ITEM_ID
        elif only_dimensions(differences):
            conflict_type = ConflictType.DIMENSION_MISMATCH
        elif differences:
            conflict_type = ConflictType.FIELD_MISMATCH
        else:
            return MatchedRow(
                row=row,
                item=item,
                score=match.score,
                matched_by=match.matched_by,
                updates=merge_metadata(row, item)
            )

        logger.debug(
            "row_conflicted",
            row_index=row.row_index,
            conflict_type=conflict_type.value,
            fields=[d.field for d in differences]
        )
        return ConflictedRow(
            row=row,
            conflict_type=conflict_type,
            key=key,
            candidates=[ConflictCandidate(item=item, score=match.score, differences=differences)],
            differences=differences,
            proposed_update=supplied_fields(row)
        )

    if not row.has("name") and not row.has("product_id") and not row.has("sku"):
        return UnmatchedRow(row=row, reason=NO_PRODUCT_NAME)

    if not row.has("sku"):
        reason = NO_MATCH_FOUND if not row.has("product_id") else MISSING_SKU
        return UnmatchedRow(row=row, reason=reason)

    if row.quantity <= 0:
        return UnmatchedRow(row=row, reason=ZERO_QUANTITY)

    return NewRow(row=row, record=build_create_record(row))
