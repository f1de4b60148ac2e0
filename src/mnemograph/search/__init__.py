"""Hybrid search for mnemograph."""

from mnemograph.search.fusion import (
    FusionWeights,
    HybridSearch,
    SearchOptions,
    combined_score,
    format_search_results,
    merge_results,
    parse_entity_id,
    rank_results,
    sanitize_search_results,
)

__all__ = [
    "FusionWeights",
    "HybridSearch",
    "SearchOptions",
    "combined_score",
    "format_search_results",
    "merge_results",
    "parse_entity_id",
    "rank_results",
    "sanitize_search_results",
]
