from __future__ import annotations

from dataclasses import dataclass

from seogenix.models.citation import RelevanceLevel


@dataclass(frozen=True)
class Relevance:
    is_relevant: bool
    relevance: RelevanceLevel


def mentions_target(text: str, domain: str, brand_name: str) -> bool:
    """Case-insensitive substring match on domain or brand name."""
    lowered = (text or "").lower()
    return any(term and term.lower() in lowered for term in (domain, brand_name))


def classify(snippet: str, domain: str, brand_name: str) -> Relevance:
    """Tag a snippet as relevant/high when it names the target site.

    ``is_relevant`` and ``relevance`` share one signal; there is no separate
    authority measure.
    """
    matched = mentions_target(snippet, domain, brand_name)
    return Relevance(
        is_relevant=matched,
        relevance=RelevanceLevel.HIGH if matched else RelevanceLevel.LOW,
    )
