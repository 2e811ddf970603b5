"""
Cardmarket Offer Finder — Criteria Matcher

Selects one offer among the scraped candidates.

Primary path: exact (condition, language, first edition) triple. The caller
picked these attributes so as not to pay for a different condition or
language, so there is no fuzzy scoring. Among several exact hits the
cheapest wins; remaining ties break on the display fields so the result
never depends on list order.

Fallback ladder (bulk / best-price discovery only, opt-in):
    any_edition  -> condition + language, edition ignored
    any_language -> condition only
    cheapest     -> cheapest priced offer, any attributes
Every rung that is applied gets logged with its name.
"""

from __future__ import annotations

from typing import Callable, NamedTuple, Sequence

import structlog

from src.scraper import MatchCriteria, Offer
from src.utils.condition_map import canonical_condition, canonical_language

logger = structlog.get_logger(__name__)

EXACT = "exact"
ANY_EDITION = "any_edition"
ANY_LANGUAGE = "any_language"
CHEAPEST = "cheapest"


class MatchOutcome(NamedTuple):
    """Offer chosen by the matcher and the ladder rung that produced it."""
    offer: Offer | None
    relaxation: str | None


def _sort_key(offer: Offer) -> tuple:
    # Zero-priced offers carry no usable price, rank them last
    return (
        offer.price_value <= 0,
        offer.price_value,
        offer.price_display,
        offer.condition_grade,
        offer.language,
        offer.is_first_edition,
        offer.rarity or "",
        offer.set_label or "",
    )


def _pick(offers: Sequence[Offer], predicate: Callable[[Offer], bool]) -> Offer | None:
    candidates = [o for o in offers if predicate(o)]
    if not candidates:
        return None
    return min(candidates, key=_sort_key).model_copy()


def match_offer(
    offers: Sequence[Offer],
    criteria: MatchCriteria,
    allow_fallback: bool = False,
) -> MatchOutcome:
    """
    Match offers against criteria, optionally walking the fallback ladder.

    Args:
        offers: Candidate offers from one extraction pass.
        criteria: Requested condition, language and edition.
        allow_fallback: Enable the relaxation ladder (bulk mode only).

    Returns:
        MatchOutcome with a copy of the chosen offer, or (None, None).
    """
    want_condition = canonical_condition(criteria.condition_grade)
    want_language = canonical_language(criteria.language)

    def condition_ok(o: Offer) -> bool:
        return canonical_condition(o.condition_grade) == want_condition

    def language_ok(o: Offer) -> bool:
        return canonical_language(o.language) == want_language

    def edition_ok(o: Offer) -> bool:
        return o.is_first_edition == criteria.is_first_edition

    logger.debug(
        "matcher_search",
        condition=want_condition,
        language=want_language,
        first_edition=criteria.is_first_edition,
        offer_count=len(offers),
    )

    exact = _pick(offers, lambda o: condition_ok(o) and language_ok(o) and edition_ok(o))
    if exact is not None:
        logger.info(
            "matcher_exact_hit",
            price=exact.price_display,
            condition=exact.condition_grade,
            language=exact.language,
            first_edition=exact.is_first_edition,
        )
        return MatchOutcome(exact, EXACT)

    if not allow_fallback:
        logger.info(
            "matcher_no_exact_match",
            condition=want_condition,
            language=want_language,
            first_edition=criteria.is_first_edition,
            offer_count=len(offers),
        )
        return MatchOutcome(None, None)

    ladder: list[tuple[str, Callable[[Offer], bool]]] = [
        (ANY_EDITION, lambda o: condition_ok(o) and language_ok(o)),
        (ANY_LANGUAGE, condition_ok),
        (CHEAPEST, lambda o: True),
    ]
    for relaxation, predicate in ladder:
        chosen = _pick(offers, predicate)
        if chosen is not None:
            logger.warning(
                "matcher_fallback_applied",
                relaxation=relaxation,
                requested_condition=want_condition,
                requested_language=want_language,
                requested_first_edition=criteria.is_first_edition,
                chosen_condition=chosen.condition_grade,
                chosen_language=chosen.language,
                chosen_first_edition=chosen.is_first_edition,
                price=chosen.price_display,
            )
            return MatchOutcome(chosen, relaxation)

    logger.info("matcher_no_offers", offer_count=len(offers))
    return MatchOutcome(None, None)


def select_best(
    offers: Sequence[Offer],
    criteria: MatchCriteria,
    allow_fallback: bool = False,
) -> Offer | None:
    """Return the matching offer, or None when nothing matches."""
    return match_offer(offers, criteria, allow_fallback=allow_fallback).offer
