"""Anchor selection for the injected control on host product pages."""

from __future__ import annotations

from typing import Any, Callable

from shopbridge.constants import (
    CANDIDATE_SELECTOR,
    GENERIC_HEADING_SELECTOR,
    MIN_ANCHOR_TEXT_LENGTH,
)
from shopbridge.models import Candidate
from shopbridge.sites import SiteRules, has_purchase_box_marker

PLACEMENT_AFTER = "after"
PLACEMENT_APPEND_TO_PARENT = "append_to_parent"
PLACEMENT_AFTER_PARENT = "after_parent"

CandidateRule = Callable[[Candidate, SiteRules], bool]


def has_rendered_size(candidate: Candidate, _site: SiteRules) -> bool:
    return not (candidate.width == 0 and candidate.height == 0)


def is_styled_visible(candidate: Candidate, _site: SiteRules) -> bool:
    if candidate.display == "none" or candidate.visibility == "hidden":
        return False
    try:
        return float(candidate.opacity) != 0.0
    except ValueError:
        return True


def has_meaningful_text(candidate: Candidate, _site: SiteRules) -> bool:
    return len(candidate.text.strip()) >= MIN_ANCHOR_TEXT_LENGTH


def has_purchase_keyword(candidate: Candidate, site: SiteRules) -> bool:
    text = candidate.text
    return any(keyword in text for keyword in site.keywords)


def outside_landmarks(candidate: Candidate, _site: SiteRules) -> bool:
    return not candidate.in_landmark


# Every rule must pass; order only matters for `rejection_reason`.
ANCHOR_FILTERS: tuple[tuple[str, CandidateRule], ...] = (
    ("size", has_rendered_size),
    ("visibility", is_styled_visible),
    ("text", has_meaningful_text),
    ("keyword", has_purchase_keyword),
    ("landmark", outside_landmarks),
)


def rejection_reason(candidate: Candidate, site: SiteRules) -> str:
    for name, rule in ANCHOR_FILTERS:
        if not rule(candidate, site):
            return name
    return ""


def select_anchor(candidates: list[Candidate], site: SiteRules) -> Candidate | None:
    for candidate in candidates:
        if not rejection_reason(candidate, site):
            return candidate
    return None


def fallback_selectors(site: SiteRules) -> tuple[str, ...]:
    selectors = []
    if site.purchase_box_button_selector:
        selectors.append(site.purchase_box_button_selector)
    selectors.append(GENERIC_HEADING_SELECTOR)
    return tuple(selectors)


async def locate_target(document: Any, site: SiteRules) -> Candidate | None:
    candidates = await document.scan(CANDIDATE_SELECTOR, fresh=True)
    found = select_anchor(candidates, site)
    if found is not None:
        return found
    for selector in fallback_selectors(site):
        matches = await document.scan(selector)
        if matches:
            return matches[0]
    return None


def _is_heading(candidate: Candidate, _site: SiteRules) -> bool:
    return candidate.is_heading


def _parent_is_purchase_box(candidate: Candidate, site: SiteRules) -> bool:
    return has_purchase_box_marker(site, candidate.parent_class)


def _parent_is_flex_row(candidate: Candidate, _site: SiteRules) -> bool:
    return (
        candidate.parent_display == "flex"
        and "row" in candidate.parent_flex_direction
        and candidate.has_grandparent
    )


PLACEMENT_RULES: tuple[tuple[str, CandidateRule], ...] = (
    (PLACEMENT_AFTER, _is_heading),
    (PLACEMENT_APPEND_TO_PARENT, _parent_is_purchase_box),
    (PLACEMENT_AFTER_PARENT, _parent_is_flex_row),
)


def choose_placement(candidate: Candidate, site: SiteRules) -> str:
    for placement, rule in PLACEMENT_RULES:
        if rule(candidate, site):
            return placement
    return PLACEMENT_AFTER
