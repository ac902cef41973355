"""Per-site rule table for the supported product-page hosts."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlparse

from shopbridge.constants import GENERIC_HEADING_SELECTOR, PURCHASE_KEYWORDS


@dataclass(frozen=True)
class SiteRules:
    name: str
    host: str
    product_path_segment: str
    heading_selectors: tuple[str, ...] = ()
    purchase_box_button_selector: str = ""
    purchase_box_class_markers: tuple[str, ...] = ()
    keywords: tuple[str, ...] = PURCHASE_KEYWORDS
    query_from_path: bool = False
    non_name_prefixes: tuple[str, ...] = ()
    min_path_name_length: int = 3
    title_suffix: str = ""

    def matches_host(self, hostname: str) -> bool:
        return self.host in (hostname or "").lower()

    def is_product_path(self, path: str) -> bool:
        return self.product_path_segment in (path or "")


SITES: tuple[SiteRules, ...] = (
    SiteRules(
        name="torob",
        host="torob.com",
        product_path_segment="/p/",
        heading_selectors=('[class*="Showcase_name"] h1',),
        purchase_box_button_selector='[class*="purchase-box"] button',
        purchase_box_class_markers=("purchase-box",),
        query_from_path=True,
        non_name_prefixes=("p_",),
        title_suffix="| ترب",
    ),
    SiteRules(
        name="esam",
        host="esam.ir",
        product_path_segment="/item/",
        purchase_box_button_selector='[class*="productPurchaseBox"] button',
        purchase_box_class_markers=("productPurchaseBox",),
    ),
)


def site_for_host(hostname: str) -> SiteRules | None:
    for site in SITES:
        if site.matches_host(hostname):
            return site
    return None


def match_site(url: str) -> SiteRules | None:
    """Return the rules for a supported product page, or None when the route is not eligible."""
    try:
        parsed = urlparse(url or "")
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https"):
        return None
    site = site_for_host(parsed.hostname or "")
    if site is None or not site.is_product_path(parsed.path):
        return None
    return site


def heading_selectors(site: SiteRules) -> tuple[str, ...]:
    return (*site.heading_selectors, GENERIC_HEADING_SELECTOR)


def has_purchase_box_marker(site: SiteRules, class_name: str) -> bool:
    value = class_name or ""
    return any(marker in value for marker in site.purchase_box_class_markers)
