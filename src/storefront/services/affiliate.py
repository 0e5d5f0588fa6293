from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from storefront.domain.models import BuyingOption

logger = logging.getLogger(__name__)

MAX_BUYING_OPTIONS = 4

# Retailer -> (Domain-Teilstring, Query-Parameter für die Partner-ID).
# Die Domains sind disjunkt, daher greift pro URL höchstens eine Regel.
_RETAILER_PARAMS: dict[str, tuple[str, str]] = {
    "amazon": ("amazon", "tag"),
    "walmart": ("walmart", "sourceid"),
}

_PREFERRED_PARTNER_DOMAINS = ("amazon", "walmart")


@dataclass(frozen=True)
class AffiliateRule:
    domain_match: str
    transform: Callable[[str], str]

    def matches(self, host: str) -> bool:
        return self.domain_match in host


def _host_of(url: str) -> str | None:
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    return parts.hostname.lower()


def set_query_param(url: str, name: str, value: str) -> str:
    """Setzt bzw. überschreibt ``name``; vorhandene Duplikate werden entfernt."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != name]
    query.append((name, value))
    return urlunsplit(parts._replace(query=urlencode(query)))


def query_param_rule(domain_match: str, param: str, partner_id: str) -> AffiliateRule:
    return AffiliateRule(
        domain_match=domain_match,
        transform=lambda url: set_query_param(url, param, partner_id),
    )


def build_rules(affiliate_ids: Mapping[str, str]) -> list[AffiliateRule]:
    """Erzeugt die Regelliste in fester Reihenfolge aus der Partner-Konfiguration."""
    rules = []
    for retailer, (domain_match, param) in _RETAILER_PARAMS.items():
        partner_id = affiliate_ids.get(retailer)
        if partner_id:
            rules.append(query_param_rule(domain_match, param, partner_id))
    for retailer in affiliate_ids:
        if retailer not in _RETAILER_PARAMS:
            logger.debug("No link rule known for retailer '%s', partner id unused", retailer)
    return rules


class AffiliateLinkTransformer:
    """Rewrites outbound retailer links and ranks buying options by partner preference."""

    def __init__(
        self,
        rules: list[AffiliateRule],
        preferred_domains: Iterable[str] = _PREFERRED_PARTNER_DOMAINS,
        max_results: int = MAX_BUYING_OPTIONS,
    ) -> None:
        self._rules = list(rules)
        self._preferred = tuple(preferred_domains)
        self._max_results = max_results

    @classmethod
    def from_affiliate_ids(cls, affiliate_ids: Mapping[str, str]) -> AffiliateLinkTransformer:
        return cls(rules=build_rules(affiliate_ids))

    def rewrite(self, url: str) -> str:
        host = _host_of(url)
        if host is None:
            return url
        for rule in self._rules:
            if rule.matches(host):
                try:
                    return rule.transform(url)
                except ValueError:
                    logger.warning("Could not rewrite link %s", url)
                    return url
        return url

    def is_preferred_partner(self, url: str) -> bool:
        host = _host_of(url)
        return host is not None and any(domain in host for domain in self._preferred)

    def rank(self, options: Iterable[BuyingOption]) -> list[BuyingOption]:
        """Stabile Partition: bevorzugte Partner zuerst, danach Kürzung."""
        preferred: list[BuyingOption] = []
        others: list[BuyingOption] = []
        for option in options:
            (preferred if self.is_preferred_partner(option.url) else others).append(option)
        return (preferred + others)[: self._max_results]
