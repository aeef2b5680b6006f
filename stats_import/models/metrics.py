from __future__ import annotations

"""Closed catalogue of trackable metrics (version 1).

The keys are the contract between the mapping step and the row transformer;
the record store has one column per key. Extending the list means bumping
METRICS_VERSION.
"""

__all__ = [
    "METRICS_VERSION",
    "METRIC_LABELS",
    "METRIC_KEYS",
    "TEXT_METRICS",
    "is_text_metric",
]

METRICS_VERSION = 1

# Display order matters: the correction prompt and the CLI listing follow it.
METRIC_LABELS: dict[str, str] = {
    "objective": "Objectif du mois",
    "content_published": "Contenu publié",
    "reach": "Portée",
    "stories_coverage": "Couverture stories",
    "views": "Nb de vues",
    "profile_visits": "Visites profil",
    "website_clicks": "Clics site web",
    "interactions": "Interactions",
    "accounts_engaged": "Comptes qui ont interagi",
    "followers_engaged": "Followers qui ont interagi",
    "followers": "Abonné·es (total)",
    "followers_gained": "Followers gagnés",
    "followers_lost": "Followers perdus",
    "email_signups": "Inscrits email",
    "newsletter_subscribers": "Abonnés newsletter",
    "website_visitors": "Visiteurs site",
    "traffic_pinterest": "Trafic Pinterest",
    "traffic_instagram": "Trafic Instagram",
    "ga4_users": "Utilisateurs GA4",
    "traffic_search": "Trafic recherche",
    "traffic_social": "Trafic réseaux sociaux",
    "ad_budget": "Budget pub",
    "page_views_plan": "Pages plan de com'",
    "page_views_academy": "Pages Now Studio",
    "page_views_agency": "Pages Agency",
    "discovery_calls": "Appels découverte",
    "clients_signed": "Clients signés",
    "revenue": "CA",
}

METRIC_KEYS: tuple[str, ...] = tuple(METRIC_LABELS)

TEXT_METRICS: frozenset[str] = frozenset({"objective", "content_published"})


def is_text_metric(key: str) -> bool:
    return key in TEXT_METRICS
