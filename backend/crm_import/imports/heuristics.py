"""Lookup tables behind alternative-field recovery and auto-fill.

All tables are immutable data handed to the RowTransformer, so a deployment
can swap them (see `load_heuristics`) without touching engine code.
"""
import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

logger = logging.getLogger(__name__)

NEW_BUSINESS_GROUP = "NEW_BUSINESS"
DEFAULT_INDUSTRY = "Professional Services"


def _frozen(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))


# ─── Default tables ───

# Per-table alias columns consulted when a required field is empty.
DEFAULT_FIELD_ALIASES: dict[str, dict[str, tuple[str, ...]]] = {
    "accounts": {
        "name": ("company_name", "client_name", "organization", "account_name", "business_name"),
        "legal_name": ("official_name", "legal_entity", "company_legal_name"),
    },
    "jobs": {
        "name": ("project_name", "job_name", "project"),
        "client_name": ("company_name", "account_name", "client", "organization", "customer_name"),
    },
    "users": {
        "name": ("full_name", "user_name", "display_name"),
        "email": ("email_address", "e_mail", "mail"),
    },
}

# (industry label, keywords matched against the lowercased company name).
# First matching group wins.
DEFAULT_INDUSTRY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Higher Education", ("university", "college", "school", "academy", "institute")),
    ("Financial Services", ("bank", "financial", "finance", "capital", "insurance", "credit")),
    ("Healthcare", ("health", "medical", "pharma", "clinic", "hospital")),
    ("Technology", ("tech", "software", "digital", "systems", "cloud")),
    ("Travel & Hospitality", ("travel", "hotel", "resort", "cruise", "airline", "hospitality")),
    ("Manufacturing", ("manufacturing", "industrial", "factory", "motors")),
    ("Retail", ("retail", "store", "shop", "market", "fashion")),
    ("Non-Profit", ("foundation", "charity", "nonprofit", "non-profit", "association")),
    ("Government & Public Sector", ("government", "city of", "county", "ministry", "agency", "federal")),
)

# Known industry-group codes, plus legacy spellings found in older exports.
DEFAULT_GROUP_CODES: dict[str, str] = {
    "SMBA": "SMBA",
    "HSNE": "HSNE",
    "DXP": "DXP",
    "TLCG": "TLCG",
    "NEW_BUSINESS": NEW_BUSINESS_GROUP,
    "SBMA": "SMBA",
    "HSME": "HSNE",
    "DXPS": "DXP",
    "GLOBAL DXP": "DXP",
    "TLCE": "TLCG",
    "NEW_BIZ": NEW_BUSINESS_GROUP,
    "SERVICES": "SMBA",
    "CONSUMER": "TLCG",
}

# (group, substrings matched against the uppercased short code).
DEFAULT_GROUP_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("HSNE", ("UNIV", "COLLEGE", "EDU", "SCHOOL", "SPORT", "MEDIA")),
    ("DXP", ("TECH", "DXP", "SOFT", "DIGI")),
    ("SMBA", ("BANK", "FIN", "MFG", "AGRI", "SERV")),
    ("TLCG", ("TRAV", "HOTEL", "LUX", "CRUISE", "RETAIL")),
)

# Industry group of each member of the client-leadership team directory.
_TEAM_DIRECTORY: dict[str, tuple[str, ...]] = {
    "SMBA": (
        "Amanda Konopko", "Danielle Bathelemy", "Liliana Zbirciog", "Olga Kashchenko", "Jeremiah Bowden",
        "Alex Arnaut", "Chris Miller", "Chaney Moore", "Derry Backenkeller", "Matt Rissmiller",
    ),
    "HSNE": ("Mandee Englert", "Lindsay Dehm", "Lindsey Presley", "Bruce Clingan", "Tom Jones"),
    "TLCG": ("Daniel Bafico", "Esteban Biancchi"),
}

DEFAULT_TEAM_GROUPS: dict[str, tuple[str, ...]] = {
    member: (group,) for group, members in _TEAM_DIRECTORY.items() for member in members
}

DEFAULT_QUARTER_SENTINELS: frozenset[str] = frozenset({"new biz opp", "opportunity", "exploration"})


@dataclass(frozen=True)
class HeuristicTables:
    field_aliases: Mapping[str, Mapping[str, tuple[str, ...]]] = field(
        default_factory=lambda: _frozen({t: _frozen(a) for t, a in DEFAULT_FIELD_ALIASES.items()})
    )
    industry_keywords: tuple[tuple[str, tuple[str, ...]], ...] = DEFAULT_INDUSTRY_KEYWORDS
    default_industry: str = DEFAULT_INDUSTRY
    group_codes: Mapping[str, str] = field(default_factory=lambda: _frozen(DEFAULT_GROUP_CODES))
    group_keywords: tuple[tuple[str, tuple[str, ...]], ...] = DEFAULT_GROUP_KEYWORDS
    default_group: str = NEW_BUSINESS_GROUP
    short_code_fields: tuple[str, ...] = ("client_short", "short_code", "platform_name")
    # Team member name -> industry groups, used to fill users.industry_groups.
    team_groups: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: _frozen(DEFAULT_TEAM_GROUPS))
    quarter_sentinels: frozenset[str] = DEFAULT_QUARTER_SENTINELS

    def aliases_for(self, table: str, field_name: str) -> tuple[str, ...]:
        return tuple(self.field_aliases.get(table, {}).get(field_name, ()))


def _pairs(raw: Mapping[str, Any]) -> tuple[tuple[str, tuple[str, ...]], ...]:
    return tuple((label, tuple(words)) for label, words in raw.items())


def heuristics_from_dict(data: Mapping[str, Any], base: HeuristicTables | None = None) -> HeuristicTables:
    """Overlay a JSON-style dict onto `base` (defaults when omitted).

    Keyword tables are given as {label: [keywords, ...]} objects; their key
    order is the match order.
    """
    tables = base or HeuristicTables()
    overrides: dict[str, Any] = {}
    if "field_aliases" in data:
        overrides["field_aliases"] = _frozen({
            table: _frozen({f: tuple(a) for f, a in aliases.items()})
            for table, aliases in data["field_aliases"].items()
        })
    if "industry_keywords" in data:
        overrides["industry_keywords"] = _pairs(data["industry_keywords"])
    if "group_keywords" in data:
        overrides["group_keywords"] = _pairs(data["group_keywords"])
    if "group_codes" in data:
        overrides["group_codes"] = _frozen({k.upper(): v for k, v in data["group_codes"].items()})
    if "team_groups" in data:
        overrides["team_groups"] = _frozen({k: tuple(v) for k, v in data["team_groups"].items()})
    if "quarter_sentinels" in data:
        overrides["quarter_sentinels"] = frozenset(s.lower() for s in data["quarter_sentinels"])
    for key in ("default_industry", "default_group"):
        if key in data:
            overrides[key] = data[key]
    if "short_code_fields" in data:
        overrides["short_code_fields"] = tuple(data["short_code_fields"])
    return replace(tables, **overrides)


def load_heuristics(path: str | None = None) -> HeuristicTables:
    """Default tables, overlaid with the JSON file at `path` if one is given."""
    if not path:
        return HeuristicTables()
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    logger.info("Loaded heuristic overrides from %s (%s)", path, ", ".join(sorted(data)))
    return heuristics_from_dict(data)
