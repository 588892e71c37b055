"""Row transformer: per-field transforms, alias recovery and auto-fill.

Normalization is best effort. A transform that raises leaves the field empty
and records a warning; required-field validation downstream decides whether
the gap matters.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable

from crm_import.imports import transforms
from crm_import.imports.heuristics import HeuristicTables
from crm_import.imports.parser import Row
from crm_import.imports.registry import ImportSchema
from crm_import.imports.validator import is_empty

logger = logging.getLogger(__name__)

Finding = tuple[str | None, str]  # (field, message)


@dataclass
class TransformOutcome:
    values: dict[str, Any]
    warnings: list[Finding] = field(default_factory=list)


class RowTransformer:
    def __init__(self, tables: HeuristicTables | None = None):
        self.tables = tables or HeuristicTables()

    # ─── Transforms ───

    def parse_quarter(self, value: str) -> date | None:
        return transforms.parse_quarter(value, self.tables.quarter_sentinels)

    def _bind(self, fn: Callable[[str], Any]) -> Callable[[str], Any]:
        # Quarter parsing honours the deployment's sentinel list.
        if fn is transforms.parse_quarter:
            return self.parse_quarter
        return fn

    def _apply(self, schema: ImportSchema, field_name: str, raw: Any) -> Any:
        fn = schema.transforms.get(field_name)
        if fn is None:
            return raw
        return self._bind(fn)(raw)

    def _canonicalize(self, values: dict[str, Any]) -> None:
        group = values.get("industry_group")
        if isinstance(group, str) and group:
            values["industry_group"] = self.tables.group_codes.get(group.upper(), group)
        groups = values.get("industry_groups")
        if isinstance(groups, list):
            values["industry_groups"] = [self.tables.group_codes.get(g.upper(), g) for g in groups]

    def transform(self, row: Row, schema: ImportSchema) -> TransformOutcome:
        """Apply the schema's transforms to the fields present in `row`."""
        values: dict[str, Any] = dict(row)
        warnings: list[Finding] = []
        for field_name in schema.transforms:
            if field_name not in row:
                continue
            try:
                values[field_name] = self._apply(schema, field_name, row[field_name])
            except Exception as exc:
                values[field_name] = ""
                warnings.append((field_name, f"Transformation failed: {exc}"))
                logger.debug("transform: %s.%s failed on %r: %s", schema.table, field_name, row[field_name], exc)
        self._canonicalize(values)
        return TransformOutcome(values=values, warnings=warnings)

    # ─── Alternative-field recovery ───

    def recover(self, field_name: str, row: Row, schema: ImportSchema) -> tuple[str, Any] | None:
        """First non-empty alias column for `field_name`, as (alias, value)."""
        aliases = self.tables.aliases_for(schema.table, field_name)
        if not aliases:
            return None
        by_lower = {k.strip().lower(): v for k, v in row.items()}
        for alias in aliases:
            raw = by_lower.get(alias.lower())
            if raw is None or not str(raw).strip():
                continue
            try:
                value = self._apply(schema, field_name, raw)
            except Exception as exc:
                logger.debug("recover: alias %s for %s unusable: %s", alias, field_name, exc)
                continue
            if not is_empty(value):
                return alias, value
        return None

    # ─── Heuristic classification ───

    def classify_industry(self, name: str) -> tuple[str, str | None]:
        """(industry, matched keyword); keyword is None for the default."""
        lowered = (name or "").lower()
        for industry, keywords in self.tables.industry_keywords:
            for keyword in keywords:
                if keyword in lowered:
                    return industry, keyword
        return self.tables.default_industry, None

    def classify_industry_group(self, code: str) -> tuple[str, str]:
        """(group, how) where how is "code", "keyword" or "default"."""
        upper = (code or "").strip().upper()
        if upper in self.tables.group_codes:
            return self.tables.group_codes[upper], "code"
        if upper:
            for group, keywords in self.tables.group_keywords:
                if any(k in upper for k in keywords):
                    return group, "keyword"
        return self.tables.default_group, "default"

    def short_code(self, values: dict[str, Any]) -> tuple[str | None, str]:
        for field_name in self.tables.short_code_fields:
            value = values.get(field_name)
            if isinstance(value, str) and value.strip():
                return field_name, value.strip()
        return None, ""

    def account_defaults(self, name: str, short_code: str = "") -> dict[str, Any]:
        """Field values for an account created as a side effect of another import."""
        industry, _ = self.classify_industry(name)
        group, _ = self.classify_industry_group(short_code)
        return {
            "name": name,
            "legal_name": name,
            "industry": industry,
            "industry_group": group,
            "billing_address": "",
            "payment_terms": "Net 30",
        }

    # ─── Auto-fill ───

    def auto_fill(self, values: dict[str, Any], schema: ImportSchema) -> list[Finding]:
        """Derive blank optional fields in place; one warning per filled field."""
        if schema.table == "accounts":
            return self._fill_account(values)
        if schema.table == "users":
            return self._fill_user(values)
        return []

    def _fill_account(self, values: dict[str, Any]) -> list[Finding]:
        warnings: list[Finding] = []
        name = values.get("name") or ""

        if is_empty(values.get("legal_name")):
            values["legal_name"] = name
            warnings.append(("legal_name", f"Legal name auto-filled from account name '{name}'"))

        if is_empty(values.get("industry")):
            industry, keyword = self.classify_industry(name)
            values["industry"] = industry
            if keyword:
                warnings.append(("industry", f"Industry set to '{industry}' from keyword '{keyword}' in account name"))
            else:
                warnings.append(("industry", f"Industry defaulted to '{industry}' (no keyword match in account name)"))

        if is_empty(values.get("industry_group")):
            source, code = self.short_code(values)
            group, how = self.classify_industry_group(code)
            values["industry_group"] = group
            if how == "default":
                warnings.append(("industry_group", f"Industry group defaulted to '{group}'"))
            else:
                warnings.append(("industry_group", f"Industry group set to '{group}' from {source} '{code}' ({how} match)"))

        if is_empty(values.get("payment_terms")):
            values["payment_terms"] = "Net 30"
            warnings.append(("payment_terms", "Payment terms defaulted to 'Net 30'"))

        return warnings

    def _fill_user(self, values: dict[str, Any]) -> list[Finding]:
        warnings: list[Finding] = []
        if is_empty(values.get("role")):
            values["role"] = "client_leader"
            warnings.append(("role", "Role defaulted to 'client_leader'"))
        if is_empty(values.get("industry_groups")):
            groups = self.tables.team_groups.get(values.get("name") or "")
            if groups:
                values["industry_groups"] = list(groups)
                warnings.append(("industry_groups", f"Industry groups set from team directory: {', '.join(groups)}"))
        return warnings
