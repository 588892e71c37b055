"""Import schema types and the process-wide schema registry."""
import enum
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping

from crm_import.imports import transforms
from crm_import.imports.errors import SchemaNotFoundError

logger = logging.getLogger(__name__)

Transform = Callable[[str], Any]


class RuleKind(str, enum.Enum):
    required = "required"
    email = "email"
    number = "number"
    date = "date"
    enum = "enum"
    length = "length"
    pattern = "pattern"


class DuplicateStrategy(str, enum.Enum):
    skip = "skip"
    update = "update"
    error = "error"


@dataclass(frozen=True)
class LengthBounds:
    min: int = 0
    max: int | None = None


@dataclass(frozen=True)
class ValidationRule:
    field: str
    kind: RuleKind
    message: str
    # enum -> frozenset of allowed values, length -> LengthBounds, pattern -> regex
    parameter: Any = None


@dataclass(frozen=True)
class ImportSchema:
    name: str
    description: str
    table: str
    rules: tuple[ValidationRule, ...]
    transforms: Mapping[str, Transform]
    duplicate_strategy: DuplicateStrategy
    batch_size: int
    natural_key: tuple[str, ...]
    columns: tuple[str, ...]
    template_example: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be a positive integer, got {self.batch_size}")
        if not self.natural_key:
            raise ValueError("natural_key must name at least one field")
        object.__setattr__(self, "rules", tuple(self.rules))
        object.__setattr__(self, "transforms", MappingProxyType(dict(self.transforms)))
        object.__setattr__(self, "template_example", MappingProxyType(dict(self.template_example)))

    @property
    def required_fields(self) -> list[str]:
        seen: list[str] = []
        for rule in self.rules:
            if rule.kind == RuleKind.required and rule.field not in seen:
                seen.append(rule.field)
        return seen


class SchemaRegistry:
    """Named schemas, registered once at startup and never mutated."""

    def __init__(self):
        self._schemas: dict[str, ImportSchema] = {}

    def register(self, key: str, schema: ImportSchema) -> None:
        if key in self._schemas:
            raise ValueError(f"Schema '{key}' is already registered")
        self._schemas[key] = schema
        logger.debug("Registered import schema %s -> %s", key, schema.table)

    def get(self, key: str) -> ImportSchema:
        try:
            return self._schemas[key]
        except KeyError:
            raise SchemaNotFoundError(key) from None

    def __contains__(self, key: object) -> bool:
        return key in self._schemas

    def keys(self) -> list[str]:
        return list(self._schemas)

    def available(self) -> list[dict[str, str]]:
        return [
            {"id": key, "name": schema.name, "description": schema.description}
            for key, schema in self._schemas.items()
        ]


# ─── Built-in schemas ───

INDUSTRY_GROUPS = frozenset({"SMBA", "HSNE", "DXP", "TLCG", "NEW_BUSINESS"})
PAYMENT_TERMS = frozenset({"Net 15", "Net 30", "Net 45", "Net 60", "Due on Receipt"})
USER_ROLES = frozenset({"industry_leader", "account_owner", "client_leader", "admin"})

CLIENTS_SCHEMA = ImportSchema(
    name="Client Accounts",
    description="Import client account information with full validation",
    table="accounts",
    rules=(
        ValidationRule("name", RuleKind.required, "Account name is required"),
        ValidationRule("name", RuleKind.length, "Name must be between 2 and 255 characters", LengthBounds(2, 255)),
        ValidationRule("industry_group", RuleKind.enum, "Invalid industry group", INDUSTRY_GROUPS),
        ValidationRule("payment_terms", RuleKind.enum, "Invalid payment terms", PAYMENT_TERMS),
    ),
    transforms={
        "name": transforms.strip,
        "legal_name": transforms.strip,
        "industry": transforms.strip,
        "industry_group": transforms.upper_strip,
        "payment_terms": transforms.strip,
    },
    duplicate_strategy=DuplicateStrategy.skip,
    batch_size=100,
    natural_key=("name",),
    columns=("name", "legal_name", "industry", "industry_group", "billing_address", "payment_terms"),
    template_example={
        "name": "Example Corp",
        "legal_name": "Example Corporation Inc",
        "industry": "Technology",
        "industry_group": "DXP",
        "billing_address": "123 Main St, City, State 12345",
        "payment_terms": "Net 30",
    },
)

PROJECTS_SCHEMA = ImportSchema(
    name="Project Jobs",
    description="Import project and job data with relationship validation",
    table="jobs",
    rules=(
        ValidationRule("name", RuleKind.required, "Project name is required"),
        ValidationRule("client_name", RuleKind.required, "Client name is required"),
        ValidationRule(
            "is_new_business", RuleKind.enum,
            "Invalid boolean value for new business flag", frozenset({"true", "false"}),
        ),
        ValidationRule("value", RuleKind.number, "Job value must be a number"),
    ),
    transforms={
        "name": transforms.strip,
        "project_name": transforms.strip,
        "client_name": transforms.strip,
        "client_short": transforms.upper_strip,
        "is_new_business": transforms.normalize_boolean,
        "start_quarter": transforms.parse_quarter,
        "end_quarter": transforms.parse_quarter,
    },
    duplicate_strategy=DuplicateStrategy.skip,
    batch_size=50,
    natural_key=("name", "client_name"),
    columns=(
        "client_name", "name", "client_short", "project_short", "unique_id",
        "start_quarter", "end_quarter", "is_new_business",
    ),
    template_example={
        "client_name": "Example Corp",
        "name": "Website Redesign",
        "client_short": "EXCORP",
        "project_short": "WR",
        "unique_id": "EXCORPWR001",
        "start_quarter": "Q125",
        "end_quarter": "Q225",
        "is_new_business": "false",
    },
)

USERS_SCHEMA = ImportSchema(
    name="Team Members",
    description="Import user accounts with role and permission validation",
    table="users",
    rules=(
        ValidationRule("email", RuleKind.required, "Email is required"),
        ValidationRule("email", RuleKind.email, "Invalid email format"),
        ValidationRule("name", RuleKind.required, "Name is required"),
        ValidationRule("role", RuleKind.enum, "Invalid role", USER_ROLES),
    ),
    transforms={
        "email": transforms.lower_strip,
        "name": transforms.strip,
        "role": transforms.lower_strip,
        "industry_groups": transforms.parse_list,
    },
    duplicate_strategy=DuplicateStrategy.update,
    batch_size=25,
    natural_key=("email",),
    columns=("name", "email", "role", "industry_groups"),
    template_example={
        "name": "John Doe",
        "email": "john.doe@company.com",
        "role": "client_leader",
        "industry_groups": '["DXP", "SMBA"]',
    },
)


def build_default_registry() -> SchemaRegistry:
    registry = SchemaRegistry()
    registry.register("clients", CLIENTS_SCHEMA)
    registry.register("projects", PROJECTS_SCHEMA)
    registry.register("users", USERS_SCHEMA)
    return registry
