"""AssignmentRule entity — priority-ordered condition → action mapping."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from leadrouting.domain.errors import ValidationError
from leadrouting.domain.value_objects.enums import ActionType, ConditionOperator

# Stored action parameters may use the camelCase keys of older clients
_PARAMETER_ALIASES = {
    "userId": "user_id",
    "teamId": "team_id",
}

_REQUIRED_PARAMETERS = {
    ActionType.ASSIGN_TO_USER: "user_id",
    ActionType.ASSIGN_TO_TEAM: "team_id",
}


@dataclass(frozen=True)
class RuleCondition:
    field: str
    operator: ConditionOperator
    value: Any

    @classmethod
    def from_dict(cls, data: dict) -> RuleCondition:
        if not isinstance(data, dict):
            raise ValidationError(f"Condition must be an object, got {data!r}")
        try:
            path = data["field"]
            operator = ConditionOperator(data["operator"])
        except KeyError as e:
            raise ValidationError(f"Condition is missing {e.args[0]!r}: {data!r}") from e
        except ValueError as e:
            raise ValidationError(f"Unknown condition operator {data.get('operator')!r}") from e

        if not isinstance(path, str) or not path:
            raise ValidationError(f"Condition field must be a non-empty string: {data!r}")

        value = data.get("value")
        if operator in (ConditionOperator.IN, ConditionOperator.NOT_IN):
            if not isinstance(value, (list, tuple, set, frozenset)):
                raise ValidationError(
                    f"Operator {operator.value!r} needs a list value, got {value!r}"
                )
            value = tuple(value)
        return cls(field=path, operator=operator, value=value)

    def to_dict(self) -> dict:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {"field": self.field, "operator": self.operator.value, "value": value}


@dataclass(frozen=True)
class RuleAction:
    type: ActionType
    parameters: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> RuleAction:
        if not isinstance(data, dict):
            raise ValidationError(f"Action must be an object, got {data!r}")
        try:
            action_type = ActionType(data["type"])
        except KeyError as e:
            raise ValidationError(f"Action is missing 'type': {data!r}") from e
        except ValueError as e:
            raise ValidationError(f"Unknown action type {data.get('type')!r}") from e

        raw = data.get("parameters") or {}
        if not isinstance(raw, dict):
            raise ValidationError(f"Action parameters must be an object, got {raw!r}")
        parameters = {_PARAMETER_ALIASES.get(k, k): v for k, v in raw.items()}

        required = _REQUIRED_PARAMETERS.get(action_type)
        if required and not parameters.get(required):
            raise ValidationError(f"Action {action_type.value!r} requires parameter {required!r}")
        return cls(type=action_type, parameters=parameters)

    def to_dict(self) -> dict:
        return {"type": self.type.value, "parameters": dict(self.parameters)}


@dataclass(frozen=True)
class Territory:
    id: str
    name: str
    regions: tuple[str, ...] = ()
    countries: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> Territory:
        if not isinstance(data, dict):
            raise ValidationError(f"Territory must be an object, got {data!r}")
        if "id" not in data:
            raise ValidationError(f"Territory is missing 'id': {data!r}")
        regions = data.get("regions") or []
        countries = data.get("countries") or []
        if not isinstance(regions, list) or not isinstance(countries, list):
            raise ValidationError(f"Territory regions and countries must be lists: {data!r}")
        return cls(
            id=str(data["id"]),
            name=data.get("name", str(data["id"])),
            regions=tuple(regions),
            countries=tuple(countries),
        )

    def covers(self, territory: Any, region: Any, country: Any) -> bool:
        """Whether a lead located by (territory id, region, country) falls in this territory."""
        if isinstance(territory, str) and territory == self.id:
            return True
        if isinstance(region, str) and region.lower() in {r.lower() for r in self.regions}:
            return True
        if isinstance(country, str) and country.lower() in {c.lower() for c in self.countries}:
            return True
        return False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "regions": list(self.regions),
            "countries": list(self.countries),
        }


@dataclass
class AssignmentRule:
    id: str
    name: str
    priority: int
    conditions: list[RuleCondition] = field(default_factory=list)
    actions: list[RuleAction] = field(default_factory=list)
    is_active: bool = True
    working_hours_id: str | None = None
    territories: list[Territory] = field(default_factory=list)
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def ownership_actions(self) -> list[RuleAction]:
        return [a for a in self.actions if a.type.is_ownership]

    @property
    def side_effect_actions(self) -> list[RuleAction]:
        return [a for a in self.actions if not a.type.is_ownership]


def _parse_list(raw: Any, what: str, parse) -> list:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError(f"Rule {what} must be a list, got {raw!r}")
    return [parse(item) for item in raw]


def parse_conditions(raw: Any) -> list[RuleCondition]:
    return _parse_list(raw, "conditions", RuleCondition.from_dict)


def parse_actions(raw: Any) -> list[RuleAction]:
    return _parse_list(raw, "actions", RuleAction.from_dict)


def parse_territories(raw: Any) -> list[Territory]:
    return _parse_list(raw, "territories", Territory.from_dict)
