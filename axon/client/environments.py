import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..errors import NotFoundError, ValidationError
from .models import new_id

VARIABLE_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")


def substitute(text, variables: Dict[str, str]):
    """Replace ``{{name}}`` placeholders; unknown names stay verbatim."""
    if not isinstance(text, str) or not variables:
        return text

    def lookup(match):
        name = match.group(1)
        return variables[name] if name in variables else match.group(0)

    return VARIABLE_PATTERN.sub(lookup, text)


@dataclass
class Environment:
    id: str
    name: str
    variables: Dict[str, str] = field(default_factory=dict)
    is_active: bool = False


class EnvironmentSet:
    """Named variable sets, at most one of them active."""

    def __init__(self, environments: Iterable[Environment] = ()):
        self.environments: List[Environment] = []
        for environment in environments:
            self.environments.append(environment)
            if environment.is_active:
                self.activate(environment.id)

    @classmethod
    def from_payload(cls, items: Iterable[dict]) -> "EnvironmentSet":
        return cls(
            Environment(
                id=str(item["id"]),
                name=item["name"],
                variables=dict(item.get("variables") or {}),
                is_active=bool(item.get("is_active")),
            )
            for item in items
        )

    def get(self, environment_id: str) -> Environment:
        for environment in self.environments:
            if environment.id == environment_id:
                return environment
        raise NotFoundError(f"Environment {environment_id} not found")

    def add(self, name: str, variables: Dict[str, str] = None, activate: bool = False) -> Environment:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Environment name is required")
        environment = Environment(id=new_id(), name=name, variables=dict(variables or {}))
        self.environments.append(environment)
        if activate:
            self.activate(environment.id)
        return environment

    def remove(self, environment_id: str) -> None:
        self.environments.remove(self.get(environment_id))

    def activate(self, environment_id: Optional[str]) -> Optional[Environment]:
        """Make ``environment_id`` the only active environment; ``None`` deactivates all."""
        target = self.get(environment_id) if environment_id is not None else None
        for environment in self.environments:
            environment.is_active = environment is target
        return target

    @property
    def active(self) -> Optional[Environment]:
        return next((env for env in self.environments if env.is_active), None)

    @property
    def variables(self) -> Dict[str, str]:
        return dict(self.active.variables) if self.active else {}

    def substitute(self, text):
        return substitute(text, self.variables)
