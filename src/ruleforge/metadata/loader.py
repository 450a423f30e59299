"""Load entity rule definitions from YAML files."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ruleforge.entities import Model


@dataclass
class EntityRules:
    """Rules for one entity as declared in YAML.

    Attributes:
        name: Entity name (also the name of the generated model class)
        validation: Attribute path -> rule declaration
        labels: Attribute path -> display label
        description: Free-form description
        source: File the definition was loaded from
    """

    name: str
    validation: dict[str, Any] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    description: str = ""
    source: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: Path | None = None) -> "EntityRules":
        """Create EntityRules from the ``entity`` mapping of a YAML document."""
        return cls(
            name=data["name"],
            validation=dict(data.get("validation") or {}),
            labels=dict(data.get("labels") or {}),
            description=data.get("description", ""),
            source=source,
        )

    def build_model(self, base: type[Model] = Model) -> type[Model]:
        """Create a model class carrying these rules and labels."""
        return type(
            self.name,
            (base,),
            {"validation": dict(self.validation), "labels": dict(self.labels)},
        )


class RuleLoader:
    """Loads entity rule definitions from a YAML file or a directory of them.

    Each file holds one document of the form::

        entity:
          name: Signup
          labels:
            email: E-mail address
          validation:
            email: {required: true, pattern: email}
            age: [{required: true}, {min: 18, msg: Adults only}]
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.entities: dict[str, EntityRules] = {}

    def load_all(self) -> dict[str, EntityRules]:
        """Load every ``*.yaml`` / ``*.yml`` file under the path.

        Raises:
            FileNotFoundError: If the path does not exist
            ValueError: If a file is malformed or an entity is declared twice
        """
        if not self.path.exists():
            raise FileNotFoundError(f"Rules path does not exist: {self.path}")

        files = [self.path] if self.path.is_file() else rule_files(self.path)
        for yaml_file in files:
            rules = self.load_file(yaml_file)
            if rules.name in self.entities:
                raise ValueError(
                    f"Entity '{rules.name}' is declared in both "
                    f"{self.entities[rules.name].source} and {yaml_file}"
                )
            self.entities[rules.name] = rules
        return self.entities

    def load_file(self, yaml_file: Path) -> EntityRules:
        with yaml_file.open() as fh:
            raw = yaml.safe_load(fh)
        if not isinstance(raw, dict) or not isinstance(raw.get("entity"), dict):
            raise ValueError(f"{yaml_file}: expected a mapping with an 'entity' key")
        return EntityRules.from_dict(raw["entity"], source=yaml_file)

    def get_entity(self, name: str) -> EntityRules | None:
        return self.entities.get(name)

    def list_entities(self) -> list[str]:
        return sorted(self.entities.keys())


def rule_files(directory: Path) -> list[Path]:
    """All YAML files directly under ``directory``, sorted by name."""
    return sorted([*directory.glob("*.yaml"), *directory.glob("*.yml")])
