"""
Declarative Schema - Attribute declarations and validation for resource kinds.

Each resource kind declares its attributes with required/optional, force-new,
computed and write-only markers. The declarations compile to a JSON Schema
(Draft 7) that declared state is validated against before any remote call.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from jsonschema import Draft7Validator, ValidationError

from tags import MAX_TAG_KEY_LENGTH, MAX_TAG_VALUE_LENGTH, MAX_TAGS, expand_tags

logger = logging.getLogger(__name__)

# ARM resource group names: alphanumerics, underscores, parentheses,
# hyphens and periods; may not end in a period.
RESOURCE_GROUP_NAME_PATTERN = r"^[-\w\.\(\)]*[-\w\(\)]$"
RESOURCE_GROUP_NAME_MAX_LENGTH = 90


@dataclass
class Attribute:
    """One declared attribute of a resource kind."""

    name: str
    json_schema: Dict[str, Any]
    required: bool = False
    force_new: bool = False
    computed: bool = False
    # Sent to the remote API but never returned by reads
    write_only: bool = False
    # Compared as an unordered collection when checking for drift
    unordered: bool = False
    # Applied to both sides before comparing for drift
    normalize: Optional[Callable[[Any], Any]] = None


def string_attribute(name: str, **kwargs) -> Attribute:
    """A non-empty string attribute."""
    return Attribute(name=name, json_schema={"type": "string", "minLength": 1}, **kwargs)


def resource_group_name_attribute() -> Attribute:
    return Attribute(
        name="resource_group_name",
        json_schema={
            "type": "string",
            "minLength": 1,
            "maxLength": RESOURCE_GROUP_NAME_MAX_LENGTH,
            "pattern": RESOURCE_GROUP_NAME_PATTERN,
        },
        required=True,
        force_new=True,
    )


def tags_attribute() -> Attribute:
    return Attribute(
        name="tags",
        json_schema={
            "type": "object",
            "maxProperties": MAX_TAGS,
            "propertyNames": {"maxLength": MAX_TAG_KEY_LENGTH},
            "additionalProperties": {
                "type": ["string", "number", "boolean"],
                "maxLength": MAX_TAG_VALUE_LENGTH,
            },
        },
        normalize=expand_tags,
    )


@dataclass
class ResourceSchema:
    """The full attribute set of a resource kind."""

    attributes: List[Attribute] = field(default_factory=list)

    def __post_init__(self):
        self._by_name: Dict[str, Attribute] = {a.name: a for a in self.attributes}

    def get(self, name: str) -> Optional[Attribute]:
        return self._by_name.get(name)

    @property
    def names(self) -> List[str]:
        return [a.name for a in self.attributes]

    @property
    def force_new(self) -> List[str]:
        return [a.name for a in self.attributes if a.force_new]

    @property
    def computed(self) -> List[str]:
        return [a.name for a in self.attributes if a.computed]

    @property
    def write_only(self) -> List[str]:
        return [a.name for a in self.attributes if a.write_only]

    def to_json_schema(self) -> Dict[str, Any]:
        """Compile into a JSON Schema for the caller-settable attributes."""
        properties = {
            a.name: a.json_schema for a in self.attributes if not a.computed
        }
        return {
            "type": "object",
            "required": [a.name for a in self.attributes if a.required],
            "properties": properties,
            "additionalProperties": False,
        }

    def validate(self, declared: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        """
        Validate declared state.

        Args:
            declared: The declared attribute mapping.

        Returns:
            Tuple of (is_valid, error_message)
        """
        try:
            validator = Draft7Validator(
                self.to_json_schema(), format_checker=Draft7Validator.FORMAT_CHECKER
            )
            errors = sorted(
                validator.iter_errors(declared), key=lambda e: list(e.absolute_path)
            )

            if not errors:
                return True, None

            error_messages = []
            for error in errors:
                path = ".".join(str(p) for p in error.absolute_path) or "(root)"
                error_messages.append(f"{path}: {error.message}")

            return False, "; ".join(error_messages)

        except ValidationError as e:
            return False, f"Validation error: {str(e)}"

    def changed_force_new(
        self, previous: Dict[str, Any], declared: Dict[str, Any]
    ) -> List[str]:
        """Return force-new attributes whose value differs between two states."""
        return [
            name
            for name in self.force_new
            if name in previous and previous.get(name) != declared.get(name)
        ]

    def values_equal(self, name: str, left: Any, right: Any) -> bool:
        """Compare two values of an attribute, honoring unordered collections."""
        attribute = self.get(name)
        if attribute is not None and attribute.normalize is not None:
            left, right = attribute.normalize(left), attribute.normalize(right)
        if attribute is not None and attribute.unordered:
            return sorted(left or []) == sorted(right or [])
        return left == right
