"""
Media type parsing and compatibility checks.

Compatibility is symmetric and wildcard-aware:
    */*               compatible with everything
    text/*            compatible with text/plain, text/xml, ...
    application/*+json compatible with application/json and application/x+json
Parameters (charset, ...) never affect compatibility.
"""

from dataclasses import dataclass, field
from typing import Mapping

WILDCARD = "*"


@dataclass(frozen=True)
class MediaType:
    """A parsed media type (type/subtype;param=value)."""

    type: str
    subtype: str
    parameters: Mapping[str, str] = field(default_factory=dict, compare=False)

    @classmethod
    def parse(cls, value: str) -> "MediaType":
        """
        Parse a media type string.

        Raises:
            ValueError: If the value is not of the form type/subtype
        """
        if not isinstance(value, str):
            raise ValueError(f"Media type must be a string, got {type(value).__name__}")

        head, *raw_params = value.split(";")
        head = head.strip().lower()
        if head == WILDCARD:
            head = "*/*"
        main, sep, sub = head.partition("/")
        if not sep or not main or not sub or "/" in sub:
            raise ValueError(f"Invalid media type: {value!r}")
        if main == WILDCARD and sub != WILDCARD:
            raise ValueError(f"Wildcard type requires wildcard subtype: {value!r}")

        parameters: dict[str, str] = {}
        for raw in raw_params:
            name, eq, param_value = raw.strip().partition("=")
            if not raw.strip():
                continue
            if not eq or not name.strip():
                raise ValueError(f"Invalid media type parameter {raw!r} in {value!r}")
            parameters[name.strip().lower()] = param_value.strip().strip('"')

        return cls(main, sub, parameters)

    @property
    def charset(self) -> str | None:
        return self.parameters.get("charset")

    @property
    def is_wildcard_type(self) -> bool:
        return self.type == WILDCARD

    @property
    def is_wildcard_subtype(self) -> bool:
        return self.subtype == WILDCARD or self.subtype.startswith("*+")

    @property
    def suffix(self) -> str | None:
        """Structured syntax suffix (json for application/ld+json)."""
        _, plus, suffix = self.subtype.rpartition("+")
        return suffix if plus and suffix else None

    def is_compatible_with(self, other: "MediaType") -> bool:
        if other is None:
            return False
        if self.is_wildcard_type or other.is_wildcard_type:
            return True
        if self.type != other.type:
            return False
        if self.subtype == other.subtype:
            return True
        if self.subtype == WILDCARD or other.subtype == WILDCARD:
            return True
        if self.is_wildcard_subtype and self.suffix is not None:
            return other.subtype == self.suffix or other.suffix == self.suffix
        if other.is_wildcard_subtype and other.suffix is not None:
            return self.subtype == other.suffix or self.suffix == other.suffix
        return False

    def __str__(self) -> str:
        params = "".join(f";{name}={value}" for name, value in self.parameters.items())
        return f"{self.type}/{self.subtype}{params}"


APPLICATION_JSON = MediaType("application", "json")
TEXT_PLAIN = MediaType("text", "plain")
TEXT_XML = MediaType("text", "xml")
