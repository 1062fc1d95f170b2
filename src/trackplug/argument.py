"""Plugin argument definitions

An Argument describes one command-line parameter of a plugin command. The
bound values live next to the definitions in an ordered mapping
(`Dict[Argument, Any]`); its iteration order decides both the `$id`
substitution scope and the order of the emitted command tokens.
"""

import re
from enum import Enum
from typing import Dict, List, Optional, Any, Iterable

from trackplug.schema_validation import default_validator


class ArgumentError(Exception):
    """Invalid argument definition"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DuplicateArgumentIdError(ArgumentError):
    """Two arguments declare the same id"""
    def __init__(self, arg_id: str):
        super().__init__(f"Argument id '{arg_id}' is declared more than once")
        self.arg_id = arg_id


class UnresolvedPlaceholderError(ArgumentError):
    """A template references an id declared after it"""
    def __init__(self, argument_name: str, arg_id: str):
        super().__init__(
            f"Argument '{argument_name}' references '${arg_id}', "
            f"which is declared after it"
        )
        self.argument_name = argument_name
        self.arg_id = arg_id


PLACEHOLDER_RE = re.compile(r"\$(\w+)")


class ArgumentType(Enum):
    """How a bound value is turned into command tokens"""
    TEXT = "TEXT"                                # whitespace-split into tokens
    LONGTEXT = "LONGTEXT"                        # kept as one token
    FEATURE_TRACK = "FEATURE_TRACK"              # one track, staged to one file
    DATA_TRACK = "DATA_TRACK"                    # one track, staged to one file
    MULTI_FEATURE_TRACK = "MULTI_FEATURE_TRACK"  # list of tracks, one file each

    def is_text(self) -> bool:
        return self in (ArgumentType.TEXT, ArgumentType.LONGTEXT)

    def is_track(self) -> bool:
        return not self.is_text()


class Argument:
    """Declarative description of one command-line parameter

    Instances hash by identity so that two arguments with identical
    definitions can still be bound to different values.
    """

    def __init__(
        self,
        name: str,
        type: ArgumentType,
        cmd_arg: str = "",
        id: Optional[str] = None,
        is_output: bool = True,
        default_value: Optional[str] = None,
        encoding_codec: Optional[str] = None,
        lib_paths: Optional[Iterable[str]] = None,
    ):
        self.name = name
        self.type = ArgumentType(type)
        self.cmd_arg = cmd_arg or ""
        self.id = id
        self.is_output = is_output
        self.default_value = default_value
        self.encoding_codec = encoding_codec
        self.lib_paths: List[str] = list(lib_paths or [])

    def placeholders(self) -> List[str]:
        """Ids referenced as `$id` in cmd_arg, in order of appearance"""
        return PLACEHOLDER_RE.findall(self.cmd_arg)

    def is_valid_value(self, value: Any) -> bool:
        """Check that a bound value fits this argument's type

        Text types accept None (meaning "not given") or a string. Single-track
        types need a track object; the multi-track type needs a list of them.
        """
        if self.type.is_text():
            return value is None or isinstance(value, str)
        if self.type == ArgumentType.MULTI_FEATURE_TRACK:
            return isinstance(value, (list, tuple)) and all(
                _is_track(track) for track in value
            )
        return _is_track(value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict"""
        result: Dict[str, Any] = {
            "name": self.name,
            "type": self.type.value,
            "cmd_arg": self.cmd_arg,
            "output": self.is_output,
        }
        if self.id is not None:
            result["id"] = self.id
        if self.default_value is not None:
            result["default_value"] = self.default_value
        if self.encoding_codec is not None:
            result["encoding_codec"] = self.encoding_codec
        if self.lib_paths:
            result["libs"] = list(self.lib_paths)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Argument":
        """Parse from dict, validating it against the argument schema"""
        default_validator().validate_argument(data)
        return cls(
            name=data["name"],
            type=ArgumentType(data["type"]),
            cmd_arg=data.get("cmd_arg", ""),
            id=data.get("id"),
            is_output=data.get("output", True),
            default_value=data.get("default_value"),
            encoding_codec=data.get("encoding_codec"),
            lib_paths=data.get("libs", []),
        )

    def __repr__(self) -> str:
        return (
            f"Argument(name={self.name!r}, type={self.type.value}, id={self.id!r}, "
            f"cmd_arg={self.cmd_arg!r}, is_output={self.is_output})"
        )


def _is_track(value: Any) -> bool:
    return value is not None and callable(getattr(value, "get_features", None))


def validate_arguments(arguments: Iterable[Argument]) -> None:
    """Check id uniqueness and placeholder scope across ordered arguments

    Placeholders naming no declared id (`$1` in an awk program) stay literal
    text and are accepted.

    Raises:
        DuplicateArgumentIdError: If two arguments share an id
        UnresolvedPlaceholderError: If a template references an id declared after it
    """
    arguments = list(arguments)
    declared = set()
    for arg in arguments:
        if arg.id is not None:
            if arg.id in declared:
                raise DuplicateArgumentIdError(arg.id)
            declared.add(arg.id)

    seen = set()
    for arg in arguments:
        if arg.id is not None:
            seen.add(arg.id)
        if not arg.is_output:
            continue
        later = declared - seen
        for ref in arg.placeholders():
            # "$a_sorted" substitutes id "a" followed by the literal "_sorted"
            if any(ref.startswith(arg_id) for arg_id in seen):
                continue
            if any(ref.startswith(arg_id) for arg_id in later):
                raise UnresolvedPlaceholderError(arg.name, ref)
