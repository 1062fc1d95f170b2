"""Command assembly

Builds the full argv for one query: the fixed command prefix, then for every
output argument in declaration order its substituted template (one token)
followed by its own tokens.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Mapping, Sequence

from trackplug.argument import Argument
from trackplug.binder import ArgumentBinder, StagingArea


def substitute(template: str, values_by_id: Mapping[str, Sequence[str]]) -> str:
    """Replace every `$id` with the first token of that id's values

    Longer ids are replaced first so `$ab` is not clobbered by `$a`.
    Placeholders with no recorded id are left as they are.
    """
    for arg_id in sorted(values_by_id, key=len, reverse=True):
        values = values_by_id[arg_id]
        if not values:
            continue
        template = template.replace("$" + arg_id, values[0])
    return template


@dataclass
class CommandLine:
    """An assembled command and what was staged to build it"""
    tokens: List[str]
    output_cols: Dict[str, int] = field(default_factory=dict)
    staged_paths: List[str] = field(default_factory=list)
    staging: Optional[StagingArea] = None

    def cleanup(self) -> None:
        """Delete the staged files if this command owns its staging area"""
        if self.staging is not None:
            self.staging.cleanup()


class CommandAssembler:
    """Assembles commands from a fixed prefix and ordered argument bindings"""

    def __init__(self, commands: Sequence[str], arguments: Mapping[Argument, Any]):
        self.commands = list(commands)
        self.arguments = arguments

    def assemble(self, binder: ArgumentBinder, chr: str, start: int, end: int, zoom: int) -> CommandLine:
        """Bind every argument in order and build the command tokens

        Staging side effects (temp files, output_cols) land in `binder`.
        """
        binder.output_cols.clear()
        full_cmd = list(self.commands)
        values_by_id: Dict[str, List[str]] = {}

        for argument, value in self.arguments.items():
            tokens = binder.bind(argument, value, chr, start, end, zoom)
            if tokens is None:
                continue

            if argument.id is not None:
                values_by_id[argument.id] = tokens

            if argument.is_output:
                if argument.cmd_arg.strip():
                    full_cmd.append(substitute(argument.cmd_arg.strip(), values_by_id))
                full_cmd.extend(tokens)

        return CommandLine(
            tokens=full_cmd,
            output_cols=dict(binder.output_cols),
            staged_paths=list(binder.staging.paths),
        )
