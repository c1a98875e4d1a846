"""
Flag names from raw plugin arguments.

Only which flags were passed is recorded for plugin commands, never their
values.
"""

from __future__ import annotations

import json
from typing import List, Sequence

from tanzucli.cmdtree.resolver import DOUBLE_HYPHEN, is_flag_arg


def traverse_flag_names(args: Sequence[str]) -> List[str]:
    """
    Names of the flags in ``args``, without dashes.

    Stops at ``--``. Short flag clusters expand, so ``-bc`` yields ``b`` and
    ``c``. Tokens that are not flags are ignored.

    >>> traverse_flag_names(["-a", "--flag1", "--flag2=value", "-bc", "--", "--arg1"])
    ['a', 'flag1', 'flag2', 'b', 'c']
    """
    flags: List[str] = []
    for arg in args:
        if arg == DOUBLE_HYPHEN:
            break
        if arg.startswith(DOUBLE_HYPHEN) and "=" not in arg:
            flags.append(arg)
        elif arg.startswith("-") and "=" not in arg and len(arg) == 2:
            flags.append(arg)
        elif is_flag_arg(arg):
            flags.append(arg.split("=", 1)[0])
    return _process_flag_names(flags)


def _process_flag_names(flags: Sequence[str]) -> List[str]:
    result: List[str] = []
    for flag in flags:
        if len(flag) >= 3 and flag[0] == "-" and flag[1] != "-":
            result.extend(flag[1:])
        else:
            result.append(flag.lstrip("-"))
    return result


def flag_names_to_json(flag_names: Sequence[str]) -> str:
    """``["a", "b"]`` -> ``{"a": "", "b": ""}``."""
    return json.dumps({name: "" for name in flag_names}, separators=(",", ":"), sort_keys=True)
