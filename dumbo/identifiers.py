"""
Identifier quoting for dynamically built SQL.
"""

from __future__ import annotations


def quote_identifier(name: str) -> str:
    """
    Quote a possibly dotted identifier segment by segment.

    Segments that already start or end with a double quote are left untouched,
    so `public.user` becomes `"public"."user"` and `"Mixed".user` becomes
    `"Mixed"."user"`. Embedded double quotes in unquoted segments are doubled.
    """
    parts = name.split(".")
    quoted = []
    for part in parts:
        if part.startswith('"') or part.endswith('"'):
            quoted.append(part)
        else:
            quoted.append('"' + part.replace('"', '""') + '"')
    return ".".join(quoted)


__all__ = ["quote_identifier"]
