"""
String helpers for building list-store queries.

This module provides helper functions for:
- Encoding display field names into SharePoint internal field names
- Quoting values as OData string literals
- Assembling field-equality filter clauses
- Extracting error bodies from remote responses
"""

from __future__ import annotations

import re
from typing import Any

import httpx

# Characters allowed verbatim in a SharePoint internal field name
_UNSAFE_FIELD_CHARS = re.compile(r"[^A-Za-z0-9_]")


def encode_field_name(field_name: str) -> str:
    """
    Encode a field name the way SharePoint stores internal column names.

    Every character outside ``[A-Za-z0-9_]`` is replaced by ``_xHHHH_``,
    where ``HHHH`` is a UTF-16 code unit in lowercase hex. Characters outside
    the Basic Multilingual Plane produce one escape per surrogate.

    Args:
        field_name: The column name as shown in the list schema

    Returns:
        The internal name usable inside ``fields/<name>`` filter paths

    Example:
        >>> encode_field_name("Customer-ID")
        "Customer_x002d_ID"
        >>> encode_field_name("Customer_x002d_ID")
        "Customer_x002d_ID"
        >>> encode_field_name("Box \U0001f4e6")
        "Box_x0020__xd83d__xdce6_"
    """
    return _UNSAFE_FIELD_CHARS.sub(_escape_field_char, field_name)


def _escape_field_char(match: re.Match) -> str:
    units = match.group().encode("utf-16-be")
    return "".join(f"_x{units[i]:02x}{units[i + 1]:02x}_" for i in range(0, len(units), 2))


def odata_quote(value: Any) -> str:
    """
    Render a value as an OData string literal.

    Single quotes inside the value are doubled, which is the escaping
    convention of OData ``$filter`` expressions.

    Example:
        >>> odata_quote("O'Brien")
        "'O''Brien'"
    """
    return "'" + str(value).replace("'", "''") + "'"


def field_equals_clause(field_name: str, value: Any) -> str:
    """Build ``fields/<internal name> eq '<value>'`` for an item filter."""
    return f"fields/{encode_field_name(field_name)} eq {odata_quote(value)}"


def response_details(response: httpx.Response) -> Any:
    """Return a remote error body as parsed JSON, falling back to raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text
