from __future__ import annotations

from typing import Any


def normalize_tags(raw: Any) -> list[str]:
    """
    Normalize tags into a de-duplicated list, preserving first-seen order.

    Accepts a list of strings or a comma-separated string (as typed in a form field).
    Matching for de-duplication is case-insensitive; the first spelling wins.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        parts = raw.split(",")
    elif isinstance(raw, (list, tuple, set)):
        parts = [str(p) for p in raw if p is not None]
    else:
        parts = [str(raw)]

    out: list[str] = []
    seen: set[str] = set()
    for p in parts:
        tag = p.strip()
        if not tag:
            continue
        key = tag.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(tag)
    return out


def customer_matches(customer, term: str | None) -> bool:
    """
    Search box semantics: name, email and tags match case-insensitively;
    phone matches as a raw substring.
    """
    t = (term or "").strip()
    if not t:
        return True
    needle = t.lower()
    if needle in (customer.name or "").lower():
        return True
    if customer.email and needle in customer.email.lower():
        return True
    if customer.phone and t in customer.phone:
        return True
    return any(needle in (tag or "").lower() for tag in (customer.tags or []))
