"""Ignore rules and group assignment.

Groups are evaluated in configuration order and the first group whose
patterns and severity filter accept a candidate wins. After assignment,
named groups that only contain patch updates are collapsed into the
catch-all group so they don't each get their own PR.
"""

from __future__ import annotations

from collections.abc import Sequence

from .globs import GlobMatcher
from .models import GroupAssignment, GroupDefinition, IgnoreRule, SemverChange, UpdateCandidate

CATCH_ALL_GROUP = "all-patch-updates"


def should_ignore(
    name: str,
    change_type: SemverChange,
    rules: Sequence[IgnoreRule],
    matcher: GlobMatcher | None = None,
) -> bool:
    """Return True if any ignore rule suppresses this update.

    A rule applies when its pattern matches the name and it either lists
    no update types or lists this change type.
    """
    matcher = matcher or GlobMatcher()
    for rule in rules:
        if not matcher.matches(name, rule.pattern):
            continue
        if rule.update_types is None or change_type in rule.update_types:
            return True
    return False


def assign_to_groups(
    candidates: Sequence[UpdateCandidate],
    groups: Sequence[GroupDefinition],
    matcher: GlobMatcher | None = None,
) -> GroupAssignment:
    """Assign candidates to groups, then collapse patch-only groups.

    Phase 1 walks the groups in priority order and claims every remaining
    candidate whose name matches one of the group's patterns and whose
    change type the group accepts. Groups that claim nothing are left out.

    Phase 2 moves the members of every named group that only contains
    patch updates into CATCH_ALL_GROUP (creating it if needed) and drops
    the named group. The catch-all keeps its own members first, followed
    by collapsed groups in priority order.

    Candidates matched by no group are not in the result; see
    add_singleton_groups.

    Returns:
        Map of group name → members in discovery order.
    """
    matcher = matcher or GlobMatcher()
    result: GroupAssignment = {}
    assigned: set[str] = set()

    for group in groups:
        members: list[UpdateCandidate] = []
        for candidate in candidates:
            if candidate.name in assigned:
                continue
            if not matcher.matches_any(candidate.name, group.patterns):
                continue
            if group.update_types is not None and candidate.change_type not in group.update_types:
                continue
            members.append(candidate)
            assigned.add(candidate.name)

        if members:
            result[group.name] = members

    # Collapse patch-only groups into the catch-all to reduce PR noise
    for group_name in list(result):
        if group_name == CATCH_ALL_GROUP:
            continue
        members = result[group_name]
        if any(m.change_type != SemverChange.PATCH for m in members):
            continue
        result.setdefault(CATCH_ALL_GROUP, []).extend(members)
        del result[group_name]

    return result


def sanitize_group_name(name: str) -> str:
    """Turn a package name into a branch-safe group name.

    Examples:
        "@sentry/react" → "sentry-react"
        "lodash-es" → "lodash-es"
    """
    return name.removeprefix("@").replace("/", "-")


def add_singleton_groups(
    assignment: GroupAssignment,
    candidates: Sequence[UpdateCandidate],
) -> GroupAssignment:
    """Give every unassigned candidate its own group.

    The singleton groups are appended after the configured ones, in
    discovery order, and named with sanitize_group_name.

    Returns:
        A new assignment; the input is not modified.
    """
    result: GroupAssignment = {name: list(members) for name, members in assignment.items()}
    assigned = {m.name for members in assignment.values() for m in members}
    for candidate in candidates:
        if candidate.name in assigned:
            continue
        result[sanitize_group_name(candidate.name)] = [candidate]
    return result
