"""Tag normalization, validation and usage statistics."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from prompt_keeper.core.errors import ValidationError

TAG_MIN_LENGTH = 2
TAG_MAX_LENGTH = 30
TAG_PATTERN = re.compile(r"^[a-z0-9\s\-_]+$")


@dataclass
class TagUsage:
    """How often a tag appears and on which prompts."""

    tag: str
    count: int = 0
    prompts: list[str] = field(default_factory=list)


def normalize_tags(tags: list[str]) -> list[str]:
    """Trim, lower-case and deduplicate tags, keeping first-seen order."""
    normalized = (t.strip().lower() for t in tags)
    return list(dict.fromkeys(t for t in normalized if t))


def validate_tag(tag: str, existing: list[str] | None = None) -> str | None:
    """Return an error message for an unacceptable tag, or None if it is fine."""
    candidate = tag.strip().lower()
    if not candidate:
        return "Tag cannot be empty"
    if len(candidate) < TAG_MIN_LENGTH:
        return f"Tag must be at least {TAG_MIN_LENGTH} characters long"
    if len(candidate) > TAG_MAX_LENGTH:
        return f"Tag cannot exceed {TAG_MAX_LENGTH} characters"
    if not TAG_PATTERN.match(candidate):
        return "Tag can only contain letters, numbers, spaces, hyphens, and underscores"
    if existing and any(e.lower() == candidate for e in existing):
        return "Tag already exists"
    return None


def require_valid_tags(tags: list[str]) -> list[str]:
    """Normalize ``tags``, raising ValidationError on the first bad one."""
    for tag in tags:
        error = validate_tag(tag)
        if error:
            raise ValidationError(f"Invalid tag '{tag}': {error}")
    return normalize_tags(tags)


def add_tags(current: list[str], additions: list[str]) -> list[str]:
    return normalize_tags([*current, *additions])


def remove_tags(current: list[str], removals: list[str]) -> list[str]:
    drop = {t.strip().lower() for t in removals}
    return [t for t in normalize_tags(current) if t not in drop]


def tag_stats(
    prompts: list[dict[str, Any]],
    team_id: str | None = None,
    sharing: str | None = None,
    min_count: int | None = None,
) -> list[TagUsage]:
    """Count tag usage across prompts, most used first."""
    if team_id:
        prompts = [
            p for p in prompts
            if team_id in (p.get("assigned_teams") or []) or p.get("team_id") == team_id
        ]
    if sharing:
        prompts = [p for p in prompts if p.get("sharing") == sharing]

    usage: dict[str, TagUsage] = {}
    for prompt in prompts:
        for tag in normalize_tags(prompt.get("tags") or []):
            entry = usage.setdefault(tag, TagUsage(tag=tag))
            entry.count += 1
            entry.prompts.append(prompt["id"])

    stats = [s for s in usage.values() if not min_count or s.count >= min_count]
    return sorted(stats, key=lambda s: s.count, reverse=True)


def popular_tags(stats: list[TagUsage], limit: int = 10) -> list[str]:
    return [s.tag for s in stats[:limit]]


def search_tags(stats: list[TagUsage], query: str) -> list[str]:
    """Substring match; prefix matches first, then by usage count."""
    if not query.strip():
        return [s.tag for s in stats]
    needle = query.strip().lower()
    matches = [s for s in stats if needle in s.tag]
    matches.sort(key=lambda s: (not s.tag.startswith(needle), -s.count))
    return [s.tag for s in matches]
