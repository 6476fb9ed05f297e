"""Built-in role-play prompts loaded from a JSON file."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass
class Role:
    title: str
    content: str
    tags: List[str] = field(default_factory=list)


class RoleCatalog:
    """Lookup of built-in roles by category tag and by title."""

    def __init__(self, roles: List[Role]) -> None:
        self.roles = roles

    @classmethod
    def from_file(cls, path: Path) -> "RoleCatalog":
        """Load roles from a JSON list of ``{title, content, tags}`` objects.

        A missing file yields an empty catalogue so the bot still starts.
        """
        if not path.exists():
            logging.warning("Role list %s not found; role menus will be empty", path)
            return cls([])
        with path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
        roles = [
            Role(title=item["title"], content=item["content"], tags=list(item.get("tags") or []))
            for item in raw
        ]
        return cls(roles)

    def unique_tags(self) -> List[str]:
        """Return every tag once, in first-seen order."""
        tags: List[str] = []
        for role in self.roles:
            for tag in role.tags:
                if tag not in tags:
                    tags.append(tag)
        return tags

    def titles_for_tag(self, tag: str) -> List[str]:
        return [role.title for role in self.roles if tag in role.tags]

    def find_by_title(self, title: str) -> Optional[Role]:
        for role in self.roles:
            if role.title == title:
                return role
        return None
