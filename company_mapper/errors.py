"""
Exceptions raised by the company tree layer and the group store.
"Not found" lookups are not errors: they return None or an empty list.
"""


class InvalidInputError(ValueError):
    """A missing or malformed tree, upload or annotation payload."""


class GroupNotFoundError(LookupError):
    """An annotation write referenced a group that does not exist."""

    def __init__(self, group_id: str):
        super().__init__(f"Group not found: {group_id}")
        self.group_id = group_id
