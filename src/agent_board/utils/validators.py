"""Validation for task identifiers and the branch names derived from them."""

import re

# Letters, digits, '_' and '-': safe as a path segment and as a ref component
_SAFE_SEGMENT = re.compile(r'^[a-zA-Z0-9_-]+$')

MAX_IDENTIFIER_LENGTH = 128
MAX_BRANCH_LENGTH = 255


def validate_branch_name(branch_name: str) -> str:
    """
    Check a branch name against the subset of git ref syntax this tool creates.

    The name is '/'-separated components, each a safe segment. Empty
    components (leading, trailing or doubled '/') and a leading '-' are
    rejected, which also rules out '..', '@{' and '.lock'.

    Returns:
        branch_name unchanged

    Raises:
        ValueError: If branch_name is not acceptable
    """
    if not branch_name:
        raise ValueError("Branch name cannot be empty")
    if len(branch_name) > MAX_BRANCH_LENGTH:
        raise ValueError("Branch name too long")
    if branch_name.startswith('-'):
        raise ValueError(f"Branch name cannot start with '-': {branch_name}")

    for component in branch_name.split('/'):
        if not component:
            raise ValueError(f"Branch name has an empty component: {branch_name}")
        if not _SAFE_SEGMENT.match(component):
            raise ValueError(f"Invalid branch name: {branch_name}")

    return branch_name


def validate_identifier(value: str, name: str = "identifier") -> str:
    """
    Reject ids that could escape their directory once used as a path segment.

    Raises:
        ValueError: If value is empty, too long or has unsafe characters
    """
    if not value:
        raise ValueError(f"{name} cannot be empty")
    if len(value) > MAX_IDENTIFIER_LENGTH:
        raise ValueError(f"{name} too long ({len(value)} > {MAX_IDENTIFIER_LENGTH})")
    if not _SAFE_SEGMENT.match(value):
        raise ValueError(f"Invalid {name}: {value}")
    return value
