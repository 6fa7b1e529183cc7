"""Eligibility as a simple category match.

`all`/`any`/empty admit everybody, the iiit / non-iiit families match the
participant's type, and unrecognised free-form values stay permissive.
"""

import re
from typing import Optional

ALL = "all"

_ALIASES = {
    "": ALL,
    "all": ALL,
    "any": ALL,
    "iiit": "iiit",
    "iiit-only": "iiit",
    "iiit-students": "iiit",
    "non-iiit": "non-iiit",
    "noniiit": "non-iiit",
    "non-iiit-only": "non-iiit",
    "external": "non-iiit",
}


def normalize(value: str) -> str:
    return re.sub(r"[\s_]+", "-", value.strip().lower())


def parse_constraint(raw: Optional[str]) -> Optional[str]:
    """Category the event requires; ``all`` for everyone, None if unrecognised."""
    return _ALIASES.get(normalize(raw or ""))


def is_eligible(event_eligibility: Optional[str], participant_type: Optional[str]) -> bool:
    required = parse_constraint(event_eligibility)
    if required is None or required == ALL:
        return True
    if not participant_type:
        return False
    return parse_constraint(participant_type) == required
