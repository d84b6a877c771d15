"""
notes/models.py -- Domain dataclass for notes.

Pure data container. Ownership rules live in notes/store.py.
"""

from dataclasses import dataclass, field

from auth.models import new_id


@dataclass
class Note:
    """A note owned by exactly one user.

    color is an integer ARGB value chosen by the client; the server stores
    it verbatim.
    """

    owner_id: str
    title: str
    content: str = ""
    color: int = 0
    id: str = field(default_factory=new_id)
    created_at: str = ""  # ISO 8601, set by store on insert
