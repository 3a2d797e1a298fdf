"""
ORM models for the campaign entities: the region map, supporters and users,
demands, events and documents.

Importing this package ensures model classes are registered with the Base
metadata; the entity registry resolves entity-type names against it.
"""

from .regions import (  # noqa: F401
    Coordinator,
    Region,
    Municipality,
)
from .supporters import (  # noqa: F401
    Supporter,
    User,
)
from .demands import (  # noqa: F401
    Demand,
    DemandUpdate,
)
from .events import Event  # noqa: F401
from .documents import Document  # noqa: F401
