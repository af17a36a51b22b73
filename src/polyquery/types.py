import os
from collections.abc import Mapping
from datetime import datetime
from typing import Any, TypeAlias
from uuid import UUID

# Convenience alias for anything pathlike
PathLike = str | os.PathLike

# Python values a Row may hold, one per semantic column type (None is null)
Value: TypeAlias = str | int | float | bool | datetime | UUID | bytes | None

# a backend record keyed by field name, as handed over by most clients
RawRecord: TypeAlias = Mapping[str, Any]
