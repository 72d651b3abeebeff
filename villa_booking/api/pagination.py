from typing import Annotated

from fastapi import Query

MAX_PAGE_SIZE = 100

LimitParam = Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE, description="Page size")]
OffsetParam = Annotated[int, Query(ge=0, description="Rows to skip")]
