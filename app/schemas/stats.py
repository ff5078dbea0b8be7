from datetime import date

from pydantic import BaseModel


class HeatmapEntry(BaseModel):
    date: date
    count: int
    level: int
