from datetime import datetime

from pydantic import BaseModel, field_serializer

from payhook.utils.time import to_display


class HealthResponse(BaseModel):
    status: str
    current_time: datetime

    @field_serializer("current_time", when_used="json")
    def serialize_local(self, value: datetime) -> datetime | None:
        return to_display(value)
