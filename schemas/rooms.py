from pydantic import BaseModel, ConfigDict, Field


class RoomStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(alias="roomId")
    members: int


class StatusSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    clients: int
    rooms: int
    room_details: list[RoomStatus] = Field(default_factory=list, alias="roomDetails")


class HealthResponse(StatusSnapshot):
    status: str = "healthy"
    uptime: float


class ListRoomsResponse(BaseModel):
    rooms: list[RoomStatus]
