from taskboard.schemas.base import CamelModel


class CurrentUserResponse(CamelModel):
    user_id: int
    name: str
    email: str
    role: str


class UserSummary(CamelModel):
    user_id: int
    username: str
    email: str
