# schemas.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

# 앱 -> 서버로 보낼 때 (생성 요청). id 등 다른 키는 무시
class TaskCreate(BaseModel):
    task: Optional[str] = ""
    deadline: Optional[str] = ""

    # null 은 빈 문자열로 저장
    @field_validator("task", "deadline")
    @classmethod
    def null_as_empty(cls, v: Optional[str]) -> str:
        return "" if v is None else v

# 서버 -> 앱으로 보낼 때 (응답)
class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, strict=True)

    id: int
    task: str
    deadline: str
