"""
그룹 모델

그룹 채팅 구성원 정보. 그룹 생성/수정은 REST 계층이 담당하며 실시간 모듈은 구성원 조회만 한다.
"""
from typing import List, Optional
from datetime import datetime
from zoneinfo import ZoneInfo

from beanie import Document
from pydantic import Field


class Group(Document):
    """그룹 문서"""
    name: str = Field(..., description="그룹 이름")
    description: Optional[str] = Field(default=None, description="그룹 설명")
    owner: str = Field(..., description="그룹 소유자 ID")
    members: List[str] = Field(default_factory=list, description="구성원 ID 목록")
    created_at: datetime = Field(default_factory=lambda: datetime.now(ZoneInfo("UTC")), description="생성 시간")

    class Settings:
        name = "groups"
