"""
메시지 모델

개인/그룹 메시지 문서. 실시간 전송 시에는 to_event_payload() 결과가 그대로 클라이언트로 전달된다.
"""
from typing import Any, Dict, Optional
from datetime import datetime
from zoneinfo import ZoneInfo

from beanie import Document
from pydantic import Field


class Message(Document):
    """메시지 문서"""
    sender: str = Field(..., description="발신자 ID")
    receiver: Optional[str] = Field(default=None, description="수신자 ID (그룹 메시지는 None)")
    content: str = Field(default="", description="메시지 내용")
    is_group_message: bool = Field(default=False, description="그룹 메시지 여부")
    group_id: Optional[str] = Field(default=None, description="그룹 ID")
    is_read: bool = Field(default=False, description="읽음 여부")
    file_path: Optional[str] = Field(default=None, description="첨부 파일 경로")
    file_type: Optional[str] = Field(default=None, description="첨부 파일 MIME 타입")
    created_at: datetime = Field(default_factory=lambda: datetime.now(ZoneInfo("UTC")), description="생성 시간")

    class Settings:
        name = "messages"

    def to_event_payload(self) -> Dict[str, Any]:
        """클라이언트에 전달할 형태로 변환합니다. (camelCase, ISO 시간)"""
        return {
            "id": str(self.id),
            "sender": self.sender,
            "receiver": self.receiver,
            "content": self.content,
            "isGroupMessage": self.is_group_message,
            "groupId": self.group_id,
            "isRead": self.is_read,
            "filePath": self.file_path,
            "fileType": self.file_type,
            "createdAt": self.created_at.isoformat(),
        }
