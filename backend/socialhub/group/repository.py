"""
그룹 관련 데이터 접근 레이어

실시간 모듈의 GroupDirectory 인터페이스를 구현합니다.
"""
from typing import Optional, Set

from beanie import PydanticObjectId

from .models import Group
from ..core.logging_utils import get_logger

logger = get_logger(__name__)


class GroupRepository:
    """그룹 데이터 접근 레이어 클래스"""

    async def get_member_ids(self, group_id: str) -> Optional[Set[str]]:
        """
        그룹 구성원 ID 집합을 조회합니다.

        Args:
            group_id: 그룹 ID

        Returns:
            구성원 ID 집합, 그룹이 없으면 None
        """
        if not PydanticObjectId.is_valid(group_id):
            logger.warning(f"유효하지 않은 그룹 ID: {group_id}")
            return None

        group = await Group.get(PydanticObjectId(group_id))
        if group is None:
            return None
        return {str(member) for member in group.members}
