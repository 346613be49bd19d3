# service.py

import logging
from typing import Any, Dict, Optional

from jose import jwt, JWTError
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from ..core.config import Settings, get_settings
from ..core.exceptions import IdentityVerificationError, UnauthorizedException

# 토큰 발급은 외부 인증 서비스가 담당하며, 여기서는 검증만 수행한다
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)
logger = logging.getLogger(__name__)


class JWTIdentityVerifier:
    """Bearer JWT 를 검증하고 사용자 ID를 꺼내는 검증기"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(__name__)

    def decode(self, token: str) -> Dict[str, Any]:
        """토큰을 디코딩합니다. 서명/만료 오류는 IdentityVerificationError 로 변환합니다."""
        try:
            return jwt.decode(token, self.settings.SECRET_KEY, algorithms=[self.settings.ALGORITHM])
        except JWTError as e:
            self.logger.warning(f"토큰 검증 실패: {str(e)}")
            raise IdentityVerificationError("유효하지 않은 토큰입니다.", {"reason": str(e)})

    async def verify(self, token: str) -> str:
        """
        토큰을 검증하고 사용자 ID를 반환합니다.

        사용자 ID는 TOKEN_USER_CLAIM(기본값 userId) 클레임에서 읽고, 없으면 sub 를 사용합니다.
        """
        if not token:
            raise IdentityVerificationError("토큰이 제공되지 않았습니다.")

        payload = self.decode(token)
        user_id = payload.get(self.settings.TOKEN_USER_CLAIM) or payload.get("sub")
        if not user_id:
            self.logger.warning("토큰에 사용자 ID 클레임이 없음")
            raise IdentityVerificationError("토큰에 사용자 정보가 없습니다.")
        return str(user_id)


def create_access_token(user_id: str, settings: Optional[Settings] = None,
                        extra_claims: Optional[Dict[str, Any]] = None) -> str:
    """
    테스트 및 내부 도구용 토큰 생성 함수

    실제 로그인 토큰은 인증 서비스가 발급하지만 형식은 동일합니다.
    """
    settings = settings or get_settings()
    claims: Dict[str, Any] = {settings.TOKEN_USER_CLAIM: user_id}
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_user_id(request: Request, token: Optional[str] = Depends(oauth2_scheme)) -> str:
    """
    HTTP 요청의 Bearer 토큰에서 사용자 ID를 꺼내는 FastAPI 의존성

    create_app 이 app.state.verifier 에 보관한 검증기를 사용하므로
    소켓 핸드셰이크와 같은 설정(SECRET_KEY)으로 검증합니다.
    """
    if not token:
        raise UnauthorizedException("인증이 필요합니다.")
    verifier = getattr(request.app.state, "verifier", None)
    if verifier is None:
        verifier = JWTIdentityVerifier()
    try:
        return await verifier.verify(token)
    except IdentityVerificationError as e:
        raise UnauthorizedException(e.message)
