from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import OAuth2PasswordBearer

from directchat.core.config import settings
from directchat.core.errors import (
    InvalidHandshakeException,
    invalid_credentials_error,
    invalid_token_error,
    user_not_found_error,
)
from directchat.core.logging import get_logger, log_authentication_event
from directchat.core.validators import Validator, validate_user_login, validate_user_signup
from directchat.models.users import User
from directchat.schemas.user import AuthResponse, ProfileUpdate, UserCreate, UserLogin, UserResponse
from directchat.services.blob_store import BlobStore, get_blob_store
from directchat.services.user_store import UserStore, get_user_store
from directchat.utils.auth import authenticator, get_password_hash_async, verify_password_async

logger = get_logger(__name__)

# 토큰은 Authorization 헤더 또는 jwt 쿠키로 전달
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)
router = APIRouter(prefix="/api/auth", tags=["Authentication"])

TOKEN_COOKIE_NAME = "jwt"


def _set_token_cookie(response: Response, token: str):
    response.set_cookie(
        key=TOKEN_COOKIE_NAME,
        value=token,
        max_age=settings.access_token_expire_hours * 3600,
        httponly=True,
        samesite="strict",
        secure=not settings.debug
    )


def _auth_response(user: User, token: str) -> AuthResponse:
    return AuthResponse(
        id=user.id,
        full_name=user.full_name,
        email=user.email,
        profile_pic=user.profile_pic,
        created_at=user.created_at,
        token=token
    )


async def get_current_user_id(
        request: Request,
        token: Optional[str] = Depends(oauth2_scheme)
) -> str:
    """
    요청의 토큰을 검증하고 user_id를 반환 (DB 조회 없음)
    """
    token = token or request.cookies.get(TOKEN_COOKIE_NAME)
    try:
        return authenticator.verify(token)
    except InvalidHandshakeException:
        raise invalid_token_error()


async def get_current_user(
        user_id: str = Depends(get_current_user_id),
        user_store: UserStore = Depends(get_user_store)
) -> User:
    """
    현재 인증된 사용자 조회
    """
    user = await user_store.find_user(user_id)
    if not user:
        raise user_not_found_error(user_id)
    return user


@router.post("/signup",
             response_model=AuthResponse,
             status_code=status.HTTP_201_CREATED)
async def signup(
        user_data: UserCreate,
        response: Response,
        user_store: UserStore = Depends(get_user_store)
) -> AuthResponse:
    """
    회원가입 후 바로 로그인 상태로 토큰 발급
    """
    email = validate_user_signup(user_data.full_name, user_data.email, user_data.password)

    password_hash = await get_password_hash_async(user_data.password)
    user = await user_store.create_user(
        email=email,
        full_name=user_data.full_name.strip(),
        password_hash=password_hash
    )

    token = authenticator.issue(user.id)
    _set_token_cookie(response, token)
    log_authentication_event(logger, "signup", user_id=user.id, email=email)
    return _auth_response(user, token)


@router.post("/login", response_model=AuthResponse)
async def login(
        user_data: UserLogin,
        response: Response,
        user_store: UserStore = Depends(get_user_store)
) -> AuthResponse:
    """
    이메일/비밀번호 로그인 (JSON)
    """
    validate_user_login(user_data.email, user_data.password)

    user = await user_store.find_user_by_email(user_data.email.strip())
    if not user or not await verify_password_async(user_data.password, user.password_hash):
        log_authentication_event(logger, "login", email=user_data.email, success=False)
        raise invalid_credentials_error()

    token = authenticator.issue(user.id)
    _set_token_cookie(response, token)
    log_authentication_event(logger, "login", user_id=user.id, email=user.email)
    return _auth_response(user, token)


@router.post("/logout")
async def logout(response: Response) -> dict:
    """
    로그아웃 (쿠키 제거)

    presence는 실시간 연결이 끊어질 때 갱신됩니다.
    """
    response.delete_cookie(TOKEN_COOKIE_NAME)
    return {"message": "Logged out successfully"}


@router.get("/check", response_model=UserResponse)
async def check_auth(current_user: User = Depends(get_current_user)) -> UserResponse:
    """
    토큰으로 현재 사용자 확인
    """
    return UserResponse.model_validate(current_user)


@router.put("/update-profile", response_model=UserResponse)
async def update_profile(
        profile: ProfileUpdate,
        current_user: User = Depends(get_current_user),
        user_store: UserStore = Depends(get_user_store),
        blob_store: BlobStore = Depends(get_blob_store)
) -> UserResponse:
    """
    프로필 수정 (이름, 프로필 사진)
    """
    profile_pic_url = None
    if profile.profile_pic:
        profile_pic_url = await blob_store.upload(profile.profile_pic, folder="profiles")

    user = await user_store.update_profile(
        current_user,
        full_name=Validator.validate_full_name(profile.full_name) if profile.full_name else None,
        profile_pic=profile_pic_url
    )
    return UserResponse.model_validate(user)
