"""
에러 타입과 표준 에러 envelope

모든 클라이언트 대상 실패는 BaseCustomException 하위 클래스이며
{"error", "message", "details", "status_code", "retryable"} 형태로 응답됩니다.
retryable은 "잠시 후 재시도"(저장소 장애, 시간 초과)와
"입력 수정 필요"(검증, 인증, 권한)를 클라이언트가 구분하게 해줍니다.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    status_code: int
    retryable: bool = False


class ValidationError(BaseModel):
    """필드 하나의 검증 실패"""
    field: str
    message: str
    value: Optional[Any] = None


class ValidationErrorResponse(BaseModel):
    error: str = "validation_error"
    message: str
    validation_errors: List[ValidationError]
    status_code: int
    retryable: bool = False


# =============================================================================
# 커스텀 예외
# =============================================================================

class BaseCustomException(HTTPException):
    """
    하위 클래스는 error_code / http_status / default_message / retryable 만 정의합니다.
    """
    error_code: str = "error"
    http_status: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request failed"
    retryable: bool = False

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.error = self.error_code
        self.message = message or self.default_message
        self.details = details
        super().__init__(status_code=self.http_status, detail=self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code,
            "retryable": self.retryable
        }

    def __str__(self) -> str:
        return f"{self.error}: {self.message}"


class ValidationException(BaseCustomException):
    """입력 검증 실패 (필드별 오류 목록 포함)"""
    error_code = "validation_error"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        validation_errors: Optional[List[ValidationError]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.validation_errors = validation_errors or []
        super().__init__(message, details)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        del body["details"]
        body["validation_errors"] = [error.model_dump() for error in self.validation_errors]
        return body


class AuthenticationException(BaseCustomException):
    error_code = "authentication_error"
    http_status = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication failed"


class InvalidHandshakeException(BaseCustomException):
    """연결 시 신원 토큰이 없거나 유효하지 않음 (WebSocket은 1008로 닫힘)"""
    error_code = "invalid_handshake"
    http_status = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid handshake"


class AuthorizationException(BaseCustomException):
    error_code = "authorization_error"
    http_status = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class ResourceNotFoundException(BaseCustomException):
    error_code = "resource_not_found"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str = "Resource", details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{resource} not found", details or {"resource": resource})


class ConflictException(BaseCustomException):
    error_code = "resource_conflict"
    http_status = status.HTTP_409_CONFLICT
    default_message = "Resource conflict"


class EmptyMessageException(BaseCustomException):
    """text와 image가 모두 없는 메시지"""
    error_code = "empty_message"
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Message must contain text or an image"


class PersistenceFailedException(BaseCustomException):
    """Store 사용 불가 또는 시간 초과. 작업은 적용되지 않았습니다."""
    error_code = "persistence_failed"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Store unavailable, please retry shortly"
    retryable = True

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        super().__init__(message, {"operation": operation})


class MediaUploadFailedException(BaseCustomException):
    """미디어 업로드 실패. 메시지는 저장되지 않았습니다."""
    error_code = "media_upload_failed"
    http_status = status.HTTP_502_BAD_GATEWAY
    default_message = "Media upload failed"
    retryable = True


# =============================================================================
# 응답/예외 팩토리
# =============================================================================

def create_error_response(
    error: str,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    retryable: bool = False
) -> ErrorResponse:
    return ErrorResponse(
        error=error,
        message=message,
        status_code=status_code,
        details=details,
        retryable=retryable
    )


def create_validation_error_response(
    message: str,
    validation_errors: List[ValidationError],
    status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY
) -> ValidationErrorResponse:
    return ValidationErrorResponse(
        message=message,
        validation_errors=validation_errors,
        status_code=status_code
    )


def user_not_found_error(user_id: Optional[str] = None) -> ResourceNotFoundException:
    return ResourceNotFoundException("User", {"user_id": user_id} if user_id else None)


def message_not_found_error(message_id: Optional[str] = None) -> ResourceNotFoundException:
    return ResourceNotFoundException("Message", {"message_id": message_id} if message_id else None)


def invalid_credentials_error() -> AuthenticationException:
    return AuthenticationException("Invalid email or password")


def email_already_exists_error() -> ConflictException:
    return ConflictException("Email already registered")


def invalid_token_error() -> AuthenticationException:
    return AuthenticationException("Invalid or expired token")
