import re
from typing import Any, Callable, List, Optional

from email_validator import EmailNotValidError, validate_email

from .errors import ValidationException, ValidationError

MIN_PASSWORD_LENGTH = 6
MAX_FULL_NAME_LENGTH = 100
MAX_MESSAGE_LENGTH = 5000

# 줄바꿈(\n, \r)과 탭을 제외한 제어 문자
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def _invalid(field_name: str, message: str, value: Any = None, summary: Optional[str] = None):
    return ValidationException(
        summary or message,
        validation_errors=[ValidationError(field=field_name, message=message, value=value)]
    )


class Validator:
    """입력 검증을 위한 유틸리티 클래스"""

    @staticmethod
    def validate_required(value: Any, field_name: str) -> Any:
        """필수 필드 검증 (공백 문자열도 누락으로 취급)"""
        if value is None or (isinstance(value, str) and not value.strip()):
            raise _invalid(field_name, "This field is required", value, f"{field_name} is required")
        return value

    @staticmethod
    def validate_full_name(full_name: str, field_name: str = "fullName") -> str:
        """이름: 앞뒤 공백 제거 후 1~100자"""
        name = full_name.strip()
        if len(name) > MAX_FULL_NAME_LENGTH:
            raise _invalid(
                field_name,
                f"Must be no more than {MAX_FULL_NAME_LENGTH} characters long",
                len(name)
            )
        return name

    @staticmethod
    def validate_email_format(email: str, field_name: str = "email") -> str:
        """이메일 형식 검증 (정규화된 이메일 반환)"""
        try:
            result = validate_email(email, check_deliverability=False)
        except EmailNotValidError as e:
            raise _invalid(field_name, str(e), email, "Invalid email format")
        return result.normalized

    @staticmethod
    def validate_password(password: str, field_name: str = "password") -> str:
        if len(password) < MIN_PASSWORD_LENGTH:
            message = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            raise _invalid(field_name, message, len(password))
        return password

    @staticmethod
    def validate_message_text(text: str, field_name: str = "text") -> str:
        """
        메시지 텍스트 검증

        빈 메시지 판정은 MessageGateway가 합니다 (이미지만 있는 메시지 허용).
        """
        errors = []
        if len(text) > MAX_MESSAGE_LENGTH:
            errors.append(ValidationError(
                field=field_name,
                message=f"Message text must be no more than {MAX_MESSAGE_LENGTH} characters",
                value=len(text)
            ))
        if CONTROL_CHARS.search(text):
            errors.append(ValidationError(
                field=field_name,
                message="Message text contains invalid control characters"
            ))

        if errors:
            raise ValidationException("Message text validation failed", validation_errors=errors)
        return text

    @staticmethod
    def validate_multiple_fields(validations: List[Callable[[], Any]]) -> List[Any]:
        """모든 검증을 실행하고 실패를 하나의 ValidationException으로 모음"""
        errors: List[ValidationError] = []
        results = []

        for validate in validations:
            try:
                results.append(validate())
            except ValidationException as e:
                errors.extend(e.validation_errors)

        if errors:
            raise ValidationException("Multiple validation errors", validation_errors=errors)
        return results


def validate_user_signup(full_name: str, email: str, password: str) -> str:
    """회원가입 입력 검증. 정규화된 이메일을 반환합니다."""
    Validator.validate_multiple_fields([
        lambda: Validator.validate_required(full_name, "fullName"),
        lambda: Validator.validate_required(email, "email"),
        lambda: Validator.validate_required(password, "password"),
    ])
    Validator.validate_multiple_fields([
        lambda: Validator.validate_full_name(full_name),
        lambda: Validator.validate_password(password),
    ])
    return Validator.validate_email_format(email)


def validate_user_login(email: str, password: str):
    Validator.validate_multiple_fields([
        lambda: Validator.validate_required(email, "email"),
        lambda: Validator.validate_required(password, "password"),
    ])
