"""
메시지 중복 판정 / 병합

push 이벤트와 catch-up 결과 모두 이 규칙 하나로 병합합니다.
"""

from datetime import timedelta
from typing import Iterable, List

from directchat.schemas.message import MessageRecord

# 낙관적 메시지와 서버 확정 메시지를 같은 메시지로 보는 최대 시간 차이
DUPLICATE_WINDOW = timedelta(milliseconds=2000)


def is_duplicate(candidate: MessageRecord, existing: MessageRecord) -> bool:
    """
    candidate가 existing과 같은 메시지인지 판정

    - id가 같거나
    - text, sender_id가 같고 created_at 차이가 2000ms 미만
    """
    if candidate.id == existing.id:
        return True

    return (
        candidate.text == existing.text
        and candidate.sender_id == existing.sender_id
        and abs(candidate.created_at - existing.created_at) < DUPLICATE_WINDOW
    )


def merge_messages(existing: Iterable[MessageRecord], incoming: Iterable[MessageRecord]) -> List[MessageRecord]:
    """
    incoming 중 중복이 아닌 메시지만 existing에 추가하고 created_at 오름차순으로 정렬합니다.

    같은 입력을 여러 번 병합해도 결과는 같습니다.
    """
    merged = list(existing)
    for message in incoming:
        if any(is_duplicate(message, current) for current in merged):
            continue
        merged.append(message)

    merged.sort(key=lambda message: message.created_at)
    return merged
