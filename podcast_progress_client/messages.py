"""Localized display text for podcast generation progress.

Status names, placeholder step labels shown while the backend has not
reported a ``currentStep``, remaining-time formatting and the generic
fallback messages surfaced through ``on_error``.
"""

import math
import random
from datetime import datetime, timezone
from typing import Optional

from podcast_progress_client.models import JobStatus, ProgressSnapshot

DEFAULT_LOCALE = "en"

_CATALOGS = {
    "en": {
        "status_names": {
            JobStatus.processing: "Processing",
            JobStatus.completed: "Completed",
            JobStatus.failed: "Failed",
        },
        "unknown_status": "Unknown",
        "steps": {
            JobStatus.processing: [
                "The AI has started working",
                "Analyzing your content",
                "Sketching out creative ideas",
                "Building an engaging story",
                "Finding the best structure",
            ],
            JobStatus.completed: [
                "Your podcast is ready!",
                "You can listen to it now",
                "A great podcast was born",
                "Generated successfully!",
                "Enjoy listening",
            ],
            JobStatus.failed: [
                "Something went wrong while processing",
                "Please try again",
                "A problem occurred",
                "Please try again in a moment",
            ],
        },
        "default_step": "Processing...",
        "motivation": [
            (90, "Almost there! Just a little longer"),
            (70, "Everything is going smoothly"),
            (50, "More than halfway done"),
            (20, "The AI is hard at work"),
            (0, "Starting soon"),
        ],
        "eta_soon": "Finishing soon",
        "eta_one_minute": "About 1 minute left",
        "eta_minutes": "About {minutes} minutes left",
        "eta_hours": "About {hours} h left",
        "eta_hours_minutes": "About {hours} h {minutes} min left",
        "generation_failed": "An error occurred while generating the podcast",
        "status_check_failed": "An error occurred while checking the status",
        "unrecognized_status": "Received an unrecognized job status: {status}",
    },
    "ko": {
        "status_names": {
            JobStatus.processing: "처리 중",
            JobStatus.completed: "완료",
            JobStatus.failed: "실패",
        },
        "unknown_status": "알 수 없음",
        "steps": {
            JobStatus.processing: [
                "AI가 작업을 시작했어요",
                "내용을 분석하고 있습니다",
                "창의적인 아이디어를 구상 중이에요",
                "흥미로운 스토리를 만들고 있어요",
                "최적의 구성을 찾고 있습니다",
            ],
            JobStatus.completed: [
                "팟캐스트가 완성되었어요!",
                "이제 들어보실 수 있습니다",
                "훌륭한 팟캐스트가 탄생했어요",
                "성공적으로 생성되었습니다!",
                "즐겁게 들어보세요",
            ],
            JobStatus.failed: [
                "처리 중 오류가 발생했습니다",
                "다시 시도해주세요",
                "문제가 발생했어요",
                "잠시 후 다시 시도해보세요",
            ],
        },
        "default_step": "처리 중입니다...",
        "motivation": [
            (90, "거의 다 왔어요! 조금만 더 기다려주세요"),
            (70, "순조롭게 진행되고 있어요"),
            (50, "절반 이상 완료되었어요"),
            (20, "AI가 열심히 작업하고 있어요"),
            (0, "곧 시작됩니다"),
        ],
        "eta_soon": "곧 완료됩니다",
        "eta_one_minute": "약 1분 후 완료",
        "eta_minutes": "약 {minutes}분 후 완료",
        "eta_hours": "약 {hours}시간 후 완료",
        "eta_hours_minutes": "약 {hours}시간 {minutes}분 후 완료",
        "generation_failed": "팟캐스트 생성 중 오류가 발생했습니다",
        "status_check_failed": "상태 확인 중 오류가 발생했습니다",
        "unrecognized_status": "알 수 없는 작업 상태를 받았습니다: {status}",
    },
}


def _catalog(locale: str) -> dict:
    return _CATALOGS.get(locale, _CATALOGS[DEFAULT_LOCALE])


def status_display_name(status: JobStatus, locale: str = DEFAULT_LOCALE) -> str:
    catalog = _catalog(locale)
    return catalog["status_names"].get(status, catalog["unknown_status"])


def placeholder_step(status: JobStatus, locale: str = DEFAULT_LOCALE) -> str:
    """Pick a random step label for a status"""
    catalog = _catalog(locale)
    messages = catalog["steps"].get(status)
    if not messages:
        return catalog["default_step"]
    return random.choice(messages)


def display_step(snapshot: ProgressSnapshot, locale: str = DEFAULT_LOCALE) -> str:
    """The server-reported step, or a placeholder derived from the status"""
    if snapshot.current_step:
        return snapshot.current_step
    return placeholder_step(snapshot.status, locale)


def motivational_message(progress_percentage: int, locale: str = DEFAULT_LOCALE) -> str:
    thresholds = _catalog(locale)["motivation"]
    for threshold, message in thresholds:
        if progress_percentage >= threshold:
            return message
    return thresholds[-1][1]


def format_estimated_time(
    estimated_completion: Optional[datetime],
    now: Optional[datetime] = None,
    locale: str = DEFAULT_LOCALE,
) -> Optional[str]:
    if estimated_completion is None:
        return None

    if estimated_completion.tzinfo is None:
        estimated_completion = estimated_completion.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    catalog = _catalog(locale)
    diff_minutes = math.ceil((estimated_completion - now).total_seconds() / 60)

    if diff_minutes <= 0:
        return catalog["eta_soon"]
    if diff_minutes == 1:
        return catalog["eta_one_minute"]
    if diff_minutes < 60:
        return catalog["eta_minutes"].format(minutes=diff_minutes)

    hours, minutes = divmod(diff_minutes, 60)
    if minutes == 0:
        return catalog["eta_hours"].format(hours=hours)
    return catalog["eta_hours_minutes"].format(hours=hours, minutes=minutes)


def generation_failed_message(locale: str = DEFAULT_LOCALE) -> str:
    return _catalog(locale)["generation_failed"]


def status_check_failed_message(locale: str = DEFAULT_LOCALE) -> str:
    return _catalog(locale)["status_check_failed"]


def unrecognized_status_message(status: str, locale: str = DEFAULT_LOCALE) -> str:
    return _catalog(locale)["unrecognized_status"].format(status=status)
