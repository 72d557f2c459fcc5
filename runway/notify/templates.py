"""Email subjects and bodies, in English and Korean."""

from __future__ import annotations

from html import escape
from typing import Any, Callable, Dict, Tuple

SUPPORTED_LANGUAGES = ("en", "ko")

_TEXT: Dict[str, Dict[str, Dict[str, Any]]] = {
    "en": {
        "video_complete": {
            "subject": "Your video is ready! 🎬",
            "title": "Video Generation Complete",
            "greeting": "Hello, {user_name}!",
            "message": "Your AI fashion video has been successfully generated.",
            "button": "View Video",
        },
        "video_failed": {
            "subject": "Video generation failed 😢",
            "title": "Video Generation Failed",
            "greeting": "Hello, {user_name}!",
            "message": "We're sorry, but there was an issue generating your video.",
            "error_label": "Error details:",
            "retry_message": "Your credits have not been deducted. Please try again.",
            "button": "Try Again",
        },
        "avatar_complete": {
            "subject": "Your AI model is ready! ✨",
            "title": "AI Model Generation Complete",
            "greeting": "Hello, {user_name}!",
            "message": "Your AI model '{avatar_name}' has been successfully generated.",
            "preview_title": "Generated preview images:",
            "button": "View Model",
        },
        "footer": "This email was sent from AI Fashion Studio.",
    },
    "ko": {
        "video_complete": {
            "subject": "영상 생성이 완료되었습니다! 🎬",
            "title": "영상 생성 완료",
            "greeting": "안녕하세요, {user_name}님!",
            "message": "요청하신 AI 패션 영상이 성공적으로 생성되었습니다.",
            "button": "영상 확인하기",
        },
        "video_failed": {
            "subject": "영상 생성 실패 안내 😢",
            "title": "영상 생성 실패",
            "greeting": "안녕하세요, {user_name}님!",
            "message": "죄송합니다. 영상 생성 중 문제가 발생했습니다.",
            "error_label": "오류 내용:",
            "retry_message": "크레딧은 차감되지 않았습니다. 다시 시도해 주세요.",
            "button": "다시 시도하기",
        },
        "avatar_complete": {
            "subject": "AI 모델이 생성되었습니다! ✨",
            "title": "AI 모델 생성 완료",
            "greeting": "안녕하세요, {user_name}님!",
            "message": "'{avatar_name}' AI 모델이 성공적으로 생성되었습니다.",
            "preview_title": "생성된 프리뷰 이미지:",
            "button": "모델 확인하기",
        },
        "footer": "AI Fashion Studio에서 발송된 이메일입니다.",
    },
}


def _page(title: str, body: str, footer: str) -> str:
    return (
        "<!DOCTYPE html><html><body>"
        f'<div class="container"><div class="header"><h1>{escape(title)}</h1></div>'
        f'<div class="content">{body}</div>'
        f'<div class="footer">{escape(footer)}</div></div>'
        "</body></html>"
    )


def _button(url: str, label: str) -> str:
    return f'<a class="button" href="{escape(url)}">{escape(label)}</a>'


def _video_complete(t: dict, data: dict, app_url: str) -> str:
    body = f"<p>{escape(t['greeting'].format(**data))}</p><p>{escape(t['message'])}</p>"
    if data.get("thumbnail_url"):
        body += f'<img class="thumbnail" src="{escape(data["thumbnail_url"])}" />'
    return body + _button(f"{app_url}/library?job={data['job_id']}", t["button"])


def _video_failed(t: dict, data: dict, app_url: str) -> str:
    body = f"<p>{escape(t['greeting'].format(**data))}</p><p>{escape(t['message'])}</p>"
    if data.get("error_message"):
        body += f"<p><strong>{escape(t['error_label'])}</strong> {escape(data['error_message'])}</p>"
    body += f"<p>{escape(t['retry_message'])}</p>"
    return body + _button(f"{app_url}/create", t["button"])


def _avatar_complete(t: dict, data: dict, app_url: str) -> str:
    body = (
        f"<p>{escape(t['greeting'].format(**data))}</p>"
        f"<p>{escape(t['message'].format(**data))}</p>"
    )
    previews = data.get("preview_images") or []
    if previews:
        body += f"<p>{escape(t['preview_title'])}</p><div class=\"preview-grid\">"
        body += "".join(
            f'<img class="preview-img" src="{escape(url)}" />' for url in previews[:4]
        )
        body += "</div>"
    return body + _button(f"{app_url}/avatars/{data['avatar_id']}", t["button"])


_BODIES: Dict[str, Callable[[dict, dict, str], str]] = {
    "video_complete": _video_complete,
    "video_failed": _video_failed,
    "avatar_complete": _avatar_complete,
}


def render(
    template: str, language: str, data: Dict[str, Any], app_url: str
) -> Tuple[str, str]:
    """Return ``(subject, html)`` for ``template``. Unknown languages fall back to English."""
    if template not in _BODIES:
        raise ValueError(f"Unknown email template: {template}")
    texts = _TEXT.get(language, _TEXT["en"])
    t = texts[template]
    data = {"user_name": "User", **data}
    html = _page(t["title"], _BODIES[template](t, data, app_url.rstrip("/")), texts["footer"])
    return t["subject"], html
