import json

import httpx
import pytest

from runway.config import EmailConfig, RunwayConfig
from runway.notify import (
    InMemoryNotifier,
    LoggingNotifier,
    Notification,
    NotificationKind,
    ResendNotifier,
    deliver,
    get_notifier,
    render,
)


def test_render_video_complete_english():
    subject, html = render(
        "video_complete",
        "en",
        {"user_name": "Ada", "job_id": "job-1", "thumbnail_url": "https://img.test/t.png"},
        "https://app.test/",
    )
    assert subject == "Your video is ready! 🎬"
    assert "Hello, Ada!" in html
    assert 'href="https://app.test/library?job=job-1"' in html
    assert "https://img.test/t.png" in html


def test_render_korean_and_fallback():
    subject, _ = render("video_failed", "ko", {"job_id": "j"}, "https://app.test")
    assert subject == "영상 생성 실패 안내 😢"
    subject, html = render("video_failed", "fr", {"error_message": "<boom>"}, "https://app.test")
    assert subject == "Video generation failed 😢"
    assert "&lt;boom&gt;" in html


def test_render_avatar_limits_previews():
    _, html = render(
        "avatar_complete",
        "en",
        {"avatar_name": "Mina", "avatar_id": "a1", "preview_images": [f"u{i}" for i in range(6)]},
        "https://app.test",
    )
    assert html.count('class="preview-img"') == 4
    assert "/avatars/a1" in html


def test_render_unknown_template():
    with pytest.raises(ValueError):
        render("newsletter", "en", {}, "https://app.test")


@pytest.mark.asyncio
async def test_deliver_swallows_errors():
    class Broken:
        async def send(self, notification):
            raise RuntimeError("smtp down")

    note = Notification(to="a@b.test", kind=NotificationKind.FAILURE, template="video_failed")
    assert await deliver(Broken(), note) is False

    sink = InMemoryNotifier()
    assert await deliver(sink, note) is True
    assert sink.sent == [note]


@pytest.mark.asyncio
async def test_resend_posts_rendered_email():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "email-1"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        notifier = ResendNotifier("re_key", "Studio <noreply@studio.test>", "https://app.test", client=client)
        await notifier.send(
            Notification(
                to="ada@example.com",
                kind=NotificationKind.SUCCESS,
                template="avatar_complete",
                language="ko",
                data={"avatar_name": "Mina", "avatar_id": "a1"},
            )
        )

    body = json.loads(seen[0].content)
    assert seen[0].headers["Authorization"] == "Bearer re_key"
    assert body["to"] == "ada@example.com"
    assert body["subject"] == "AI 모델이 생성되었습니다! ✨"


def test_get_notifier_by_config():
    assert isinstance(get_notifier(RunwayConfig()), LoggingNotifier)
    configured = RunwayConfig(email=EmailConfig(resend_api_key="re_key"))
    assert isinstance(get_notifier(configured), ResendNotifier)
