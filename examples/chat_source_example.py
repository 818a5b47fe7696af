"""
채팅 수신 예제 (AI/오버레이 없이 정규화된 Comment만 출력)

.env에 CHAT_PLATFORM(chzzk|youtube), CHAT_SOURCE_ID 와
플랫폼 인증(CHZZK_ACCESS_TOKEN 또는 YOUTUBE_API_KEY) 설정 후 실행.

실행: python examples/chat_source_example.py  (프로젝트 루트에서)
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import asyncio
import os

from dotenv import load_dotenv

from gayai.chat import ChatClientFactory, CommentNormalizer
from gayai.utils import setup_logging

load_dotenv(Path(__file__).resolve().parent.parent / ".env")
LOG_DIR = setup_logging()

normalizer = CommentNormalizer()


async def on_chat_event(raw: dict):
    comment = normalizer.normalize(raw)
    print(f"[{comment.timestamp}] {comment.author_name}: {comment.text}")


async def main():
    platform = (os.getenv("CHAT_PLATFORM") or "chzzk").strip()
    source_id = (os.getenv("CHAT_SOURCE_ID") or "").strip()
    if not source_id:
        print("❌ .env에 CHAT_SOURCE_ID를 설정해주세요. (치지직 채널 ID 또는 유튜브 영상 ID/URL)")
        return

    options = {
        "chzzk": {"access_token": os.getenv("CHZZK_ACCESS_TOKEN")},
        "youtube": {"api_key": os.getenv("YOUTUBE_API_KEY")},
    }.get(platform, {})
    client = ChatClientFactory.create(
        platform=platform,
        source_id=source_id,
        on_event=on_chat_event,
        reconnect_delay=5.0,
        max_reconnect_attempts=10,
        **options,
    )

    print(f"플랫폼: {client.platform_name}, 소스: {source_id}")
    print(f"로그 저장 경로: {LOG_DIR}")
    print("채팅 수신 중... (종료: Ctrl+C)\n")
    try:
        await client.start()
    finally:
        await client.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
