"""
GAYAI 코호스트 실행 예제 (오버레이 서버 + 컨트롤 API + 연결 모니터)

.env에 AI_PROVIDER, (GEMINI|OPENAI|GROQ)_API_KEY 설정 후 실행.
선택: CHAT_PLATFORM=chzzk|youtube, CHAT_SOURCE_ID 를 넣으면 시작하자마자 채팅 수신.

실행: python examples/cohost_example.py  (프로젝트 루트에서)
OBS 브라우저 소스: http://localhost:3001/
"""

import sys
from pathlib import Path

# 프로젝트 루트를 path에 넣어서 'import gayai' 가능하게 함
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import asyncio
import os

from gayai.app import build_context
from gayai.config import load_settings
from gayai.utils import setup_logging

LOG_DIR = setup_logging()


async def main():
    settings = load_settings(Path(__file__).resolve().parent.parent / ".env")
    ctx = build_context(settings)

    await ctx.start()
    print(f"오버레이: {settings.overlay_url}  (OBS 브라우저 소스에 추가)")
    print(f"컨트롤 API: http://{settings.overlay_host}:{settings.overlay_port}/api/control/")
    print(f"로그 저장 경로: {LOG_DIR}")

    platform = (os.getenv("CHAT_PLATFORM") or "").strip()
    source_id = (os.getenv("CHAT_SOURCE_ID") or "").strip()
    if platform and source_id:
        result = await ctx.chat.start(platform, source_id)
        if result.get("success"):
            print(f"채팅 수신 중: {platform} / {source_id}")
        else:
            print(f"❌ 채팅 소스 시작 실패: {result.get('error')}")

    print("실행 중... (종료: Ctrl+C)\n")
    try:
        await ctx.wait()
    finally:
        await ctx.shutdown()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
