"""
GAYAI: 라이브 방송용 AI 코호스트 (채팅/음성 → 가야 생성 → 오버레이 배포)
"""
