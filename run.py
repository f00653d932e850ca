"""
Crowdshift 서버 진입점
실행: python run.py
접속: http://localhost:8000/docs
"""
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv


def check_dependencies():
    """필수 패키지 확인"""
    required = ["fastapi", "uvicorn", "pandas", "numpy"]
    missing = []
    for pkg in required:
        try:
            __import__(pkg)
        except ImportError:
            missing.append(pkg)

    if missing:
        print(f"[ERROR] 필수 패키지가 설치되지 않았습니다: {', '.join(missing)}")
        print("다음 명령어로 설치하세요:")
        print("  pip install -e .")
        sys.exit(1)


def check_data():
    """참조 데이터 파일 확인"""
    data_dir = Path("data")
    required_files = [
        "spots.json",
        "historical_patterns.csv",
    ]

    missing = [f for f in required_files if not (data_dir / f).exists()]
    if missing:
        print(f"[WARN]  일부 데이터 파일이 없습니다: {', '.join(missing)}")
        print("spots.json 없이는 엔진을 시작할 수 없습니다. "
              "historical_patterns.csv가 없으면 기본 휴리스틱을 사용합니다.")
        print()


def main():
    """메인 실행 함수"""
    print("=" * 60)
    print("Crowdshift - 실시간 관광지 혼잡도 스코어링 & 우회 엔진")
    print("=" * 60)
    print()

    check_dependencies()
    check_data()

    # 환경 변수 로드 (.env)
    load_dotenv()

    # 서버 설정
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("RELOAD", "True").lower() == "true"

    url = f"http://{host}:{port}"

    print(f"[*] 서버 주소: {url}")
    print(f"[*] 프로젝트 디렉토리: {Path.cwd()}")
    print(f"[*] 자동 재시작: {'활성화' if reload else '비활성화'}")
    print(f"[*] 갱신 주기: {os.getenv('CROWDSHIFT_REFRESH_INTERVAL', '10')}초")
    print()
    print("서버를 중지하려면 Ctrl+C를 누르세요.")
    print("=" * 60)
    print()

    try:
        uvicorn.run(
            "api.app:app",
            host=host,
            port=port,
            reload=reload,
            reload_dirs=["api", "crowdshift"],
            log_level=os.getenv("LOG_LEVEL", "info").lower(),
        )
    except KeyboardInterrupt:
        print("\n\n[*] 서버를 종료합니다.")
    except Exception as e:
        print(f"\n[ERROR] 서버 실행 중 오류 발생: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
