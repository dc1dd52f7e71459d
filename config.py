# config.py
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = 5000
    database_path: str = "db.sqlite"  # 작업 디렉토리 기준
    grace_period: float = 17.0  # 종료 시 진행 중인 요청을 기다리는 시간(초)
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.database_path}"
