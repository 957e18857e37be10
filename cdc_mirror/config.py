"""
CDC Mirror 설정

소스 PostgreSQL(POS DB), 대상 Snowflake 웨어하우스, 라이브니스 포트,
벌크 동기화 배치 크기 및 구독 재연결 파라미터.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 소스 DB (PostgreSQL, POS 트랜잭션 DB)
    SOURCE_DB_HOST: str = "localhost"
    SOURCE_DB_PORT: int = 5432
    SOURCE_DB_USER: str = "postgres"
    SOURCE_DB_PASSWORD: str = ""
    SOURCE_DB_NAME: str = "postgres"
    SOURCE_DB_SCHEMA: str = "public"
    SOURCE_POOL_MIN: int = 1
    SOURCE_POOL_MAX: int = 5

    # 대상 웨어하우스 (Snowflake)
    SNOWFLAKE_ACCOUNT: str = ""
    SNOWFLAKE_USER: str = ""
    SNOWFLAKE_PASSWORD: str = ""
    SNOWFLAKE_WAREHOUSE: str = ""
    SNOWFLAKE_DATABASE: str = ""
    SNOWFLAKE_SCHEMA: str = "PUBLIC"
    SNOWFLAKE_ROLE: str = ""

    # 라이브니스 HTTP 포트
    PORT: int = 3000

    # 벌크 동기화
    BULK_FETCH_SIZE: int = 1000
    BULK_INSERT_SIZE: int = 500

    # 변경 피드 구독 재연결 (지수 백오프, 초)
    SUBSCRIBER_BACKOFF_INITIAL: float = 1.0
    SUBSCRIBER_BACKOFF_MAX: float = 60.0
    INSTALL_CAPTURE_TRIGGERS: bool = True

    LOG_LEVEL: str = "INFO"

    @property
    def SOURCE_DSN(self) -> str:
        return (
            f"postgresql://{self.SOURCE_DB_USER}:{self.SOURCE_DB_PASSWORD}"
            f"@{self.SOURCE_DB_HOST}:{self.SOURCE_DB_PORT}/{self.SOURCE_DB_NAME}"
        )

    @property
    def SNOWFLAKE_CONFIG(self) -> dict:
        config = {
            "account": self.SNOWFLAKE_ACCOUNT,
            "user": self.SNOWFLAKE_USER,
            "password": self.SNOWFLAKE_PASSWORD,
            "warehouse": self.SNOWFLAKE_WAREHOUSE,
            "database": self.SNOWFLAKE_DATABASE,
            "schema": self.SNOWFLAKE_SCHEMA,
        }
        if self.SNOWFLAKE_ROLE:
            config["role"] = self.SNOWFLAKE_ROLE
        return config

    class Config:
        env_file = ".env"


settings = Settings()
