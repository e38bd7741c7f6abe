from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    PEDIDOS_API_BASE_URL: str = "https://back-viviapp.onrender.com"
    PEDIDOS_HTTP_TIMEOUT: float = 30.0

    # IANA zone used to decide which orders count as "today"
    PEDIDOS_TIMEZONE: str = "America/Bogota"

    PEDIDOS_EXPORT_PATH: Path = Path("pagados.xlsx")
    PEDIDOS_EXPORT_ON_RUN: bool = False

    LOG_LEVEL: str = "INFO"


config = Config()
