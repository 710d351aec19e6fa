"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, SecretStr, field_validator
from typing import Optional

from domain.upload.policy import DEFAULT_PART_SIZE


class RelaySettings(BaseModel):
    """Server-side relay: holds the secret and knows the backends."""
    api_key: Optional[SecretStr] = None
    # provider name -> backend base URL
    providers: dict[str, str] = Field(
        default_factory=lambda: {"default": "http://localhost:9000/v1"}
    )
    timeout: float = 30.0
    auth_header: str = "Authorization"
    auth_scheme: str = "Bearer"

    @property
    def api_key_value(self) -> Optional[str]:
        if self.api_key is None:
            return None
        return self.api_key.get_secret_value()


class ClientSettings(BaseModel):
    """Client-side coordinator/resolver defaults. Never carries the secret."""
    relay_url: str = "http://localhost:8000/api/v1/storage"
    provider: str = "default"
    part_size: int = Field(default=DEFAULT_PART_SIZE, ge=1)
    max_concurrency: int = Field(default=4, ge=1)
    timeout: float = Field(default=60.0, gt=0)
    part_retries: int = Field(default=0, ge=0)


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Storage Relay")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)

    # 分组配置：relay（服务端）与 client（客户端）
    relay: RelaySettings = Field(default_factory=RelaySettings)
    client: ClientSettings = Field(default_factory=ClientSettings)

    # CORS配置
    CORS_ORIGINS: list = Field(default=["http://localhost:3000", "http://localhost:8000"])

    # 日志/请求体记录配置
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=True)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v


settings = Settings()
