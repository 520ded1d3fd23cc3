from pydantic_settings import BaseSettings, SettingsConfigDict

from docker_registry_client import __version__


class HTTPConfig(BaseSettings):
    REGISTRY_TIMEOUT: float = 30.0
    REGISTRY_CONNECT_TIMEOUT: float = 10.0
    REGISTRY_USER_AGENT: str = f"docker-registry-client-python/{__version__}"

    REGISTRY_INSECURE: bool = False
    """Default for the per-call ``insecure`` option.

    Insecure registries are reached over plain http and TLS certificates
    are not verified.
    """


class Settings(
    HTTPConfig,
    BaseSettings,
):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
