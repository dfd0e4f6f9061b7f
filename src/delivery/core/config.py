from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "apex-progressive-delivery"
    VERSION: str = "0.1.0"

    # Environment
    ENV: str = "dev"  # dev, staging, production
    DEBUG: bool = False

    # Metrics backend
    PROMETHEUS_URL: str = "http://prometheus:9090"
    PROMETHEUS_TIMEOUT: float = 30.0

    # Traffic routing
    INGRESS_NAMESPACE: str = "default"
    KUBECTL_BIN: str = "kubectl"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True
    )

settings = Settings()
