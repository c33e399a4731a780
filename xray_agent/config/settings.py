from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # API Configuration
    debug: bool = False
    environment: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api/v1"

    # Xray Cloud (secrets come from environment)
    xray_client_id: Optional[str] = None
    xray_client_secret: Optional[str] = None
    xray_auth_url: str = "https://xray.cloud.getxray.app/api/v1/authenticate"
    xray_api_url: str = "https://xray.cloud.getxray.app/api/v2/graphql"
    xray_auth_timeout_seconds: float = 5.0
    xray_graphql_timeout_seconds: float = 10.0
    # Tokens are valid for a fixed window from the moment they are received
    xray_token_ttl_seconds: float = 3600.0
    # Exact issue link type name; when unset the "tests" type is discovered by name
    xray_tests_link_type: Optional[str] = None

    # JIRA Integration (configure via environment)
    jira_base_url: Optional[str] = None
    jira_username: Optional[str] = None
    jira_api_token: Optional[str] = None
    jira_timeout_seconds: float = 5.0

    # Project used for new tests when it cannot be derived from the user story key
    default_project_key: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def xray_configured(self) -> bool:
        return bool(self.xray_client_id and self.xray_client_secret)

    @property
    def jira_configured(self) -> bool:
        return bool(self.jira_base_url and self.jira_username and self.jira_api_token)


# Global settings instance
settings = Settings()
