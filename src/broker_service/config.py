"""Service settings and broker definitions loaded from the environment.

Service-wide settings use pydantic-settings (prefix BROKER_SERVICE_, optional
.env file). Brokers are declared as numbered, prefix-scoped groups of
variables: BROKER1_NAME, BROKER1_TYPE, BROKER1_URL, BROKER1_USER,
BROKER1_PASS plus backend-specific keys such as CONSOLE_URL or REGION.
"""

import logging
import os
from functools import lru_cache
from typing import Mapping, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from broker_service.engine.cursor import DrainPolicy

logger = logging.getLogger(__name__)

MAX_BROKERS = 100


class ServiceSettings(BaseSettings):
    """Runtime settings for the broker service."""

    model_config = SettingsConfigDict(env_prefix="BROKER_SERVICE_", env_file=".env", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 1355
    log_level: str = "INFO"

    # Drain engine
    receive_timeout: float = 1.0
    max_receive_errors: int = 10
    enumeration_limit: int = 50_000
    credit_window: int = 10

    # Blocking call deadlines, in seconds
    close_timeout: float = 10.0
    publish_timeout: float = 30.0
    http_timeout: float = 10.0
    operation_timeout: float = 300.0

    # Raise MessageNotFoundError from delete-one/move-one when the ID is never seen
    report_missing_single: bool = False
    enable_test_broker: bool = True

    def drain_policy(self) -> DrainPolicy:
        return DrainPolicy(
            receive_timeout=self.receive_timeout,
            max_receive_errors=self.max_receive_errors,
            enumeration_limit=self.enumeration_limit,
            publish_timeout=self.publish_timeout,
        )


@lru_cache
def get_settings() -> ServiceSettings:
    """Return the loaded settings instance."""
    return ServiceSettings()


class BrokerConfiguration(BaseModel):
    """One broker definition; values holds every key under the broker's prefix."""

    name: str
    type: str = ""
    url: str = ""
    user: str = ""
    password: str = Field(default="", repr=False)
    values: dict[str, str] = Field(default_factory=dict, repr=False)

    def get(self, key: str, default: str = "") -> str:
        return self.values.get(key, default)


def load_broker_configurations(
    environ: Optional[Mapping[str, str]] = None,
) -> list[BrokerConfiguration]:
    """
    Collect BROKER1_ ... BROKER100_ definitions.

    A slot without a NAME is skipped.
    """
    environ = os.environ if environ is None else environ

    configs = []
    for index in range(1, MAX_BROKERS + 1):
        prefix = f"BROKER{index}_"
        values = {
            key[len(prefix):]: value for key, value in environ.items() if key.startswith(prefix)
        }
        name = values.get("NAME")
        if not name:
            continue
        configs.append(
            BrokerConfiguration(
                name=name,
                type=values.get("TYPE", ""),
                url=values.get("URL", ""),
                user=values.get("USER", ""),
                password=values.get("PASS", ""),
                values=values,
            )
        )

    logger.info("Brokers to build: %d", len(configs))
    for config in configs:
        logger.info("Broker %s: type=%s url=%s user=%s", config.name, config.type, config.url, config.user)
    return configs
