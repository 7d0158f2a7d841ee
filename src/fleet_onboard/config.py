"""Run configuration loaded from environment variables.

Values come from the process environment, with a ``.env`` file in the
working directory loaded first. CLI arguments override them.

Environment Variables:
    - MYGEOTAB_SERVER: MyGeotab server (default my.geotab.com)
    - MYGEOTAB_DATABASE: Target database (tenant)
    - MYGEOTAB_USERNAME / MYGEOTAB_PASSWORD: MyGeotab login
    - MYADMIN_URL: MyAdmin API endpoint
    - MYADMIN_USERNAME / MYADMIN_PASSWORD: MyAdmin login (defaults to the
      MyGeotab login)
    - RESELLER_ERP_ACCOUNT_ID: Account whose device registry is read
    - ONBOARD_MAX_CONCURRENT: Concurrent device records (default 1)
    - LOG_LEVEL: Logging level (default INFO)
"""
import os
from dataclasses import dataclass, replace
from typing import Optional

from dotenv import load_dotenv

from .api.auth import DEFAULT_MYADMIN_URL, DEFAULT_MYGEOTAB_SERVER
from .api.exceptions import ConfigurationError

load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{value}'")


@dataclass
class OnboardConfig:
    """Configuration for an onboarding or provisioning run."""

    mygeotab_server: str = DEFAULT_MYGEOTAB_SERVER
    database: str = ""
    mygeotab_username: Optional[str] = None
    mygeotab_password: Optional[str] = None
    myadmin_url: str = DEFAULT_MYADMIN_URL
    myadmin_username: Optional[str] = None
    myadmin_password: Optional[str] = None
    reseller_account_id: Optional[str] = None
    max_concurrent: int = 1
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "OnboardConfig":
        mygeotab_username = os.getenv("MYGEOTAB_USERNAME")
        mygeotab_password = os.getenv("MYGEOTAB_PASSWORD")
        return cls(
            mygeotab_server=os.getenv("MYGEOTAB_SERVER", DEFAULT_MYGEOTAB_SERVER),
            database=os.getenv("MYGEOTAB_DATABASE", ""),
            mygeotab_username=mygeotab_username,
            mygeotab_password=mygeotab_password,
            myadmin_url=os.getenv("MYADMIN_URL", DEFAULT_MYADMIN_URL),
            myadmin_username=os.getenv("MYADMIN_USERNAME") or mygeotab_username,
            myadmin_password=os.getenv("MYADMIN_PASSWORD") or mygeotab_password,
            reseller_account_id=os.getenv("RESELLER_ERP_ACCOUNT_ID"),
            max_concurrent=_env_int("ONBOARD_MAX_CONCURRENT", 1),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def override(self, **values) -> "OnboardConfig":
        """Copy with the given non-None values replaced."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})

    def validate(self, registry: bool = True, database: bool = True) -> list[str]:
        """Return the environment keys missing for a run.

        Args:
            registry: Whether the MyAdmin registry will be read
            database: Whether a target database is needed
        """
        missing = []
        if not self.mygeotab_username:
            missing.append("MYGEOTAB_USERNAME")
        if not self.mygeotab_password:
            missing.append("MYGEOTAB_PASSWORD")
        if database and not self.database:
            missing.append("MYGEOTAB_DATABASE")
        if registry:
            if not self.myadmin_username:
                missing.append("MYADMIN_USERNAME")
            if not self.myadmin_password:
                missing.append("MYADMIN_PASSWORD")
            if not self.reseller_account_id:
                missing.append("RESELLER_ERP_ACCOUNT_ID")
        if self.max_concurrent < 1:
            missing.append("ONBOARD_MAX_CONCURRENT")
        return missing

    def require(self, registry: bool = True, database: bool = True) -> "OnboardConfig":
        missing = self.validate(registry=registry, database=database)
        if missing:
            raise ConfigurationError(
                f"Missing or invalid configuration: {', '.join(missing)}",
                missing_keys=missing,
            )
        return self

    def __repr__(self):
        return (
            f"OnboardConfig("
            f"server={self.mygeotab_server}, "
            f"database={self.database}, "
            f"user={self.mygeotab_username}, "
            f"account={self.reseller_account_id}, "
            f"max_concurrent={self.max_concurrent})"
        )
