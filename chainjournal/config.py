from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    # Directory holding the ledger, entry store and key files
    data_dir: Path = Path(".")
    ledger_file: str = "blockchain.json"
    entries_file: str = "entries.json"
    key_file: str = "keys.json"
    # RSA modulus size used when the key pair is first generated
    key_size: int = Field(default=4096, ge=2048)
    # Create and persist the genesis block when a session opens an empty ledger
    auto_genesis: bool = True
    # Re-check the stored signature after unsealing an entry
    verify_on_read: bool = False
    log_level: str = "WARNING"
    # Prometheus metrics endpoint, disabled unless a port is set
    metrics_port: Optional[int] = None
    metrics_addr: str = "127.0.0.1"

    model_config = SettingsConfigDict(env_prefix="CHAINJOURNAL_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type["Settings"],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Init kwargs (CLI options) win over the environment, then dotenv, file secrets
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @property
    def ledger_path(self) -> Path:
        return self.data_dir / self.ledger_file

    @property
    def entries_path(self) -> Path:
        return self.data_dir / self.entries_file

    @property
    def key_path(self) -> Path:
        return self.data_dir / self.key_file


def get_package_version() -> str:
    """
    Returns the installed package version, falling back to setup.py in a source checkout.
    """
    import importlib.metadata
    import os
    import re

    try:
        return importlib.metadata.version("chainjournal")
    except importlib.metadata.PackageNotFoundError:
        pass
    setup_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), "setup.py")
    version_pattern = re.compile(r'version\s*=\s*[\'"]([^\'"]+)[\'"]')
    try:
        with open(setup_path, "r", encoding="utf-8") as f:
            for line in f:
                match = version_pattern.search(line)
                if match:
                    return match.group(1)
    except OSError:
        pass
    return "0.0.0"
