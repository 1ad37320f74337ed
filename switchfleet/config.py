"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is driven by environment variables."""

    # Registry / script sources
    switchfleet_device_list_file: str = "devices.csv"
    switchfleet_script_list_file: str = "scripts.txt"

    # SSH
    switchfleet_ssh_port: int = 22
    switchfleet_ssh_key_path: str = ""
    switchfleet_connect_timeout_seconds: float = 15.0

    # Trust: "known_hosts", "pinned" or "insecure"
    switchfleet_host_key_policy: str = "known_hosts"
    switchfleet_known_hosts_file: str = ""
    # Comma separated "host=SHA256:base64" entries
    switchfleet_pinned_host_keys: str = ""

    # Credentials
    switchfleet_allow_inline_secrets: bool = True
    switchfleet_secrets_dir: str = ""

    # Orchestration
    switchfleet_max_concurrency: int = Field(default=8, ge=1)
    switchfleet_transfer_timeout_seconds: float = 60.0
    switchfleet_command_timeout_seconds: float = 300.0
    switchfleet_cleanup_timeout_seconds: float = 30.0
    # 0 disables the batch deadline
    switchfleet_batch_timeout_seconds: float = 900.0
    switchfleet_remote_tmp_dir: str = "/tmp"
    switchfleet_privileged_shell: str = "sudo bash"
    switchfleet_remove_command: str = "sudo rm -f"
    switchfleet_unique_remote_names: bool = True

    # HTTP
    switchfleet_api_key: str = ""
    switchfleet_cors_origins: str = (
        "http://localhost:3000,http://localhost:5173,http://localhost:8080"
    )
    switchfleet_public_address: str = "localhost:8000"

    # Logging
    switchfleet_log_level: str = "INFO"
    switchfleet_log_json: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.switchfleet_cors_origins.split(",") if o.strip()]


# Singleton – import this from anywhere
settings = Settings()
