# src/pipeshaper/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load .env once at import; harmless if no .env present.
load_dotenv()

__all__ = [
    "ShaperCfg",
    "load_env",
]

DEFAULT_DUMMY_ADDRESS = "0.0.0.0"
# ipfw's default rule is 65535 and auto-numbered rules are last rule + 100;
# wildcard rules sit low enough that later rules keep numbering above them.
IPFW_DEFAULT_RULE = 65535
IPFW_AUTOINC_STEP = 100
DEFAULT_WILDCARD_RULE = 50000


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None


# ---------------------------
# Shaping backend configuration
# ---------------------------

@dataclass(frozen=True)
class ShaperCfg:
    """
    Where and how to reach the classify+queue backend.

    Injected into the backend and reconciler at construction; nothing reads
    these values from a module global.
    """
    ipfw_bin: str = "ipfw"
    transport: str = "local"              # "local" or "ssh"
    ssh_host: str = ""
    ssh_port: int = 22
    ssh_user: str = ""
    ssh_password: str = ""
    timeout: float = 10.0
    dummy_address: str = DEFAULT_DUMMY_ADDRESS
    wildcard_rule_base: int = DEFAULT_WILDCARD_RULE

    @classmethod
    def from_env(cls) -> "ShaperCfg":
        return cls(
            ipfw_bin=os.getenv("SHAPER_IPFW_BIN", "ipfw").strip() or "ipfw",
            transport=(os.getenv("SHAPER_TRANSPORT", "local").strip() or "local").lower(),
            ssh_host=os.getenv("SHAPER_SSH_HOST", "").strip(),
            ssh_port=_env_int("SHAPER_SSH_PORT", 22),
            ssh_user=os.getenv("SHAPER_SSH_USER", "").strip(),
            ssh_password=os.getenv("SHAPER_SSH_PASSWORD", ""),
            timeout=_env_float("SHAPER_TIMEOUT", 10.0),
            dummy_address=os.getenv("SHAPER_DUMMY_ADDRESS", DEFAULT_DUMMY_ADDRESS).strip() or DEFAULT_DUMMY_ADDRESS,
            wildcard_rule_base=_env_int("SHAPER_WILDCARD_RULE", DEFAULT_WILDCARD_RULE),
        )

    def validate(self) -> None:
        if not 1 < self.wildcard_rule_base < IPFW_DEFAULT_RULE - IPFW_AUTOINC_STEP:
            raise RuntimeError(
                f"SHAPER_WILDCARD_RULE must be between 2 and {IPFW_DEFAULT_RULE - IPFW_AUTOINC_STEP - 1}, "
                f"got {self.wildcard_rule_base}"
            )
        if self.transport not in ("local", "ssh"):
            raise RuntimeError(f"Unsupported SHAPER_TRANSPORT: {self.transport!r} (expected local or ssh)")
        if self.transport != "ssh":
            return
        missing = []
        if not self.ssh_host:
            missing.append("SHAPER_SSH_HOST")
        if not self.ssh_user:
            missing.append("SHAPER_SSH_USER")
        if not self.ssh_password:
            missing.append("SHAPER_SSH_PASSWORD")
        if missing:
            raise RuntimeError(f"Missing ssh transport env: {', '.join(missing)}")


# ---------------------------
# Env helpers
# ---------------------------

def load_env(env_file: Optional[str | Path] = None) -> None:
    """
    Load environment variables from a .env file.
    - If env_file is provided, load it directly.
    - Otherwise, attempt to load from current working directory, then repo root.
    """
    if env_file:
        env_path = Path(env_file)
    else:
        env_path = Path.cwd() / ".env"

    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=bool(env_file))
    else:
        # fallback: try repo root (.env next to pyproject.toml)
        repo_env = Path(__file__).resolve().parents[2] / ".env"
        if repo_env.exists():
            load_dotenv(dotenv_path=repo_env)

