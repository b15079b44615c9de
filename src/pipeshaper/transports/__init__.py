from pipeshaper.transports.base import Runner
from .local import LocalRunner
from .ssh import SshRunner, make_ssh_client, ssh_exec

__all__ = [
    "Runner",
    "LocalRunner",
    "SshRunner", "make_ssh_client", "ssh_exec",
    "make_runner",
]


def make_runner(cfg) -> Runner:
    """Pick the transport named by ShaperCfg.transport."""
    cfg.validate()
    if cfg.transport == "ssh":
        return SshRunner(cfg.ssh_host, cfg.ssh_port, cfg.ssh_user, cfg.ssh_password, timeout=cfg.timeout)
    return LocalRunner(timeout=cfg.timeout)
