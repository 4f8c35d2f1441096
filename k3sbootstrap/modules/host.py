"""Host preparation: base packages and SSH daemon settings."""
import re
import shutil
from typing import Iterable, List

from ..logging import get_logger
from .models import ExecutionContext, StageResult

logger = get_logger("host")

# curl: installers; openssl: certificates; open-iscsi: Longhorn volumes
BASE_PACKAGES = ("curl", "openssl", "open-iscsi")


def missing_packages(ctx: ExecutionContext, packages: Iterable[str]) -> List[str]:
    """Return the packages rpm does not know about."""
    return [pkg for pkg in packages if not ctx.runner.succeeds(['rpm', '-q', pkg])]


def transactional_install(ctx: ExecutionContext, packages: List[str]) -> None:
    """Install packages into a new snapshot. They become usable after a reboot."""
    ctx.runner.run(['transactional-update', '--non-interactive', 'pkg', 'install', '-y', *packages])


def install_base(ctx: ExecutionContext) -> StageResult:
    """Install base packages and start the iSCSI daemon.

    Newly installed packages only exist in the next snapshot, so when anything
    had to be installed the stage stops and asks for a reboot; the next run
    finds the packages present and finishes the stage.
    """
    logger.info("Installing base packages")
    ctx.console.echo("Installing base packages ... ")

    missing = missing_packages(ctx, BASE_PACKAGES)
    if missing:
        logger.info(f"📦 Installing {', '.join(missing)} with transactional-update")
        transactional_install(ctx, missing)
        ctx.console.echo(" ")
        ctx.console.echo("Once base packages are installed ...")
        ctx.console.echo("... reboot and run installation script to continue on to Stage 2")
        return StageResult.REBOOT

    logger.info("All base packages already installed")
    ctx.runner.run(['systemctl', 'enable', '--now', 'iscsid'])
    return StageResult.DONE


def set_sshd_option(text: str, key: str, value: str) -> str:
    """Set ``key value`` in sshd_config text, uncommenting an existing entry if there is one."""
    pattern = re.compile(rf'^#?\s*{re.escape(key)}\b.*$', re.MULTILINE)
    replacement = f'{key} {value}'
    if pattern.search(text):
        return pattern.sub(replacement, text)
    if text and not text.endswith('\n'):
        text += '\n'
    return text + replacement + '\n'


def enable_root_ssh(ctx: ExecutionContext) -> None:
    """Allow root and password logins on the init node.

    Other nodes use this to install their key and read the node-token.
    """
    if not ctx.is_init_node:
        return

    logger.info("Enabling root SSH login on init node")
    sshd_config = ctx.settings.sshd_config
    vendor_config = ctx.settings.vendor_sshd_config
    if not sshd_config.exists() and vendor_config.exists():
        sshd_config.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy(vendor_config, sshd_config)

    original = sshd_config.read_text() if sshd_config.exists() else ''
    updated = set_sshd_option(original, 'PermitRootLogin', 'yes')
    updated = set_sshd_option(updated, 'PasswordAuthentication', 'yes')
    if updated == original:
        logger.info("Root SSH login already enabled")
        return

    sshd_config.write_text(updated)
    if not ctx.runner.succeeds(['systemctl', 'restart', 'sshd']):
        ctx.runner.run(['systemctl', 'restart', 'ssh'])
    logger.info("Root SSH login enabled")
