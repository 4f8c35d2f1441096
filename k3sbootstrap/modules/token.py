"""Join token exchange with the init node."""
from ..exceptions import BootstrapError, RemoteUnavailableError
from ..logging import get_logger
from .models import ExecutionContext
from .polling import PollPolicy, wait_until
from .ssh import RemoteSession, authorize_key, ensure_key_pair

logger = get_logger("token")


def fetch_join_token(session: RemoteSession, token_path: str, policy: PollPolicy) -> str:
    """Wait for the join token to exist on the remote node, then read it once.

    The existence check is read-only, so any number of nodes may poll the
    same init node at the same time. An unreachable node is polled again;
    rejected credentials abort immediately.

    Args:
        session: SSH session to the init node
        token_path: Location of the token file on the init node
        policy: Polling interval, backoff and timeout

    Returns:
        str: The token, stripped of surrounding whitespace

    Raises:
        RemoteAuthError: If the init node rejects our credentials
        WaitTimeoutError: If the token does not appear in time
    """
    def token_present() -> bool:
        try:
            return session.file_exists(token_path)
        except RemoteUnavailableError as e:
            logger.info(f"⚠️  {e}")
            return False

    logger.info(f"⏳ Waiting for node-token on {session.host}...")
    wait_until(token_present, f"node-token on {session.host}", policy)

    token = session.read_file(token_path).strip()
    if not token:
        raise BootstrapError(f"Node token at {session.host}:{token_path} is empty")
    logger.info(f"🔑 Token retrieved from {session.host}")
    return token


def setup_ssh_trust(ctx: ExecutionContext) -> None:
    """Make sure this node can reach the init node with its SSH key."""
    if ctx.is_init_node:
        return
    init_node = ctx.cluster.init_node
    logger.info(f"Setting up SSH keys towards {init_node.name}")
    ctx.console.echo("Setting up the SSH keys")

    public_key = ensure_key_pair(ctx.settings.ssh_key_path)
    with ctx.session_factory(init_node) as session:
        authorize_key(session, public_key)


def retrieve_token(ctx: ExecutionContext) -> str:
    """Fetch the join token from the configured init node."""
    init_node = ctx.cluster.init_node
    ctx.console.echo(f"Waiting for node-token on {init_node.name}...")
    policy = PollPolicy.from_settings(ctx.settings.token_wait)
    with ctx.session_factory(init_node) as session:
        token = fetch_join_token(session, ctx.settings.token_path, policy)
    ctx.console.echo("Token retrieved")
    return token
