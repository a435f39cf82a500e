"""
Project constants definitions
"""

# ============================================================
# Connection Defaults
# ============================================================

DEFAULT_SSH_PORT = 22
DEFAULT_CONNECT_TIMEOUT = 60
DEFAULT_FORWARD_AGENT = True
DEFAULT_HOST_KEY_VERIFY = False

# ============================================================
# Retry
# ============================================================

DEFAULT_RETRY_ATTEMPTS = 3

# ============================================================
# SSH Client Options
# ============================================================

SSH_BINARY = "ssh"
KNOWN_HOSTS_DISABLED = "/dev/null"
SERVER_ALIVE_INTERVAL = 60
PROXY_RELAY_COMMAND = ("nc", "%h", "%p")

# ============================================================
# Channel / Transfer
# ============================================================

CHANNEL_POLL_INTERVAL = 0.01
TRANSFER_CHUNK_SIZE = 32 * 1024

# ============================================================
# Config Files
# ============================================================

SSH_CONFIG_PATH = "~/.ssh/config"
ENV_PREFIX = "SSHRUN_"
