"""
Debug Logging with Secret Masking
"""

import logging
from typing import Any, Optional

DEFAULT_DEBUG_FILE = "/tmp/registry-card-catalog-debug.log"

SENSITIVE_KEYWORDS = [
    # Passwords and passphrases
    'password', 'passwd', 'passphrase', 'pwd',
    # Actual tokens and credentials (but not metadata about them)
    'token', 'credential', 'creds',
    # Authentication secrets (but not types like auth_type)
    'authorization', 'authenticate',
    # Keys and secrets
    'secret', 'private', 'api_key', 'apikey', 'access_key', 'vault_key',
]

# Metadata about secrets that is safe to log
SAFE_KEYS = {'has_token', 'token_length', 'has_password', 'next_page_token'}


def mask_sensitive_value(key: str, value: Any) -> str:
    """Mask values whose key looks like it holds a secret"""
    lowered = key.lower()
    if lowered in SAFE_KEYS or not any(keyword in lowered for keyword in SENSITIVE_KEYWORDS):
        return str(value)

    if isinstance(value, str) and len(value) > 8:
        # First and last 3 characters for identification
        return f"{value[:3]}...{value[-3:]}"
    return "[REDACTED]"


class DebugLogger:
    """Debug logger writing keyword context to a file, secrets masked"""

    def __init__(self, enabled: bool = False, verbose: bool = False, debug_file_path: Optional[str] = None):
        self.enabled = enabled
        self.verbose = verbose
        self.logger: Optional[logging.Logger] = None
        if not enabled:
            return

        if debug_file_path is None:
            debug_file_path = DEFAULT_DEBUG_FILE

        # File only, no console output
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s [DEBUG] %(name)s: %(message)s',
            handlers=[logging.FileHandler(debug_file_path)],
        )

        if not verbose:
            # Silence noisy HTTP libraries unless verbose mode
            logging.getLogger('httpcore').setLevel(logging.WARNING)
            logging.getLogger('httpx').setLevel(logging.WARNING)

        self.logger = logging.getLogger('registry-catalog')
        mode_text = "VERBOSE" if verbose else "STANDARD"
        self.logger.info(f"=== Debug Mode ({mode_text}) Enabled - Logging to: {debug_file_path} ===")

    def _format(self, message: str, **kwargs) -> str:
        safe_kwargs = {k: mask_sensitive_value(k, v) for k, v in kwargs.items()}
        context = ", ".join(f"{k}={v}" for k, v in safe_kwargs.items())
        return f"{message}" + (f" | {context}" if context else "")

    def debug(self, message: str, **kwargs):
        if self.enabled and self.logger:
            self.logger.debug(self._format(message, **kwargs))

    def info(self, message: str, **kwargs):
        if self.enabled and self.logger:
            self.logger.info(self._format(message, **kwargs))

    def error(self, message: str, **kwargs):
        if self.enabled and self.logger:
            self.logger.error(self._format(message, **kwargs))


# Disabled by default, replaced in main() when --debug is given
debug_logger = DebugLogger(enabled=False)
