"""
Centralized Logfire configuration for Devotional Studio.

Both entry points (the API in main.py and tools/batch_generate.py) call
configure_logfire() once before anything logs. Loggers created by
setup_logger() consult is_configured() to decide whether to emit through
Logfire or through the standard logging module.
"""
import io
import os
import sys

import logfire

_configured = False


def configure_logfire(force: bool = False) -> bool:
    """
    Configure Logfire when a token is available.

    Args:
        force: Force reconfiguration even if already configured

    Returns:
        bool: True if Logfire is active after the call
    """
    global _configured

    if _configured and not force:
        return True

    token = os.getenv("LOGFIRE_TOKEN")
    if not token:
        return False

    # Logfire prints the project URL on configure; keep stdout/stderr clean
    old_stdout, old_stderr = sys.stdout, sys.stderr
    sys.stdout, sys.stderr = io.StringIO(), io.StringIO()
    os.environ['LOGFIRE_CONSOLE_NO_SHOW'] = '1'
    try:
        logfire.configure(
            token=token,
            service_name="devotional-studio",
            service_version=os.getenv("APP_VERSION", "dev"),
            console=False
        )
    except Exception as e:
        sys.stdout, sys.stderr = old_stdout, old_stderr
        print(f"ERROR: Logfire configuration failed: {e}")
        _configured = False
        return False
    finally:
        sys.stdout, sys.stderr = old_stdout, old_stderr

    logfire.info("Logfire configured successfully")
    _configured = True
    return True


def is_configured() -> bool:
    """Check if Logfire is configured."""
    return _configured


def instrument_httpx() -> bool:
    """Trace outgoing backend calls made through httpx."""
    if not is_configured():
        return False

    try:
        logfire.instrument_httpx()
        logfire.info("httpx instrumentation enabled")
        return True
    except Exception as e:
        logfire.error(f"Failed to instrument httpx: {e}")
        return False
