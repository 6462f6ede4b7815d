# ── src/blastinutils/utility/utils.py ────────────────────────────────
from __future__ import annotations

import logging
import os
import secrets
import sys
import yaml
from pathlib import Path
import datetime as dt

# ── locate repo root & default log dir  ────────────────────────────────
def _find_repo_root(start: Path | None = None) -> Path:
    """Walk parents until we see pyproject.toml or .git."""
    here = start or Path(__file__).resolve()
    for p in [here, *here.parents]:
        if (p / "pyproject.toml").exists() or (p / ".git").exists():
            return p
    return Path(__file__).resolve().parents[1]       # site-packages wheel

ROOT      = _find_repo_root()
LOG_ROOT  = ROOT / "logs"
CONF_PATH = ROOT / "config" / "config.yaml"

# ── tiny helpers  ──────────────────────────────────────────────────────
def config_path() -> Path:
    """$BLASTINUTILS_CONFIG beats the repo-level config/config.yaml."""
    env = os.getenv("BLASTINUTILS_CONFIG")
    return Path(env).expanduser() if env else CONF_PATH

def load_config(path: str | Path | None = None) -> dict:
    """
    Load the YAML config and return it as a dict.
    A missing default file yields ``{}`` so callers fall back to built-in
    defaults; an explicit path that does not exist still raises.
    """
    p = Path(path) if path is not None else config_path()
    if path is None and not p.exists():
        return {}
    with p.open() as fh:
        return yaml.safe_load(fh) or {}

# ── session log file  ──────────────────────────────────────────────────
SESSION_ENV = "BLASTINUTILS_SESSION_ID"
LOG_FORMAT  = "%(asctime)s  %(levelname)-7s  %(name)s:  %(message)s"


def session_id(*, warn: bool = True) -> str:
    """$BLASTINUTILS_SESSION_ID, else a fresh 'YYYYMMDD-HHMMSS-<4-hex>'."""
    sid = os.getenv(SESSION_ENV)
    if sid:
        return sid
    sid = f"{dt.datetime.now():%Y%m%d-%H%M%S}-{secrets.token_hex(2)}"
    if warn:
        # logging is not configured yet, tell the user directly
        print(f"{SESSION_ENV} not set - using auto session ID {sid} "
              f"(export {SESSION_ENV}=ID to share one log between runs)", file=sys.stderr)
    return sid


def log_file_path(log_dir: str | Path | None = None, *,
                  prefix: str = "blastinutils", warn: bool = True) -> Path:
    """
    Where this run logs to.

    $BLASTINUTILS_LOG_FILE names the file outright. Otherwise the file is
    '<prefix>_<session>.log' inside *log_dir*, $BLASTINUTILS_LOG_DIR or ./logs,
    in that order.
    """
    explicit = os.getenv("BLASTINUTILS_LOG_FILE")
    if explicit:
        return Path(explicit).expanduser()
    folder = log_dir if log_dir is not None else os.getenv("BLASTINUTILS_LOG_DIR", LOG_ROOT)
    return Path(folder).expanduser() / f"{prefix}_{session_id(warn=warn)}.log"


def setup_logging(
    log_dir: str | Path | None = None,
    *,
    level: int = logging.INFO,
    console: bool = True,
    force: bool = False,
    warn_if_generated: bool = True,
    prefix: str = "blastinutils",
) -> Path:
    """
    Send root logging to the session log file (and stderr when *console*).

    Runs sharing a session id append to the same file. An already configured
    root logger is left alone unless *force* is set. Returns the log path.
    """
    logfile = log_file_path(log_dir, prefix=prefix, warn=warn_if_generated)

    root_logger = logging.getLogger()
    if root_logger.handlers and not force:
        return logfile
    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)
        h.close()

    logfile.parent.mkdir(parents=True, exist_ok=True)
    handlers: list[logging.Handler] = [
        logging.FileHandler(logfile, mode="a", encoding="utf-8", delay=True)]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    fmt = logging.Formatter(LOG_FORMAT)
    for h in handlers:
        h.setFormatter(fmt)
        root_logger.addHandler(h)
    root_logger.setLevel(level)

    root_logger.info("Logging to %s", logfile)
    return logfile
