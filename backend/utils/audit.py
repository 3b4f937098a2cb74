import os
import logging

AUDIT_LOG_FILE = os.path.join("logs", "audit.log")

_audit_logger = logging.getLogger("schooldesk.audit")
_audit_logger.propagate = False


def _handler_for(path):
    """Attach one file handler per audit log path, reopened if the path changes (tests chdir)."""
    target = os.path.abspath(path)
    for handler in _audit_logger.handlers:
        if getattr(handler, "baseFilename", None) == target:
            return handler
    for handler in list(_audit_logger.handlers):
        _audit_logger.removeHandler(handler)
        handler.close()

    os.makedirs(os.path.dirname(target), exist_ok=True)
    handler = logging.FileHandler(target, encoding="utf-8")
    handler.setFormatter(logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    ))
    _audit_logger.addHandler(handler)
    _audit_logger.setLevel(logging.INFO)
    return handler


def log_event(event_type, user_id=None, ip=None, description=None, level="INFO"):
    """
    Record a security or audit event (logins, portal lookups, SMS dispatch,
    settings changes) in logs/audit.log.

    Parameters:
        event_type (str): e.g. LOGIN_SUCCESS, SMS_DISPATCH.
        user_id (int|None): acting staff user, if any.
        ip (str|None): client address.
        description (str|None): free-form context.
        level (str): INFO, WARNING or ERROR.
    """
    _handler_for(AUDIT_LOG_FILE)
    _audit_logger.log(
        logging.getLevelName(level.upper()),
        "EVENT: %s | USER: %s | IP: %s | DESC: %s",
        event_type, user_id or "N/A", ip or "N/A", description or "N/A",
    )
