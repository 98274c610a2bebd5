"""
LinguaVerse Logging System

Clean terminal output for production + detailed file logging for debugging.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Any, Dict
import json


class LinguaVerseLogger:
    """
    Two-mode logging system:
    - Terminal: Clean, timestamped key events only
    - Debug file: Full detailed logs for troubleshooting
    """

    def __init__(self, debug_mode: bool = False, settings=None):
        self.debug_mode = debug_mode
        self.settings = settings
        self.log_dir = Path("logs")
        self.log_dir.mkdir(exist_ok=True)

        # Structured JSONL logs for storage and identity calls
        if settings and (settings.debug_storage or settings.debug_auth):
            self.debug_log_dir = Path(settings.debug_log_dir)
            self.debug_log_dir.mkdir(parents=True, exist_ok=True)

            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            if settings.debug_storage:
                self.storage_log = self.debug_log_dir / f"storage_{timestamp}.jsonl"
            if settings.debug_auth:
                self.auth_log = self.debug_log_dir / f"auth_{timestamp}.jsonl"

        if debug_mode:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file = self.log_dir / f"linguaverse_debug_{timestamp}.txt"

            self.file_logger = logging.getLogger("linguaverse_debug")
            self.file_logger.setLevel(logging.DEBUG)

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s | %(levelname)-8s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.file_logger.addHandler(file_handler)

            print(f"📝 Debug mode enabled. Logging to: {log_file}")

    def _timestamp(self) -> str:
        """Get formatted timestamp"""
        return datetime.now().strftime("%H:%M:%S")

    def _terminal_log(self, emoji: str, message: str, color: str = ""):
        """Print clean log to terminal"""
        timestamp = self._timestamp()

        # ANSI color codes
        colors = {
            "green": "\033[92m",
            "blue": "\033[94m",
            "yellow": "\033[93m",
            "red": "\033[91m",
            "cyan": "\033[96m",
            "reset": "\033[0m"
        }

        color_code = colors.get(color, "")
        reset = colors["reset"] if color_code else ""

        print(f"{color_code}[{timestamp}] {emoji} {message}{reset}")

    def _debug_log(self, level: str, component: str, message: str, data: Optional[dict] = None):
        """Write detailed log to debug file"""
        if self.debug_mode and hasattr(self, 'file_logger'):
            log_msg = f"{component} | {message}"
            if data:
                log_msg += f" | Data: {data}"

            log_func = getattr(self.file_logger, level.lower(), self.file_logger.info)
            log_func(log_msg)

    # ===== Terminal Output Methods =====

    def session_connected(self, client_id: str):
        """Log a new client session"""
        self._terminal_log("🔌", f"Session connected ({client_id[:8]})", "green")
        self._debug_log("info", "SESSION", "Client connected", {"client_id": client_id})

    def session_disconnected(self, client_id: str):
        """Log a closed client session"""
        self._terminal_log("🔌", f"Session disconnected ({client_id[:8]})", "yellow")
        self._debug_log("info", "SESSION", "Client disconnected", {"client_id": client_id})

    def auth_event(self, event: str, email: Optional[str] = None, provider_id: Optional[str] = None):
        """Log sign-in, sign-up, sign-out and linking milestones"""
        msg = f"Auth: {event}"
        if email:
            msg += f" ({email})"
        if provider_id:
            msg += f" via {provider_id}"
        self._terminal_log("🔑", msg, "cyan")
        self._debug_log("info", "AUTH", event, {"email": email, "provider_id": provider_id})

    def linking_started(self, email: str, methods: list):
        """Log the start of an account-linking flow"""
        self._terminal_log("🔗", f"Linking required for {email} (methods: {', '.join(methods) or 'none'})", "yellow")
        self._debug_log("info", "LINKING", "Started", {"email": email, "methods": methods})

    def error(self, component: str, message: str, error: Exception = None):
        """Log error"""
        msg = f"Error in {component}: {message}"
        if error:
            msg += f" ({type(error).__name__})"
        self._terminal_log("⚠️", msg, "red")
        self._debug_log("error", component, message, {
            "error_type": type(error).__name__ if error else None,
            "error_message": str(error) if error else None
        })

    def info(self, message: str):
        """Log general info"""
        self._terminal_log("ℹ️", message)
        self._debug_log("info", "SYSTEM", message)

    def warning(self, message: str):
        """Log warning"""
        self._terminal_log("⚠️", message, "yellow")
        self._debug_log("warning", "SYSTEM", message)

    # ===== Debug Logging Methods =====

    def _write_json_log(self, log_file: Path, data: Dict[str, Any]):
        """Write structured JSON log entry"""
        try:
            with open(log_file, 'a') as f:
                json.dump(data, f)
                f.write('\n')
        except OSError as e:
            self.error("LOGGER", f"Failed to write JSON log: {e}")

    def _truncate_data(self, data: Any, max_length: int = 500) -> str:
        """Truncate data for display"""
        data_str = str(data)
        if len(data_str) > max_length:
            return data_str[:max_length] + f"... ({len(data_str)} chars total)"
        return data_str

    def storage_operation(self, operation: str, path: str, data_summary: str,
                          size_bytes: int = 0, duration: Optional[float] = None):
        """Log Firestore write operations"""
        if not self.settings or not self.settings.debug_storage:
            return

        duration_str = f" in {duration*1000:.0f}ms" if duration else ""
        self._terminal_log("💾", f"Firestore {operation.upper()} → {path} ({size_bytes} bytes){duration_str}", "yellow")

        if hasattr(self, 'storage_log'):
            self._write_json_log(self.storage_log, {
                "timestamp": datetime.now().isoformat(),
                "type": "storage_operation",
                "operation": operation,
                "path": path,
                "data_summary": self._truncate_data(data_summary),
                "size_bytes": size_bytes,
                "duration_seconds": duration
            })

    def storage_read(self, path: str, result_summary: str, size_bytes: int = 0,
                     duration: Optional[float] = None):
        """Log Firestore reads and listener snapshots"""
        if not self.settings or not self.settings.debug_storage:
            return

        duration_str = f" in {duration*1000:.0f}ms" if duration else ""
        self._terminal_log("📖", f"Firestore READ ← {path} ({size_bytes} bytes){duration_str}", "blue")

        if hasattr(self, 'storage_log'):
            self._write_json_log(self.storage_log, {
                "timestamp": datetime.now().isoformat(),
                "type": "storage_read",
                "path": path,
                "result_summary": result_summary,
                "size_bytes": size_bytes,
                "duration_seconds": duration
            })

    def auth_call(self, endpoint: str, status: str = "success", duration: Optional[float] = None):
        """Log an Identity Toolkit call (never logs credentials)"""
        if not self.settings or not self.settings.debug_auth:
            return

        latency_str = f" in {duration:.1f}s" if duration else ""
        emoji = "🔐" if status == "success" else "⚠️"
        color = "green" if status == "success" else "yellow"
        self._terminal_log(emoji, f"Identity {endpoint}: {status}{latency_str}", color)

        if hasattr(self, 'auth_log'):
            self._write_json_log(self.auth_log, {
                "timestamp": datetime.now().isoformat(),
                "type": "auth_call",
                "endpoint": endpoint,
                "status": status,
                "duration_seconds": duration
            })


# Global logger instance
_logger: Optional[LinguaVerseLogger] = None


def init_logger(debug_mode: bool = False, settings=None):
    """Initialize logger with specific debug mode and settings"""
    global _logger
    _logger = LinguaVerseLogger(debug_mode=debug_mode, settings=settings)
    return _logger
