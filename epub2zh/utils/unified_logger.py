"""
Unified logging system for epub2zh
Provides consistent logging across the CLI and the web service
"""
import sys
import os
from datetime import datetime
from typing import Optional, Dict, Any, Callable
from enum import Enum


class LogLevel(Enum):
    """Log levels with priority values"""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class LogType(Enum):
    """Types of log messages for special handling"""
    GENERAL = "general"
    PROGRESS = "progress"
    SEGMENT_INFO = "segment_info"
    BACKEND_FALLBACK = "backend_fallback"
    DEGRADED = "degraded"
    FILE_OPERATION = "file_operation"
    TRANSLATION_START = "translation_start"
    TRANSLATION_END = "translation_end"
    ERROR_DETAIL = "error_detail"


class Colors:
    """ANSI color codes for terminal output"""
    NO_COLOR = os.environ.get('NO_COLOR') is not None or not sys.stdout.isatty()

    YELLOW = '' if NO_COLOR else '\033[93m'       # Headers, warnings
    WHITE = '' if NO_COLOR else '\033[97m'        # Main text
    GRAY = '' if NO_COLOR else '\033[90m'         # Technical details
    ORANGE = '' if NO_COLOR else '\033[38;5;214m' # Degraded quality
    GREEN = '' if NO_COLOR else '\033[92m'        # Completion
    RED = '' if NO_COLOR else '\033[91m'          # Errors
    ENDC = '' if NO_COLOR else '\033[0m'          # Reset

    @classmethod
    def disable(cls):
        """Disable all colors"""
        cls.YELLOW = cls.WHITE = cls.GRAY = cls.ORANGE = cls.GREEN = cls.RED = cls.ENDC = ''


class UnifiedLogger:
    """
    Unified logger that provides consistent logging across all interfaces
    """

    def __init__(self,
                 name: str = "epub2zh",
                 console_output: bool = True,
                 enable_colors: bool = True,
                 min_level: LogLevel = LogLevel.INFO,
                 web_callback: Optional[Callable] = None,
                 storage_callback: Optional[Callable] = None):
        """
        Initialize the unified logger

        Args:
            name: Logger name/identifier
            console_output: Whether to output to console
            enable_colors: Whether to use colored output
            min_level: Minimum log level to display
            web_callback: Callback receiving every structured log entry
            storage_callback: Callback for storing logs (e.g., in memory)
        """
        self.name = name
        self.console_output = console_output
        self.enable_colors = enable_colors
        self.min_level = min_level
        self.web_callback = web_callback
        self.storage_callback = storage_callback

        self.translation_state = {
            'current_segment': 0,
            'total_segments': 0,
            'source_format': '',
            'backend': '',
            'start_time': None,
            'in_progress': False
        }

        if not enable_colors:
            Colors.disable()

    def _format_timestamp(self) -> str:
        """Format current timestamp"""
        return datetime.now().strftime("%H:%M:%S")

    def _format_console_message(self, level: LogLevel, message: str,
                                log_type: LogType = LogType.GENERAL,
                                data: Optional[Dict[str, Any]] = None) -> str:
        """Format message for console output"""
        timestamp = self._format_timestamp()

        level_colors = {
            LogLevel.DEBUG: Colors.GRAY,
            LogLevel.INFO: Colors.WHITE,
            LogLevel.WARNING: Colors.YELLOW,
            LogLevel.ERROR: Colors.RED,
            LogLevel.CRITICAL: Colors.RED
        }

        color = level_colors.get(level, Colors.WHITE)

        if log_type == LogType.PROGRESS:
            return self._format_progress(data or {})
        elif log_type == LogType.TRANSLATION_START:
            return self._format_translation_start(message, data or {})
        elif log_type == LogType.TRANSLATION_END:
            return self._format_translation_end(message, data or {})
        elif log_type == LogType.ERROR_DETAIL:
            return self._format_error_detail(message, data or {})
        elif log_type == LogType.DEGRADED:
            return self._format_degraded(message, data or {})
        else:
            level_str = f"[{level.name}]" if level != LogLevel.INFO else ""
            return f"{color}[{timestamp}] {level_str} {message}{Colors.ENDC}"

    def _format_progress(self, data: Dict[str, Any]) -> str:
        """Format progress summary"""
        output = []

        percentage = data.get('percentage', 0)
        current = data.get('current', self.translation_state['current_segment'])
        total = data.get('total', self.translation_state['total_segments'])

        self.translation_state['current_segment'] = current

        output.append(f"\n{Colors.WHITE}PROGRESS: {current}/{total} segments ({percentage:.1f}%){Colors.ENDC}")

        bar_length = 30
        filled = int(bar_length * percentage / 100)
        bar = '█' * filled + '░' * (bar_length - filled)
        output.append(f"{Colors.WHITE}[{bar}] {percentage:.1f}%{Colors.ENDC}")

        if data.get('message'):
            output.append(f"{Colors.GRAY}{data['message']}{Colors.ENDC}")

        return '\n'.join(output)

    def _format_translation_start(self, message: str, data: Dict[str, Any]) -> str:
        """Format translation start message"""
        output = []

        output.append(f"{Colors.YELLOW}{message.upper() or 'TRANSLATION STARTED'}{Colors.ENDC}")

        self.translation_state.update({
            'source_format': data.get('source_format', 'Unknown'),
            'backend': data.get('backend', 'Unknown'),
            'total_segments': data.get('total_segments', 0),
            'current_segment': 0,
            'start_time': datetime.now(),
            'in_progress': True
        })

        if data.get('input_file'):
            output.append(f"{Colors.WHITE}Input: {data['input_file']}{Colors.ENDC}")
        output.append(f"{Colors.WHITE}Format: {self.translation_state['source_format']}{Colors.ENDC}")
        output.append(f"{Colors.GRAY}Backend: {self.translation_state['backend']}{Colors.ENDC}")
        if data.get('job_id'):
            output.append(f"{Colors.GRAY}Job: {data['job_id']}{Colors.ENDC}")

        return '\n'.join(output)

    def _format_translation_end(self, message: str, data: Dict[str, Any]) -> str:
        """Format translation end message"""
        output = []

        output.append(f"\n{Colors.GREEN}{message.upper() or 'TRANSLATION COMPLETE'}{Colors.ENDC}")

        if self.translation_state['start_time']:
            duration = datetime.now() - self.translation_state['start_time']
            output.append(f"{Colors.GRAY}Duration: {duration}{Colors.ENDC}")

        if data.get('output_file'):
            output.append(f"{Colors.WHITE}PDF saved to: {data['output_file']}{Colors.ENDC}")
        if data.get('text_file'):
            output.append(f"{Colors.WHITE}Text saved to: {data['text_file']}{Colors.ENDC}")
        if data.get('degraded'):
            output.append(f"{Colors.ORANGE}Some text was produced by offline simulation{Colors.ENDC}")

        self.translation_state['in_progress'] = False

        return '\n'.join(output)

    def _format_error_detail(self, message: str, data: Dict[str, Any]) -> str:
        """Format detailed error message"""
        output = []

        timestamp = self._format_timestamp()
        output.append(f"{Colors.RED}[{timestamp}] ERROR: {message}{Colors.ENDC}")

        if 'details' in data:
            output.append(f"{Colors.RED}Details: {data['details']}{Colors.ENDC}")
        if 'segment' in data:
            output.append(f"{Colors.RED}Segment: {data['segment']}{Colors.ENDC}")
        if data.get('job_id'):
            output.append(f"{Colors.GRAY}Resume with: --resume {data['job_id']}{Colors.ENDC}")

        return '\n'.join(output)

    def _format_degraded(self, message: str, data: Dict[str, Any]) -> str:
        """Format the warning shown when offline simulation replaced a translation"""
        timestamp = self._format_timestamp()
        line = f"{Colors.ORANGE}[{timestamp}] [DEGRADED] {message}{Colors.ENDC}"
        if 'segment' in data:
            line += f"{Colors.GRAY} (segment {data['segment']}){Colors.ENDC}"
        return line

    def log(self, level: LogLevel, message: str,
            log_type: LogType = LogType.GENERAL,
            data: Optional[Dict[str, Any]] = None):
        """
        Main logging method

        Args:
            level: Log level
            message: Log message
            log_type: Type of log for special formatting
            data: Additional data for the log entry
        """
        if level.value < self.min_level.value:
            return

        if self.console_output:
            try:
                console_msg = self._format_console_message(level, message, log_type, data)
                if console_msg:
                    print(console_msg, flush=True)
            except UnicodeEncodeError:
                # Windows consoles (cp1252) cannot print CJK text
                safe_message = message.encode('ascii', 'replace').decode('ascii')
                print(f"[{self._format_timestamp()}] {safe_message}", flush=True)

        log_entry = {
            'timestamp': datetime.now().isoformat(),
            'level': level.name,
            'type': log_type.value,
            'message': message,
            'data': data or {}
        }

        if self.web_callback:
            self.web_callback(log_entry)

        if self.storage_callback:
            self.storage_callback(log_entry)

    # Convenience methods
    def debug(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.DEBUG, message, log_type, data)

    def info(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.INFO, message, log_type, data)

    def warning(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.WARNING, message, log_type, data)

    def error(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.ERROR, message, log_type, data)

    def critical(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.CRITICAL, message, log_type, data)

    def update_total_segments(self, total: int):
        self.translation_state['total_segments'] = total

    def log_progress_event(self, event):
        """Render an orchestrator ProgressEvent as a log entry."""
        status = getattr(event.status, 'value', event.status)
        data = {
            'percentage': event.percent,
            'message': event.message,
            'status': status,
            'job_id': event.job_id,
        }
        if event.segment_id is not None:
            self.translation_state['current_segment'] = event.segment_id
            data['current'] = event.segment_id
            data['total'] = self.translation_state.get('total_segments', 0)

        if status == 'error':
            self.log(LogLevel.ERROR, event.message, LogType.ERROR_DETAIL,
                     {'details': event.message, 'job_id': event.job_id})
        elif status == 'cancelled':
            self.warning(event.message, data=data)
        elif status == 'completed':
            self.translation_state['in_progress'] = False
            self.info(event.message, LogType.PROGRESS, data)
        else:
            self.info(event.message, LogType.PROGRESS, data)

    def create_log_callback(self) -> Callable[[str, str], None]:
        """
        Create the (log_type, message) callback that pipeline components
        (retry manager, fallback chain, orchestrator) report through.
        """
        def log_callback(log_type: str, message: str = ""):
            key = (log_type or "").lower()
            if "offline simulation" in message.lower():
                self.log(LogLevel.WARNING, message, LogType.DEGRADED)
            elif "error" in key:
                self.error(message)
            elif "warning" in key or "retry" in key or "circuit" in key:
                self.warning(message, LogType.BACKEND_FALLBACK if "backend" in message.lower() else LogType.GENERAL)
            elif "debug" in key:
                self.debug(message)
            else:
                self.info(message)

        return log_callback


# Global logger instance
_global_logger = None


def get_logger(name: str = "epub2zh", **kwargs) -> UnifiedLogger:
    """
    Get or create the global logger instance

    Args:
        name: Logger name
        **kwargs: Additional arguments for UnifiedLogger

    Returns:
        UnifiedLogger instance
    """
    global _global_logger
    if _global_logger is None:
        _global_logger = UnifiedLogger(name, **kwargs)
    else:
        # Update callbacks if provided (for multi-job scenarios)
        if 'web_callback' in kwargs:
            _global_logger.web_callback = kwargs['web_callback']
        if 'storage_callback' in kwargs:
            _global_logger.storage_callback = kwargs['storage_callback']
    return _global_logger


def setup_cli_logger(enable_colors: bool = True) -> UnifiedLogger:
    """Setup logger for CLI usage"""
    # Import here to avoid circular dependencies
    from epub2zh.config import DEBUG_MODE

    return get_logger(
        console_output=True,
        enable_colors=enable_colors,
        min_level=LogLevel.DEBUG if DEBUG_MODE else LogLevel.INFO
    )


def setup_web_logger(web_callback: Optional[Callable] = None,
                     storage_callback: Optional[Callable] = None) -> UnifiedLogger:
    """Setup a logger for one web job (a new instance per job, not the global one)"""
    from epub2zh.config import DEBUG_MODE

    return UnifiedLogger(
        console_output=True,
        enable_colors=True,
        min_level=LogLevel.DEBUG if DEBUG_MODE else LogLevel.INFO,
        web_callback=web_callback,
        storage_callback=storage_callback
    )
