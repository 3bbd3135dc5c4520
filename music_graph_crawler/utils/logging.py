"""
Logging configuration and utilities.

Console output plus an optional daily-rotated log file whose old
generations are pruned by a background ``schedule`` job.
"""

import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Optional
from datetime import datetime, timedelta
import threading
import schedule


_cleanup_thread: Optional[threading.Thread] = None


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    retention_days: int = 7
) -> None:
    """
    Set up logging for the application.
    
    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        retention_days: Number of days to retain rotated log files
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    
    # Clear existing handlers
    root_logger.handlers.clear()
    
    console_handler = logging.StreamHandler(sys.stderr)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)
    
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        
        file_handler = logging.handlers.TimedRotatingFileHandler(
            log_file,
            when='midnight',
            interval=1,
            backupCount=retention_days,
            encoding='utf-8'
        )
        file_handler.suffix = "%Y-%m-%d"
        
        file_formatter = logging.Formatter(
            '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)
        
        _start_log_cleanup_scheduler(log_path.parent, retention_days)
    
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.
    
    Args:
        name: Logger name (typically __name__)
        
    Returns:
        Standard library logger
    """
    return logging.getLogger(name)


def _start_log_cleanup_scheduler(logs_dir: Path, retention_days: int) -> None:
    """Start the daily log cleanup job in a daemon thread."""
    global _cleanup_thread
    
    if _cleanup_thread is not None and _cleanup_thread.is_alive():
        return
    
    def cleanup_job():
        cleanup_old_logs(logs_dir, retention_days)
    
    schedule.every().day.at("02:00").do(cleanup_job)
    
    def run_scheduler():
        while True:
            schedule.run_pending()
            time.sleep(60)
    
    _cleanup_thread = threading.Thread(target=run_scheduler, name="log-cleanup", daemon=True)
    _cleanup_thread.start()


def cleanup_old_logs(logs_dir: Path, retention_days: int = 7) -> int:
    """
    Remove log files older than the retention window.
    
    Args:
        logs_dir: Directory holding the log files
        retention_days: Number of days to keep
        
    Returns:
        Number of files removed
    """
    if not logs_dir.exists():
        return 0
    
    logger = get_logger(__name__)
    cleaned_count = 0
    cutoff_date = datetime.now() - timedelta(days=retention_days)
    
    for log_file in logs_dir.glob("*.log*"):
        if not log_file.is_file():
            continue
        file_mtime = datetime.fromtimestamp(log_file.stat().st_mtime)
        if file_mtime < cutoff_date:
            try:
                log_file.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove old log file {log_file.name}: {e}")
                continue
            cleaned_count += 1
    
    if cleaned_count > 0:
        logger.info(f"Removed {cleaned_count} expired log files from {logs_dir}")
    
    return cleaned_count
