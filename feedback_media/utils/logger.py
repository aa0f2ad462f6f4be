import logging
from logging import handlers
from pathlib import Path
import socket
from typing import Optional, Dict
import os
from datetime import datetime, timezone
import sys

# Cache for loggers to avoid duplicate creation
_logger_cache: Dict[str, logging.Logger] = {}


def load_config():
    """Load config - uses centralized config module."""
    from .config import load_config as _load_config
    return _load_config()


def get_worker_name() -> str:
    """Get the worker name (FEEDBACK_MEDIA_WORKER_NAME or the hostname)."""
    name = os.getenv('FEEDBACK_MEDIA_WORKER_NAME')
    if name:
        return name
    try:
        return socket.gethostname()
    except OSError:
        return "unknown-worker"


class RotatingFileHandlerWithCompression(handlers.RotatingFileHandler):
    """Rotating file handler that compresses old log files"""
    def emit(self, record):
        try:
            # Check if Python is shutting down
            if not sys or not sys.modules:
                return
            super().emit(record)
        except Exception:
            self.handleError(record)

    def doRollover(self):
        if self.stream:
            self.stream.close()
            self.stream = None
        if self.backupCount > 0:
            for i in range(self.backupCount - 1, 0, -1):
                sfn = self.rotation_filename("%s.%d.gz" % (self.baseFilename, i))
                dfn = self.rotation_filename("%s.%d.gz" % (self.baseFilename, i + 1))
                if os.path.exists(sfn):
                    if os.path.exists(dfn):
                        os.remove(dfn)
                    os.rename(sfn, dfn)
            dfn = self.rotation_filename(self.baseFilename + ".1.gz")
            if os.path.exists(dfn):
                os.remove(dfn)
            # Compress the current log file
            import gzip
            with open(self.baseFilename, 'rb') as f_in:
                with gzip.open(dfn, 'wb') as f_out:
                    f_out.writelines(f_in)
        self.mode = 'w'
        self.stream = self._open()


class JobLogFormatter(logging.Formatter):
    """Formatter for job-level events (one line per processed media job)"""
    def format(self, record):
        try:
            worker_name = get_worker_name()
            timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime('%Y-%m-%d %H:%M:%S')
            component = getattr(record, 'component', 'unknown')

            if hasattr(record, 'job_event'):
                job_id = getattr(record, 'job_id', 'unknown')
                owner_id = getattr(record, 'owner_id', 'none')
                duration = getattr(record, 'duration', 0.0)
                success = getattr(record, 'success', False)
                error = getattr(record, 'error', None)

                outcome = "Job completed" if success else f"Job failed ({error or 'unknown'})"
                return f"{timestamp} [{worker_name}] [{component}] {outcome}: {job_id} owner={owner_id} ({duration:.1f}s)"
            return f"{timestamp} [{worker_name}] [{component}] {record.getMessage()}"
        except Exception:
            return record.getMessage()


class WorkerLogFormatter(logging.Formatter):
    """Formatter for detailed worker-level logs (debug/info messages for troubleshooting)"""
    def format(self, record):
        try:
            worker_name = get_worker_name()
            timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime('%Y-%m-%d %H:%M:%S')

            # Get logger name without worker prefix
            logger_name = record.name.split('.')[-1] if '.' in record.name else record.name

            message = f"{timestamp} [{worker_name}.{logger_name}] [{record.levelname}] {record.getMessage()}"
            if record.exc_info:
                message = f"{message}\n{self.formatException(record.exc_info)}"
            return message
        except Exception:
            return record.getMessage()


def setup_worker_logger(worker_type: str) -> logging.Logger:
    """Set up worker-level logger for detailed debug/info messages

    Args:
        worker_type: Component name (e.g. 'pipeline', 'reclaimer')
    """
    worker_name = get_worker_name()
    if not worker_type.startswith('worker.'):
        worker_type = f"worker.{worker_type}"
    logger_name = f"{worker_name}.{worker_type}"

    # Return cached logger if it exists
    if logger_name in _logger_cache:
        return _logger_cache[logger_name]

    try:
        config = load_config()
        logger = logging.getLogger(logger_name)
        logger.setLevel(getattr(logging, str(config['logging'].get('level', 'INFO')).upper(), logging.INFO))
        logger.propagate = False

        # Remove any existing handlers
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

        base_path = config['logging'].get('base_path')
        if base_path:
            worker_log_dir = Path(base_path) / worker_name
            worker_log_dir.mkdir(parents=True, exist_ok=True)

            log_file_name = f"{worker_name}_{worker_type.replace('worker.', '')}.log"
            fh = RotatingFileHandlerWithCompression(
                str(worker_log_dir / log_file_name),
                maxBytes=10*1024*1024,
                backupCount=5
            )
            fh.setFormatter(WorkerLogFormatter())
            logger.addHandler(fh)

            # File logging is on; keep the console for job events only
            ch = logging.StreamHandler()
            ch.setFormatter(JobLogFormatter())
            ch.addFilter(lambda record: hasattr(record, 'job_event'))
            logger.addHandler(ch)
        else:
            ch = logging.StreamHandler()
            ch.setFormatter(WorkerLogFormatter())
            logger.addHandler(ch)

        _logger_cache[logger_name] = logger
        return logger

    except Exception as e:
        # Fallback to basic console logging
        fallback = logging.getLogger(f"fallback.worker.{worker_type}")
        fallback.setLevel(logging.INFO)
        if not fallback.handlers:
            ch = logging.StreamHandler()
            ch.setFormatter(logging.Formatter('%(message)s'))
            fallback.addHandler(ch)
        fallback.warning(f"Could not configure worker logger {logger_name}: {e}")
        return fallback


def log_job_completion(media_type: str, job_id: str, owner_id: str, duration: float,
                       success: bool = True, error: Optional[str] = None):
    """Log a processed media job as a job event.

    Args:
        media_type: 'audio' or 'video'
        job_id: ID of the media job
        owner_id: ID of the owning survey response / feedback entry
        duration: Seconds spent on the job
        success: Whether the job ended ready
        error: Error code when the job failed
    """
    logger = setup_worker_logger(f"pipeline.{media_type}")
    extra = {
        'job_event': True,
        'job_id': job_id,
        'owner_id': owner_id,
        'duration': duration,
        'component': f"pipeline.{media_type}",
        'success': success,
        'error': error,
    }
    logger.info(f"job {job_id} finished success={success} error={error}", extra=extra)
