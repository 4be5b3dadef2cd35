"""
Structured operation logging for the item store.
"""

import logging
from typing import Any, Dict, List, Optional


def _truncate(value: str, limit: int = 50) -> str:
    return value[:limit] + "..." if len(value) > limit else value


class StructuredLogger:
    """Structured logger for item, search, embedding and index operations."""

    def __init__(self, name: str = "itemstore"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_item_operation(self, operation: str, item_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log an item lifecycle operation."""
        log_details = {"item_id": item_id}
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation(f"item.{operation}", status, log_details, level)

    def log_search(self, kind: str, query: Optional[str], candidates: int, returned: int, details: Dict[str, Any] = None):
        """Log a search with its candidate and result counts."""
        log_details = {
            "query": _truncate(query or ""),
            "candidates": candidates,
            "returned": returned,
        }
        if details:
            log_details.update(details)

        self.log_operation(f"search.{kind}", "success", log_details)

    def log_embedding_fallback(self, text_length: int, failures: List[str]):
        """Log that the deterministic fallback embedding was used."""
        log_details = {
            "text_length": text_length,
            "failures": [_truncate(f, 100) for f in failures],
        }
        self.log_operation("embedding.fallback", "degraded", log_details, logging.WARNING)

    def log_index_operation(self, operation: str, index_name: str, status: str = "success", details: Dict[str, Any] = None):
        """Log an index lifecycle operation."""
        log_details = {"index": index_name}
        if details:
            log_details.update(details)

        self.log_operation(f"index.{operation}", status, log_details)

    def log_maintenance(self, task_name: str, start_time: float, end_time: float, status: str = "success", details: Dict[str, Any] = None):
        """Log maintenance task execution."""
        duration_ms = round((end_time - start_time) * 1000, 2)
        log_details = {"duration_ms": duration_ms}
        if details:
            log_details.update(details)

        self.log_operation(f"maintenance.{task_name}", status, log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
