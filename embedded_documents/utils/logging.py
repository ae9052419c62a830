"""Structured logging for reconciliation and save cascades."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


def _class_name(value: Any) -> str | None:
    return value.__name__ if isinstance(value, type) else None


class StructuredEmbeddingLogger:
    """Structured logger for embedded document mutations."""

    def log_reconciliation(
        self,
        collection: Any,
        shape: str,
        updated: int,
        built: int,
    ) -> None:
        """Log one bulk attribute assignment with structured data."""
        log_data: dict[str, Any] = {
            "collection": type(collection).__name__,
            "document_class": _class_name(getattr(collection, "document_class", None)),
            "shape": shape,
            "updated": updated,
            "built": built,
            "size": len(collection),
        }

        log_msg = f"Reconciled {shape} payload: {updated} updated, {built} built"

        if built:
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.debug(log_msg, extra={"structured": log_data})

    def log_save(
        self,
        document: Any,
        saved: bool,
        issues: list[Any] | None = None,
    ) -> None:
        """Log a document save attempt with structured data."""
        log_data: dict[str, Any] = {
            "document_class": type(document).__name__,
            "id": getattr(document, "id", None),
            "saved": saved,
        }

        if issues:
            log_data["issues"] = [f"{issue.attribute} {issue.message}" for issue in issues]

        if saved:
            logger.debug(f"Saved {type(document).__name__}", extra={"structured": log_data})
        else:
            logger.warning(
                f"Refused to save invalid {type(document).__name__}",
                extra={"structured": log_data},
            )


structured_logger = StructuredEmbeddingLogger()
