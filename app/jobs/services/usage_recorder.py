"""
PostgresUsageRecorder: append-only log of tool invocations.

Recording is fire-and-forget. Failures are logged and never reach the
request that triggered them.
"""

from __future__ import annotations

from loguru import logger

from pixdrop_core.domain.usage import UsageEvent
from pixdrop_core.infrastructure.postgres import get_db_connection


class PostgresUsageRecorder:
    """
    Usage recorder backed by the ``tool_usage`` table.

    Usage:
        recorder = PostgresUsageRecorder()
        background_tasks.add_task(recorder.record, event)
    """

    def record(self, event: UsageEvent) -> None:
        """
        Insert one usage event.

        Args:
            event: The invocation to record.
        """
        try:
            with get_db_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO tool_usage
                    (tool_name, user_id, session_id, ip_address, user_agent, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    """,
                    (
                        event.tool_name,
                        event.user_id,
                        event.session_id,
                        event.ip_address or None,
                        event.user_agent or None,
                        event.created_at,
                    ),
                )
                conn.commit()
        except Exception as e:
            logger.warning(f"Failed to record usage for {event.tool_name}: {e}")
            return

        logger.debug(f"Recorded usage: {event.tool_name} (user={event.user_id or 'anonymous'})")
