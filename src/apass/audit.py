"""Audit Logger - Append-only record of vault and sync operations.

Each operation appends one line; secret values and passwords never appear
in the log. The file is rotated daily and old rotations are pruned.
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional


class AuditLogger:
    """Append-only operation log with daily rotation and retention."""

    def __init__(self, log_path: Path, retention_days: int = 30, program: str = "apass"):
        """Initialize audit logger.

        Args:
            log_path: Path to the log file (e.g., ~/.apass/access.log)
            retention_days: Number of days to keep rotated logs
            program: Program name written next to the PID

        """
        self.log_path = Path(log_path)
        self.retention_days = retention_days
        self.program = program
        self._last_rotation_check: Optional[datetime] = None
        self.rotated_prefix = self.log_path.name + "."

        # Restrict only a directory created here
        if not self.log_path.parent.exists():
            self.log_path.parent.mkdir(parents=True)
            self.log_path.parent.chmod(0o700)
        self._touch()

    def _touch(self) -> None:
        if not self.log_path.exists():
            fd = os.open(
                str(self.log_path),
                os.O_CREAT | os.O_APPEND | os.O_WRONLY,
                0o600
            )
            os.close(fd)

    def log(
        self,
        result: str,
        action: str,
        key: Optional[str] = None,
        reason: Optional[str] = None
    ) -> None:
        """Append one operation record.

        Format: ISO8601Z [PID/program] RESULT ACTION key [reason]

        Args:
            result: OK | DENIED | ERROR
            action: GET | ALL | GREP | KEYS | SET | DELETE | PASSWD | BIND | PULL | PUSH
            key: Secret key, keyword or remote the operation targeted
            reason: Optional reason for DENIED/ERROR

        """
        self._check_rotation()

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        parts = [
            timestamp,
            f"[{os.getpid()}/{self.program}]",
            result,
            action,
            key if key else "-",
        ]
        if reason:
            # Keep one record per line
            parts.append(" ".join(reason.split()))

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(" ".join(parts) + "\n")

    def _check_rotation(self) -> None:
        """Rotate once the log was last written before today (UTC)."""
        now = datetime.now(timezone.utc)

        if self._last_rotation_check:
            if (now - self._last_rotation_check).total_seconds() < 3600:
                return
        self._last_rotation_check = now

        if not self.log_path.exists():
            return

        mtime = datetime.fromtimestamp(self.log_path.stat().st_mtime, tz=timezone.utc)
        today_midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

        if mtime < today_midnight:
            self._rotate(mtime)
            self._cleanup_old_logs()
            self._touch()

    def _rotate(self, last_written: datetime) -> None:
        rotated_path = self.log_path.parent / (
            self.rotated_prefix + last_written.strftime("%Y%m%d")
        )
        if not rotated_path.exists():
            self.log_path.rename(rotated_path)

    def _cleanup_old_logs(self) -> None:
        """Remove rotated logs older than the retention period."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=self.retention_days)

        for log_file in self.log_path.parent.glob(self.rotated_prefix + "*"):
            date_str = log_file.name[len(self.rotated_prefix):]
            try:
                log_date = datetime.strptime(date_str, "%Y%m%d").replace(
                    tzinfo=timezone.utc
                )
            except ValueError:
                # Not one of ours
                continue
            if log_date < cutoff:
                log_file.unlink()

    def read_recent(self, lines: int = 100) -> List[str]:
        """Read recent log entries, most recent last."""
        if not self.log_path.exists():
            return []
        with open(self.log_path, encoding="utf-8") as f:
            return f.readlines()[-lines:]

    def get_log_files(self) -> List[Path]:
        """Get current and rotated log files, newest first."""
        logs = []
        if self.log_path.exists():
            logs.append(self.log_path)
        logs.extend(self.log_path.parent.glob(self.rotated_prefix + "*"))
        logs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return logs
