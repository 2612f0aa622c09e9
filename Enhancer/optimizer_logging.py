"""
Structured logging for the enhancement optimizer.

Verbosity levels:
    - MINIMAL: Only final results and failures
    - SUMMARY: Run overview, mirror decisions, cache invalidations
    - DETAILED: Cost ladder and strategy tables
    - DEBUG: Per-strategy evaluation results
    - TRACE: Everything including per-material prices

Usage:
    from Enhancer.optimizer_logging import OptimizerLogger, LogLevel

    logger = OptimizerLogger(level=LogLevel.DETAILED)
    optimizer = EnhancementOptimizer(catalog, prices, logger=logger)
    optimizer.calculate_enhancement_path("/items/cheese_sword", 10, settings)
"""
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from io import StringIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, TextIO, Tuple, Union


class LogLevel(IntEnum):
    """Verbosity levels for optimizer logging."""
    SILENT = 0      # No output at all
    MINIMAL = 10    # Only final results and failures
    SUMMARY = 20    # Run overview and key decisions
    DETAILED = 30   # Ladder and strategy tables
    DEBUG = 40      # Per-strategy results
    TRACE = 50      # Per-material prices


@dataclass
class LogEntry:
    """A single log entry with metadata."""
    timestamp: datetime
    level: LogLevel
    category: str
    message: str
    data: Optional[Dict[str, Any]] = None

    def format(self, include_timestamp: bool = True, include_level: bool = True) -> str:
        """Format the log entry as a string."""
        parts = []
        if include_timestamp:
            parts.append(f"[{self.timestamp.strftime('%H:%M:%S.%f')[:-3]}]")
        if include_level:
            parts.append(f"[{self.level.name:8}]")
        parts.append(f"[{self.category}]")
        parts.append(self.message)
        return " ".join(parts)


@dataclass
class OptimizerLogger:
    """
    Structured logger for the enhancement optimizer.

    Collects log entries at various verbosity levels and can output
    to multiple destinations (console, file, string buffer).

    Attributes
    ----------
    level : LogLevel
        Minimum level to log (entries below this level are ignored)
    output : TextIO | None
        Output stream (defaults to sys.stderr)
    log_to_file : Path | None
        Optional path to also write logs to a file
    entries : list[LogEntry]
        All logged entries (for programmatic access)
    """
    level: LogLevel = LogLevel.SUMMARY
    output: Optional[TextIO] = None
    log_to_file: Optional[Path] = None
    include_timestamp: bool = True
    include_level: bool = True
    entries: List[LogEntry] = field(default_factory=list)
    _warned: Set[str] = field(default_factory=set, repr=False)
    _file_handle: Optional[TextIO] = field(default=None, repr=False)

    def __post_init__(self):
        if self.output is None:
            self.output = sys.stderr
        if self.log_to_file:
            self._file_handle = open(self.log_to_file, "w", encoding="utf-8")

    def close(self):
        """Close the file handle if opened."""
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def _log(self, level: LogLevel, category: str, message: str,
             data: Optional[Dict[str, Any]] = None) -> None:
        """Internal method to record and output a log entry."""
        if level > self.level:
            return

        entry = LogEntry(
            timestamp=datetime.now(),
            level=level,
            category=category,
            message=message,
            data=data,
        )
        self.entries.append(entry)

        formatted = entry.format(self.include_timestamp, self.include_level)
        if self.output:
            self.output.write(formatted + "\n")
            self.output.flush()
        if self._file_handle:
            self._file_handle.write(formatted + "\n")
            self._file_handle.flush()

    def _log_table(self, level: LogLevel, category: str,
                   headers: List[str], rows: List[List[Any]],
                   title: Optional[str] = None) -> None:
        """Log a formatted table."""
        if level > self.level:
            return

        all_rows = [headers] + rows
        widths = [max(len(str(row[i])) for row in all_rows) for i in range(len(headers))]

        lines = []
        if title:
            lines.append(title)
            lines.append("=" * len(title))

        header_line = " | ".join(str(h).ljust(w) for h, w in zip(headers, widths))
        lines.append(header_line)
        lines.append("-" * len(header_line))

        for row in rows:
            row_line = " | ".join(str(v).ljust(w) for v, w in zip(row, widths))
            lines.append(row_line)

        for line in lines:
            self._log(level, category, line)

    def warn_once(self, key: str, category: str, message: str,
                  level: LogLevel = LogLevel.MINIMAL) -> None:
        """Log ``message`` only the first time ``key`` is seen by this logger."""
        if key in self._warned:
            return
        self._warned.add(key)
        self._log(level, category, message)

    def reset_warnings(self) -> None:
        """Forget which keys have already been warned about."""
        self._warned.clear()

    # -------------------------------------------------------------------------
    # Run Logging
    # -------------------------------------------------------------------------

    def log_run_start(self, item_id: str, target_level: int, item_level: int) -> None:
        """Log the start of an optimization run."""
        self._log(LogLevel.SUMMARY, "OPTIMIZER",
                  f"Optimizing {item_id} to +{target_level} (item level {item_level})")

    def log_run_finished(self, elapsed_ms: float) -> None:
        self._log(LogLevel.SUMMARY, "OPTIMIZER", f"Finished in {elapsed_ms:.1f}ms")

    def log_input_invalid(self, item_id: str, reason: str) -> None:
        """Log a rejected request."""
        self._log(LogLevel.MINIMAL, "OPTIMIZER", f"Skipping {item_id}: {reason}")

    # -------------------------------------------------------------------------
    # Strategy Logging
    # -------------------------------------------------------------------------

    def log_material_price(self, material_id: str, unit_price: float, count: float) -> None:
        """Log one material line of the per-attempt cost (TRACE level)."""
        if self.level < LogLevel.TRACE:
            return
        self._log(LogLevel.TRACE, "PRICE",
                  f"  {material_id}: {count:g} x {unit_price:,.2f}")

    def log_strategy_failure(self, item_id: str, target_level: int,
                             protect_from: int, reason: str) -> None:
        """Log a strategy dropped because the attempt model misbehaved."""
        self.warn_once(
            f"{item_id}:{target_level}:{protect_from}",
            "STRATEGY",
            f"Dropped {item_id} +{target_level} protect_from={protect_from}: {reason}",
        )

    def log_strategy(self, target_level: int, strategy: Any) -> None:
        """Log a successfully evaluated strategy."""
        if self.level < LogLevel.DEBUG:
            return
        self._log(LogLevel.DEBUG, "STRATEGY",
                  f"+{target_level} {strategy.label}: "
                  f"attempts={strategy.expected_attempts:.2f}, "
                  f"total={strategy.total_cost:,.0f}")

    def log_level_failure(self, item_id: str, target_level: int) -> None:
        """Log that no strategy could be priced for a level."""
        self._log(LogLevel.MINIMAL, "LADDER",
                  f"No strategy evaluated for {item_id} +{target_level}; aborting")

    # -------------------------------------------------------------------------
    # Ladder / Mirror Logging
    # -------------------------------------------------------------------------

    def log_ladder(self, costs: Sequence[float], title: str = "Cost Ladder") -> None:
        """Log the per-level minimum costs."""
        if self.level < LogLevel.DETAILED:
            return
        rows = [[f"+{level}", f"{cost:,.0f}"] for level, cost in enumerate(costs)]
        self._log_table(LogLevel.DETAILED, "LADDER", ["Level", "Cost"], rows, title=title)

    def log_mirror_skipped(self, mirror_price: float) -> None:
        """Log that the mirror pass was skipped for lack of a price."""
        self._log(LogLevel.DETAILED, "MIRROR",
                  f"Mirror unpriced ({mirror_price:g}); skipping duplication pass")

    def log_mirror_trigger(self, level: int, candidate: float, traditional: float) -> None:
        """Log the first level where duplication beats enhancing."""
        self._log(LogLevel.SUMMARY, "MIRROR",
                  f"Mirror path wins from +{level}: "
                  f"{candidate:,.0f} < {traditional:,.0f}")

    def log_mirror_plan(self, plan: Any) -> None:
        """Log consumed items and mirror count for a mirror plan."""
        if plan.mirror_start_level is None or self.level < LogLevel.DETAILED:
            return
        rows = [[f"+{c.level}", c.quantity, f"{c.cost_each:,.0f}", f"{c.total_cost:,.0f}"]
                for c in plan.consumed_items]
        rows.append(["mirror", plan.mirror_count, "", f"{plan.philosopher_mirror_cost:,.0f}"])
        self._log_table(LogLevel.DETAILED, "MIRROR",
                        ["Item", "Qty", "Each", "Total"], rows,
                        title="Mirror Consumption")

    # -------------------------------------------------------------------------
    # Result Logging
    # -------------------------------------------------------------------------

    def log_result(self, item_id: str, breakdown: Any) -> None:
        """Log the final breakdown summary."""
        optimal = breakdown.optimal_strategy
        path = (f"mirror from +{optimal.mirror_start_level}"
                if optimal.used_mirror else optimal.label)
        self._log(LogLevel.MINIMAL, "RESULT",
                  f"{item_id} +{breakdown.target_level}: {optimal.total_cost:,.0f} ({path})")

    def log_cache_event(self, event: str, detail: str = "") -> None:
        """Log a memoization cache hit, miss, or invalidation."""
        level = LogLevel.SUMMARY if event == "invalidate" else LogLevel.DEBUG
        message = f"Cache {event}" + (f": {detail}" if detail else "")
        self._log(level, "CACHE", message)

    # -------------------------------------------------------------------------
    # Utility Methods
    # -------------------------------------------------------------------------

    def get_entries_by_level(self, level: LogLevel) -> List[LogEntry]:
        """Return entries at or below a specific level."""
        return [e for e in self.entries if e.level <= level]

    def get_entries_by_category(self, category: str) -> List[LogEntry]:
        """Return entries matching a category."""
        return [e for e in self.entries if e.category == category]

    def to_string(self, level: Optional[LogLevel] = None) -> str:
        """Format all entries to a string."""
        entries = self.entries if level is None else self.get_entries_by_level(level)
        return "\n".join(e.format(self.include_timestamp, self.include_level)
                         for e in entries)

    def clear(self) -> None:
        """Clear all logged entries."""
        self.entries.clear()


def create_logger(
    level: Union[LogLevel, str, int] = LogLevel.SUMMARY,
    output: Optional[TextIO] = None,
    log_file: Optional[Path] = None,
) -> OptimizerLogger:
    """
    Factory function to create an OptimizerLogger.

    Parameters
    ----------
    level : LogLevel | str | int
        Verbosity level. Can be LogLevel enum, string name, or integer.
    output : TextIO | None
        Output stream. Defaults to sys.stderr.
    log_file : Path | None
        Optional path to write logs to file.

    Returns
    -------
    OptimizerLogger
        Configured logger instance
    """
    if isinstance(level, str):
        level = LogLevel[level.upper()]
    elif isinstance(level, int) and not isinstance(level, LogLevel):
        level = LogLevel(level)

    return OptimizerLogger(
        level=level,
        output=output,
        log_to_file=log_file,
    )


def create_string_logger(level: LogLevel = LogLevel.DETAILED) -> Tuple[OptimizerLogger, StringIO]:
    """
    Create a logger that writes to a string buffer.

    Useful for testing or capturing logs programmatically.

    Returns
    -------
    tuple[OptimizerLogger, StringIO]
        The logger and the buffer it writes to
    """
    buffer = StringIO()
    logger = OptimizerLogger(level=level, output=buffer)
    return logger, buffer
