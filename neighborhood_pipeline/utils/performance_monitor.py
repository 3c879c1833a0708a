#!/usr/bin/env python3

"""
Performance monitoring for the neighborhood pipeline.

Tracks elapsed time, resident memory and processed record counts for each
pipeline phase.
"""

import time
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional, Dict, Any

import psutil

from ..core.exceptions import MemoryError as PipelineMemoryError


@dataclass
class PhaseMetrics:
    """Timing, memory and record counts of one phase."""
    start_time: float
    end_time: Optional[float] = None
    peak_memory_mb: float = 0.0
    current_memory_mb: float = 0.0
    records_processed: int = 0
    phase_name: str = ""

    @property
    def elapsed_time(self) -> float:
        """Get elapsed time in seconds."""
        if self.end_time is None:
            return time.time() - self.start_time
        return self.end_time - self.start_time

    @property
    def records_per_second(self) -> float:
        elapsed = self.elapsed_time
        if elapsed > 0 and self.records_processed > 0:
            return self.records_processed / elapsed
        return 0.0


class PerformanceMonitor:
    """Per-phase performance accounting with an optional memory ceiling."""

    def __init__(self, memory_limit_mb: int = 4096, enabled: bool = True):
        self.memory_limit_mb = memory_limit_mb
        self.enabled = enabled
        self.start_time = time.time()
        self.phase_metrics: Dict[str, PhaseMetrics] = {}
        self.current_phase: Optional[str] = None
        self.process = psutil.Process() if enabled else None

    def get_memory_usage(self) -> float:
        """Get current memory usage in MB."""
        if self.process is None:
            return 0.0

        memory_mb = self.process.memory_info().rss / 1024 / 1024
        if self.current_phase in self.phase_metrics:
            metrics = self.phase_metrics[self.current_phase]
            metrics.current_memory_mb = memory_mb
            metrics.peak_memory_mb = max(metrics.peak_memory_mb, memory_mb)
        return memory_mb

    def check_memory_limit(self) -> bool:
        """Raise if memory usage exceeds the configured limit."""
        current_memory = self.get_memory_usage()

        if current_memory > self.memory_limit_mb:
            logging.warning(f"Memory usage exceeded limit: {current_memory:.1f}MB > {self.memory_limit_mb}MB")
            raise PipelineMemoryError("Memory usage exceeded limit", current_memory, self.memory_limit_mb)

        return True

    def start_phase(self, phase_name: str) -> None:
        """Start monitoring a processing phase."""
        if self.current_phase:
            self.end_phase()

        self.current_phase = phase_name
        self.phase_metrics[phase_name] = PhaseMetrics(start_time=time.time(), phase_name=phase_name)
        self.get_memory_usage()

        logging.info(f"Started phase: {phase_name}")

    def end_phase(self) -> Optional[PhaseMetrics]:
        """End the current phase and return its metrics."""
        if not self.current_phase:
            return None

        metrics = self.phase_metrics[self.current_phase]
        self.get_memory_usage()
        metrics.end_time = time.time()

        logging.info(f"Completed phase {self.current_phase} in {metrics.elapsed_time:.2f}s "
                     f"({metrics.records_processed} records, peak memory: {metrics.peak_memory_mb:.1f}MB)")

        self.current_phase = None
        return metrics

    @contextmanager
    def phase_context(self, phase_name: str):
        """Context manager for monitoring a phase."""
        self.start_phase(phase_name)
        try:
            yield self.phase_metrics[phase_name]
        finally:
            self.end_phase()

    def get_peak_memory(self) -> float:
        """Get peak memory usage across all phases."""
        if not self.phase_metrics:
            return self.get_memory_usage()
        return max(metrics.peak_memory_mb for metrics in self.phase_metrics.values())

    def get_performance_summary(self) -> Dict[str, Any]:
        summary = {
            "total_elapsed_time": time.time() - self.start_time,
            "peak_memory_mb": self.get_peak_memory(),
            "memory_limit_mb": self.memory_limit_mb,
            "phases": {}
        }

        for phase_name, metrics in self.phase_metrics.items():
            summary["phases"][phase_name] = {
                "elapsed_time": metrics.elapsed_time,
                "records_processed": metrics.records_processed,
                "records_per_second": metrics.records_per_second,
                "peak_memory_mb": metrics.peak_memory_mb
            }

        return summary

    def log_performance_report(self) -> None:
        """Log a performance report of all phases."""
        summary = self.get_performance_summary()

        logging.info("=" * 50)
        logging.info("PERFORMANCE REPORT")
        logging.info("=" * 50)
        logging.info(f"Total time: {summary['total_elapsed_time']:.2f} seconds")
        logging.info(f"Peak memory: {summary['peak_memory_mb']:.1f} MB (limit {summary['memory_limit_mb']} MB)")

        for phase_name, phase_data in summary['phases'].items():
            logging.info(f"  {phase_name}: {phase_data['elapsed_time']:.2f}s "
                         f"({phase_data['records_processed']} records, "
                         f"{phase_data['records_per_second']:.1f} records/s, "
                         f"{phase_data['peak_memory_mb']:.1f}MB)")
