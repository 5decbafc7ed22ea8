"""
Process resource usage, reported at the end of a run so an operator can
tell whether the generator itself was the bottleneck.
"""

from typing import Any, Dict

import psutil


def resource_usage() -> Dict[str, Any]:
    """CPU time and memory of the current process."""
    process = psutil.Process()
    cpu = process.cpu_times()
    mem = process.memory_info()
    return {
        'cpu_user_seconds': cpu.user,
        'cpu_system_seconds': cpu.system,
        'rss_bytes': mem.rss,
        'num_threads': process.num_threads(),
    }


def describe_usage(usage: Dict[str, Any]) -> str:
    rss_mb = usage['rss_bytes'] / (1024 * 1024)
    return (
        f"Process CPU time: user {usage['cpu_user_seconds']:.2f}s, "
        f"system {usage['cpu_system_seconds']:.2f}s; "
        f"RSS {rss_mb:.1f}MB; threads {usage['num_threads']}"
    )
