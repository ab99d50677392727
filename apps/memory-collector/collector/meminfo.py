import re
from typing import Dict

import structlog

from collector.errors import UpstreamUnavailable
from collector.models import MemorySampleEvent

logger = structlog.get_logger(__name__)

# "Active(anon):     123456 kB"
RE_MEMINFO = re.compile(r"^([\w()]+):\s+(\d+)", re.MULTILINE)
# "pgmajfault 1234"
RE_VMSTAT = re.compile(r"^(\w+)\s+(\d+)$", re.MULTILINE)

# /proc/meminfo key -> sample field; values are reported in kB
MEMINFO_FIELDS: Dict[str, str] = {
    "MemTotal": "total",
    "MemFree": "free",
    "MemAvailable": "available",
    "Buffers": "buffers",
    "Cached": "cached",
    "SwapTotal": "swap_total",
    "SwapFree": "swap_free",
    "SwapCached": "swap_cached",
    "Active": "active",
    "Inactive": "inactive",
    "Dirty": "dirty",
    "Mapped": "mapped",
    "AnonPages": "anon_pages",
    "Active(anon)": "active_anon",
    "Inactive(anon)": "inactive_anon",
    "Active(file)": "active_file",
    "Inactive(file)": "inactive_file",
    "Slab": "slab",
    "KernelStack": "kernel_stack",
    "PageTables": "page_tables",
    "Committed_AS": "committed",
    "VmallocUsed": "vmalloc_used",
}


def parse_meminfo(text: str) -> Dict[str, int]:
    """Parse /proc/meminfo into sample fields, converted from kB to bytes."""
    raw = {key: int(value) for key, value in RE_MEMINFO.findall(text)}
    fields = {
        field: raw[key] * 1024
        for key, field in MEMINFO_FIELDS.items()
        if key in raw
    }
    if "total" not in fields:
        raise UpstreamUnavailable("MemTotal missing from meminfo")

    total = fields["total"]
    if "available" not in fields:
        # Kernels before 3.14 have no MemAvailable
        logger.debug("MemAvailable missing, estimating from free+buffers+cached")
        fields["available"] = (
            fields.get("free", 0) + fields.get("buffers", 0) + fields.get("cached", 0)
        )
    fields["free"] = min(fields.get("free", 0), total)
    fields["available"] = min(fields["available"], total)
    swap_total = fields.get("swap_total", 0)
    fields["swap_free"] = min(fields.get("swap_free", 0), swap_total)
    return fields


def parse_vmstat(text: str) -> Dict[str, int]:
    """Extract cumulative page-fault counters from /proc/vmstat."""
    raw = {key: int(value) for key, value in RE_VMSTAT.findall(text)}
    if "pgfault" not in raw or "pgmajfault" not in raw:
        raise UpstreamUnavailable("page fault counters missing from vmstat")
    major = raw["pgmajfault"]
    # pgfault counts every fault, major ones included
    return {"major_faults": major, "minor_faults": max(0, raw["pgfault"] - major)}


class MemInfoReader:
    """Reads kernel memory counters into a publishable sample."""

    def __init__(self, host: str, meminfo_path: str = "/proc/meminfo",
                 vmstat_path: str = "/proc/vmstat") -> None:
        self._host = host
        self._meminfo_path = meminfo_path
        self._vmstat_path = vmstat_path

    def _read(self, path: str) -> str:
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return fh.read()
        except OSError as e:
            raise UpstreamUnavailable(f"cannot read {path}: {e}") from e

    def read(self) -> MemorySampleEvent:
        fields = parse_meminfo(self._read(self._meminfo_path))
        fields.update(parse_vmstat(self._read(self._vmstat_path)))
        return MemorySampleEvent(host=self._host, **fields)
