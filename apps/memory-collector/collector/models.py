from datetime import datetime, timezone

from pydantic import BaseModel, Field


class MemorySampleEvent(BaseModel):
    """One raw memory snapshot as published on the samples topic (bytes / counts)."""

    host: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    total: int
    free: int = 0
    available: int = 0
    buffers: int = 0
    cached: int = 0

    swap_total: int = 0
    swap_free: int = 0
    swap_cached: int = 0

    active: int = 0
    inactive: int = 0
    dirty: int = 0
    mapped: int = 0

    anon_pages: int = 0
    active_anon: int = 0
    inactive_anon: int = 0
    active_file: int = 0
    inactive_file: int = 0

    slab: int = 0
    kernel_stack: int = 0
    page_tables: int = 0
    committed: int = 0
    vmalloc_used: int = 0

    major_faults: int = 0
    minor_faults: int = 0
