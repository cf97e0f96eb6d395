# Browser Package
"""
Shared browser lifecycle and per-context anti-detection.
"""

from radar_engine.infrastructure.browser.anti_detection import (
    apply_anti_detection,
    apply_jitter,
    random_user_agent,
    random_viewport,
)
from radar_engine.infrastructure.browser.browser_manager import (
    BrowserManager,
    BrowserMetrics,
    ContextLease,
)

__all__ = [
    "BrowserManager",
    "BrowserMetrics",
    "ContextLease",
    "apply_anti_detection",
    "apply_jitter",
    "random_user_agent",
    "random_viewport",
]
