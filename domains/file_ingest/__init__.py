"""
File Ingestion Domain

Monitors the downloads directory for media that needs routing:
- Multi-part cloud archives (name-timestamp-N-00k.zip) → Group, merge, extract
- Extracted and directly downloaded media → Classify through the strategy chain
- Classification results → Routing manifest and analytics events
"""

__all__ = ["collectors", "processors", "pipeline"]
