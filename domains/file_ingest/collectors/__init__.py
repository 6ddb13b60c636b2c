"""
File Ingestion Collectors

Long-running services that watch the downloads directory:
- fragments.py - Multi-part archive filename grammar
- registry.py - In-progress fragment groups and completion detection
- sweeper.py - Hands complete groups off and reaps stale ones
- downloads.py - Watchdog handler and startup rescan
"""
