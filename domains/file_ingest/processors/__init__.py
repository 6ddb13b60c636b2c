"""
File Ingestion Processors

Work done on completed downloads:
- extractor.py - Merge the parts of a fragment group into one folder
- classifier.py - Strategy fallback chain producing a ClassificationResult
- router.py - Hand results to the routing manifest
- events.py - Buffered analytics events
"""
