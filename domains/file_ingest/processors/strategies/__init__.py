"""
Classification strategies, in fallback order:

- local_model.py - On-device model daemon
- remote_llm.py - Hosted LLM
- web_lookup.py - Scraped stock-site metadata
- heuristic.py - Filename and extension rules, always answers
"""
