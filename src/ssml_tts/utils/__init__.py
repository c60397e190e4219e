"""
Utility Modules for ssml-tts.

    - text.py: Text normalization and paragraph splitting
    - ssml.py: <speak> envelope helpers and SSML flattening
    - json_repair.py: Lenient parsing of malformed JSON request bodies
    - timeit.py: Performance measurement utilities
"""
