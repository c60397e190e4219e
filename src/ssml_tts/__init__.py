"""
ssml-tts: Chunked Text-to-Speech Service.

Turns long text into ordered, size-bounded SSML segments, synthesizes each
segment with Google Cloud Text-to-Speech and uploads the audio to R2
(S3-compatible) or Google Cloud Storage.

Key Features:
    - Boundary-aware chunking (paragraph, sentence, hard slice)
    - Parallel per-segment synthesis with bounded concurrency
    - R2 / GCS upload with public URLs, or inline base64 audio
    - Proxy for the synthesizeLongAudio long-running operation
    - Tolerant JSON request parsing

Example Usage:
    >>> from ssml_tts.tts.chunker import chunk_text
    >>> [s.ssml for s in chunk_text("Hello there.\\n\\nGoodbye.")]
    ['<speak>Hello there. <break time="600ms"/> Goodbye.</speak>']
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
