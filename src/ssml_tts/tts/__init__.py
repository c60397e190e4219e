"""
Chunking and Speech Collaborators.

This package provides the text-to-speech pipeline pieces:
    - chunker.py: Text to ordered <speak> segments
    - synthesizer.py: SpeechSynthesizer protocol and Google Cloud TTS client
    - storage.py: R2 (S3-compatible) and GCS audio stores
    - long_audio.py: synthesizeLongAudio operation client
"""
