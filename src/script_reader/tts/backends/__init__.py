"""
Synthesis Backend Implementations.

    - gemini_backend.py: Remote Gemini text-to-speech over httpx
    - stub_backend.py: Deterministic offline tone generator

Backends are imported lazily by tts.backend.get_backend().
"""
