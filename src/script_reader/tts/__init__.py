"""
Synthesis Pipeline Components.

    - segmenter.py: Paragraph-based text segmentation
    - orchestrator.py: Sequential per-segment backend driving
    - history.py: Reference-counted audio resources and history cache
    - backend.py: Backend base class and factory
    - backends/: Backend implementations (gemini, stub)
"""
