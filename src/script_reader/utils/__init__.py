"""
Utility Modules.

    - audio.py: PCM merging and WAV container encoding/decoding
    - timeit.py: Stage timing
"""
