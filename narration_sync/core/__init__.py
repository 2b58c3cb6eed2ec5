"""Core document, alignment, and synchronization modules.

WHY: The core package is the stable heart of narration sync: the IR
dataclasses, the two segmentations that must agree on word order, and the
engine that resolves playback time to a word. Every renderer, the CLI, and
the HTTP server consume these.

HOW: ir.py defines the data structures, tokenizer.py and narration.py build
the display artifact, segmenter.py builds the spoken word list,
sync.py resolves time to a word index, highlight.py maps that index back
onto tokens, session.py wires loading and validation together, and
synthesis.py handles chunked offline TTS generation.

RULES:
- IR dataclasses and their to_dict/from_dict are the artifact contract
- Word correspondence is positional; no module matches words by text
- No server, CLI, or vendor-client code in here; renderers get plain data helpers
"""
