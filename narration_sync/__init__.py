"""Narration Sync — word-level highlighting for narrated long-form documents.

WHY: A narrated document is only followable when the word being spoken is
visibly highlighted. The text shown on screen and the timing map returned by
the TTS engine are produced independently, so something has to reconcile the
two and answer "which word is playing right now" dozens of times a second.

HOW: Two segmentations feed one engine. The tokenizer turns Markdown/MDX into
blocks of word/space tokens; the segmenter turns the TTS character time map
into word/gap segments. The sync engine maps playback time to a single global
word index that the rendering layer looks up by position in the token
document.

RULES:
- Both segmentations must yield the same number of words in the same order
- Word correspondence is purely positional, never text-based
- Artifacts (token document, alignment payload) are read-only at runtime
- Every failure degrades to unhighlighted static text, never a crash
"""

__version__ = "0.1.0"
