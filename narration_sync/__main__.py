"""Package entry point for ``python -m narration_sync``.

WHY: Users run the tooling as ``python -m narration_sync extract letter.mdx``.
Python's ``-m`` flag looks for ``__main__.py`` inside the package and
executes it.

RULES:
- This file must exist for ``python -m narration_sync`` to work
- All argument handling lives in cli.main()
"""

if __name__ == "__main__":
    from narration_sync.cli import main
    main()
