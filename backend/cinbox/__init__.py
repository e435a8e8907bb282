"""
cinbox — Common Inbox for archival ingest.

Items (folders of files) dropped into an inbox are driven through an
ordered task pipeline of validation, hashing and copy steps before the
data is promoted to its long-term target location.

Subpackages:
    config      — INI config parsing, placeholder resolution, settings
    folders     — Folder arena and path helpers
    hashing     — Hash computation, sidecar cache, output formats
    execution   — External command runner and exit-code contract
    tasks       — Task status machine, registry and task types
    items       — Item state machine, memory store, token files
    inbox       — Inbox loop, processing folders, work times
    monitoring  — Read-only HTTP API
"""

__version__ = "1.0.0"
