"""Reconciliation pipeline for the smartpen bridge.

Stages (leaf-first):
1. canonical - comparison keys for change detection
2. geometry - vertical overlap queries over strokes
3. estimate - strokes behind each recognized line
4. match - pair existing blocks with lines, classify actions
5. execute - apply actions, persist stroke links
6. editor - merge/split/indent edits before commit
7. changeset - net stroke changes for save confirmation
8. recognize - parse recognizer output into lines

`reconcile` wires stages 3-5 (and 8) into one pass per page.
"""

from .canonical import canonicalize, is_same_text
from .changeset import compute_change_set, compute_changes_by_page, summarize_changes
from .editor import EditorLine, LineEditor, build_commit_actions
from .estimate import estimate_lines, estimate_stroke_ids, resolve_shared_strokes
from .execute import ActionExecutor, ExecutionReport, Reassignment
from .geometry import DEFAULT_TOLERANCE, strokes_overlapping
from .match import BlockMatcher, MatchResult, block_stroke_index, combine_lines
from .recognize import Recognizer, parse_recognition, recognize_page
from .reconcile import (
    PassResult,
    ReconcileContext,
    commit_editor,
    reconcile_lines,
    transcribe_and_reconcile,
)

__all__ = [
    # Canonical
    "canonicalize",
    "is_same_text",
    # Geometry
    "DEFAULT_TOLERANCE",
    "strokes_overlapping",
    # Estimate
    "estimate_lines",
    "estimate_stroke_ids",
    "resolve_shared_strokes",
    # Match
    "BlockMatcher",
    "MatchResult",
    "block_stroke_index",
    "combine_lines",
    # Execute
    "ActionExecutor",
    "ExecutionReport",
    "Reassignment",
    # Editor
    "EditorLine",
    "LineEditor",
    "build_commit_actions",
    # Changes
    "compute_change_set",
    "compute_changes_by_page",
    "summarize_changes",
    # Recognition
    "Recognizer",
    "parse_recognition",
    "recognize_page",
    # Pass
    "PassResult",
    "ReconcileContext",
    "commit_editor",
    "reconcile_lines",
    "transcribe_and_reconcile",
]
