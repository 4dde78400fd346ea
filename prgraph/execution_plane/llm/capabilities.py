"""Capability identifiers for LLM-backed graph features."""

from __future__ import annotations

PR_DECOMPOSITION = "pr_decomposition"
