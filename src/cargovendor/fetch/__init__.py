"""Integrity-checked archive and git retrieval."""

from .git import GitCheckout, fetch_git
from .http import fetch_url
from .tree import copy_tree, hash_tree

__all__ = ["GitCheckout", "copy_tree", "fetch_git", "fetch_url", "hash_tree"]
