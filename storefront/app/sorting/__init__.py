"""Ordering utilities shared by subscription and checkout code."""

from .sorter import ObjectSorter, SortProperty, attribute_selector

__all__ = ["ObjectSorter", "SortProperty", "attribute_selector"]
