"""
Export module for filenames and dataset placeholders.
"""
from dsl_export.export.idgen import sanitize_filename, slug, unique_filename_base
from dsl_export.export.placeholders import (
    PlaceholderTable,
    find_dataset_references,
    make_placeholder,
    parse_placeholder,
    replace_dataset_ids_with_placeholders,
    restore_dataset_ids,
)

__all__ = [
    "sanitize_filename",
    "slug",
    "unique_filename_base",
    "PlaceholderTable",
    "find_dataset_references",
    "make_placeholder",
    "parse_placeholder",
    "replace_dataset_ids_with_placeholders",
    "restore_dataset_ids",
]
