"""
Dataset ID ⇄ placeholder rewriting for exported DSL documents.

Exported DSL references knowledge bases by environment-specific IDs. This
module swaps those IDs for name-derived placeholders of the form
``{{#dataset.<slug>#}}`` (and back), touching only reference sites:

- scalar items of a ``dataset_ids`` sequence (block or flow style)
- the ``id`` key of a ``dataset`` mapping (block or flow style)

Reference sites are located in the PyYAML node graph and only their source
spans are spliced, so every byte outside a reference site is preserved.
Block scalars and comments are never rewritten, even if they happen to
contain an ID. Text that is not valid YAML goes through a line scanner
instead.
"""
import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

import yaml

from dsl_export.core.exceptions import PlaceholderError
from dsl_export.export.idgen import DedupTracker, slug
from dsl_export.schemas.dataset import DatasetMapping

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "{{#dataset."
PLACEHOLDER_SUFFIX = "#}}"

_PLACEHOLDER = re.compile(r"^\{\{#dataset\.(?P<slug>[^#{}\s]+)#\}\}$")

# Reference sites
_DATASET_IDS_KEY = "dataset_ids"
_DATASET_KEY = "dataset"
_ID_KEY = "id"

_KEY_LINE = re.compile(
    r"""^(?P<indent>\ *)(?P<dash>-[ \t]+)?"""
    r"""(?P<key>[\w.\-]+|'[^']*'|"[^"]*")"""
    r"""[ \t]*:(?:[ \t]+(?P<value>.*?))?[ \t]*$"""
)
_ITEM_LINE = re.compile(r"^(?P<indent>\ *)-(?:[ \t]+(?P<value>.*?))?[ \t]*$")

_SCALAR = re.compile(
    r"""^(?:'(?P<single>(?:[^']|'')*)'|"(?P<double>[^"\\]*)"|(?P<plain>[^\s#'"\[\]{},&*!|>%@`][^\s#,\[\]{}]*))"""
    r"""(?P<rest>(?:[ \t]+#.*)?[ \t]*)$"""
)

_FLOW_SCALAR = (
    r"""(?:'(?P<single>(?:[^']|'')*)'|"(?P<double>[^"\\]*)"|(?P<plain>[^\s,\[\]{}#'"]+))"""
)
_FLOW_SEQ_ITEM = re.compile(r"(?P<lead>[\[,][ \t]*)" + _FLOW_SCALAR + r"(?=[ \t]*[,\]])")
_FLOW_MAP_ID = re.compile(
    r"""(?P<lead>[{,][ \t]*(?:id|'id'|"id")[ \t]*:[ \t]*)""" + _FLOW_SCALAR + r"(?=[ \t]*[,}])"
)

_PLAIN_SAFE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")
_YAML_SPECIAL = re.compile(
    r"^(?:[-+]?[0-9_]+(?:\.[0-9_]*)?|0x[0-9a-fA-F_]+|0o?[0-7_]+"
    r"|true|false|yes|no|on|off|y|n|null|~)$",
    re.IGNORECASE,
)
_ANCHOR_OR_TAG = re.compile(r"^[&!]\S*(?:[ \t]+#.*)?$")
_NODE_PROPERTY = re.compile(r"[&!]\S*\s*")

# Node styles that can be spliced in place; block scalars are skipped
_QUOTES_BY_STYLE = {None: "", "'": "'", '"': '"'}

Replacer = Callable[[str], Optional[str]]


def make_placeholder(dataset_slug: str) -> str:
    """Build the placeholder token for a slug."""
    return f"{PLACEHOLDER_PREFIX}{dataset_slug}{PLACEHOLDER_SUFFIX}"


def parse_placeholder(token: str) -> Optional[str]:
    """Return the slug encoded in ``token``, or None if it is not a placeholder."""
    match = _PLACEHOLDER.match(token)
    return match.group("slug") if match else None


class PlaceholderTable:
    """
    Two-way lookup between dataset IDs and placeholder slugs.

    Datasets whose names slugify identically are ordered by ID: the first
    keeps the bare slug, the rest get ``_2``, ``_3``, ... The assignment
    depends only on the set of datasets, not on listing order.
    """

    def __init__(self, slugs_by_id: Dict[str, str], datasets_by_slug: Dict[str, DatasetMapping]):
        self._slugs_by_id = slugs_by_id
        self._datasets_by_slug = datasets_by_slug

    @classmethod
    def from_datasets(cls, datasets: Iterable[DatasetMapping]) -> "PlaceholderTable":
        unique: Dict[str, DatasetMapping] = {}
        for dataset in datasets:
            # First name wins for repeated ids
            unique.setdefault(dataset.id, dataset)

        groups: Dict[str, List[DatasetMapping]] = defaultdict(list)
        for dataset in sorted(unique.values(), key=lambda d: d.id):
            groups[slug(dataset.name)].append(dataset)

        tracker = DedupTracker()
        slugs_by_id: Dict[str, str] = {}

        # Bare slugs first so a suffixed slug never takes a real name's slot
        for base in sorted(groups):
            slugs_by_id[groups[base][0].id] = tracker.claim(base)
        for base in sorted(groups):
            for dataset in groups[base][1:]:
                slugs_by_id[dataset.id] = tracker.claim(base)

        datasets_by_slug = {s: unique[dataset_id] for dataset_id, s in slugs_by_id.items()}
        if len(datasets_by_slug) != len(slugs_by_id):
            raise PlaceholderError("Placeholder slugs are not unique")

        return cls(slugs_by_id, datasets_by_slug)

    def __len__(self) -> int:
        return len(self._slugs_by_id)

    def __contains__(self, dataset_id: object) -> bool:
        return dataset_id in self._slugs_by_id

    def slug_for(self, dataset_id: str) -> Optional[str]:
        return self._slugs_by_id.get(dataset_id)

    def placeholder_for(self, dataset_id: str) -> Optional[str]:
        dataset_slug = self._slugs_by_id.get(dataset_id)
        return make_placeholder(dataset_slug) if dataset_slug is not None else None

    def dataset_for_slug(self, dataset_slug: str) -> Optional[DatasetMapping]:
        return self._datasets_by_slug.get(dataset_slug)

    def name_to_slug(self) -> Dict[str, List[str]]:
        """Dataset name → assigned slugs (several when names repeat)."""
        mapping: Dict[str, List[str]] = defaultdict(list)
        for dataset_slug in sorted(self._datasets_by_slug):
            mapping[self._datasets_by_slug[dataset_slug].name].append(dataset_slug)
        return dict(mapping)


TableLike = Union[PlaceholderTable, Iterable[DatasetMapping]]


def _as_table(datasets: TableLike) -> PlaceholderTable:
    if isinstance(datasets, PlaceholderTable):
        return datasets
    return PlaceholderTable.from_datasets(datasets)


def replace_dataset_ids_with_placeholders(dsl: str, datasets: TableLike) -> str:
    """
    Replace dataset IDs at reference sites with placeholders.

    IDs missing from the table are left untouched. Idempotent: a second pass
    finds no raw IDs to replace.

    Args:
        dsl: DSL document text (need not be valid YAML)
        datasets: PlaceholderTable or iterable of DatasetMapping

    Returns:
        Rewritten document text
    """
    table = _as_table(datasets)
    if not len(table):
        return dsl
    return _rewrite_reference_sites(dsl, table.placeholder_for, prefer_plain=False)


def restore_dataset_ids(dsl: str, datasets: TableLike) -> str:
    """
    Replace placeholders at reference sites with dataset IDs.

    Usually called with the target environment's datasets before import.

    Raises:
        PlaceholderError: If a placeholder's slug is not in the table
    """
    table = _as_table(datasets)

    def _resolve(value: str) -> Optional[str]:
        dataset_slug = parse_placeholder(value)
        if dataset_slug is None:
            return None
        dataset = table.dataset_for_slug(dataset_slug)
        if dataset is None:
            raise PlaceholderError(f"No dataset matches placeholder {value!r}")
        return dataset.id

    return _rewrite_reference_sites(dsl, _resolve, prefer_plain=True)


def find_dataset_references(dsl: str) -> List[str]:
    """Values found at dataset reference sites, in document order."""
    found: List[str] = []

    def _collect(value: str) -> Optional[str]:
        found.append(value)
        return None

    _rewrite_reference_sites(dsl, _collect, prefer_plain=False)
    return found


def _rewrite_reference_sites(text: str, replace: Replacer, prefer_plain: bool) -> str:
    try:
        sites = _reference_nodes(text)
    except yaml.YAMLError as e:
        logger.debug(f"DSL is not valid YAML, scanning lines instead: {e}")
        return _scan_reference_sites(text, replace, prefer_plain)

    out: List[str] = []
    cursor = 0
    for node in sites:
        replacement = replace(node.value)
        if replacement is None or replacement == node.value:
            continue
        start, end = _value_span(text, node)
        out.append(text[cursor:start])
        out.append(_quote(replacement, _QUOTES_BY_STYLE[node.style], prefer_plain))
        cursor = end
    out.append(text[cursor:])
    return "".join(out)


def _reference_nodes(text: str) -> List[yaml.ScalarNode]:
    """Scalar nodes at reference sites, in document order."""
    found: Dict[int, yaml.ScalarNode] = {}
    seen: Set[int] = set()
    for document in yaml.compose_all(text, Loader=yaml.SafeLoader):
        _collect_sites(document, found, seen)
    return [found[index] for index in sorted(found)]


def _collect_sites(node: Optional[yaml.Node], found: Dict[int, yaml.ScalarNode], seen: Set[int]) -> None:
    # Aliases share node objects, so a node may be reached more than once
    if node is None or id(node) in seen:
        return
    seen.add(id(node))

    if isinstance(node, yaml.SequenceNode):
        for item in node.value:
            _collect_sites(item, found, seen)
    elif isinstance(node, yaml.MappingNode):
        for key, value in node.value:
            name = key.value if isinstance(key, yaml.ScalarNode) else None
            if name == _DATASET_IDS_KEY and isinstance(value, yaml.SequenceNode):
                for item in value.value:
                    _add_site(item, found)
            elif name == _DATASET_KEY and isinstance(value, yaml.MappingNode):
                for inner_key, inner_value in value.value:
                    if isinstance(inner_key, yaml.ScalarNode) and inner_key.value == _ID_KEY:
                        _add_site(inner_value, found)
            _collect_sites(value, found, seen)


def _add_site(node: yaml.Node, found: Dict[int, yaml.ScalarNode]) -> None:
    if isinstance(node, yaml.ScalarNode) and node.style in _QUOTES_BY_STYLE:
        found[node.start_mark.index] = node


def _value_span(text: str, node: yaml.ScalarNode) -> Tuple[int, int]:
    """Source span of the scalar itself, without any anchor or tag before it."""
    start, end = node.start_mark.index, node.end_mark.index
    while start < end and text[start] in "&!":
        start = _NODE_PROPERTY.match(text, start).end()
    return start, end


@dataclass
class _Frame:
    column: int
    key: str
    open: bool


def _scan_reference_sites(text: str, replace: Replacer, prefer_plain: bool) -> str:
    out: List[str] = []
    stack: List[_Frame] = []
    # Lines indented deeper than this belong to the previous inline value
    continuation: Optional[int] = None

    for raw in text.splitlines(keepends=True):
        body = raw.rstrip("\r\n")
        ending = raw[len(body):]
        stripped = body.strip()
        indent = len(body) - len(body.lstrip(" "))

        if continuation is not None:
            if not stripped or indent > continuation:
                out.append(raw)
                continue
            continuation = None

        if not stripped or stripped.startswith(("#", "%")) or stripped in ("---", "..."):
            out.append(raw)
            continue

        key_match = _KEY_LINE.match(body)
        if key_match:
            column = indent + len(key_match.group("dash") or "")
            key = _unquote_key(key_match.group("key"))
            value = key_match.group("value")

            while stack and stack[-1].column >= column:
                stack.pop()
            parent = stack[-1].key if stack and stack[-1].open else None

            if _opens_block(value):
                stack.append(_Frame(column, key, open=True))
                out.append(raw)
                continue

            new_value = None
            if key == _ID_KEY and parent == _DATASET_KEY:
                new_value = _rewrite_scalar(value, replace, prefer_plain)
            elif key == _DATASET_IDS_KEY and value.startswith("["):
                new_value = _rewrite_flow(value, _FLOW_SEQ_ITEM, replace, prefer_plain)
            elif key == _DATASET_KEY and value.startswith("{"):
                new_value = _rewrite_flow(value, _FLOW_MAP_ID, replace, prefer_plain)

            stack.append(_Frame(column, key, open=False))
            continuation = column
            if new_value is not None:
                out.append(_splice(body, key_match, new_value) + ending)
            else:
                out.append(raw)
            continue

        item_match = _ITEM_LINE.match(body)
        if item_match:
            value = item_match.group("value")
            while stack and (
                stack[-1].column > indent
                or (stack[-1].column == indent and not stack[-1].open)
            ):
                stack.pop()
            parent = stack[-1].key if stack and stack[-1].open else None

            if value is None:
                out.append(raw)
                continue

            continuation = indent
            if parent == _DATASET_IDS_KEY:
                new_value = _rewrite_scalar(value, replace, prefer_plain)
                if new_value is not None:
                    out.append(_splice(body, item_match, new_value) + ending)
                    continue
            out.append(raw)
            continue

        # Unrecognised line: its children belong to no reference site
        while stack and stack[-1].column >= indent:
            stack.pop()
        stack.append(_Frame(indent, "", open=True))
        out.append(raw)

    return "".join(out)


def _splice(body: str, match: "re.Match[str]", new_value: str) -> str:
    return body[: match.start("value")] + new_value + body[match.end("value"):]


def _unquote_key(key: str) -> str:
    if len(key) >= 2 and key[0] == key[-1] and key[0] in "'\"":
        return key[1:-1]
    return key


def _opens_block(value: Optional[str]) -> bool:
    """True when a key's children follow on later lines."""
    if value is None or value.startswith("#"):
        return True
    # Anchor or tag with nothing after it
    return bool(_ANCHOR_OR_TAG.match(value))


def _rewrite_scalar(value: str, replace: Replacer, prefer_plain: bool) -> Optional[str]:
    match = _SCALAR.match(value)
    if not match:
        return None
    quote, current = _scalar_parts(match)
    replacement = replace(current)
    if replacement is None or replacement == current:
        return None
    return _quote(replacement, quote, prefer_plain) + match.group("rest")


def _rewrite_flow(value: str, pattern: "re.Pattern[str]", replace: Replacer, prefer_plain: bool) -> Optional[str]:
    changed = False

    def _sub(match: "re.Match[str]") -> str:
        nonlocal changed
        quote, current = _scalar_parts(match)
        replacement = replace(current)
        if replacement is None or replacement == current:
            return match.group(0)
        changed = True
        return match.group("lead") + _quote(replacement, quote, prefer_plain)

    rewritten = pattern.sub(_sub, value)
    return rewritten if changed else None


def _scalar_parts(match: "re.Match[str]"):
    if match.group("single") is not None:
        return "'", match.group("single").replace("''", "'")
    if match.group("double") is not None:
        return '"', match.group("double")
    return "", match.group("plain")


def _is_plain_safe(value: str) -> bool:
    return bool(_PLAIN_SAFE.match(value)) and not _YAML_SPECIAL.match(value)


def _quote(value: str, quote: str, prefer_plain: bool) -> str:
    if _is_plain_safe(value) and (quote == "" or prefer_plain):
        return value
    if quote == '"' and "\\" not in value and '"' not in value:
        return f'"{value}"'
    escaped = value.replace("'", "''")
    return f"'{escaped}'"
